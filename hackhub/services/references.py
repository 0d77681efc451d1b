"""Referential checks for rows the document store points at.

MongoDB cannot enforce foreign keys into the relational tables, so every
document write that stores a user, event or team id validates it here first.
"""
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hackhub.core.responses import validation_error
from hackhub.models.event import Event
from hackhub.models.team import Team
from hackhub.models.user import User

_MODELS = {
    "user": (User, "User"),
    "event": (Event, "Event"),
    "team": (Team, "Team"),
}


class ReferenceValidator:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, kind: str, ref_id: int) -> bool:
        try:
            model, _label = _MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown reference kind: {kind}")
        count = self.db.scalar(
            select(func.count()).select_from(model).where(model.id == ref_id)
        )
        return bool(count)

    def missing(
        self,
        user_id: int | None = None,
        event_id: int | None = None,
        team_id: int | None = None,
    ) -> list[dict]:
        errors = []
        for kind, ref_id in (("user", user_id), ("event", event_id), ("team", team_id)):
            if ref_id is None:
                continue
            if not self.exists(kind, ref_id):
                label = _MODELS[kind][1]
                errors.append(
                    {"field": f"{kind}_id", "message": f"{label} with ID {ref_id} does not exist"}
                )
        return errors

    def require(self, **refs: int | None) -> None:
        errors = self.missing(**refs)
        if errors:
            raise validation_error(errors)
