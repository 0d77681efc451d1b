import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from hackhub.db.base_class import Base
from hackhub.models.user import enum_values


class TeamRole(str, enum.Enum):
    LEADER = "Leader"
    MEMBER = "Member"


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_teams_event_name"),
    )

    event = relationship("Event", back_populates="teams")
    creator = relationship("User")

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # copied from the team so "one team per user per event" is a table constraint
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(
        Enum(TeamRole, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=TeamRole.MEMBER,
    )
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        UniqueConstraint("event_id", "user_id", name="uq_team_members_event_user"),
    )

    team = relationship("Team", back_populates="members")
    user = relationship("User")
