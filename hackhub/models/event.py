import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hackhub.db.base_class import Base
from hackhub.models.user import enum_values


class EventMode(str, enum.Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    organizer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    theme: Mapped[str | None] = mapped_column(String(255))
    mode: Mapped[EventMode] = mapped_column(
        Enum(EventMode, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
    )

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submission_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    result_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    rules: Mapped[str | None] = mapped_column(Text)
    timeline: Mapped[str | None] = mapped_column(Text)
    tracks: Mapped[str | None] = mapped_column(Text)
    prizes: Mapped[str | None] = mapped_column(Text)
    sponsors: Mapped[str | None] = mapped_column(Text)

    # null or 0 means no cap
    max_team_size: Mapped[int | None] = mapped_column(Integer)

    # soft-delete marker
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    organizer = relationship("User", back_populates="organized_events")

    teams = relationship("Team", back_populates="event", cascade="all, delete-orphan")

    enrollments = relationship(
        "Enrollment", back_populates="event", cascade="all, delete-orphan"
    )
