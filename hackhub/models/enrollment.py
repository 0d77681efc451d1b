import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import relationship

from hackhub.db.base_class import Base
from hackhub.models.user import enum_values


class EnrollmentStatus(str, enum.Enum):
    ENROLLED = "Enrolled"
    CANCELLED = "Cancelled"
    WAITLISTED = "Waitlisted"


class Enrollment(Base):
    __tablename__ = "event_enrollments"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(EnrollmentStatus, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=EnrollmentStatus.ENROLLED,
    )
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # denormalized pointer, kept in sync by hackhub.services.enrollments
    team_id = Column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )

    __table_args__ = (
        UniqueConstraint(
            "event_id", "user_id", name="uq_event_enrollments_event_user"
        ),
    )

    user = relationship("User", back_populates="enrollments")
    event = relationship("Event", back_populates="enrollments")
    team = relationship("Team")
