from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class Weekday(str, enum.Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

WEEKDAYS = [day.value for day in Weekday]

class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    BLOCKED = "blocked"

    @classmethod
    def from_flag(cls, is_available: bool) -> "SlotStatus":
        return cls.AVAILABLE if is_available else cls.BLOCKED

class TimeSlot(Base):
    """Weekly recurring window, [start_time, end_time) on `day`."""
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)

    day = Column(String(10), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM, zero padded
    end_time = Column(String(5), nullable=False)
    status = Column(SQLEnum(SlotStatus), nullable=False, default=SlotStatus.AVAILABLE)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="slots")

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    @is_available.setter
    def is_available(self, value: bool) -> None:
        self.status = SlotStatus.from_flag(value)

    def __repr__(self):
        return f"<TimeSlot(id={self.id}, doctor_id={self.doctor_id}, {self.day} {self.start_time}-{self.end_time})>"
