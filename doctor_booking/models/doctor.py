from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Float
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialization = Column(String(100), nullable=False)
    license_number = Column(String(50), nullable=False, unique=True)

    # Professional information
    years_of_experience = Column(Integer, default=0)
    qualification = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    consultation_fee = Column(Float, nullable=False, default=0)

    # Contact information
    phone_number = Column(String(20), nullable=True)
    hospital_name = Column(String(255), nullable=True)
    hospital_address = Column(String(255), nullable=True)

    # Ratings
    rating_average = Column(Float, default=0)
    rating_count = Column(Integer, default=0)

    # Approval
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    # Bumped on every slot mutation, compared before writing
    slot_version = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor", foreign_keys=[user_id])
    slots = relationship(
        "TimeSlot",
        back_populates="doctor",
        cascade="all, delete-orphan",
        order_by="TimeSlot.id",
    )
    appointments = relationship(
        "Appointment",
        back_populates="doctor",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_approved(self) -> bool:
        return self.approved_by is not None

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def is_bookable(self) -> bool:
        """Approved by an admin and backed by an active account."""
        return self.is_approved and self.user is not None and bool(self.user.is_active)

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.first_name} {self.last_name}', specialization='{self.specialization}')>"
