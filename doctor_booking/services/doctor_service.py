from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from fastapi import HTTPException, status
from datetime import datetime
from typing import Optional, Tuple
import logging

from ..core.exceptions import NotFoundError, StorageError
from ..models.doctor import Doctor
from ..models.user import User
from ..schemas.doctor import DoctorProfileRequest, DoctorDirectoryEntry, DoctorDirectoryResponse

logger = logging.getLogger(__name__)

REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "specialization", "license_number")

class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user: User) -> Doctor:
        """Return the doctor profile owned by the user."""
        doctor = self.db.query(Doctor).filter(Doctor.user_id == user.id).first()
        if not doctor:
            raise NotFoundError("Doctor profile not found. Please complete your profile first.")
        return doctor

    def create_or_update_profile(
        self,
        user: User,
        profile_data: DoctorProfileRequest
    ) -> Tuple[Doctor, bool]:
        """Create the doctor's profile, or overwrite the fields provided."""
        values = profile_data.model_dump(exclude_none=True)

        # License numbers are unique across doctors
        license_number = values.get("license_number")
        if license_number:
            taken = self.db.query(Doctor).filter(
                Doctor.license_number == license_number,
                Doctor.user_id != user.id
            ).first()

            if taken:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="License number already registered"
                )

        doctor = self.db.query(Doctor).filter(Doctor.user_id == user.id).first()
        created = doctor is None

        if created:
            missing = [field for field in REQUIRED_PROFILE_FIELDS if not values.get(field)]
            if missing:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Missing required profile fields: {', '.join(missing)}"
                )

            # Start with empty slots
            doctor = Doctor(user_id=user.id, **values)
            self.db.add(doctor)
        else:
            for field, value in values.items():
                setattr(doctor, field, value)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="License number already registered"
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(f"Failed to save doctor profile for user {user.id}")
            raise StorageError("Server error while saving doctor profile") from exc

        self.db.refresh(doctor)
        logger.info(f"Doctor profile {'created' if created else 'updated'} for user {user.id}")
        return doctor, created

    def list_bookable(self, specialization: Optional[str] = None) -> DoctorDirectoryResponse:
        """Approved doctors with active accounts, for patients choosing whom to book."""
        query = self.db.query(Doctor).join(User, Doctor.user_id == User.id).filter(
            Doctor.approved_by.isnot(None),
            User.is_active.is_(True)
        )
        if specialization:
            query = query.filter(Doctor.specialization.ilike(f"%{specialization}%"))

        try:
            doctors = query.order_by(Doctor.last_name, Doctor.first_name).all()
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch doctor directory")
            raise StorageError("Server error while fetching doctors") from exc

        entries = [
            DoctorDirectoryEntry(
                id=doctor.id,
                name=doctor.full_name,
                email=doctor.user.email,
                specialization=doctor.specialization,
                experience=doctor.years_of_experience or 0,
                qualification=doctor.qualification,
                license_number=doctor.license_number,
                consultation_fee=doctor.consultation_fee or 0,
                rating=doctor.rating_average or 0,
                total_reviews=doctor.rating_count or 0,
                hospital_name=doctor.hospital_name,
                hospital_address=doctor.hospital_address,
            )
            for doctor in doctors
        ]
        return DoctorDirectoryResponse(count=len(entries), doctors=entries)

    def set_approval(self, doctor_id: int, admin: User, approve: bool = True) -> Doctor:
        """Grant or revoke the approval that makes a doctor bookable."""
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        if approve:
            doctor.approved_by = admin.id
            doctor.approved_at = datetime.utcnow()
        else:
            doctor.approved_by = None
            doctor.approved_at = None

        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(f"Failed to update approval for doctor {doctor_id}")
            raise StorageError("Server error while updating doctor approval") from exc

        self.db.refresh(doctor)
        logger.info(f"Doctor {doctor_id} {'approved' if approve else 'unapproved'} by admin {admin.id}")
        return doctor
