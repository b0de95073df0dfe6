from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import require_role
from ...services.appointment_service import AppointmentService
from ...services.doctor_service import DoctorService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentCancel, AppointmentResponse, AppointmentListResponse
)
from ...schemas.doctor import DoctorDirectoryResponse
from ...models.user import User

router = APIRouter(prefix="/patient", tags=["Patient"])

@router.get("/doctors", response_model=DoctorDirectoryResponse)
async def list_doctors(
    specialization: Optional[str] = None,
    current_user: User = Depends(
        require_role([UserRole.PATIENT], "Only patients can view doctors list")
    ),
    db: Session = Depends(get_db)
):
    """Approved doctors open for booking, optionally filtered by specialization."""
    return DoctorService(db).list_bookable(specialization)

@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentCreate,
    current_user: User = Depends(
        require_role([UserRole.PATIENT], "Only patients can book appointments")
    ),
    db: Session = Depends(get_db)
):
    """Book an available slot of a doctor on a date that falls on the slot's weekday."""
    return AppointmentService(db).book(current_user, booking)

@router.get("/appointments", response_model=AppointmentListResponse)
async def list_appointments(
    current_user: User = Depends(
        require_role([UserRole.PATIENT], "Only patients can view appointments")
    ),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).list_for_patient(current_user)

@router.put("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    cancellation: Optional[AppointmentCancel] = None,
    current_user: User = Depends(
        require_role([UserRole.PATIENT], "Only patients can cancel appointments")
    ),
    db: Session = Depends(get_db)
):
    """Cancel one of your own appointments."""
    reason = cancellation.reason if cancellation else None
    return AppointmentService(db).cancel(current_user, appointment_id, reason)
