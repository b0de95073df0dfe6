from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from ...core.database import get_db
from ...api.deps import require_doctor_profile
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentStatusUpdate, DoctorAppointmentsResponse, StatusUpdateResponse,
    TodaysAppointmentsResponse, AppointmentStatsResponse
)
from ...models.doctor import Doctor

router = APIRouter(prefix="/doctor/appointments", tags=["Doctor Appointments"])

@router.get("", response_model=DoctorAppointmentsResponse)
async def list_appointments(
    status: Optional[str] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    doctor: Doctor = Depends(require_doctor_profile("Only doctors can view appointments")),
    db: Session = Depends(get_db)
):
    """The doctor's appointments, filtered by status ("all" for every status) and date."""
    return AppointmentService(db).list_for_doctor(doctor, status, on_date)

@router.get("/today", response_model=TodaysAppointmentsResponse)
async def todays_appointments(
    doctor: Doctor = Depends(require_doctor_profile("Only doctors can view appointments")),
    db: Session = Depends(get_db)
):
    """Pending and confirmed appointments for today."""
    return AppointmentService(db).todays_appointments(doctor)

@router.get("/stats", response_model=AppointmentStatsResponse)
async def appointment_stats(
    doctor: Doctor = Depends(
        require_doctor_profile("Only doctors can view appointment statistics")
    ),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).get_stats(doctor)

@router.put("/{appointment_id}/status", response_model=StatusUpdateResponse)
async def update_appointment_status(
    appointment_id: int,
    update: AppointmentStatusUpdate,
    doctor: Doctor = Depends(
        require_doctor_profile("Only doctors can update appointment status")
    ),
    db: Session = Depends(get_db)
):
    """Confirm, complete, reject or cancel an appointment, optionally with a note."""
    return AppointmentService(db).update_status(doctor, appointment_id, update.status, update.notes)
