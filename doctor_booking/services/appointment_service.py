"""
Appointment booking on top of the weekly slot schedule.

A booking names one of the doctor's slots and a calendar date on that slot's
weekday. Bookings are written through ``SlotService.write_schedule`` so they
serialize with slot edits: a slot cannot be blocked or deleted between the
availability check and the insert, and two patients racing for the same slot
and date cannot both win.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import date, datetime, timedelta
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import (
    AppointmentValidationError, BookingConflictError, NotFoundError, StorageError
)
from ..core.security import AuthorizationError
from ..models.appointment import (
    Appointment, AppointmentStatus, PaymentStatus, ACTIVE_STATUSES, CLOSED_STATUSES
)
from ..models.doctor import Doctor
from ..models.time_slot import WEEKDAYS
from ..models.user import User
from ..schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentListResponse, AppointmentCounts,
    DoctorAppointmentsResponse, DoctorBrief, StatusUpdateResponse,
    TodaysAppointmentsResponse, AppointmentStatsResponse, AppointmentOverview,
    AppointmentTimeline
)
from .slot_service import SlotService

logger = logging.getLogger(__name__)

STATUS_VALUES = [s.value for s in AppointmentStatus]


def _count_by_status(appointments: List[Appointment]) -> AppointmentCounts:
    counts = AppointmentCounts(total=len(appointments))
    for appointment in appointments:
        field = appointment.status.value
        setattr(counts, field, getattr(counts, field) + 1)
    return counts


def _responses(appointments: List[Appointment]) -> List[AppointmentResponse]:
    return [AppointmentResponse.model_validate(a) for a in appointments]


class AppointmentService:
    def __init__(
        self,
        db: Session,
        platform_fee: Optional[float] = None,
        cancellation_notice_hours: Optional[int] = None,
    ):
        self.db = db
        self.platform_fee = (
            settings.APPOINTMENT_PLATFORM_FEE if platform_fee is None else platform_fee
        )
        self.cancellation_notice_hours = (
            settings.CANCELLATION_NOTICE_HOURS
            if cancellation_notice_hours is None else cancellation_notice_hours
        )

    # Patient side
    def book(self, patient: User, request: AppointmentCreate) -> AppointmentResponse:
        """Book one of a bookable doctor's available slots on a future date."""
        if not request.doctor_id or not request.appointment_date or not request.slot_id:
            raise AppointmentValidationError("Doctor ID, date, and time slot are required")

        appointment_date = request.appointment_date
        weekday = WEEKDAYS[appointment_date.weekday()]

        exists = self.db.query(Doctor.id).filter(Doctor.id == request.doctor_id).first()
        if not exists:
            raise NotFoundError("Doctor not found or not approved")

        def apply(doctor: Doctor) -> Appointment:
            if not doctor.is_bookable:
                raise NotFoundError("Doctor not found or not approved")

            slot = next((s for s in doctor.slots if s.id == request.slot_id), None)
            if slot is None:
                raise NotFoundError("Time slot not found")
            if not slot.is_available:
                raise AppointmentValidationError("Time slot is not available")
            if slot.day != weekday:
                raise AppointmentValidationError(
                    f"Time slot is on {slot.day}, but {appointment_date.isoformat()} is a {weekday}"
                )

            appointment = Appointment(
                doctor_id=doctor.id,
                patient_id=patient.id,
                slot_id=slot.id,
                appointment_date=appointment_date,
                day=slot.day,
                start_time=slot.start_time,
                end_time=slot.end_time,
                consultation_type=request.consultation_type,
                status=AppointmentStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                amount=(doctor.consultation_fee or 0) + self.platform_fee,
                notes=request.notes or "",
            )
            if appointment.starts_at < datetime.utcnow():
                raise AppointmentValidationError("Cannot book appointments in the past")

            self._ensure_slot_free(doctor.id, slot.id, appointment_date)
            self.db.add(appointment)
            return appointment

        appointment = SlotService(self.db).write_schedule(
            request.doctor_id, apply, "booking appointment"
        )

        logger.info(
            f"Patient {patient.id} booked appointment {appointment.id} with doctor "
            f"{appointment.doctor_id} on {appointment.appointment_date} {appointment.start_time}"
        )
        return AppointmentResponse.model_validate(appointment)

    def list_for_patient(self, patient: User) -> AppointmentListResponse:
        try:
            appointments = self.db.query(Appointment).filter(
                Appointment.patient_id == patient.id
            ).order_by(
                Appointment.appointment_date,
                Appointment.start_time,
                Appointment.created_at.desc()
            ).all()
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch appointments for patient {patient.id}")
            raise StorageError("Server error while fetching appointments") from exc

        return AppointmentListResponse(count=len(appointments), appointments=_responses(appointments))

    def cancel(self, patient: User, appointment_id: int, reason: Optional[str] = None) -> AppointmentResponse:
        """Cancel an open appointment, unless it starts within the notice window."""
        appointment = self._get_appointment(appointment_id)

        if appointment.patient_id != patient.id:
            raise AuthorizationError("Not authorized to cancel this appointment")

        if appointment.status in CLOSED_STATUSES:
            raise AppointmentValidationError(f"Appointment is already {appointment.status.value}")

        # Appointments already in the past may still be cancelled
        hours_until = (appointment.starts_at - datetime.utcnow()).total_seconds() / 3600
        if 0 < hours_until < self.cancellation_notice_hours:
            raise AppointmentValidationError(
                f"Appointments can only be cancelled at least "
                f"{self.cancellation_notice_hours} hours in advance"
            )

        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_reason = reason or "Patient cancelled"
        self._commit(f"cancelling appointment {appointment_id}")

        logger.info(f"Patient {patient.id} cancelled appointment {appointment_id}")
        return AppointmentResponse.model_validate(appointment)

    # Doctor side
    def list_for_doctor(
        self,
        doctor: Doctor,
        status: Optional[str] = None,
        on_date: Optional[date] = None
    ) -> DoctorAppointmentsResponse:
        query = self.db.query(Appointment).filter(Appointment.doctor_id == doctor.id)

        if status and status != "all":
            query = query.filter(Appointment.status == self._parse_status(status))
        if on_date:
            query = query.filter(Appointment.appointment_date == on_date)

        try:
            appointments = query.order_by(
                Appointment.appointment_date,
                Appointment.start_time,
                Appointment.created_at.desc()
            ).all()
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch appointments for doctor {doctor.id}")
            raise StorageError("Server error while fetching appointments") from exc

        return DoctorAppointmentsResponse(
            appointments=_responses(appointments),
            stats=_count_by_status(appointments),
            doctor=DoctorBrief(name=doctor.full_name, specialization=doctor.specialization),
        )

    def update_status(
        self,
        doctor: Doctor,
        appointment_id: int,
        status: Optional[str],
        notes: Optional[str] = None
    ) -> StatusUpdateResponse:
        new_status = self._parse_status(status)
        appointment = self._get_appointment(appointment_id)

        if appointment.doctor_id != doctor.id:
            raise AuthorizationError("Not authorized to update this appointment")

        old_status = appointment.status

        # Reopening must not double-book a slot someone else took meanwhile
        if new_status in ACTIVE_STATUSES and old_status not in ACTIVE_STATUSES and appointment.slot_id:
            self._ensure_slot_free(
                doctor.id, appointment.slot_id, appointment.appointment_date, exclude_id=appointment.id
            )

        appointment.status = new_status
        if notes:
            entry = f"[Doctor Update: {datetime.utcnow():%Y-%m-%d %H:%M}] {notes}"
            appointment.notes = f"{appointment.notes}\n{entry}" if appointment.notes else entry

        self._commit(f"updating appointment {appointment_id}")

        logger.info(
            f"Doctor {doctor.id} moved appointment {appointment_id} "
            f"from {old_status.value} to {new_status.value}"
        )
        return StatusUpdateResponse(
            appointment=AppointmentResponse.model_validate(appointment),
            old_status=old_status,
            new_status=new_status,
        )

    def todays_appointments(self, doctor: Doctor) -> TodaysAppointmentsResponse:
        today = datetime.utcnow().date()
        try:
            appointments = self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor.id,
                Appointment.appointment_date == today,
                Appointment.status.in_(ACTIVE_STATUSES)
            ).order_by(Appointment.start_time).all()
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch today's appointments for doctor {doctor.id}")
            raise StorageError("Server error while fetching today's appointments") from exc

        return TodaysAppointmentsResponse(
            today=today,
            appointments=_responses(appointments),
            count=len(appointments),
        )

    def get_stats(self, doctor: Doctor) -> AppointmentStatsResponse:
        """Dashboard figures. Revenue counts completed appointments only."""
        today = datetime.utcnow().date()
        start_of_month = today.replace(day=1)
        start_of_year = today.replace(month=1, day=1)
        week_ago = today - timedelta(days=7)

        try:
            appointments = self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor.id
            ).all()
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch appointment statistics for doctor {doctor.id}")
            raise StorageError("Server error while fetching appointment statistics") from exc

        completed = [a for a in appointments if a.status == AppointmentStatus.COMPLETED]
        recent = sorted(
            (a for a in appointments if a.appointment_date >= week_ago),
            key=lambda a: (a.appointment_date, a.start_time),
            reverse=True
        )[:5]

        return AppointmentStatsResponse(
            overview=AppointmentOverview(
                total_appointments=len(appointments),
                total_patients=len({a.patient_id for a in appointments}),
                total_revenue=round(sum(a.amount or 0 for a in completed)),
                monthly_revenue=round(sum(
                    a.amount or 0 for a in completed if a.appointment_date >= start_of_month
                )),
                average_rating=doctor.rating_average or 0,
            ),
            status_breakdown=_count_by_status(appointments),
            timeline=AppointmentTimeline(
                monthly=sum(1 for a in appointments if a.appointment_date >= start_of_month),
                yearly=sum(1 for a in appointments if a.appointment_date >= start_of_year),
            ),
            recent_appointments=_responses(recent),
        )

    # Internals
    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def _parse_status(self, value: Optional[str]) -> AppointmentStatus:
        if value not in STATUS_VALUES:
            raise AppointmentValidationError("Invalid status value")
        return AppointmentStatus(value)

    def _ensure_slot_free(
        self,
        doctor_id: int,
        slot_id: int,
        on_date: date,
        exclude_id: Optional[int] = None
    ) -> None:
        query = self.db.query(Appointment.id).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.slot_id == slot_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        if query.first():
            raise BookingConflictError()

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(f"Database error while {action}")
            raise StorageError(f"Server error while {action}") from exc
