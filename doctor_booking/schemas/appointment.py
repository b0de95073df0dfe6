from datetime import date, datetime
from pydantic import Field
from typing import List, Optional

from ..models.appointment import AppointmentStatus, ConsultationType, PaymentStatus
from .slot import CamelModel


# Requests
class AppointmentCreate(CamelModel):
    # Optional so a missing field is reported as a 400 with one clear message
    doctor_id: Optional[int] = None
    appointment_date: Optional[date] = Field(None, alias="date")
    slot_id: Optional[int] = None
    consultation_type: ConsultationType = ConsultationType.ONLINE
    notes: Optional[str] = Field(None, max_length=2000)


class AppointmentCancel(CamelModel):
    reason: Optional[str] = Field(None, max_length=255)


class AppointmentStatusUpdate(CamelModel):
    status: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)


# Responses
class AppointmentResponse(CamelModel):
    id: int
    doctor_id: int
    patient_id: int
    slot_id: Optional[int] = None
    appointment_date: date = Field(alias="date")
    day: str
    start_time: str
    end_time: str
    consultation_type: ConsultationType
    status: AppointmentStatus
    payment_status: PaymentStatus
    amount: float
    notes: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class AppointmentListResponse(CamelModel):
    count: int
    appointments: List[AppointmentResponse]


class AppointmentCounts(CamelModel):
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    rejected: int = 0
    total: int = 0


class DoctorBrief(CamelModel):
    name: str
    specialization: str


class DoctorAppointmentsResponse(CamelModel):
    appointments: List[AppointmentResponse]
    stats: AppointmentCounts
    doctor: DoctorBrief


class StatusUpdateResponse(CamelModel):
    appointment: AppointmentResponse
    old_status: AppointmentStatus
    new_status: AppointmentStatus


class TodaysAppointmentsResponse(CamelModel):
    today: date
    appointments: List[AppointmentResponse]
    count: int


class AppointmentOverview(CamelModel):
    total_appointments: int
    total_patients: int
    total_revenue: int
    monthly_revenue: int
    average_rating: float


class AppointmentTimeline(CamelModel):
    monthly: int
    yearly: int


class AppointmentStatsResponse(CamelModel):
    overview: AppointmentOverview
    status_breakdown: AppointmentCounts
    timeline: AppointmentTimeline
    recent_appointments: List[AppointmentResponse]
