from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import (
    get_current_doctor, get_doctor_user, rate_limit_check
)
from ...services.slot_service import SlotService
from ...services.doctor_service import DoctorService
from ...schemas.slot import (
    SlotsCreateRequest, SlotUpdate, SlotResponse, AddSlotsResponse,
    SlotListResponse, DeleteSlotResponse, AvailableSlotsResponse,
    DoctorStatsResponse
)
from ...schemas.doctor import DoctorProfileRequest, DoctorProfileResponse
from ...models.doctor import Doctor
from ...models.user import User

router = APIRouter(prefix="/doctor", tags=["Doctor"])

# Profile
@router.post("/profile", response_model=DoctorProfileResponse)
async def save_profile(
    profile_data: DoctorProfileRequest,
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """Create or update the calling doctor's profile."""
    doctor, _ = DoctorService(db).create_or_update_profile(current_user, profile_data)
    return DoctorProfileResponse.model_validate(doctor)

@router.get("/profile", response_model=DoctorProfileResponse)
async def get_profile(
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """Get the calling doctor's profile."""
    return DoctorProfileResponse.model_validate(DoctorService(db).get_profile(current_user))

# Time slots
@router.post("/slots", response_model=AddSlotsResponse)
async def add_slots(
    slot_data: SlotsCreateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Add weekly time slots. The whole batch is rejected on the first invalid slot."""
    return SlotService(db).add_slots(doctor.id, slot_data.slots)

@router.get("/slots", response_model=SlotListResponse)
async def get_slots(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """List all time slots grouped by day."""
    return SlotService(db).get_slots(doctor.id)

@router.put("/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: int,
    changes: SlotUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Change a slot's times or mark it available/blocked."""
    return SlotService(db).update_slot(doctor.id, slot_id, changes)

@router.delete("/slots/{slot_id}", response_model=DeleteSlotResponse)
async def delete_slot(
    slot_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Remove a time slot permanently."""
    return SlotService(db).delete_slot(doctor.id, slot_id)

@router.get("/stats", response_model=DoctorStatsResponse)
async def get_stats(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    return SlotService(db).get_stats(doctor.id)

# Public
@router.get("/{doctor_id}/slots/available", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: int,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Available slots of an approved doctor, for patients to book."""
    return SlotService(db).query_available_slots(doctor_id)
