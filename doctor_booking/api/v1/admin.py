from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...services.doctor_service import DoctorService
from ...schemas.doctor import DoctorApprovalResponse
from ...models.user import User

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.patch("/doctors/{doctor_id}/approve", response_model=DoctorApprovalResponse)
async def approve_doctor(
    doctor_id: int,
    approve: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin_user)
):
    """Approve a doctor for patient bookings, or revoke with approve=false (admin only)."""
    doctor = DoctorService(db).set_approval(doctor_id, current_user, approve)
    return DoctorApprovalResponse.model_validate(doctor)
