from datetime import datetime
from pydantic import Field
from typing import List, Optional

from .slot import CamelModel


class DoctorProfileRequest(CamelModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    specialization: Optional[str] = Field(None, max_length=100)
    license_number: Optional[str] = Field(None, max_length=50)
    years_of_experience: Optional[int] = Field(None, ge=0)
    qualification: Optional[str] = None
    bio: Optional[str] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None
    consultation_fee: Optional[float] = Field(None, ge=0)


class DoctorProfileResponse(CamelModel):
    id: int
    user_id: int
    first_name: str
    last_name: str
    specialization: str
    license_number: str
    years_of_experience: int = 0
    qualification: Optional[str] = None
    bio: Optional[str] = None
    phone_number: Optional[str] = None
    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None
    consultation_fee: float = 0
    rating_average: float = 0
    rating_count: int = 0
    is_approved: bool
    approved_at: Optional[datetime] = None
    total_slots: int = 0


class DoctorDirectoryEntry(CamelModel):
    id: int
    name: str
    email: str
    specialization: str
    experience: int = 0
    qualification: Optional[str] = None
    license_number: str
    consultation_fee: float = 0
    rating: float = 0
    total_reviews: int = 0
    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None


class DoctorDirectoryResponse(CamelModel):
    count: int
    doctors: List[DoctorDirectoryEntry]


class DoctorApprovalResponse(CamelModel):
    id: int
    is_approved: bool
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
