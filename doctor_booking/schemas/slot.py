from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Requests
class SlotCreate(CamelModel):
    # Untyped so a missing or malformed field surfaces as a slot validation error (400)
    day: Any = None
    start_time: Any = None
    end_time: Any = None
    is_available: Optional[bool] = True


class SlotsCreateRequest(CamelModel):
    slots: List[SlotCreate] = []

    @field_validator("slots", mode="before")
    @classmethod
    def non_list_is_empty(cls, value):
        # Anything but a list is treated as no slots at all
        return value if isinstance(value, list) else []


class SlotUpdate(CamelModel):
    start_time: Any = None
    end_time: Any = None
    is_available: Optional[bool] = None


# Responses
class SlotResponse(CamelModel):
    id: int
    day: str
    start_time: str
    end_time: str
    is_available: bool


class DaySlotResponse(CamelModel):
    id: int
    start_time: str
    end_time: str
    is_available: bool


class AddSlotsResponse(CamelModel):
    total_slots: int
    new_slots: List[SlotResponse]


class SlotListResponse(CamelModel):
    total_slots: int
    slots_by_day: Dict[str, List[DaySlotResponse]]
    all_slots: List[SlotResponse]


class DeleteSlotResponse(CamelModel):
    remaining_slots: int


class AvailableSlotEntry(CamelModel):
    slot_id: int
    start_time: str
    end_time: str


class RatingsResponse(CamelModel):
    average: float = 0
    count: int = 0


class DoctorSummary(CamelModel):
    id: int
    name: str
    specialization: str
    consultation_fee: float
    experience: int
    ratings: RatingsResponse


class AvailableSlotsResponse(CamelModel):
    doctor: DoctorSummary
    available_slots: Dict[str, List[AvailableSlotEntry]]
    total_available_slots: int


class DaySlotStats(CamelModel):
    total: int = 0
    available: int = 0


class ProfileStats(CamelModel):
    is_approved: bool
    experience: int
    consultation_fee: float
    rating: float
    total_reviews: int


class SlotStats(CamelModel):
    total_slots: int
    available_slots: int
    blocked_slots: int
    availability_percentage: int


class DoctorStatsResponse(CamelModel):
    profile_stats: ProfileStats
    slot_stats: SlotStats
    slots_by_day: Dict[str, DaySlotStats]
    next_available_slot: Optional[SlotResponse] = None
