from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException
from typing import Callable, Dict, List, Optional, TypeVar
import logging

from ..core.config import settings
from ..core.exceptions import (
    SlotValidationError, NotFoundError, DoctorUnavailableError,
    SlotConflictError, StorageError
)
from ..models.doctor import Doctor
from ..models.time_slot import TimeSlot, SlotStatus, WEEKDAYS
from ..schemas.slot import (
    SlotCreate, SlotUpdate, SlotResponse, DaySlotResponse, AddSlotsResponse,
    SlotListResponse, DeleteSlotResponse, AvailableSlotEntry, AvailableSlotsResponse,
    DoctorSummary, RatingsResponse, DoctorStatsResponse, ProfileStats, SlotStats,
    DaySlotStats
)
from .slot_validation import SlotWindow, validate_new_slots, validate_slot_change, to_minutes

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _window(slot: TimeSlot) -> SlotWindow:
    return SlotWindow(
        day=slot.day,
        start_time=slot.start_time,
        end_time=slot.end_time,
        is_available=slot.is_available,
        slot_id=slot.id,
    )


def _weekly_order(slots: List[TimeSlot]) -> List[TimeSlot]:
    """Monday first, then by start time within each day."""
    return sorted(
        slots,
        key=lambda slot: (WEEKDAYS.index(slot.day), to_minutes(slot.start_time), slot.id or 0)
    )


def _group_by_day(slots: List[TimeSlot], build) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for slot in _weekly_order(slots):
        grouped.setdefault(slot.day, []).append(build(slot))
    return grouped


class SlotService:
    """Weekly availability of a single doctor.

    Mutations follow validate-then-write: the pure checks in ``slot_validation``
    run against a snapshot of the doctor's slots and nothing is written unless
    the whole request passes. The write then claims the doctor's
    ``slot_version`` with a conditional UPDATE; if another writer got there
    first the snapshot is stale, so the transaction is rolled back and the
    request is validated again against fresh data.
    """

    def __init__(
        self,
        db: Session,
        min_duration_minutes: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.db = db
        self.min_duration_minutes = (
            settings.SLOT_MIN_DURATION_MINUTES if min_duration_minutes is None else min_duration_minutes
        )
        self.max_retries = settings.SLOT_WRITE_MAX_RETRIES if max_retries is None else max_retries

    # Mutations
    def add_slots(self, doctor_id: int, slots: List[SlotCreate]) -> AddSlotsResponse:
        """Validate and append a batch of slots, all or nothing."""
        def apply(doctor: Doctor) -> List[TimeSlot]:
            existing = [_window(slot) for slot in doctor.slots]
            check = validate_new_slots(slots, existing, self.min_duration_minutes)
            if not check.ok:
                raise SlotValidationError(check.error)

            created = [
                TimeSlot(
                    day=window.day,
                    start_time=window.start_time,
                    end_time=window.end_time,
                    status=SlotStatus.from_flag(window.is_available),
                )
                for window in check.slots
            ]
            doctor.slots.extend(created)
            return created

        created = self.write_schedule(doctor_id, apply, "adding time slots")
        doctor = self._load_doctor(doctor_id)

        logger.info(f"Doctor {doctor_id} added {len(created)} time slot(s)")
        return AddSlotsResponse(
            total_slots=len(doctor.slots),
            new_slots=[SlotResponse.model_validate(slot) for slot in created],
        )

    def update_slot(self, doctor_id: int, slot_id: int, changes: SlotUpdate) -> SlotResponse:
        """Apply the provided fields to one slot."""
        def apply(doctor: Doctor) -> TimeSlot:
            slot = next((s for s in doctor.slots if s.id == slot_id), None)
            if slot is None:
                raise NotFoundError("Time slot not found")

            others = [_window(s) for s in doctor.slots if s.id != slot_id]
            check = validate_slot_change(
                _window(slot),
                others,
                self.min_duration_minutes,
                start_time=changes.start_time,
                end_time=changes.end_time,
                is_available=changes.is_available,
            )
            if not check.ok:
                raise SlotValidationError(check.error)

            updated = check.slots[0]
            slot.start_time = updated.start_time
            slot.end_time = updated.end_time
            slot.status = SlotStatus.from_flag(updated.is_available)
            return slot

        slot = self.write_schedule(doctor_id, apply, "updating time slot")

        logger.info(f"Doctor {doctor_id} updated time slot {slot_id}")
        return SlotResponse.model_validate(slot)

    def delete_slot(self, doctor_id: int, slot_id: int) -> DeleteSlotResponse:
        def apply(doctor: Doctor) -> int:
            initial_count = len(doctor.slots)
            doctor.slots = [slot for slot in doctor.slots if slot.id != slot_id]
            if len(doctor.slots) == initial_count:
                raise NotFoundError("Time slot not found")
            return len(doctor.slots)

        remaining = self.write_schedule(doctor_id, apply, "deleting time slot")

        logger.info(f"Doctor {doctor_id} deleted time slot {slot_id}, {remaining} remaining")
        return DeleteSlotResponse(remaining_slots=remaining)

    # Queries
    def get_slots(self, doctor_id: int) -> SlotListResponse:
        """All slots of the doctor, available or blocked, grouped by weekday."""
        try:
            doctor = self._load_doctor(doctor_id)
            slots = list(doctor.slots)

            return SlotListResponse(
                total_slots=len(slots),
                slots_by_day=_group_by_day(slots, DaySlotResponse.model_validate),
                all_slots=[SlotResponse.model_validate(slot) for slot in slots],
            )
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch time slots for doctor {doctor_id}")
            raise StorageError("Server error while fetching time slots") from exc

    def query_available_slots(self, doctor_id: int) -> AvailableSlotsResponse:
        """Bookable slots of an approved, active doctor for patients."""
        try:
            doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
            if not doctor:
                raise NotFoundError("Doctor not found")

            if not doctor.is_bookable:
                raise DoctorUnavailableError()

            available = [slot for slot in doctor.slots if slot.is_available]

            return AvailableSlotsResponse(
                doctor=DoctorSummary(
                    id=doctor.id,
                    name=doctor.full_name,
                    specialization=doctor.specialization,
                    consultation_fee=doctor.consultation_fee or 0,
                    experience=doctor.years_of_experience or 0,
                    ratings=RatingsResponse(
                        average=doctor.rating_average or 0,
                        count=doctor.rating_count or 0,
                    ),
                ),
                available_slots=_group_by_day(
                    available,
                    lambda slot: AvailableSlotEntry(
                        slot_id=slot.id,
                        start_time=slot.start_time,
                        end_time=slot.end_time,
                    ),
                ),
                total_available_slots=len(available),
            )
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch available slots for doctor {doctor_id}")
            raise StorageError("Server error while fetching available slots") from exc

    def get_stats(self, doctor_id: int) -> DoctorStatsResponse:
        try:
            doctor = self._load_doctor(doctor_id)
            slots = _weekly_order(list(doctor.slots))
        except SQLAlchemyError as exc:
            logger.exception(f"Failed to fetch statistics for doctor {doctor_id}")
            raise StorageError("Server error while fetching doctor statistics") from exc

        total = len(slots)
        available = sum(1 for slot in slots if slot.is_available)

        slots_by_day: Dict[str, DaySlotStats] = {}
        for slot in slots:
            day_stats = slots_by_day.setdefault(slot.day, DaySlotStats())
            day_stats.total += 1
            if slot.is_available:
                day_stats.available += 1

        next_available = next((slot for slot in slots if slot.is_available), None)

        return DoctorStatsResponse(
            profile_stats=ProfileStats(
                is_approved=doctor.is_approved,
                experience=doctor.years_of_experience or 0,
                consultation_fee=doctor.consultation_fee or 0,
                rating=doctor.rating_average or 0,
                total_reviews=doctor.rating_count or 0,
            ),
            slot_stats=SlotStats(
                total_slots=total,
                available_slots=available,
                blocked_slots=total - available,
                availability_percentage=round(available / total * 100) if total else 0,
            ),
            slots_by_day=slots_by_day,
            next_available_slot=SlotResponse.model_validate(next_available) if next_available else None,
        )

    # Internals
    def _load_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor profile not found")
        return doctor

    def _claim_version(self, doctor_id: int, version: int) -> bool:
        """Conditional bump of the slot version; False when someone else bumped it."""
        claimed = self.db.query(Doctor).filter(
            Doctor.id == doctor_id,
            Doctor.slot_version == version
        ).update(
            {Doctor.slot_version: version + 1},
            synchronize_session=False
        )
        return claimed == 1

    def write_schedule(self, doctor_id: int, apply: Callable[[Doctor], T], action: str) -> T:
        """Run ``apply`` on a fresh copy of the doctor and commit it under the slot version.

        Anything that must not race with slot edits (bookings included) goes
        through here. ``apply`` raises to abort, and is called again after a
        version conflict.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                doctor = self._load_doctor(doctor_id)
                version = doctor.slot_version
                result = apply(doctor)

                if not self._claim_version(doctor_id, version):
                    self.db.rollback()
                    logger.warning(
                        f"Slot version conflict for doctor {doctor_id} while {action} "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    continue

                self.db.flush()
                self.db.commit()
                return result

            except HTTPException:
                self.db.rollback()
                raise
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception(f"Database error while {action} for doctor {doctor_id}")
                raise StorageError(f"Server error while {action}") from exc

        raise SlotConflictError()
