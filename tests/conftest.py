import os
from datetime import datetime

# Set testing environment before the application reads its settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient

from doctor_booking.main import app
from doctor_booking.core.database import Base, SessionLocal, engine, redis_client
from doctor_booking.core.security import UserRole, create_access_token
from doctor_booking.models.user import User
from doctor_booking.models.doctor import Doctor
from doctor_booking.models.time_slot import TimeSlot, WEEKDAYS
from doctor_booking.models.appointment import Appointment, AppointmentStatus, PaymentStatus


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    redis_client.flushdb()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def create_user(db):
    def _create(email, role, is_active=True):
        user = User(email=email, role=role, is_active=is_active, is_verified=True)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _create


@pytest.fixture
def create_doctor(db, create_user):
    """Doctor user plus a completed profile, optionally approved by an admin."""
    def _create(email="house@example.com", license_number="LIC-1001", approved=False, is_active=True):
        user = create_user(email, UserRole.DOCTOR, is_active=is_active)
        doctor = Doctor(
            user_id=user.id,
            first_name="Gregory",
            last_name="House",
            specialization="Diagnostics",
            license_number=license_number,
            years_of_experience=12,
            consultation_fee=150.0,
            rating_average=4.5,
            rating_count=8,
        )
        if approved:
            admin = create_user(f"admin.{email}", UserRole.ADMIN)
            doctor.approved_by = admin.id
            doctor.approved_at = datetime.utcnow()
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor
    return _create


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def create_slot(db):
    def _create(doctor, day="Monday", start_time="09:00", end_time="10:00", is_available=True):
        slot = TimeSlot(
            doctor_id=doctor.id, day=day, start_time=start_time,
            end_time=end_time, is_available=is_available
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot
    return _create


@pytest.fixture
def create_appointment(db):
    """Appointment row written directly, bypassing the booking checks."""
    def _create(doctor, patient, appointment_date, start_time="09:00", end_time="10:00",
                status=AppointmentStatus.PENDING, amount=155.0, slot=None):
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            slot_id=slot.id if slot else None,
            appointment_date=appointment_date,
            day=WEEKDAYS[appointment_date.weekday()],
            start_time=start_time,
            end_time=end_time,
            status=status,
            payment_status=PaymentStatus.PENDING,
            amount=amount,
            notes="",
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment
    return _create
