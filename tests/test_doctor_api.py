from datetime import timedelta

from doctor_booking.core.config import settings
from doctor_booking.core.database import redis_client
from doctor_booking.core.security import UserRole, create_access_token

# Test data
morning_slot = {"day": "Monday", "startTime": "09:00", "endTime": "12:00"}
afternoon_slot = {"day": "Monday", "startTime": "13:00", "endTime": "17:00"}

profile_data = {
    "firstName": "Lisa",
    "lastName": "Cuddy",
    "specialization": "Endocrinology",
    "licenseNumber": "LIC-3003",
    "yearsOfExperience": 15,
    "consultationFee": 200,
    "hospitalName": "Princeton-Plainsboro",
}


class TestDoctorSlots:

    def test_add_slots(self, client, create_doctor, auth_headers):
        """Test adding a batch of slots."""
        doctor = create_doctor()

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [morning_slot, {"day": "Tuesday", "startTime": "9:00", "endTime": "9:30"}]},
            headers=auth_headers(doctor.user)
        )
        assert response.status_code == 200

        data = response.json()
        assert data["totalSlots"] == 2
        assert data["newSlots"][0]["day"] == "Monday"
        assert data["newSlots"][0]["isAvailable"] is True
        assert data["newSlots"][1]["startTime"] == "09:00"
        assert "id" in data["newSlots"][1]

    def test_end_to_end_overlap_scenario(self, client, create_doctor, auth_headers):
        """Test that a slot bridging two existing blocks is rejected."""
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        response = client.post("/api/v1/doctor/slots", json={"slots": [morning_slot]}, headers=headers)
        assert response.json()["totalSlots"] == 1

        response = client.post("/api/v1/doctor/slots", json={"slots": [afternoon_slot]}, headers=headers)
        assert response.status_code == 200
        assert response.json()["totalSlots"] == 2

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": "11:00", "endTime": "14:00"}]},
            headers=headers
        )
        assert response.status_code == 400
        assert "overlaps" in response.json()["detail"]

        response = client.get("/api/v1/doctor/slots", headers=headers)
        assert response.json()["totalSlots"] == 2

    def test_adjacent_slot_is_accepted(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": "09:00", "endTime": "10:00"}]},
            headers=headers
        )
        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": "10:00", "endTime": "11:00"}]},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["totalSlots"] == 2

    def test_add_slots_validation_errors(self, client, create_doctor, auth_headers):
        """Test that invalid slots are rejected with a 400."""
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        response = client.post("/api/v1/doctor/slots", json={"slots": []}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Please provide at least one time slot"

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": "10:00", "endTime": "10:15"}]},
            headers=headers
        )
        assert response.status_code == 400
        assert "minimum slot duration" in response.json()["detail"]

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Someday", "startTime": "10:00", "endTime": "11:00"}]},
            headers=headers
        )
        assert response.status_code == 400

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": "10:00"}]},
            headers=headers
        )
        assert response.status_code == 400

    def test_wrongly_typed_slot_fields_are_bad_requests(self, client, create_doctor, auth_headers):
        """Test that wrong JSON types get a 400 naming the slot, not a 422."""
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": "Monday", "startTime": 900, "endTime": "10:00"}]},
            headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Slot 1: time must be in HH:MM format (24-hour)"

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{"day": 1, "startTime": "09:00", "endTime": "10:00"}]},
            headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Slot 1: invalid day: 1")

    def test_slots_must_be_a_list(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        for body in ({"slots": "Monday"}, {"slots": None}, {}):
            response = client.post("/api/v1/doctor/slots", json=body, headers=headers)
            assert response.status_code == 400
            assert response.json()["detail"] == "Please provide at least one time slot"

    def test_malformed_body_is_bad_request(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)

        response = client.post(
            "/api/v1/doctor/slots",
            json={"slots": [{**morning_slot, "isAvailable": "maybe"}]},
            headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("slots.0.isAvailable:")

        response = client.post("/api/v1/doctor/slots", json={"slots": ["Monday"]}, headers=headers)
        assert response.status_code == 400

    def test_update_with_wrongly_typed_time(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        created = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot]}, headers=headers
        ).json()["newSlots"][0]

        response = client.put(
            f"/api/v1/doctor/slots/{created['id']}",
            json={"startTime": 900},
            headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Start time must be in HH:MM format (24-hour)"

    def test_get_slots_is_idempotent(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        client.post(
            "/api/v1/doctor/slots",
            json={"slots": [morning_slot, {"day": "Friday", "startTime": "08:00", "endTime": "09:00", "isAvailable": False}]},
            headers=headers
        )

        first = client.get("/api/v1/doctor/slots", headers=headers).json()
        second = client.get("/api/v1/doctor/slots", headers=headers).json()

        assert first == second
        assert first["totalSlots"] == 2
        assert set(first["slotsByDay"]) == {"Monday", "Friday"}
        assert first["slotsByDay"]["Friday"][0]["isAvailable"] is False
        assert len(first["allSlots"]) == 2

    def test_update_slot_availability(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        created = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot]}, headers=headers
        ).json()["newSlots"][0]

        response = client.put(
            f"/api/v1/doctor/slots/{created['id']}",
            json={"isAvailable": False},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["isAvailable"] is False
        assert response.json()["startTime"] == "09:00"

        listing = client.get("/api/v1/doctor/slots", headers=headers).json()
        assert listing["allSlots"][0]["isAvailable"] is False

    def test_update_slot_rejects_overlap(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        created = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot, afternoon_slot]}, headers=headers
        ).json()["newSlots"]

        response = client.put(
            f"/api/v1/doctor/slots/{created[0]['id']}",
            json={"endTime": "13:30"},
            headers=headers
        )
        assert response.status_code == 400
        assert "overlaps" in response.json()["detail"]

    def test_update_missing_slot(self, client, create_doctor, auth_headers):
        doctor = create_doctor()

        response = client.put(
            "/api/v1/doctor/slots/4242",
            json={"isAvailable": False},
            headers=auth_headers(doctor.user)
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Time slot not found"

    def test_delete_slot(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        created = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot, afternoon_slot]}, headers=headers
        ).json()["newSlots"]

        response = client.delete(f"/api/v1/doctor/slots/{created[0]['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"remainingSlots": 1}

        response = client.delete(f"/api/v1/doctor/slots/{created[0]['id']}", headers=headers)
        assert response.status_code == 404

        listing = client.get("/api/v1/doctor/slots", headers=headers).json()
        assert listing["totalSlots"] == 1
        assert listing["allSlots"][0]["id"] == created[1]["id"]

    def test_stats(self, client, create_doctor, auth_headers):
        doctor = create_doctor()
        headers = auth_headers(doctor.user)
        client.post(
            "/api/v1/doctor/slots",
            json={"slots": [morning_slot, {**afternoon_slot, "isAvailable": False}]},
            headers=headers
        )

        response = client.get("/api/v1/doctor/stats", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["slotStats"] == {
            "totalSlots": 2,
            "availableSlots": 1,
            "blockedSlots": 1,
            "availabilityPercentage": 50,
        }
        assert data["profileStats"]["isApproved"] is False
        assert data["nextAvailableSlot"]["startTime"] == "09:00"


class TestSlotAccessControl:

    def test_patient_cannot_manage_slots(self, client, create_user, auth_headers):
        patient = create_user("patient@example.com", UserRole.PATIENT)

        response = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot]}, headers=auth_headers(patient)
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Only doctors can manage time slots"

    def test_admin_cannot_manage_slots(self, client, create_user, auth_headers):
        admin = create_user("admin@example.com", UserRole.ADMIN)

        response = client.get("/api/v1/doctor/slots", headers=auth_headers(admin))
        assert response.status_code == 403

    def test_doctor_without_profile(self, client, create_user, auth_headers):
        user = create_user("newdoc@example.com", UserRole.DOCTOR)

        response = client.post(
            "/api/v1/doctor/slots", json={"slots": [morning_slot]}, headers=auth_headers(user)
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Doctor profile not found"

    def test_missing_authorization_header(self, client, test_db):
        response = client.get("/api/v1/doctor/slots")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"
        assert response.headers["WWW-Authenticate"] == "Bearer"

        response = client.post("/api/v1/doctor/slots", json={"slots": [morning_slot]})
        assert response.status_code == 401

    def test_non_bearer_scheme(self, client, test_db):
        response = client.get("/api/v1/doctor/slots", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        headers = {"Authorization": "Bearer invalid_token"}

        response = client.get("/api/v1/doctor/slots", headers=headers)
        assert response.status_code == 401

    def test_expired_token(self, client, create_doctor):
        doctor = create_doctor()
        token = create_access_token(
            doctor.user.id, doctor.user.email, UserRole.DOCTOR, expires_delta=timedelta(minutes=-5)
        )

        response = client.get("/api/v1/doctor/slots", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deactivated_account(self, client, create_doctor, auth_headers):
        doctor = create_doctor(is_active=False)

        response = client.get("/api/v1/doctor/slots", headers=auth_headers(doctor.user))
        assert response.status_code == 401


class TestAvailableSlots:

    def test_unapproved_doctor(self, client, create_doctor):
        doctor = create_doctor(approved=False)

        response = client.get(f"/api/v1/doctor/{doctor.id}/slots/available")
        assert response.status_code == 400
        assert response.json()["detail"] == "Doctor is not available for appointments"

    def test_unknown_doctor(self, client, test_db):
        response = client.get("/api/v1/doctor/999/slots/available")
        assert response.status_code == 404
        assert response.json()["detail"] == "Doctor not found"

    def test_only_available_slots_are_listed(self, client, create_doctor, auth_headers):
        doctor = create_doctor(approved=True)
        client.post(
            "/api/v1/doctor/slots",
            json={"slots": [
                morning_slot,
                {**afternoon_slot, "isAvailable": False},
                {"day": "Wednesday", "startTime": "10:00", "endTime": "11:00"},
            ]},
            headers=auth_headers(doctor.user)
        )

        response = client.get(f"/api/v1/doctor/{doctor.id}/slots/available")
        assert response.status_code == 200

        data = response.json()
        assert data["totalAvailableSlots"] == 2
        assert data["availableSlots"]["Monday"] == [
            {"slotId": data["availableSlots"]["Monday"][0]["slotId"], "startTime": "09:00", "endTime": "12:00"}
        ]
        assert len(data["availableSlots"]["Wednesday"]) == 1
        assert data["doctor"]["name"] == "Gregory House"
        assert data["doctor"]["specialization"] == "Diagnostics"
        assert data["doctor"]["consultationFee"] == 150.0
        assert data["doctor"]["ratings"] == {"average": 4.5, "count": 8}

    def test_rate_limit(self, client, create_doctor, monkeypatch):
        doctor = create_doctor(approved=True)
        monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 2)

        for _ in range(2):
            assert client.get(f"/api/v1/doctor/{doctor.id}/slots/available").status_code == 200

        response = client.get(f"/api/v1/doctor/{doctor.id}/slots/available")
        assert response.status_code == 429

    def test_rate_limit_window_opens_on_first_request(self, client, create_doctor):
        doctor = create_doctor(approved=True)
        path = f"/api/v1/doctor/{doctor.id}/slots/available"
        key = f"rate_limit:{path}:testclient"

        client.get(path)
        assert redis_client.get(key) == "1"
        assert redis_client.ttl(key) == settings.RATE_LIMIT_WINDOW_SECONDS

        # Later hits count within the same window instead of reopening it
        redis_client.expire(key, 42)
        client.get(path)
        assert redis_client.get(key) == "2"
        assert redis_client.ttl(key) == 42


class TestDoctorProfile:

    def test_create_and_get_profile(self, client, create_user, auth_headers):
        user = create_user("cuddy@example.com", UserRole.DOCTOR)
        headers = auth_headers(user)

        response = client.post("/api/v1/doctor/profile", json=profile_data, headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["licenseNumber"] == "LIC-3003"
        assert data["isApproved"] is False
        assert data["totalSlots"] == 0

        response = client.get("/api/v1/doctor/profile", headers=headers)
        assert response.status_code == 200
        assert response.json()["specialization"] == "Endocrinology"

    def test_update_keeps_omitted_fields(self, client, create_user, auth_headers):
        user = create_user("cuddy@example.com", UserRole.DOCTOR)
        headers = auth_headers(user)
        client.post("/api/v1/doctor/profile", json=profile_data, headers=headers)

        response = client.post("/api/v1/doctor/profile", json={"consultationFee": 250}, headers=headers)
        assert response.status_code == 200
        assert response.json()["consultationFee"] == 250
        assert response.json()["hospitalName"] == "Princeton-Plainsboro"

    def test_incomplete_new_profile(self, client, create_user, auth_headers):
        user = create_user("cuddy@example.com", UserRole.DOCTOR)

        response = client.post(
            "/api/v1/doctor/profile", json={"firstName": "Lisa"}, headers=auth_headers(user)
        )
        assert response.status_code == 400
        assert "license_number" in response.json()["detail"]

    def test_duplicate_license_number(self, client, create_doctor, create_user, auth_headers):
        create_doctor(license_number="LIC-3003")
        user = create_user("cuddy@example.com", UserRole.DOCTOR)

        response = client.post("/api/v1/doctor/profile", json=profile_data, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json()["detail"] == "License number already registered"

    def test_missing_profile(self, client, create_user, auth_headers):
        user = create_user("cuddy@example.com", UserRole.DOCTOR)

        response = client.get("/api/v1/doctor/profile", headers=auth_headers(user))
        assert response.status_code == 404


class TestDoctorApproval:

    def test_admin_approval_makes_doctor_bookable(self, client, create_doctor, create_user, auth_headers):
        doctor = create_doctor()
        admin = create_user("admin@example.com", UserRole.ADMIN)

        response = client.patch(
            f"/api/v1/admin/doctors/{doctor.id}/approve", headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["isApproved"] is True
        assert response.json()["approvedBy"] == admin.id

        response = client.get(f"/api/v1/doctor/{doctor.id}/slots/available")
        assert response.status_code == 200

        client.patch(
            f"/api/v1/admin/doctors/{doctor.id}/approve",
            params={"approve": False},
            headers=auth_headers(admin)
        )
        response = client.get(f"/api/v1/doctor/{doctor.id}/slots/available")
        assert response.status_code == 400

    def test_doctor_cannot_approve(self, client, create_doctor, auth_headers):
        doctor = create_doctor()

        response = client.patch(
            f"/api/v1/admin/doctors/{doctor.id}/approve", headers=auth_headers(doctor.user)
        )
        assert response.status_code == 403


class TestHealth:

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
