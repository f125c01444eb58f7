"""Tests for GET /availability"""

from fastapi.testclient import TestClient

from appointly.main import app
from appointly.models import STATUS_CANCELLED

from .helpers import DatabaseTestCase, auth_headers, upcoming


class TestAvailabilityApi(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.client = TestClient(app)
        self.tenant = self.make_tenant(appointment_time_interval=30)
        self.staff = self.make_staff(self.tenant)
        self.service = self.make_service(self.tenant, duration=60)
        self.customer = self.make_customer(self.tenant)
        self.monday = upcoming(0)

    def get(self, **params):
        query = {"staffId": self.staff.id, "date": self.monday.isoformat(), **params}
        return self.client.get("/availability", params=query, headers=auth_headers(self.tenant.id))

    def test_full_day_grid(self):
        response = self.get()
        self.assertEqual(response.status_code, 200)
        slots = response.json()
        self.assertEqual(len(slots), 18)
        self.assertEqual(slots[0], {"time": "09:00", "available": True})
        self.assertEqual(slots[-1]["time"], "17:30")

    def test_existing_booking_blocks_slots(self):
        self.make_appointment(self.tenant, self.staff, self.service, self.customer, self.monday, 600)
        slots = self.get(serviceId=self.service.id).json()
        unavailable = [s["time"] for s in slots if not s["available"]]
        self.assertEqual(unavailable, ["09:30", "10:00", "10:30"])

    def test_cancelled_booking_frees_slots(self):
        self.make_appointment(
            self.tenant,
            self.staff,
            self.service,
            self.customer,
            self.monday,
            600,
            status=STATUS_CANCELLED,
        )
        slots = self.get(serviceId=self.service.id).json()
        self.assertTrue(all(s["available"] for s in slots))

    def test_closed_day_returns_empty_list(self):
        response = self.get(date=upcoming(6).isoformat())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_staff_hours_override(self):
        staff = self.make_staff(
            self.tenant, first_name="Zeynep", working_hours={"monday": {"start": "13:00", "end": "15:00"}}
        )
        slots = self.get(staffId=staff.id).json()
        self.assertEqual([s["time"] for s in slots], ["13:00", "13:30", "14:00", "14:30"])

    def test_unknown_staff_is_404(self):
        response = self.get(staffId=9999)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["code"], "not_found")

    def test_requires_identity(self):
        response = self.client.get(
            "/availability", params={"staffId": self.staff.id, "date": self.monday.isoformat()}
        )
        self.assertEqual(response.status_code, 401)
