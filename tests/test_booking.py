"""Tests for booking reservation and status changes"""

import threading

from fastapi.testclient import TestClient

from appointly.auth import Identity
from appointly.database import SessionLocal
from appointly.domain.appointments.schemas import CreateAppointmentRequest
from appointly.domain.appointments.service import BookingService
from appointly.main import app
from appointly.models import Appointment, Customer, TenantSettings
from appointly.shared.errors import PaymentNotCaptured, SlotConflict

from .helpers import DatabaseTestCase, auth_headers, upcoming


class FakeGateway:
    def __init__(self, captured):
        self.captured = captured
        self.checked = []

    def is_captured(self, payment_reference, amount):
        self.checked.append((payment_reference, amount))
        return payment_reference in self.captured


class BookingTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.client = TestClient(app)
        self.tenant = self.make_tenant()
        self.staff = self.make_staff(self.tenant)
        self.service = self.make_service(self.tenant, duration=30, price=300.0)
        self.customer = self.make_customer(self.tenant)
        self.day = upcoming(1)
        self.headers = auth_headers(self.tenant.id)

    def book(self, time="10:00", headers=None, **fields):
        payload = {
            "serviceId": self.service.id,
            "staffId": self.staff.id,
            "customerId": self.customer.id,
            "date": self.day.isoformat(),
            "time": time,
            **fields,
        }
        return self.client.post("/appointments", json=payload, headers=headers or self.headers)


class TestCreateAppointment(BookingTestCase):
    def test_cash_booking_is_pending(self):
        response = self.book()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["time"], "10:00")
        self.assertEqual(body["status"], "pending")
        self.assertEqual(body["customerName"], "Mehmet Demir")
        self.assertEqual(body["serviceName"], "Haircut")
        self.assertEqual(body["staffName"], "Ayse Kaya")

        appointment = self.db.query(Appointment).one()
        self.assertEqual(appointment.time, 600)
        self.assertEqual(appointment.duration, 30)
        self.assertEqual(appointment.price, 300.0)
        self.assertEqual(appointment.payment_status, "pending")

    def test_same_slot_is_conflict(self):
        self.assertEqual(self.book().status_code, 201)
        response = self.book()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "slot_conflict")

    def test_overlapping_slot_is_conflict(self):
        self.assertEqual(self.book("10:00").status_code, 201)
        self.assertEqual(self.book("10:15").status_code, 409)
        self.assertEqual(self.book("10:30").status_code, 201)

    def test_other_staff_same_time_is_fine(self):
        other = self.make_staff(self.tenant, first_name="Zeynep")
        self.assertEqual(self.book().status_code, 201)
        self.assertEqual(self.book(staffId=other.id).status_code, 201)

    def test_unknown_references_are_404(self):
        self.assertEqual(self.book(serviceId=999).status_code, 404)
        self.assertEqual(self.book(staffId=999).status_code, 404)
        self.assertEqual(self.book(customerId=999).status_code, 404)

    def test_other_tenant_service_is_404(self):
        other_tenant = self.make_tenant(name="Elsewhere")
        foreign_service = self.make_service(other_tenant)
        self.assertEqual(self.book(serviceId=foreign_service.id).status_code, 404)

    def test_missing_customer_is_400(self):
        response = self.book(customerId=None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["code"], "validation_error")

    def test_invalid_time_is_400(self):
        response = self.book("25:99")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["code"], "validation_error")

    def test_missing_required_fields_are_400(self):
        for field in ("serviceId", "staffId", "date", "time"):
            payload = {
                "serviceId": self.service.id,
                "staffId": self.staff.id,
                "customerId": self.customer.id,
                "date": self.day.isoformat(),
                "time": "10:00",
            }
            del payload[field]
            response = self.client.post("/appointments", json=payload, headers=self.headers)
            self.assertEqual(response.status_code, 400, field)
            detail = response.json()["detail"]
            self.assertEqual(detail["code"], "validation_error")
            self.assertIn(field, detail["message"])
        self.assertEqual(self.db.query(Appointment).count(), 0)

    def test_find_or_create_customer_by_phone(self):
        first = self.book(customerId=None, customerName="Elif Yilmaz", customerPhone="0532 111 22 33")
        self.assertEqual(first.status_code, 201)
        second = self.book(
            "11:00", customerId=None, customerName="Elif Yilmaz", customerPhone="+90 532 111 22 33"
        )
        self.assertEqual(second.status_code, 201)

        customers = self.db.query(Customer).filter(Customer.phone == "905321112233").all()
        self.assertEqual(len(customers), 1)
        self.assertEqual(customers[0].first_name, "Elif")
        self.assertEqual(customers[0].last_name, "Yilmaz")

    def test_blacklisted_customer_is_403(self):
        self.customer.is_blacklisted = True
        self.db.commit()
        response = self.book()
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"]["code"], "customer_blacklisted")
        self.assertEqual(self.db.query(Appointment).count(), 0)

    def test_card_requires_captured_payment(self):
        response = self.book(paymentType="card")
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["detail"]["code"], "payment_not_captured")

        response = self.book(paymentType="card", paymentStatus="paid")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["status"], "confirmed")
        self.assertEqual(self.db.query(Appointment).one().payment_status, "paid")

    def test_customer_books_for_themselves(self):
        other = self.make_customer(self.tenant, first_name="Can", phone="905559998877")
        headers = auth_headers(self.tenant.id, "customer", customer_id=other.id)
        response = self.book(headers=headers)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.db.query(Appointment).one().customer_id, other.id)


class TestBookingService(BookingTestCase):
    def request(self, **fields):
        data = {
            "serviceId": self.service.id,
            "staffId": self.staff.id,
            "customerId": self.customer.id,
            "date": self.day,
            "time": "14:00",
            **fields,
        }
        return CreateAppointmentRequest(**data)

    def test_gateway_verifies_card_charge(self):
        gateway = FakeGateway(captured={"ch_ok"})
        service = BookingService(self.db, payment_gateway=gateway)
        identity = Identity(tenant_id=self.tenant.id)

        with self.assertRaises(PaymentNotCaptured):
            service.create_appointment(
                self.request(paymentType="card", paymentReference="ch_bad", paymentStatus="paid"),
                identity,
            )
        appointment = service.create_appointment(
            self.request(paymentType="card", paymentReference="ch_ok"), identity
        )
        self.assertEqual(appointment.status, "confirmed")
        self.assertEqual(gateway.checked, [("ch_bad", 300.0), ("ch_ok", 300.0)])

    def test_concurrent_bookings_for_same_slot(self):
        attempts = 6
        barrier = threading.Barrier(attempts)
        results = []
        lock = threading.Lock()

        def attempt():
            db = SessionLocal()
            try:
                barrier.wait()
                BookingService(db).create_appointment(
                    self.request(), Identity(tenant_id=self.tenant.id)
                )
                outcome = "booked"
            except SlotConflict:
                outcome = "conflict"
            finally:
                db.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count("booked"), 1)
        self.assertEqual(results.count("conflict"), attempts - 1)
        self.assertEqual(self.db.query(Appointment).count(), 1)

    def test_customer_created_by_another_booking_is_reused(self):
        existing = self.make_customer(self.tenant, first_name="Elif", phone="905321112233")
        service = BookingService(self.db)
        real_lookup = service.repo.find_customer_by_phone
        lookups = []

        def lookup(db, phone, tenant_id):
            lookups.append(phone)
            # The first lookup misses a customer committed by a concurrent booking
            return None if len(lookups) == 1 else real_lookup(db, phone, tenant_id)

        service.repo.find_customer_by_phone = lookup
        appointment = service.create_appointment(
            self.request(customerId=None, customerName="Elif Yilmaz", customerPhone="0532 111 22 33"),
            Identity(tenant_id=self.tenant.id),
        )

        self.assertEqual(appointment.customer_id, existing.id)
        self.assertEqual(len(lookups), 2)
        self.assertEqual(self.db.query(Customer).filter(Customer.phone == "905321112233").count(), 1)

    def test_concurrent_bookings_for_same_new_customer(self):
        times = ["14:00", "15:00"]
        barrier = threading.Barrier(len(times))
        results = []
        lock = threading.Lock()

        def attempt(time):
            db = SessionLocal()
            try:
                barrier.wait()
                BookingService(db).create_appointment(
                    self.request(
                        time=time,
                        customerId=None,
                        customerName="Deniz Ak",
                        customerPhone="0533 444 55 66",
                    ),
                    Identity(tenant_id=self.tenant.id),
                )
                outcome = "booked"
            except SlotConflict:
                outcome = "conflict"
            finally:
                db.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt, args=(t,)) for t in times]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results, ["booked", "booked"])
        customers = self.db.query(Customer).filter(Customer.phone == "905334445566").all()
        self.assertEqual(len(customers), 1)
        self.assertEqual(
            {a.customer_id for a in self.db.query(Appointment).all()}, {customers[0].id}
        )


class TestStatusChanges(BookingTestCase):
    def setUp(self):
        super().setUp()
        self.appointment_id = self.book().json()["id"]

    def patch_status(self, status, headers=None):
        return self.client.patch(
            f"/appointments/{self.appointment_id}/status",
            json={"status": status},
            headers=headers or self.headers,
        )

    def test_confirm_then_complete(self):
        self.assertEqual(self.patch_status("confirmed").json()["status"], "confirmed")
        self.assertEqual(self.patch_status("completed").json()["status"], "completed")

    def test_invalid_transition_is_409(self):
        response = self.patch_status("completed")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "invalid_status_transition")

    def test_terminal_state_is_final(self):
        self.patch_status("cancelled")
        self.assertEqual(self.patch_status("confirmed").status_code, 409)

    def test_same_status_is_noop(self):
        response = self.patch_status("pending")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "pending")

    def test_unknown_status_is_400(self):
        self.assertEqual(self.patch_status("archived").status_code, 400)

    def test_cancel_frees_the_slot(self):
        response = self.client.post(
            f"/appointments/{self.appointment_id}/cancel", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "cancelled")

        slots = self.client.get(
            "/availability",
            params={"staffId": self.staff.id, "date": self.day.isoformat()},
            headers=self.headers,
        ).json()
        self.assertTrue(next(s for s in slots if s["time"] == "10:00")["available"])
        self.assertEqual(self.book().status_code, 201)

    def test_customer_can_cancel_own_appointment(self):
        own = auth_headers(self.tenant.id, "customer", customer_id=self.customer.id)
        self.assertEqual(self.patch_status("confirmed", headers=own).status_code, 409)
        response = self.client.post(f"/appointments/{self.appointment_id}/cancel", headers=own)
        self.assertEqual(response.status_code, 200)

    def test_customer_cannot_see_others_appointment(self):
        other = self.make_customer(self.tenant, first_name="Can", phone="905559998877")
        headers = auth_headers(self.tenant.id, "customer", customer_id=other.id)
        response = self.client.post(f"/appointments/{self.appointment_id}/cancel", headers=headers)
        self.assertEqual(response.status_code, 404)

    def test_no_show_blacklists_at_threshold(self):
        self.db.add(TenantSettings(tenant_id=self.tenant.id, blacklist_threshold=2))
        self.db.commit()

        self.patch_status("confirmed")
        self.patch_status("no_show")
        self.db.refresh(self.customer)
        self.assertEqual(self.customer.no_show_count, 1)
        self.assertFalse(self.customer.is_blacklisted)

        self.appointment_id = self.book("11:00").json()["id"]
        self.patch_status("confirmed")
        self.patch_status("no_show")
        self.db.refresh(self.customer)
        self.assertEqual(self.customer.no_show_count, 2)
        self.assertTrue(self.customer.is_blacklisted)
        self.assertIsNotNone(self.customer.blacklisted_at)

        self.assertEqual(self.book("12:00").status_code, 403)

    def test_no_show_count_is_not_lost_by_stale_sessions(self):
        self.patch_status("confirmed")
        second_id = self.book("11:00").json()["id"]
        self.client.patch(
            f"/appointments/{second_id}/status", json={"status": "confirmed"}, headers=self.headers
        )
        identity = Identity(tenant_id=self.tenant.id)

        first_db, second_db = SessionLocal(), SessionLocal()
        try:
            # Both sessions hold a copy of the customer taken before either no-show
            self.assertEqual(first_db.get(Customer, self.customer.id).no_show_count, 0)
            self.assertEqual(second_db.get(Customer, self.customer.id).no_show_count, 0)

            BookingService(first_db).update_status(self.appointment_id, "no_show", identity)
            BookingService(second_db).update_status(second_id, "no_show", identity)
        finally:
            first_db.close()
            second_db.close()

        self.db.refresh(self.customer)
        self.assertEqual(self.customer.no_show_count, 2)

    def test_list_and_get(self):
        self.book("11:00")
        listing = self.client.get(
            "/appointments", params={"date": self.day.isoformat()}, headers=self.headers
        ).json()
        self.assertEqual([a["time"] for a in listing], ["10:00", "11:00"])

        response = self.client.get(f"/appointments/{self.appointment_id}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["customerId"], self.customer.id)

    def test_customer_listing_only_shows_own(self):
        other = self.make_customer(self.tenant, first_name="Can", phone="905559998877")
        self.book("11:00", customerId=other.id)
        headers = auth_headers(self.tenant.id, "customer", customer_id=other.id)
        listing = self.client.get("/appointments", headers=headers).json()
        self.assertEqual(len(listing), 1)
        self.assertEqual(listing[0]["customerId"], other.id)
