"""Shared test case base and record factories"""

import unittest
from datetime import date, timedelta

from appointly.database import Base, SessionLocal, engine
from appointly.models import (
    STATUS_PENDING,
    Appointment,
    Customer,
    Package,
    PackageItem,
    Service,
    Staff,
    Tenant,
    TenantSettings,
)
from appointly.shared.validators import local_now

WEEK = {
    day: {"start": "09:00", "end": "18:00", "closed": False}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
}
WEEK["sunday"] = {"closed": True}


def upcoming(weekday: int, weeks_ahead: int = 2) -> date:
    """A date on ``weekday`` (0 = Monday) safely in the future"""
    today = local_now().date() + timedelta(weeks=weeks_ahead)
    return today + timedelta(days=(weekday - today.weekday()) % 7)


def auth_headers(tenant_id: int, user_type: str = "owner", **extra) -> dict:
    headers = {"X-Tenant-Id": str(tenant_id), "X-User-Type": user_type}
    if "customer_id" in extra:
        headers["X-Customer-Id"] = str(extra["customer_id"])
    if "staff_id" in extra:
        headers["X-Staff-Id"] = str(extra["staff_id"])
    return headers


class DatabaseTestCase(unittest.TestCase):
    """Fresh schema per test and a session in ``self.db``"""

    def setUp(self):
        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        self.db = SessionLocal()

    def tearDown(self):
        self.db.close()

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def make_tenant(self, name="Studio", working_hours=None, **settings) -> Tenant:
        tenant = Tenant(
            name=name,
            phone="0212 555 00 00",
            address="Main St. 1",
            working_hours=WEEK if working_hours is None else working_hours,
        )
        self.db.add(tenant)
        self.db.flush()
        if settings:
            self.db.add(TenantSettings(tenant_id=tenant.id, **settings))
        self.db.commit()
        return tenant

    def make_staff(self, tenant, first_name="Ayse", working_hours=None) -> Staff:
        staff = Staff(
            tenant_id=tenant.id, first_name=first_name, last_name="Kaya", working_hours=working_hours
        )
        self.db.add(staff)
        self.db.commit()
        return staff

    def make_service(self, tenant, name="Haircut", duration=30, price=250.0) -> Service:
        service = Service(tenant_id=tenant.id, name=name, duration=duration, price=price)
        self.db.add(service)
        self.db.commit()
        return service

    def make_customer(self, tenant, first_name="Mehmet", phone="905551234567", **fields) -> Customer:
        customer = Customer(
            tenant_id=tenant.id, first_name=first_name, last_name="Demir", phone=phone, **fields
        )
        self.db.add(customer)
        self.db.commit()
        return customer

    def make_package(self, tenant, items, name="Ten Haircuts", price=2000.0) -> Package:
        """``items`` is a list of (service, quantity)"""
        package = Package(
            tenant_id=tenant.id,
            name=name,
            price=price,
            items=[
                PackageItem(item_type="service", item_id=s.id, item_name=s.name, quantity=q)
                for s, q in items
            ],
        )
        self.db.add(package)
        self.db.commit()
        return package

    def make_appointment(
        self, tenant, staff, service, customer, day, minute, status=STATUS_PENDING, **fields
    ) -> Appointment:
        appointment = Appointment(
            tenant_id=tenant.id,
            staff_id=staff.id,
            service_id=service.id,
            customer_id=customer.id,
            date=day,
            time=minute,
            duration=service.duration,
            price=service.price,
            status=status,
            customer_name=customer.full_name,
            customer_phone=customer.phone,
            service_name=service.name,
            staff_name=staff.full_name,
            **fields,
        )
        self.db.add(appointment)
        self.db.commit()
        return appointment
