from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Appointment statuses
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no_show"

# Payment types and statuses
PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_PACKAGE = "package"
PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PAID = "paid"

# Customer package statuses
PACKAGE_ACTIVE = "active"
PACKAGE_EXPIRED = "expired"
PACKAGE_COMPLETED = "completed"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    # {"monday": {"start": "09:00", "end": "18:00", "closed": false}, ...}
    working_hours = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    settings = relationship("TenantSettings", back_populates="tenant", uselist=False)
    staff = relationship("Staff", back_populates="tenant")


class TenantSettings(Base):
    __tablename__ = "tenant_settings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True)
    appointment_time_interval = Column(Integer, default=30, nullable=False)  # minutes
    reminder_minutes = Column(Integer, default=120, nullable=False)
    blacklist_threshold = Column(Integer, default=3, nullable=False)  # no-shows before blacklist
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="settings")


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    # Same shape as Tenant.working_hours; null means "use tenant hours"
    working_hours = Column(JSON, nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, inactive, vacation
    created_at = Column(DateTime, server_default=func.now())

    tenant = relationship("Tenant", back_populates="staff")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_services_duration_positive"),
        CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, default=0, nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("tenant_id", "phone", name="uq_customers_tenant_phone"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    no_show_count = Column(Integer, default=0, nullable=False)
    is_blacklisted = Column(Boolean, default=False, nullable=False)
    blacklisted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One live appointment per staff start time; cancelled rows free the key
        Index(
            "uq_appointments_active_slot",
            "staff_id",
            "date",
            "time",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index("ix_appointments_reminder_lookup", "date", "time", "reminder_sent"),
        CheckConstraint("duration > 0", name="ck_appointments_duration_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Integer, nullable=False)  # minute of day
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, default=0, nullable=False)
    status = Column(String(20), default=STATUS_PENDING, nullable=False)
    payment_type = Column(String(20), default=PAYMENT_CASH, nullable=False)
    payment_status = Column(String(20), default=PAYMENT_STATUS_PENDING, nullable=False)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    package_usage_id = Column(
        Integer, ForeignKey("customer_package_usages.id", ondelete="SET NULL"), nullable=True
    )

    # Denormalized for listings and reminder messages
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    service_name = Column(String(255), nullable=True)
    staff_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant")
    customer = relationship("Customer")
    staff = relationship("Staff")
    service = relationship("Service")

    @property
    def end_minute(self) -> int:
        return self.time + self.duration


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, default=0, nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    items = relationship("PackageItem", back_populates="package", cascade="all, delete-orphan")


class PackageItem(Base):
    __tablename__ = "package_items"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False)
    item_type = Column(String(20), nullable=False)  # service, product
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)

    package = relationship("Package", back_populates="items")


class CustomerPackage(Base):
    __tablename__ = "customer_packages"
    __table_args__ = (
        UniqueConstraint("customer_id", "package_id", name="uq_customer_packages_customer_package"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)  # seller
    status = Column(String(20), default=PACKAGE_ACTIVE, nullable=False)
    assigned_at = Column(DateTime, server_default=func.now())
    expires_at = Column(DateTime, nullable=True)

    package = relationship("Package")
    customer = relationship("Customer")
    usages = relationship(
        "PackageUsage",
        back_populates="customer_package",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PackageUsage(Base):
    __tablename__ = "customer_package_usages"
    __table_args__ = (
        CheckConstraint("remaining_quantity >= 0", name="ck_usages_remaining_non_negative"),
        CheckConstraint(
            "remaining_quantity = total_quantity - used_quantity", name="ck_usages_balance"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_package_id = Column(
        Integer, ForeignKey("customer_packages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_type = Column(String(20), nullable=False)
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(255), nullable=True)
    total_quantity = Column(Integer, nullable=False)
    used_quantity = Column(Integer, default=0, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)

    customer_package = relationship("CustomerPackage", back_populates="usages")


class Transaction(Base):
    """Cash-desk ledger entry"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # package, service, product, expense
    amount = Column(Float, nullable=False)
    description = Column(String(500), nullable=True)
    payment_type = Column(String(20), default=PAYMENT_CASH, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    customer_name = Column(String(255), nullable=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class NotificationLog(Base):
    """One row per channel delivery attempt"""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, index=True)

    channel = Column(String(20), nullable=False)  # whatsapp, sms
    recipient = Column(String(50), nullable=True)
    message_body = Column(Text, nullable=False)
    message_type = Column(String(50), nullable=False)

    status = Column(String(20), nullable=False)  # sent, failed
    provider_message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
