"""
Appointment status lifecycle

Statuses: pending → confirmed → completed
          pending | confirmed → cancelled
          confirmed → no_show

completed, cancelled and no_show are terminal. Nothing here changes status on
a timer; every transition is an explicit actor decision.
"""

from ...models import (
    PAYMENT_CARD,
    PAYMENT_PACKAGE,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    STATUS_PENDING,
)

ALL_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

VALID_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW},
    STATUS_COMPLETED: set(),  # Terminal state
    STATUS_CANCELLED: set(),  # Terminal state
    STATUS_NO_SHOW: set(),  # Terminal state
}

# Statuses still waiting for the visit; reminders go out only for these
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)


def is_terminal(status: str) -> bool:
    return not VALID_TRANSITIONS.get(status)


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if an appointment status transition is allowed

    Args:
        current_status: Current appointment status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    if new_status not in VALID_TRANSITIONS:
        return False

    # Allow same status (no-op)
    if current_status == new_status:
        return True

    return new_status in VALID_TRANSITIONS.get(current_status, set())


def initial_status(payment_type: str) -> str:
    """Card payments are captured and package credits consumed before the booking exists"""
    if payment_type in (PAYMENT_CARD, PAYMENT_PACKAGE):
        return STATUS_CONFIRMED
    return STATUS_PENDING


def initial_payment_status(payment_type: str) -> str:
    if payment_type in (PAYMENT_CARD, PAYMENT_PACKAGE):
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PENDING
