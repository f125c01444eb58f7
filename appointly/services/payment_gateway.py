"""
Payment gateway interface

Card charges happen before booking, in the gateway's own flow. The booking core
only asks whether a referenced charge was captured.
"""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def is_captured(self, payment_reference: str, amount: float) -> bool:
        """True when the charge identified by ``payment_reference`` succeeded for ``amount``"""
        ...


def check_card_payment(
    gateway: Optional[PaymentGateway],
    payment_reference: Optional[str],
    reported_status: Optional[str],
    amount: float,
) -> bool:
    """
    Decide whether a card booking may proceed.

    With a gateway configured the referenced charge is verified against it.
    Without one, the trusted caller's reported status ("paid") is accepted.
    """
    if gateway is None:
        return reported_status == "paid"

    if not payment_reference:
        logger.warning("Card booking without payment reference")
        return False

    try:
        captured = gateway.is_captured(payment_reference, amount)
    except Exception as e:
        logger.error(f"Payment gateway check failed for {payment_reference}: {e}")
        return False

    if not captured:
        logger.warning(f"Payment {payment_reference} not captured")
    return captured
