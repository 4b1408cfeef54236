"""
Payment status computation
"""

import time
from typing import Optional

from x402_escrow.types import PaymentRecord, PaymentStatus


def compute_payment_status(record: PaymentRecord, now: Optional[int] = None) -> PaymentStatus:
    """
    Derive the status of an escrow record.

    Claimed and refunded are terminal and win over time-based expiry.

    Args:
        record: On-chain payment record
        now: Current unix time in seconds (defaults to the wall clock)
    """
    if now is None:
        now = int(time.time())

    if record.claimed:
        return PaymentStatus.CLAIMED
    if record.refunded:
        return PaymentStatus.REFUNDED
    if now > record.expires_at:
        return PaymentStatus.EXPIRED
    return PaymentStatus.PENDING
