"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService
from .booking import BookingTransaction, CancelPolicy, call_with_retry, owner_or_customer_policy

__all__ = [
    "AvailabilityService",
    "BookingTransaction",
    "CancelPolicy",
    "call_with_retry",
    "owner_or_customer_policy",
]
