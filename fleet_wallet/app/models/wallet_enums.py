"""
Wallet and payment enumerations.
"""

import enum


class DriverStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransactionType(str, enum.Enum):
    """Wallet transaction type enumeration."""
    CREDIT = "credit"  # Money entering the wallet
    DEBIT = "debit"  # Money leaving the wallet


class PaymentStatus(str, enum.Enum):
    """
    Payment transaction status enumeration.

    PENDING is the only non-terminal state.
    """
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING
