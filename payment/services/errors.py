from __future__ import annotations

from typing import Any, List, Optional


class SettlementError(Exception):
    """Base exception for settlement engine errors."""


class ValidationError(SettlementError):
    """Raised when an input violates a precondition (negative amount, bad payload, limits)."""


class InsufficientFunds(SettlementError):
    """Raised when a balance bucket cannot cover a debit. Nothing was changed."""

    bucket = "balance"

    def __init__(self, seller_id: Any, requested: int, available: Optional[int] = None) -> None:
        self.seller_id = seller_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {self.bucket} balance for seller {seller_id}: "
            f"requested {requested}, available {available if available is not None else 'unknown'}"
        )


class InsufficientEscrow(InsufficientFunds):
    bucket = "escrow"


class InsufficientPending(InsufficientFunds):
    bucket = "pending"


class InsufficientAvailable(InsufficientFunds):
    bucket = "available"


class SplitPartialFailure(SettlementError):
    """
    Some seller groups of an order could not be settled. The groups that
    succeeded stay committed; the order is flagged for reconciliation.
    """

    def __init__(self, order_id: Any, failed_groups: List[Any]) -> None:
        self.order_id = order_id
        self.failed_groups = list(failed_groups)
        sellers = ", ".join(str(group.seller_id) for group in self.failed_groups)
        super().__init__(f"Order {order_id} split partially failed for seller(s): {sellers}")


class InvalidPayoutState(SettlementError):
    """Raised when a payout transition does not start from pending approval."""

    def __init__(self, payout_id: Any, current_status: str, target_status: str) -> None:
        self.payout_id = payout_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Payout {payout_id} cannot move to {target_status} from {current_status}"
        )


class InvalidFulfillmentTransition(SettlementError):
    def __init__(self, sub_order_id: Any, current_status: str, target_status: str) -> None:
        self.sub_order_id = sub_order_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Sub-order {sub_order_id} cannot move from {current_status} to {target_status}"
        )


class DuplicateSubOrder(SettlementError):
    """A sub-order already exists for (order, seller). Callers treat this as success."""


class DuplicateEarnings(SettlementError):
    """An earning already exists for the sub-order. Callers treat this as success."""
