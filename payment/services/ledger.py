"""
Seller balance ledger.

Every mutation is one conditional UPDATE: debits carry a ``>= amount``
guard in the WHERE clause, so a row count of zero means the bucket was
short and nothing changed. Money fields are never read, modified in
Python and written back.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Type

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from notifications.services import NotificationService, NotificationTemplates
from order.models import SubOrder
from payment.models import Earning, SellerBalance

from .errors import (
    InsufficientAvailable,
    InsufficientEscrow,
    InsufficientFunds,
    InsufficientPending,
    ValidationError,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def _check_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Amount must be an integer number of minor units, got {amount!r}")
    if amount < 0:
        raise ValidationError(f"Amount cannot be negative, got {amount}")
    return amount


def get_or_create_balance(seller_id: Any) -> SellerBalance:
    balance, created = SellerBalance.objects.get_or_create(seller_id=seller_id)
    if created:
        logger.info("Created seller balance for seller=%s", seller_id)
    return balance


def get_balance(seller_id: Any) -> Optional[SellerBalance]:
    return SellerBalance.objects.filter(seller_id=seller_id).first()


def get_all_balances():
    return SellerBalance.objects.select_related("seller").order_by("-available_balance")


def _credit(seller_id: Any, column: str, amount: Any) -> None:
    amount = _check_amount(amount)
    if amount == 0:
        return
    get_or_create_balance(seller_id)
    SellerBalance.objects.filter(seller_id=seller_id).update(
        **{column: F(column) + amount, "updated_at": timezone.now()}
    )


def _move(
    seller_id: Any,
    source: str,
    target: Optional[str],
    amount: Any,
    error_class: Type[InsufficientFunds],
) -> None:
    amount = _check_amount(amount)
    if amount == 0:
        return
    updates = {source: F(source) - amount, "updated_at": timezone.now()}
    if target:
        updates[target] = F(target) + amount
    rows = SellerBalance.objects.filter(seller_id=seller_id, **{f"{source}__gte": amount}).update(**updates)
    if rows == 0:
        current = SellerBalance.objects.filter(seller_id=seller_id).values_list(source, flat=True).first()
        logger.warning(
            "Rejected %s debit seller=%s amount=%s current=%s",
            source,
            seller_id,
            amount,
            current,
        )
        raise error_class(seller_id=seller_id, requested=amount, available=current or 0)


def add_to_escrow(seller_id: Any, amount: int) -> None:
    _credit(seller_id, "escrow_balance", amount)


def release_escrow_to_pending(seller_id: Any, amount: int) -> None:
    _move(seller_id, "escrow_balance", "pending_balance", amount, InsufficientEscrow)


def add_to_pending(seller_id: Any, amount: int) -> None:
    _credit(seller_id, "pending_balance", amount)


def move_pending_to_available(seller_id: Any, amount: int) -> None:
    _move(seller_id, "pending_balance", "available_balance", amount, InsufficientPending)


def deduct_from_available(seller_id: Any, amount: int) -> None:
    _move(seller_id, "available_balance", None, amount, InsufficientAvailable)


def restore_to_available(seller_id: Any, amount: int) -> None:
    """Exact inverse of deduct_from_available, used when a payout is rejected."""
    _credit(seller_id, "available_balance", amount)


def record_commission(seller_id: Any, amount: int) -> None:
    _credit(seller_id, "total_commission_paid", amount)


# -----------------------------
# Availability sweep
# -----------------------------
def release_matured_earnings(today: Optional[date] = None) -> Dict[str, int]:
    """
    Move every pending earning whose available_date has passed to
    available. Each earning is its own transaction; an earning already
    moved by a concurrent sweep matches zero rows and is skipped.
    """
    today = today or timezone.localdate()
    candidates = list(
        Earning.objects.filter(status=Earning.Status.PENDING, available_date__lte=today)
        .order_by("available_date", "created_at")
        .values_list("id", "seller_id", "net_amount", "sub_order_id")
    )
    released = 0
    skipped = 0
    failed = 0
    released_by_seller: Dict[Any, List[int]] = defaultdict(list)

    for earning_id, seller_id, net_amount, sub_order_id in candidates:
        try:
            with transaction.atomic():
                rows = Earning.objects.filter(pk=earning_id, status=Earning.Status.PENDING).update(
                    status=Earning.Status.AVAILABLE,
                    updated_at=timezone.now(),
                )
                if rows == 0:
                    skipped += 1
                    continue
                move_pending_to_available(seller_id, net_amount)
                SubOrder.objects.filter(pk=sub_order_id).update(payout_status=SubOrder.PayoutStatus.AVAILABLE)
        except InsufficientPending:
            failed += 1
            logger.exception(
                "Pending balance out of sync while releasing earning=%s seller=%s amount=%s",
                earning_id,
                seller_id,
                net_amount,
            )
            continue
        released += 1
        released_by_seller[seller_id].append(net_amount)

    if released_by_seller:
        _notify_released(released_by_seller)

    logger.info(
        "Earnings sweep for %s: released=%s skipped=%s failed=%s",
        today,
        released,
        skipped,
        failed,
    )
    return {"released": released, "skipped": skipped, "failed": failed}


def _notify_released(released_by_seller: Dict[Any, List[int]]) -> None:
    sellers = User.objects.in_bulk(list(released_by_seller.keys()))
    for seller_id, amounts in released_by_seller.items():
        seller = sellers.get(seller_id)
        if seller is None:
            continue
        NotificationService.send(
            seller,
            NotificationTemplates.earnings_available(seller, sum(amounts), len(amounts)),
        )
