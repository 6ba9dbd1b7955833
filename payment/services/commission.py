"""
Commission policy.

Rates are percentages, amounts are integers in minor units. Every
calculation works from an immutable ``SettingsSnapshot`` so configuration
edits can never change a split half way through.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Sum
from django.utils import timezone

from order.models import SubOrder
from payment.models import CommissionSettings, PayoutSettings, default_commission_tiers

from .errors import ValidationError

logger = logging.getLogger(__name__)

TRAILING_SALES_WINDOW_DAYS = 30
FALLBACK_AUDIT_REASON = "Commission settings unavailable; default rate applied"


@dataclass(frozen=True)
class Tier:
    name: str
    min_sales: int
    rate: Decimal


@dataclass(frozen=True)
class SettingsSnapshot:
    default_rate: Decimal
    seller_rates: Mapping[str, Decimal] = field(default_factory=dict)
    category_rates: Mapping[str, Decimal] = field(default_factory=dict)
    tiers: Tuple[Tier, ...] = ()
    holding_period_days: int = 7
    processing_fee_percent: Decimal = Decimal("0")
    processing_fee_fixed: int = 0
    platform_fee: int = 0
    minimum_payout_amount: int = 2000
    maximum_payout_amount: int = 10_000_000
    auto_approve_threshold: int = 0
    auto_payout_enabled: bool = False
    is_fallback: bool = False
    version: Optional[int] = None


@dataclass(frozen=True)
class CommissionBreakdown:
    gross_amount: int
    rate: Decimal
    source: str
    commission_amount: int
    processing_fee: int
    platform_fee: int
    net_amount: int
    tier: Optional[str] = None
    needs_audit: bool = False
    audit_reason: str = ""


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _validate_rate(rate: Decimal) -> Decimal:
    if rate < Decimal("0") or rate > Decimal("100"):
        raise ValidationError(f"Commission rate must be between 0 and 100, got {rate}")
    return rate


def calculate_commission(gross_amount: int, rate: Any) -> int:
    """Round-half-up of gross * rate / 100. 999 at 15% is 150."""
    if gross_amount < 0:
        raise ValidationError("Gross amount cannot be negative")
    rate = _validate_rate(_to_decimal(rate))
    return round_half_up(Decimal(gross_amount) * rate / Decimal("100"))


def select_tier(trailing_sales: int, tiers: Sequence[Tier]) -> Optional[Tier]:
    selected = None
    for tier in sorted(tiers, key=lambda t: t.min_sales):
        if trailing_sales >= tier.min_sales:
            selected = tier
    return selected


def split_gross(
    gross_amount: int,
    rate: Any,
    snapshot: SettingsSnapshot,
    source: str,
    tier: Optional[str] = None,
) -> CommissionBreakdown:
    commission = calculate_commission(gross_amount, rate)
    remaining = gross_amount - commission

    processing_fee = 0
    if snapshot.processing_fee_percent or snapshot.processing_fee_fixed:
        processing_fee = (
            round_half_up(Decimal(gross_amount) * snapshot.processing_fee_percent / Decimal("100"))
            + snapshot.processing_fee_fixed
        )
    # Fees are capped so the seller payout never goes negative
    processing_fee = min(processing_fee, remaining)
    platform_fee = min(snapshot.platform_fee, remaining - processing_fee)

    return CommissionBreakdown(
        gross_amount=gross_amount,
        rate=_to_decimal(rate),
        source=source,
        commission_amount=commission,
        processing_fee=processing_fee,
        platform_fee=platform_fee,
        net_amount=remaining - processing_fee - platform_fee,
        tier=tier,
        needs_audit=snapshot.is_fallback,
        audit_reason=FALLBACK_AUDIT_REASON if snapshot.is_fallback else "",
    )


def trailing_sales(seller_id: Any, as_of=None) -> int:
    since = (as_of or timezone.now()) - timedelta(days=TRAILING_SALES_WINDOW_DAYS)
    total = (
        SubOrder.objects.filter(seller_id=seller_id, created_at__gte=since)
        .exclude(fulfillment_status=SubOrder.FulfillmentStatus.CANCELLED)
        .aggregate(total=Sum("subtotal"))["total"]
    )
    return int(total or 0)


def resolve_rate(
    seller_id: Any,
    category_id: Optional[Any],
    gross_amount: int,
    snapshot: SettingsSnapshot,
    sales_lookup: Callable[[Any], int] = trailing_sales,
) -> CommissionBreakdown:
    """
    A negotiated seller rate first, then the category override, then the
    seller's volume tier, then the default rate. A fallback snapshot
    always uses the default rate and marks the result for audit.
    """
    if gross_amount < 0:
        raise ValidationError("Gross amount cannot be negative")

    if snapshot.is_fallback:
        return split_gross(gross_amount, snapshot.default_rate, snapshot, SubOrder.CommissionSource.FALLBACK)

    if str(seller_id) in snapshot.seller_rates:
        rate = snapshot.seller_rates[str(seller_id)]
        return split_gross(gross_amount, rate, snapshot, SubOrder.CommissionSource.SELLER)

    if category_id is not None and str(category_id) in snapshot.category_rates:
        rate = snapshot.category_rates[str(category_id)]
        return split_gross(gross_amount, rate, snapshot, SubOrder.CommissionSource.CATEGORY)

    if snapshot.tiers:
        tier = select_tier(sales_lookup(seller_id), snapshot.tiers)
        if tier is not None:
            return split_gross(gross_amount, tier.rate, snapshot, SubOrder.CommissionSource.TIER, tier=tier.name)

    return split_gross(gross_amount, snapshot.default_rate, snapshot, SubOrder.CommissionSource.DEFAULT)


# -----------------------------
# Snapshot loading
# -----------------------------
def _parse_tiers(raw_tiers) -> Tuple[Tier, ...]:
    tiers = []
    for raw in raw_tiers or []:
        tiers.append(
            Tier(
                name=str(raw["name"]),
                min_sales=int(raw["min_sales"]),
                rate=_validate_rate(_to_decimal(raw["rate"])),
            )
        )
    return tuple(sorted(tiers, key=lambda t: t.min_sales))


def _parse_rate_map(raw_rates) -> Dict[str, Decimal]:
    return {str(key): _validate_rate(_to_decimal(value)) for key, value in (raw_rates or {}).items()}


def default_rate() -> Decimal:
    return _to_decimal(getattr(settings, "DEFAULT_COMMISSION_RATE", "15.00"))


def _payout_defaults() -> Dict[str, Any]:
    return {
        "holding_period_days": int(getattr(settings, "DEFAULT_HOLDING_PERIOD_DAYS", 7)),
        "minimum_payout_amount": int(getattr(settings, "DEFAULT_MINIMUM_PAYOUT_AMOUNT", 2000)),
        "maximum_payout_amount": int(getattr(settings, "DEFAULT_MAXIMUM_PAYOUT_AMOUNT", 10_000_000)),
    }


def fallback_snapshot() -> SettingsSnapshot:
    return SettingsSnapshot(default_rate=default_rate(), is_fallback=True, **_payout_defaults())


def build_snapshot(
    commission_row: Optional[CommissionSettings],
    payout_row: Optional[PayoutSettings],
) -> SettingsSnapshot:
    values: Dict[str, Any] = _payout_defaults()
    if commission_row is None:
        values.update(default_rate=default_rate(), tiers=_parse_tiers(default_commission_tiers()))
    else:
        values.update(
            default_rate=_validate_rate(_to_decimal(commission_row.default_rate)),
            category_rates=_parse_rate_map(commission_row.category_rates),
            seller_rates=_parse_rate_map(commission_row.seller_rates),
            tiers=_parse_tiers(commission_row.tiers),
            processing_fee_percent=_validate_rate(_to_decimal(commission_row.processing_fee_percent)),
            processing_fee_fixed=int(commission_row.processing_fee_fixed),
            platform_fee=int(commission_row.platform_fee),
            version=commission_row.version,
        )
    if payout_row is not None:
        values.update(
            holding_period_days=payout_row.holding_period_days,
            minimum_payout_amount=payout_row.minimum_payout_amount,
            maximum_payout_amount=payout_row.maximum_payout_amount,
            auto_approve_threshold=payout_row.auto_approve_threshold,
            auto_payout_enabled=payout_row.auto_payout_enabled,
        )
    return SettingsSnapshot(**values)


def load_settings_snapshot() -> SettingsSnapshot:
    """
    Read the active configuration once. Missing rows mean built-in
    defaults; unreadable or malformed rows mean the audited fallback.
    """
    try:
        with transaction.atomic():
            commission_row = CommissionSettings.objects.filter(is_active=True).order_by("-version").first()
            payout_row = PayoutSettings.objects.filter(is_active=True).order_by("-updated_at").first()
        return build_snapshot(commission_row, payout_row)
    except (DatabaseError, InvalidOperation, KeyError, TypeError, ValueError, ValidationError):
        logger.warning(
            "Commission settings could not be loaded, using fallback rate %s",
            default_rate(),
            exc_info=True,
        )
        return fallback_snapshot()


@transaction.atomic
def publish_commission_settings(*, updated_by=None, **values) -> CommissionSettings:
    """Create a new active settings version. Older versions are kept for history."""
    try:
        for key in ("category_rates", "seller_rates"):
            if key in values:
                _parse_rate_map(values[key])
        if "tiers" in values:
            _parse_tiers(values["tiers"])
    except (InvalidOperation, KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid commission settings: {exc}") from exc
    current = CommissionSettings.objects.filter(is_active=True).order_by("-version").first()
    fields = {}
    if current is not None:
        fields = {
            "default_rate": current.default_rate,
            "category_rates": current.category_rates,
            "seller_rates": current.seller_rates,
            "tiers": current.tiers,
            "processing_fee_percent": current.processing_fee_percent,
            "processing_fee_fixed": current.processing_fee_fixed,
            "platform_fee": current.platform_fee,
        }
    fields.update(values)
    row = CommissionSettings.objects.create(is_active=True, updated_by=updated_by, **fields)
    logger.info("Published commission settings version=%s by=%s", row.version, getattr(updated_by, "id", None))
    return row
