from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from catalog.models import Category
from catalog.services import get_product_snapshots
from notifications.services import NotificationService, NotificationTemplates
from payment.models import Earning
from payment.services import ledger
from payment.services.commission import SettingsSnapshot, load_settings_snapshot, resolve_rate
from payment.services.errors import (
    DuplicateEarnings,
    DuplicateSubOrder,
    SplitPartialFailure,
    ValidationError,
)
from .models import Order, OrderItem, SubOrder

User = get_user_model()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    product_id: str
    seller_id: str
    unit_price: int
    quantity: int
    category_id: Optional[str] = None
    product_name: str = ""

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class SellerGroupFailure:
    seller_id: str
    error: str


@dataclass
class SplitResult:
    order_id: Any
    success: bool
    sub_orders: List[SubOrder] = field(default_factory=list)
    earnings_created: int = 0
    failed_groups: List[SellerGroupFailure] = field(default_factory=list)
    partial_failure: Optional[SplitPartialFailure] = None


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def group_by_seller(line_items: Iterable[LineItem]) -> "OrderedDict[str, List[LineItem]]":
    groups: "OrderedDict[str, List[LineItem]]" = OrderedDict()
    for item in line_items:
        groups.setdefault(str(item.seller_id), []).append(item)
    return groups


def dominant_category(items: Sequence[LineItem]) -> Optional[str]:
    """Category of the highest-value line; the first one wins a tie."""
    best = None
    for item in items:
        if best is None or item.total > best.total:
            best = item
    return best.category_id if best else None


def _validate_line_items(line_items: Sequence[LineItem]) -> None:
    if not line_items:
        raise ValidationError("An order needs at least one line item")
    for item in line_items:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity <= 0:
            raise ValidationError(f"Quantity must be a positive integer for product {item.product_id}")
        if isinstance(item.unit_price, bool) or not isinstance(item.unit_price, int) or item.unit_price < 0:
            raise ValidationError(f"Unit price must be a non-negative integer for product {item.product_id}")
        if not item.seller_id:
            raise ValidationError(f"Product {item.product_id} has no seller")


class OrderSplitter:
    """
    Splits a paid order into one SubOrder and one Earning per seller.
    Seller groups are settled independently, so one failing seller never
    rolls back the others.
    """

    @staticmethod
    def split_order(
        order_id,
        line_items: Sequence[LineItem],
        snapshot: Optional[SettingsSnapshot] = None,
    ) -> SplitResult:
        order = Order.objects.get(pk=order_id)
        _validate_line_items(line_items)
        snapshot = snapshot or load_settings_snapshot()

        result = SplitResult(order_id=order.id, success=True)
        created_sub_orders: List[SubOrder] = []

        for seller_id, items in group_by_seller(line_items).items():
            try:
                sub_order, created = OrderSplitter._settle_seller_group(order, seller_id, items, snapshot)
            except (DuplicateSubOrder, DuplicateEarnings):
                # A concurrent retry won the race; its rows are the result
                logger.info("Sub-order for order=%s seller=%s already settled", order.id, seller_id)
                sub_order = SubOrder.objects.filter(parent_order=order, seller_id=seller_id).first()
                if sub_order is None:
                    logger.error("Duplicate reported for order=%s seller=%s but no sub-order exists", order.id, seller_id)
                    result.failed_groups.append(
                        SellerGroupFailure(seller_id=seller_id, error="duplicate reported but no sub-order found")
                    )
                    continue
                created = False
            except Exception as exc:
                logger.exception("Failed to settle order=%s seller=%s", order.id, seller_id)
                result.failed_groups.append(SellerGroupFailure(seller_id=seller_id, error=str(exc)))
                continue

            result.sub_orders.append(sub_order)
            if created:
                result.earnings_created += 1
                created_sub_orders.append(sub_order)

        if result.failed_groups:
            result.success = False
            result.partial_failure = SplitPartialFailure(order.id, result.failed_groups)
            OrderSplitter._flag_for_reconciliation(order, result.failed_groups)
        elif order.needs_reconciliation:
            order.needs_reconciliation = False
            order.save(update_fields=["needs_reconciliation", "updated_at"])
            logger.info("Order %s reconciled by retry", order.id)

        for sub_order in created_sub_orders:
            NotificationService.send(sub_order.seller, NotificationTemplates.new_sub_order(sub_order))

        logger.info(
            "Split order=%s sub_orders=%s created=%s failed=%s",
            order.id,
            len(result.sub_orders),
            result.earnings_created,
            len(result.failed_groups),
        )
        return result

    @staticmethod
    def _settle_seller_group(
        order: Order,
        seller_id: str,
        items: Sequence[LineItem],
        snapshot: SettingsSnapshot,
    ) -> Tuple[SubOrder, bool]:
        existing = SubOrder.objects.filter(parent_order=order, seller_id=seller_id).first()
        if existing is not None:
            return existing, False

        subtotal = sum(item.total for item in items)
        try:
            with transaction.atomic():
                breakdown = resolve_rate(seller_id, dominant_category(items), subtotal, snapshot)

                sub_order = SubOrder.objects.create(
                    parent_order=order,
                    seller_id=seller_id,
                    items=[
                        {
                            "product_id": str(item.product_id),
                            "product_name": item.product_name,
                            "category_id": str(item.category_id) if item.category_id else None,
                            "unit_price": item.unit_price,
                            "quantity": item.quantity,
                            "total": item.total,
                        }
                        for item in items
                    ],
                    subtotal=subtotal,
                    commission_rate=breakdown.rate,
                    commission_source=breakdown.source,
                    commission_amount=breakdown.commission_amount,
                    processing_fee=breakdown.processing_fee,
                    platform_fee=breakdown.platform_fee,
                    seller_payout=breakdown.net_amount,
                )

                Earning.objects.create(
                    seller_id=seller_id,
                    sub_order=sub_order,
                    order=order,
                    gross_amount=subtotal,
                    commission_rate=breakdown.rate,
                    commission_amount=breakdown.commission_amount,
                    processing_fee=breakdown.processing_fee,
                    platform_fee=breakdown.platform_fee,
                    net_amount=breakdown.net_amount,
                    status=Earning.Status.PENDING,
                    available_date=timezone.localdate() + timedelta(days=snapshot.holding_period_days),
                    needs_audit=breakdown.needs_audit,
                    audit_reason=breakdown.audit_reason,
                    metadata={
                        "commission_source": breakdown.source,
                        "tier": breakdown.tier,
                        "settings_version": snapshot.version,
                    },
                )

                ledger.add_to_pending(seller_id, breakdown.net_amount)
                ledger.record_commission(seller_id, breakdown.commission_amount)
        except IntegrityError as exc:
            if SubOrder.objects.filter(parent_order=order, seller_id=seller_id).exists():
                raise DuplicateSubOrder(f"Sub-order already exists for order {order.id} seller {seller_id}") from exc
            if Earning.objects.filter(order=order, seller_id=seller_id).exists():
                raise DuplicateEarnings(f"Earning already exists for order {order.id} seller {seller_id}") from exc
            raise

        if breakdown.needs_audit:
            logger.warning(
                "Earning for order=%s seller=%s sub_order=%s flagged for audit: %s",
                order.id,
                seller_id,
                sub_order.id,
                breakdown.audit_reason,
            )
        return sub_order, True

    @staticmethod
    def _flag_for_reconciliation(order: Order, failures: Sequence[SellerGroupFailure]) -> None:
        now = timezone.now().isoformat()
        notes = list(order.reconciliation_notes or [])
        for failure in failures:
            notes.append({"seller_id": str(failure.seller_id), "error": failure.error, "at": now})
        order.needs_reconciliation = True
        order.reconciliation_notes = notes
        order.save(update_fields=["needs_reconciliation", "reconciliation_notes", "updated_at"])
        logger.error(
            "Order %s needs reconciliation for seller(s): %s",
            order.id,
            ", ".join(str(f.seller_id) for f in failures),
        )


class OrderService:

    @staticmethod
    def line_items_for(order: Order) -> List[LineItem]:
        return [
            LineItem(
                product_id=item.product_id_snapshot,
                seller_id=str(item.seller_id),
                unit_price=int(item.unit_price),
                quantity=int(item.quantity),
                category_id=str(item.category_id) if item.category_id else None,
                product_name=item.product_name,
            )
            for item in order.items.order_by("id")
        ]

    @staticmethod
    def _resolve_line_items(raw_items: Sequence[Dict[str, Any]]) -> List[LineItem]:
        """Fill in seller, category and price from the catalog where the payload omits them."""
        missing = [
            raw["product_id"]
            for raw in raw_items
            if raw.get("seller_id") is None or raw.get("unit_price") is None or "category_id" not in raw
        ]
        catalog = get_product_snapshots(missing)

        resolved = []
        for raw in raw_items:
            product_id = str(_as_uuid(raw["product_id"]) or raw["product_id"])
            product = catalog.get(product_id)
            seller_id = raw.get("seller_id") or (product.seller_id if product else None)
            unit_price = raw.get("unit_price")
            if unit_price is None and product is not None:
                unit_price = product.unit_price
            if seller_id is None or unit_price is None:
                raise ValidationError(f"Unknown product {product_id}")
            category_id = raw["category_id"] if "category_id" in raw else (product.category_id if product else None)
            resolved.append(
                LineItem(
                    product_id=product_id,
                    seller_id=str(_as_uuid(seller_id) or seller_id),
                    unit_price=unit_price,
                    quantity=raw.get("quantity"),
                    category_id=str(_as_uuid(category_id) or category_id) if category_id else None,
                    product_name=raw.get("product_name") or (product.name if product else ""),
                )
            )
        return resolved

    @staticmethod
    def confirm_payment(
        *,
        order_number: str,
        payer,
        amount: int,
        line_items: Sequence[Dict[str, Any]],
        payment_reference: Optional[str] = None,
        currency: Optional[str] = None,
        payment_method: str = "",
    ) -> Tuple[Order, SplitResult]:
        """
        Entry point for a successful customer payment. Creates the paid
        order once and splits it; calling it again with the same order
        number re-runs the split without creating anything twice.
        """
        # 1. Validate amount and items
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Payment amount must be a positive integer number of minor units")
        items = OrderService._resolve_line_items(line_items)
        _validate_line_items(items)

        # 2. Sellers must exist
        seller_ids = {item.seller_id for item in items}
        candidates = [pk for pk in (_as_uuid(s) for s in seller_ids) if pk]
        known = {str(pk) for pk in User.objects.filter(id__in=candidates, role="SELLER").values_list("id", flat=True)}
        unknown = sorted(seller_ids - known)
        if unknown:
            raise ValidationError(f"Unknown seller(s): {', '.join(unknown)}")

        # 3. Amount must match the items
        total = sum(item.total for item in items)
        if total != amount:
            raise ValidationError(f"Payment amount {amount} does not match line item total {total}")

        # 4. Create the paid order once
        order = Order.objects.filter(order_number=order_number).first()
        if order is None:
            try:
                order = OrderService._create_paid_order(
                    order_number=order_number,
                    payer=payer,
                    amount=amount,
                    items=items,
                    payment_reference=payment_reference,
                    currency=currency or getattr(settings, "SETTLEMENT_CURRENCY", "USD"),
                    payment_method=payment_method,
                )
            except IntegrityError:
                order = Order.objects.get(order_number=order_number)
        elif order.total_amount != amount:
            raise ValidationError(
                f"Order {order_number} was already confirmed with amount {order.total_amount}"
            )

        # 5. Split from what was stored
        result = OrderSplitter.split_order(order.id, OrderService.line_items_for(order))
        return order, result

    @staticmethod
    @transaction.atomic
    def _create_paid_order(*, order_number, payer, amount, items, payment_reference, currency, payment_method) -> Order:
        order = Order.objects.create(
            order_number=order_number,
            user=payer,
            status=Order.Status.PAID,
            subtotal=amount,
            total_amount=amount,
            currency=currency,
            payment_method=payment_method,
            payment_reference=payment_reference,
        )
        known_products = set(get_product_snapshots(item.product_id for item in items))
        known_categories = {
            str(pk)
            for pk in Category.objects.filter(
                id__in=[c for c in (_as_uuid(item.category_id) for item in items) if c]
            ).values_list("id", flat=True)
        }
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=item.product_id if item.product_id in known_products else None,
                    seller_id=item.seller_id,
                    category_id=item.category_id if item.category_id in known_categories else None,
                    product_id_snapshot=item.product_id,
                    product_name=item.product_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    total=item.total,
                )
                for item in items
            ]
        )
        logger.info("Order %s confirmed paid amount=%s items=%s", order.order_number, amount, len(items))
        return order

