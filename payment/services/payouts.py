from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from account.models import PayoutMethod
from notifications.services import NotificationService, NotificationTemplates
from order.models import SubOrder
from payment.models import Earning, PayoutRequest

from . import ledger
from .commission import SettingsSnapshot, load_settings_snapshot
from .errors import InsufficientAvailable, InvalidPayoutState, SettlementError, ValidationError

User = get_user_model()
logger = logging.getLogger(__name__)


class PayoutService:
    """Seller payout requests and the admin approval workflow."""

    @staticmethod
    @transaction.atomic
    def request_payout(
        seller,
        amount: int,
        method: str,
        account_details: Optional[Dict[str, Any]] = None,
        *,
        snapshot: Optional[SettingsSnapshot] = None,
        is_automatic: bool = False,
    ) -> PayoutRequest:
        """
        Reserve the seller's oldest available earnings until they cover
        ``amount``. Either the request, the reservation and the balance
        debit all commit, or none of them do.
        """
        snapshot = snapshot or load_settings_snapshot()
        amount = PayoutService._validate_request(amount, method, snapshot)

        earnings = list(
            Earning.objects.select_for_update()
            .filter(seller=seller, status=Earning.Status.AVAILABLE, payout__isnull=True)
            .order_by("available_date", "created_at")
        )
        available_total = sum(e.net_amount for e in earnings)
        if available_total < amount:
            raise InsufficientAvailable(seller_id=seller.id, requested=amount, available=available_total)

        selected: List[Earning] = []
        reserved = 0
        for earning in earnings:
            if reserved >= amount:
                break
            selected.append(earning)
            reserved += earning.net_amount

        payout = PayoutRequest.objects.create(
            seller=seller,
            amount=amount,
            reserved_amount=reserved,
            method=method,
            account_details=account_details or {},
            is_automatic=is_automatic,
            status=PayoutRequest.Status.PENDING_APPROVAL,
            metadata={"earning_ids": [str(e.id) for e in selected]},
        )

        selected_ids = [e.id for e in selected]
        rows = Earning.objects.filter(
            id__in=selected_ids,
            status=Earning.Status.AVAILABLE,
            payout__isnull=True,
        ).update(status=Earning.Status.PROCESSING, payout=payout, updated_at=timezone.now())
        if rows != len(selected_ids):
            raise SettlementError(
                f"Earnings changed while reserving payout for seller {seller.id}: "
                f"expected {len(selected_ids)}, reserved {rows}"
            )

        ledger.deduct_from_available(seller.id, reserved)
        SubOrder.objects.filter(earning__id__in=selected_ids).update(payout_status=SubOrder.PayoutStatus.PROCESSING)

        logger.info(
            "Payout requested payout=%s seller=%s amount=%s reserved=%s earnings=%s",
            payout.id,
            seller.id,
            amount,
            reserved,
            len(selected_ids),
        )

        if 0 < snapshot.auto_approve_threshold and amount <= snapshot.auto_approve_threshold:
            payout = PayoutService.approve_payout(payout.id, admin=None, note="auto-approved")
        return payout

    @staticmethod
    @transaction.atomic
    def approve_payout(payout_id, admin=None, note: str = "") -> PayoutRequest:
        now = timezone.now()
        rows = PayoutRequest.objects.filter(
            pk=payout_id,
            status=PayoutRequest.Status.PENDING_APPROVAL,
        ).update(
            status=PayoutRequest.Status.APPROVED,
            approved_at=now,
            approved_by=admin,
            updated_at=now,
        )
        if rows == 0:
            raise PayoutService._invalid_state(payout_id, PayoutRequest.Status.APPROVED)

        payout = PayoutRequest.objects.select_related("seller").get(pk=payout_id)
        if note:
            payout.metadata = {**(payout.metadata or {}), "approval_note": note}
            payout.save(update_fields=["metadata", "updated_at"])
        logger.info("Payout approved payout=%s by=%s", payout.id, getattr(admin, "id", "system"))
        NotificationService.send(payout.seller, NotificationTemplates.payout_approved(payout))
        return payout

    @staticmethod
    @transaction.atomic
    def reject_payout(payout_id, admin=None, reason: str = "") -> PayoutRequest:
        """
        Reject a pending payout and hand its earnings back: they return
        to available and the available balance is credited with exactly
        the amount that was reserved.
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        now = timezone.now()
        rows = PayoutRequest.objects.filter(
            pk=payout_id,
            status=PayoutRequest.Status.PENDING_APPROVAL,
        ).update(
            status=PayoutRequest.Status.REJECTED,
            rejected_at=now,
            rejected_by=admin,
            failure_reason=reason,
            updated_at=now,
        )
        if rows == 0:
            raise PayoutService._invalid_state(payout_id, PayoutRequest.Status.REJECTED)

        payout = PayoutRequest.objects.select_related("seller").get(pk=payout_id)
        earnings = list(
            Earning.objects.select_for_update()
            .filter(payout=payout, status=Earning.Status.PROCESSING)
            .values_list("id", "net_amount")
        )
        earning_ids = [earning_id for earning_id, _ in earnings]
        released = sum(net for _, net in earnings)

        Earning.objects.filter(id__in=earning_ids).update(
            status=Earning.Status.AVAILABLE,
            payout=None,
            updated_at=now,
        )
        ledger.restore_to_available(payout.seller_id, released)
        SubOrder.objects.filter(earning__id__in=earning_ids).update(payout_status=SubOrder.PayoutStatus.AVAILABLE)

        if released != payout.reserved_amount:
            logger.error(
                "Payout %s released %s but had reserved %s",
                payout.id,
                released,
                payout.reserved_amount,
            )
        logger.info("Payout rejected payout=%s by=%s released=%s", payout.id, getattr(admin, "id", None), released)
        NotificationService.send(payout.seller, NotificationTemplates.payout_rejected(payout))
        return payout

    # -----------------------------
    # Automatic payouts
    # -----------------------------
    @staticmethod
    def create_automatic_payouts(snapshot: Optional[SettingsSnapshot] = None) -> Dict[str, int]:
        """
        Request a payout of the full available amount for every seller
        above the minimum. Each seller is independent: one failure is
        logged and the rest continue.
        """
        snapshot = snapshot or load_settings_snapshot()
        result = {"created": 0, "skipped": 0, "failed": 0}
        if not snapshot.auto_payout_enabled:
            logger.info("Automatic payouts are disabled")
            return result

        candidates = list(
            Earning.objects.filter(status=Earning.Status.AVAILABLE, payout__isnull=True)
            .values("seller_id")
            .annotate(total=Sum("net_amount"))
            .filter(total__gte=snapshot.minimum_payout_amount)
            .order_by("seller_id")
        )
        for row in candidates:
            seller = User.objects.filter(pk=row["seller_id"]).first()
            destination = PayoutService._resolve_payout_destination(seller) if seller else None
            if destination is None:
                result["skipped"] += 1
                logger.info("Skipping automatic payout for seller=%s: no payout method", row["seller_id"])
                continue
            method, account_details = destination
            amount = min(int(row["total"]), snapshot.maximum_payout_amount)
            try:
                PayoutService.request_payout(
                    seller,
                    amount,
                    method,
                    account_details,
                    snapshot=snapshot,
                    is_automatic=True,
                )
            except SettlementError:
                result["failed"] += 1
                logger.exception("Automatic payout failed for seller=%s amount=%s", seller.id, amount)
                continue
            result["created"] += 1

        logger.info("Automatic payouts: %s", result)
        return result

    @staticmethod
    def _resolve_payout_destination(seller) -> Optional[Tuple[str, Dict[str, Any]]]:
        preferred = list(PayoutMethod.objects.filter(seller=seller).order_by("-is_default", "created_at"))
        for payout_method in preferred:
            if payout_method.get_identifier():
                return payout_method.method, dict(payout_method.account_details or {})
        return None

    # -----------------------------
    # Reporting
    # -----------------------------
    @staticmethod
    def get_earnings_summary(seller) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "pending": 0,
            "available": 0,
            "processing": 0,
            "paid": 0,
            "total_gross": 0,
            "total_commission": 0,
            "total_fees": 0,
            "total_net": 0,
            "earnings_count": 0,
            "needs_audit_count": 0,
        }
        rows = (
            Earning.objects.filter(seller=seller)
            .values("status")
            .annotate(
                net=Sum("net_amount"),
                gross=Sum("gross_amount"),
                commission=Sum("commission_amount"),
                processing=Sum("processing_fee"),
                platform=Sum("platform_fee"),
                count=Count("id"),
            )
        )
        for row in rows:
            summary[row["status"].lower()] = int(row["net"] or 0)
            summary["total_gross"] += int(row["gross"] or 0)
            summary["total_commission"] += int(row["commission"] or 0)
            summary["total_fees"] += int(row["processing"] or 0) + int(row["platform"] or 0)
            summary["total_net"] += int(row["net"] or 0)
            summary["earnings_count"] += row["count"]
        summary["needs_audit_count"] = Earning.objects.filter(seller=seller, needs_audit=True).count()
        return summary

    # -----------------------------
    # Helpers
    # -----------------------------
    @staticmethod
    def _validate_request(amount: Any, method: str, snapshot: SettingsSnapshot) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Payout amount must be an integer number of minor units")
        if amount <= 0:
            raise ValidationError("Payout amount must be greater than zero")
        if method not in PayoutMethod.Method.values:
            raise ValidationError(f"Unsupported payout method '{method}'")
        if amount < snapshot.minimum_payout_amount:
            raise ValidationError(f"Minimum payout amount is {snapshot.minimum_payout_amount}")
        if amount > snapshot.maximum_payout_amount:
            raise ValidationError(f"Maximum payout amount is {snapshot.maximum_payout_amount}")
        return amount

    @staticmethod
    def _invalid_state(payout_id, target: str) -> Exception:
        current = PayoutRequest.objects.filter(pk=payout_id).values_list("status", flat=True).first()
        if current is None:
            return PayoutRequest.DoesNotExist(f"Payout {payout_id} not found")
        return InvalidPayoutState(payout_id=payout_id, current_status=current, target_status=target)
