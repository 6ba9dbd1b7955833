# payment/models.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from account.models import PayoutMethod
from order.models import Order, SubOrder


def default_commission_tiers():
    # min_sales is trailing 30-day gross in minor units
    return [
        {"name": "bronze", "min_sales": 0, "rate": "15.00"},
        {"name": "silver", "min_sales": 1_000_000, "rate": "12.00"},
        {"name": "gold", "min_sales": 5_000_000, "rate": "10.00"},
        {"name": "platinum", "min_sales": 10_000_000, "rate": "8.00"},
    ]


class CommissionSettings(models.Model):
    """
    Versioned commission configuration. Publishing a new active version
    deactivates the previous one (see payment.signals).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    version = models.PositiveIntegerField(unique=True)

    default_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("15.00"))
    # {"<category uuid>": "8.50"}
    category_rates = models.JSONField(default=dict, blank=True)
    # {"<seller uuid>": "10.00"}, checked before category rates
    seller_rates = models.JSONField(default=dict, blank=True)
    tiers = models.JSONField(default=default_commission_tiers, blank=True)

    processing_fee_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    processing_fee_fixed = models.PositiveBigIntegerField(default=0)
    platform_fee = models.PositiveBigIntegerField(default=0)

    is_active = models.BooleanField(default=True)
    effective_date = models.DateTimeField(default=timezone.now)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-version"]
        verbose_name_plural = "Commission settings"

    def save(self, *args, **kwargs):
        if not self.version:
            latest = CommissionSettings.objects.aggregate(latest=models.Max("version"))["latest"] or 0
            self.version = latest + 1
        super().save(*args, **kwargs)

    def __str__(self):
        return f"v{self.version} ({'active' if self.is_active else 'inactive'})"


class PayoutSettings(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    holding_period_days = models.PositiveIntegerField(default=7)
    minimum_payout_amount = models.PositiveBigIntegerField(default=2000)
    maximum_payout_amount = models.PositiveBigIntegerField(default=10_000_000)
    # 0 disables auto-approval
    auto_approve_threshold = models.PositiveBigIntegerField(default=0)
    auto_payout_enabled = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Payout settings"


class SellerBalance(models.Model):
    """
    Per-seller running balances in minor units. Only the functions in
    payment.services.ledger may change these columns.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    seller = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="balance")

    escrow_balance = models.PositiveBigIntegerField(default=0)
    pending_balance = models.PositiveBigIntegerField(default=0)
    available_balance = models.PositiveBigIntegerField(default=0)
    total_commission_paid = models.PositiveBigIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.seller_id}: available={self.available_balance}"


class PayoutRequest(models.Model):

    class Status(models.TextChoices):
        PENDING_APPROVAL = "PENDING_APPROVAL", "Pending Approval"
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payout_requests")

    amount = models.PositiveBigIntegerField()
    # Sum of the reserved earnings' net amounts, may exceed amount
    reserved_amount = models.PositiveBigIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING_APPROVAL)

    method = models.CharField(max_length=20, choices=PayoutMethod.Method.choices)
    account_details = models.JSONField(default=dict, blank=True)
    is_automatic = models.BooleanField(default=False)

    requested_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    failure_reason = models.TextField(blank=True)

    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="payout_status_idx"),
            models.Index(fields=["seller", "status"], name="payout_seller_status_idx"),
        ]

    def __str__(self):
        return f"Payout {self.id} - {self.status}"


class Earning(models.Model):

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        AVAILABLE = "AVAILABLE", "Available"
        PROCESSING = "PROCESSING", "Processing"
        PAID = "PAID", "Paid"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="earnings")
    sub_order = models.OneToOneField(SubOrder, on_delete=models.CASCADE, related_name="earning")
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="earnings")
    payout = models.ForeignKey(
        PayoutRequest,
        on_delete=models.SET_NULL,
        related_name="earning_items",
        null=True,
        blank=True,
    )

    gross_amount = models.PositiveBigIntegerField()
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    commission_amount = models.PositiveBigIntegerField()
    processing_fee = models.PositiveBigIntegerField(default=0)
    platform_fee = models.PositiveBigIntegerField(default=0)
    net_amount = models.PositiveBigIntegerField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    available_date = models.DateField()

    needs_audit = models.BooleanField(default=False)
    audit_reason = models.CharField(max_length=255, blank=True)

    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["seller", "status"], name="earning_seller_status_idx"),
            models.Index(fields=["status", "available_date"], name="earning_status_date_idx"),
            models.Index(fields=["needs_audit"], name="earning_needs_audit_idx"),
        ]

    def __str__(self):
        return f"{self.seller_id} - {self.net_amount} ({self.status})"
