from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from .models import CommissionSettings, Earning, PayoutRequest, PayoutSettings, SellerBalance
from .services.errors import SettlementError
from .services.payouts import PayoutService


@admin.register(CommissionSettings)
class CommissionSettingsAdmin(admin.ModelAdmin):
	list_display = ("version", "default_rate", "processing_fee_percent", "platform_fee", "is_active", "effective_date", "updated_by")
	list_filter = ("is_active",)
	readonly_fields = ("version",)


@admin.register(PayoutSettings)
class PayoutSettingsAdmin(admin.ModelAdmin):
	list_display = ("id", "holding_period_days", "minimum_payout_amount", "maximum_payout_amount", "auto_approve_threshold", "auto_payout_enabled", "is_active")
	list_filter = ("is_active", "auto_payout_enabled")


@admin.register(SellerBalance)
class SellerBalanceAdmin(admin.ModelAdmin):
	list_display = ("seller", "escrow_balance", "pending_balance", "available_balance", "total_commission_paid", "updated_at")
	search_fields = ("seller__email", "seller__store_name")
	# Balances only change through the ledger
	readonly_fields = ("seller", "escrow_balance", "pending_balance", "available_balance", "total_commission_paid")


@admin.register(PayoutRequest)
class PayoutRequestAdmin(admin.ModelAdmin):
	list_display = ("id", "seller", "amount", "reserved_amount", "method", "status", "is_automatic", "requested_at")
	list_filter = ("status", "method", "is_automatic")
	search_fields = ("seller__email", "id")
	actions = ("approve_payouts", "reject_payouts")

	def approve_payouts(self, request, queryset):
		succeeded = 0
		failed = 0
		for payout in queryset:
			try:
				PayoutService.approve_payout(payout.id, admin=request.user)
				succeeded += 1
			except SettlementError as exc:
				failed += 1
				self.message_user(request, _("Failed to approve payout %(id)s: %(err)s") % {"id": payout.id, "err": str(exc)}, messages.ERROR)

		self.message_user(request, _("Payouts approved: %(ok)d, failed: %(bad)d") % {"ok": succeeded, "bad": failed}, messages.INFO)

	approve_payouts.short_description = "Approve selected payouts"

	def reject_payouts(self, request, queryset):
		"""Reject and return the reserved earnings to the sellers' available balance."""
		succeeded = 0
		failed = 0
		for payout in queryset:
			try:
				PayoutService.reject_payout(payout.id, admin=request.user, reason="Rejected from admin")
				succeeded += 1
			except SettlementError as exc:
				failed += 1
				self.message_user(request, _("Failed to reject payout %(id)s: %(err)s") % {"id": payout.id, "err": str(exc)}, messages.ERROR)

		self.message_user(request, _("Payouts rejected: %(ok)d, failed: %(bad)d") % {"ok": succeeded, "bad": failed}, messages.INFO)

	reject_payouts.short_description = "Reject selected payouts"


@admin.register(Earning)
class EarningAdmin(admin.ModelAdmin):
	list_display = ("id", "seller", "order", "gross_amount", "commission_amount", "net_amount", "status", "available_date", "needs_audit")
	list_filter = ("status", "needs_audit")
	search_fields = ("seller__email", "order__order_number")
