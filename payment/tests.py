from datetime import timedelta
from decimal import Decimal
from io import StringIO
from itertools import count
from unittest.mock import patch

from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from account.models import PayoutMethod, User
from notifications.models import Notification
from order.models import Order, SubOrder
from payment.models import CommissionSettings, Earning, PayoutRequest, PayoutSettings, SellerBalance
from payment.services import ledger
from payment.services.commission import (
    SettingsSnapshot,
    Tier,
    calculate_commission,
    load_settings_snapshot,
    publish_commission_settings,
    resolve_rate,
    select_tier,
    split_gross,
)
from payment.services.errors import (
    InsufficientAvailable,
    InsufficientPending,
    InvalidPayoutState,
    ValidationError,
)
from payment.services.payouts import PayoutService
from payment.tasks import release_matured_earnings_task


TIERS = (
    Tier(name="bronze", min_sales=0, rate=Decimal("15.00")),
    Tier(name="silver", min_sales=1_000_000, rate=Decimal("12.00")),
    Tier(name="gold", min_sales=5_000_000, rate=Decimal("10.00")),
)

_order_numbers = count(1)


class EarningFixtures:
    """Creates earnings with ledger balances that agree with them."""

    def make_seller(self, email):
        return User.objects.create_user(email=email, password="Pass123!", role="SELLER")

    def make_earning(self, seller, net, status=Earning.Status.AVAILABLE, available_date=None, credit_ledger=True):
        buyer, _ = User.objects.get_or_create(email="buyer@example.com")
        order = Order.objects.create(
            order_number=f"ORD-T-{next(_order_numbers)}",
            user=buyer,
            status=Order.Status.PAID,
            subtotal=net,
            total_amount=net,
        )
        sub_order = SubOrder.objects.create(
            parent_order=order,
            seller=seller,
            subtotal=net,
            commission_rate=Decimal("0.00"),
            commission_source=SubOrder.CommissionSource.DEFAULT,
            commission_amount=0,
            seller_payout=net,
            payout_status=status,
        )
        earning = Earning.objects.create(
            seller=seller,
            sub_order=sub_order,
            order=order,
            gross_amount=net,
            commission_rate=Decimal("0.00"),
            commission_amount=0,
            net_amount=net,
            status=status,
            available_date=available_date or timezone.localdate() - timedelta(days=1),
        )
        if credit_ledger:
            ledger.add_to_pending(seller.id, net)
            if status == Earning.Status.AVAILABLE:
                ledger.move_pending_to_available(seller.id, net)
        return earning


class CommissionCalculationTests(SimpleTestCase):
    def test_round_half_up_at_boundary_cents(self):
        self.assertEqual(calculate_commission(999, Decimal("15")), 150)
        self.assertEqual(calculate_commission(10, "15.00"), 2)
        self.assertEqual(calculate_commission(6000, "15.00"), 900)

    def test_rounding_is_deterministic(self):
        snapshot = SettingsSnapshot(default_rate=Decimal("15.00"))
        results = {resolve_rate("s", None, 999, snapshot).commission_amount for _ in range(20)}
        self.assertEqual(results, {150})

    def test_rejects_invalid_inputs(self):
        with self.assertRaises(ValidationError):
            calculate_commission(-1, "15.00")
        with self.assertRaises(ValidationError):
            calculate_commission(100, "101")

    def test_select_tier_picks_highest_reached(self):
        self.assertEqual(select_tier(0, TIERS).name, "bronze")
        self.assertEqual(select_tier(1_000_000, TIERS).name, "silver")
        self.assertEqual(select_tier(7_500_000, TIERS).name, "gold")
        self.assertIsNone(select_tier(10, (Tier(name="vip", min_sales=100, rate=Decimal("5")),)))

    def test_tier_applies_when_no_category_override(self):
        snapshot = SettingsSnapshot(default_rate=Decimal("20.00"), tiers=TIERS)
        breakdown = resolve_rate("seller", None, 10000, snapshot, sales_lookup=lambda _: 2_000_000)

        self.assertEqual(breakdown.source, "tier")
        self.assertEqual(breakdown.tier, "silver")
        self.assertEqual(breakdown.commission_amount, 1200)

    def test_category_override_beats_tier(self):
        snapshot = SettingsSnapshot(default_rate=Decimal("20.00"), category_rates={"books": Decimal("5.00")}, tiers=TIERS)
        breakdown = resolve_rate("seller", "books", 10000, snapshot, sales_lookup=lambda _: 2_000_000)

        self.assertEqual(breakdown.source, "category")
        self.assertEqual(breakdown.commission_amount, 500)

    def test_seller_rate_beats_category_and_tier(self):
        snapshot = SettingsSnapshot(
            default_rate=Decimal("20.00"),
            seller_rates={"seller-1": Decimal("7.50")},
            category_rates={"books": Decimal("5.00")},
            tiers=TIERS,
        )
        negotiated = resolve_rate("seller-1", "books", 10000, snapshot, sales_lookup=lambda _: 2_000_000)
        other = resolve_rate("seller-2", "books", 10000, snapshot, sales_lookup=lambda _: 2_000_000)

        self.assertEqual((negotiated.source, negotiated.commission_amount), ("seller", 750))
        self.assertEqual((other.source, other.commission_amount), ("category", 500))

    def test_fallback_ignores_seller_rate(self):
        snapshot = SettingsSnapshot(
            default_rate=Decimal("15.00"),
            seller_rates={"seller-1": Decimal("7.50")},
            is_fallback=True,
        )
        breakdown = resolve_rate("seller-1", None, 10000, snapshot)

        self.assertEqual(breakdown.source, "fallback")
        self.assertTrue(breakdown.needs_audit)

    def test_fees_are_capped_at_remaining_amount(self):
        snapshot = SettingsSnapshot(
            default_rate=Decimal("50.00"),
            processing_fee_percent=Decimal("2.90"),
            processing_fee_fixed=30,
            platform_fee=500,
        )
        breakdown = split_gross(100, snapshot.default_rate, snapshot, "default")

        self.assertEqual(breakdown.commission_amount, 50)
        self.assertEqual(breakdown.processing_fee, 33)
        self.assertEqual(breakdown.platform_fee, 17)
        self.assertEqual(breakdown.net_amount, 0)

    def test_net_plus_deductions_equals_gross(self):
        snapshot = SettingsSnapshot(default_rate=Decimal("12.50"), processing_fee_percent=Decimal("2.90"), processing_fee_fixed=30)
        breakdown = split_gross(12345, snapshot.default_rate, snapshot, "default")
        self.assertEqual(
            breakdown.net_amount + breakdown.commission_amount + breakdown.processing_fee + breakdown.platform_fee,
            12345,
        )


class SettingsSnapshotTests(TestCase):
    def test_missing_rows_use_documented_defaults(self):
        snapshot = load_settings_snapshot()

        self.assertFalse(snapshot.is_fallback)
        self.assertEqual(snapshot.default_rate, Decimal("15.00"))
        self.assertEqual([t.name for t in snapshot.tiers], ["bronze", "silver", "gold", "platinum"])
        self.assertEqual(snapshot.holding_period_days, 7)
        self.assertEqual(snapshot.minimum_payout_amount, 2000)

    def test_active_rows_are_loaded(self):
        CommissionSettings.objects.create(
            default_rate=Decimal("11.00"),
            tiers=[],
            category_rates={"c1": "4.00"},
            seller_rates={"s1": "9.25"},
        )
        PayoutSettings.objects.create(holding_period_days=14, minimum_payout_amount=500)

        snapshot = load_settings_snapshot()
        self.assertEqual(snapshot.default_rate, Decimal("11.00"))
        self.assertEqual(snapshot.category_rates, {"c1": Decimal("4.00")})
        self.assertEqual(snapshot.seller_rates, {"s1": Decimal("9.25")})
        self.assertEqual(snapshot.holding_period_days, 14)
        self.assertEqual(snapshot.minimum_payout_amount, 500)

    def test_database_error_returns_audited_fallback(self):
        with patch("payment.services.commission.CommissionSettings.objects.filter", side_effect=DatabaseError("gone")):
            snapshot = load_settings_snapshot()

        self.assertTrue(snapshot.is_fallback)
        breakdown = resolve_rate("seller", None, 1000, snapshot)
        self.assertTrue(breakdown.needs_audit)
        self.assertEqual(breakdown.source, "fallback")
        self.assertEqual(breakdown.commission_amount, 150)

    def test_publishing_creates_new_active_version(self):
        first = publish_commission_settings(default_rate=Decimal("15.00"))
        second = publish_commission_settings(default_rate=Decimal("13.00"))

        first.refresh_from_db()
        self.assertEqual(second.version, first.version + 1)
        self.assertFalse(first.is_active)
        self.assertTrue(second.is_active)
        self.assertEqual(load_settings_snapshot().default_rate, Decimal("13.00"))

    def test_publishing_rejects_malformed_tiers(self):
        with self.assertRaises(ValidationError):
            publish_commission_settings(tiers=[{"name": "broken"}])
        self.assertFalse(CommissionSettings.objects.exists())


class LedgerTests(EarningFixtures, TestCase):
    def setUp(self):
        self.seller = self.make_seller("seller@example.com")

    def balance(self):
        return SellerBalance.objects.get(seller=self.seller)

    def test_pending_to_available_moves_exact_amount(self):
        ledger.add_to_pending(self.seller.id, 5000)
        ledger.move_pending_to_available(self.seller.id, 3000)

        balance = self.balance()
        self.assertEqual((balance.pending_balance, balance.available_balance), (2000, 3000))

    def test_short_bucket_raises_and_changes_nothing(self):
        ledger.add_to_pending(self.seller.id, 1000)

        with self.assertRaises(InsufficientPending) as ctx:
            ledger.move_pending_to_available(self.seller.id, 1001)
        self.assertEqual(ctx.exception.available, 1000)
        self.assertEqual(ctx.exception.requested, 1001)

        with self.assertRaises(InsufficientAvailable):
            ledger.deduct_from_available(self.seller.id, 1)

        balance = self.balance()
        self.assertEqual((balance.pending_balance, balance.available_balance), (1000, 0))

    def test_negative_and_fractional_amounts_are_rejected(self):
        with self.assertRaises(ValidationError):
            ledger.add_to_pending(self.seller.id, -5)
        with self.assertRaises(ValidationError):
            ledger.add_to_escrow(self.seller.id, 10.5)

    def test_escrow_release(self):
        ledger.add_to_escrow(self.seller.id, 700)
        ledger.release_escrow_to_pending(self.seller.id, 700)
        balance = self.balance()
        self.assertEqual((balance.escrow_balance, balance.pending_balance), (0, 700))

    def test_balances_never_go_negative(self):
        operations = [
            (ledger.add_to_pending, 4000),
            (ledger.move_pending_to_available, 2500),
            (ledger.deduct_from_available, 3000),
            (ledger.deduct_from_available, 2500),
            (ledger.restore_to_available, 2500),
            (ledger.move_pending_to_available, 2000),
            (ledger.record_commission, 600),
        ]
        for operation, amount in operations:
            try:
                operation(self.seller.id, amount)
            except InsufficientAvailable:
                pass
            except InsufficientPending:
                pass
            balance = self.balance()
            for value in (balance.escrow_balance, balance.pending_balance, balance.available_balance):
                self.assertGreaterEqual(value, 0)

        balance = self.balance()
        self.assertEqual((balance.pending_balance, balance.available_balance), (1500, 2500))


class AvailabilitySweepTests(EarningFixtures, TestCase):
    def setUp(self):
        self.seller = self.make_seller("seller@example.com")

    def test_matured_earnings_become_available(self):
        matured = self.make_earning(self.seller, 3000, status=Earning.Status.PENDING)
        future = self.make_earning(
            self.seller,
            1000,
            status=Earning.Status.PENDING,
            available_date=timezone.localdate() + timedelta(days=3),
        )

        result = ledger.release_matured_earnings()

        self.assertEqual(result, {"released": 1, "skipped": 0, "failed": 0})
        matured.refresh_from_db()
        future.refresh_from_db()
        self.assertEqual(matured.status, Earning.Status.AVAILABLE)
        self.assertEqual(future.status, Earning.Status.PENDING)
        self.assertEqual(SubOrder.objects.get(pk=matured.sub_order_id).payout_status, SubOrder.PayoutStatus.AVAILABLE)
        balance = SellerBalance.objects.get(seller=self.seller)
        self.assertEqual((balance.pending_balance, balance.available_balance), (1000, 3000))
        self.assertTrue(Notification.objects.filter(user=self.seller, type="earnings_available").exists())

    def test_sweep_twice_releases_once(self):
        self.make_earning(self.seller, 3000, status=Earning.Status.PENDING)
        ledger.release_matured_earnings()
        second = release_matured_earnings_task()

        self.assertEqual(second["released"], 0)
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 3000)

    def test_out_of_sync_balance_is_reported_not_applied(self):
        earning = self.make_earning(self.seller, 3000, status=Earning.Status.PENDING, credit_ledger=False)
        ledger.get_or_create_balance(self.seller.id)

        result = ledger.release_matured_earnings()

        self.assertEqual(result["failed"], 1)
        earning.refresh_from_db()
        self.assertEqual(earning.status, Earning.Status.PENDING)

    def test_management_command_accepts_date(self):
        self.make_earning(
            self.seller,
            2000,
            status=Earning.Status.PENDING,
            available_date=timezone.localdate() + timedelta(days=5),
        )
        out = StringIO()
        as_of = (timezone.localdate() + timedelta(days=5)).isoformat()
        call_command("release_earnings", "--date", as_of, stdout=out)

        self.assertIn("Released 1 earnings", out.getvalue())
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 2000)


class PayoutWorkflowTests(EarningFixtures, TestCase):
    def setUp(self):
        self.seller = self.make_seller("seller1@example.com")
        self.admin = User.objects.create_user(email="admin@example.com", password="Pass123!", is_staff=True)

    def test_scenario_b_insufficient_available(self):
        first = self.make_earning(self.seller, 1500)
        second = self.make_earning(self.seller, 1500)

        with self.assertRaises(InsufficientAvailable) as ctx:
            PayoutService.request_payout(self.seller, 4000, "bank_transfer")
        self.assertEqual(ctx.exception.available, 3000)

        for earning in (first, second):
            earning.refresh_from_db()
            self.assertEqual(earning.status, Earning.Status.AVAILABLE)
            self.assertIsNone(earning.payout_id)
        self.assertFalse(PayoutRequest.objects.exists())
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 3000)

    def test_scenario_c_reject_restores_reservation(self):
        earning_a = self.make_earning(self.seller, 2000, available_date=timezone.localdate() - timedelta(days=3))
        earning_b = self.make_earning(self.seller, 2500, available_date=timezone.localdate() - timedelta(days=2))

        payout = PayoutService.request_payout(self.seller, 4000, "bank_transfer", {"account_number": "123"})

        earning_a.refresh_from_db()
        earning_b.refresh_from_db()
        self.assertEqual({earning_a.status, earning_b.status}, {Earning.Status.PROCESSING})
        self.assertEqual(earning_a.payout_id, payout.id)
        self.assertEqual(earning_b.payout_id, payout.id)
        self.assertEqual(payout.reserved_amount, 4500)
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 0)

        PayoutService.reject_payout(payout.id, admin=self.admin, reason="Bank details invalid")

        for earning in (earning_a, earning_b):
            earning.refresh_from_db()
            self.assertEqual(earning.status, Earning.Status.AVAILABLE)
            self.assertIsNone(earning.payout_id)
            self.assertEqual(SubOrder.objects.get(pk=earning.sub_order_id).payout_status, SubOrder.PayoutStatus.AVAILABLE)
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 4500)
        payout.refresh_from_db()
        self.assertEqual(payout.status, PayoutRequest.Status.REJECTED)
        self.assertEqual(payout.failure_reason, "Bank details invalid")
        self.assertTrue(Notification.objects.filter(user=self.seller, type="payout_rejected").exists())

    def test_reject_is_inverse_for_every_valid_amount(self):
        earnings = [self.make_earning(self.seller, net) for net in (2000, 2500, 3000)]
        for amount in (2000, 2001, 4500, 6000, 7500):
            with self.subTest(amount=amount):
                payout = PayoutService.request_payout(self.seller, amount, "paypal")
                PayoutService.reject_payout(payout.id, admin=self.admin, reason="retry")
                for earning in earnings:
                    earning.refresh_from_db()
                    self.assertEqual((earning.status, earning.payout_id), (Earning.Status.AVAILABLE, None))
                self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 7500)

    def test_oldest_earnings_are_reserved_first(self):
        newer = self.make_earning(self.seller, 3000, available_date=timezone.localdate() - timedelta(days=1))
        older = self.make_earning(self.seller, 3000, available_date=timezone.localdate() - timedelta(days=10))

        PayoutService.request_payout(self.seller, 2500, "bank_transfer")

        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual(older.status, Earning.Status.PROCESSING)
        self.assertEqual(newer.status, Earning.Status.AVAILABLE)

    def test_approve_is_terminal(self):
        self.make_earning(self.seller, 5000)
        payout = PayoutService.request_payout(self.seller, 5000, "bank_transfer")

        approved = PayoutService.approve_payout(payout.id, admin=self.admin)
        self.assertEqual(approved.status, PayoutRequest.Status.APPROVED)
        self.assertEqual(approved.approved_by, self.admin)
        self.assertIsNotNone(approved.approved_at)
        self.assertEqual(Earning.objects.get(payout=payout).status, Earning.Status.PROCESSING)

        with self.assertRaises(InvalidPayoutState) as ctx:
            PayoutService.reject_payout(payout.id, admin=self.admin, reason="late")
        self.assertEqual(ctx.exception.current_status, PayoutRequest.Status.APPROVED)
        with self.assertRaises(InvalidPayoutState):
            PayoutService.approve_payout(payout.id, admin=self.admin)
        self.assertEqual(SellerBalance.objects.get(seller=self.seller).available_balance, 0)

    def test_unknown_payout_raises_does_not_exist(self):
        with self.assertRaises(PayoutRequest.DoesNotExist):
            PayoutService.approve_payout("00000000-0000-0000-0000-000000000000")

    def test_limits_are_enforced(self):
        self.make_earning(self.seller, 50000)
        with self.assertRaisesMessage(ValidationError, "Minimum payout amount"):
            PayoutService.request_payout(self.seller, 1999, "bank_transfer")
        with self.assertRaises(ValidationError):
            PayoutService.request_payout(self.seller, 0, "bank_transfer")
        with self.assertRaises(ValidationError):
            PayoutService.request_payout(self.seller, 3000, "carrier_pigeon")
        snapshot = SettingsSnapshot(default_rate=Decimal("15"), maximum_payout_amount=10000)
        with self.assertRaisesMessage(ValidationError, "Maximum payout amount"):
            PayoutService.request_payout(self.seller, 10001, "bank_transfer", snapshot=snapshot)

    def test_auto_approve_below_threshold(self):
        self.make_earning(self.seller, 3000)
        snapshot = SettingsSnapshot(default_rate=Decimal("15"), auto_approve_threshold=5000)

        payout = PayoutService.request_payout(self.seller, 3000, "paypal", snapshot=snapshot)

        self.assertEqual(payout.status, PayoutRequest.Status.APPROVED)
        self.assertIsNone(payout.approved_by)
        self.assertEqual(payout.metadata["approval_note"], "auto-approved")

    def test_automatic_payouts_use_default_method(self):
        other = self.make_seller("seller2@example.com")
        PayoutSettings.objects.create(auto_payout_enabled=True)
        PayoutMethod.objects.create(
            seller=self.seller,
            method=PayoutMethod.Method.BANK_TRANSFER,
            account_details={"account_number": "001", "bank_name": "Bank"},
            is_default=True,
        )
        self.make_earning(self.seller, 2500)
        self.make_earning(self.seller, 1500)
        self.make_earning(other, 9000)

        result = PayoutService.create_automatic_payouts()

        self.assertEqual(result, {"created": 1, "skipped": 1, "failed": 0})
        payout = PayoutRequest.objects.get(seller=self.seller)
        self.assertTrue(payout.is_automatic)
        self.assertEqual(payout.amount, 4000)
        self.assertEqual(payout.method, PayoutMethod.Method.BANK_TRANSFER)
        self.assertFalse(PayoutRequest.objects.filter(seller=other).exists())

    def test_automatic_payouts_disabled_by_default(self):
        self.make_earning(self.seller, 5000)
        self.assertEqual(PayoutService.create_automatic_payouts()["created"], 0)
        self.assertFalse(PayoutRequest.objects.exists())

    def test_earnings_summary(self):
        self.make_earning(self.seller, 2000)
        self.make_earning(self.seller, 3000, status=Earning.Status.PENDING)

        summary = PayoutService.get_earnings_summary(self.seller)

        self.assertEqual(summary["available"], 2000)
        self.assertEqual(summary["pending"], 3000)
        self.assertEqual(summary["total_net"], 5000)
        self.assertEqual(summary["earnings_count"], 2)


class PayoutApiTests(EarningFixtures, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.seller = self.make_seller("seller@example.com")
        self.admin = User.objects.create_user(email="admin@example.com", password="Pass123!", is_staff=True)

    def test_seller_requests_payout(self):
        self.make_earning(self.seller, 3000)
        self.client.force_authenticate(self.seller)

        response = self.client.post(
            "/payment/payouts/request/",
            {"amount": 2500, "method": "paypal", "account_details": {"email": "s@example.com"}},
            format="json",
        )

        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["status"], "PENDING_APPROVAL")
        self.assertEqual(response.data["reserved_amount"], 3000)
        self.assertEqual(len(response.data["earnings"]), 1)

    def test_insufficient_funds_returns_400_with_amounts(self):
        self.make_earning(self.seller, 3000)
        self.client.force_authenticate(self.seller)

        response = self.client.post("/payment/payouts/request/", {"amount": 4000, "method": "paypal"}, format="json")

        self.assertEqual(response.status_code, 400, response.data)
        self.assertEqual(response.data["available"], 3000)
        self.assertEqual(response.data["requested"], 4000)

    def test_method_defaults_to_saved_payout_method(self):
        self.make_earning(self.seller, 3000)
        PayoutMethod.objects.create(seller=self.seller, method="paypal", account_details={"email": "s@example.com"}, is_default=True)
        self.client.force_authenticate(self.seller)

        response = self.client.post("/payment/payouts/request/", {"amount": 3000}, format="json")

        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data["method"], "paypal")

    def test_customer_cannot_request_payout(self):
        customer = User.objects.create_user(email="buyer2@example.com", password="Pass123!")
        self.client.force_authenticate(customer)
        response = self.client.post("/payment/payouts/request/", {"amount": 3000, "method": "paypal"}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_customer_balance_is_forbidden_and_not_created(self):
        customer = User.objects.create_user(email="buyer3@example.com", password="Pass123!")
        self.client.force_authenticate(customer)
        response = self.client.get("/payment/balance/")
        self.assertEqual(response.status_code, 403)
        self.assertFalse(SellerBalance.objects.filter(seller=customer).exists())

    def test_admin_approve_then_reject_conflicts(self):
        self.make_earning(self.seller, 3000)
        payout = PayoutService.request_payout(self.seller, 3000, "paypal")
        self.client.force_authenticate(self.admin)

        response = self.client.post(f"/payment/payouts/{payout.id}/approve/")
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["status"], "APPROVED")

        response = self.client.post(f"/payment/payouts/{payout.id}/reject/", {"reason": "too late"}, format="json")
        self.assertEqual(response.status_code, 409, response.data)
        self.assertEqual(response.data["current_status"], "APPROVED")

    def test_seller_cannot_approve(self):
        self.make_earning(self.seller, 3000)
        payout = PayoutService.request_payout(self.seller, 3000, "paypal")
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/payment/payouts/{payout.id}/approve/")
        self.assertEqual(response.status_code, 403)

    def test_history_filters_by_status(self):
        self.make_earning(self.seller, 3000)
        self.make_earning(self.seller, 3000)
        first = PayoutService.request_payout(self.seller, 3000, "paypal")
        PayoutService.request_payout(self.seller, 3000, "paypal")
        PayoutService.approve_payout(first.id, admin=self.admin)
        self.client.force_authenticate(self.seller)

        response = self.client.get("/payment/payouts/history/", {"status": "approved"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.data["history"]], [str(first.id)])

    def test_earnings_and_balance_endpoints(self):
        self.make_earning(self.seller, 3000)
        self.client.force_authenticate(self.seller)

        earnings = self.client.get("/payment/earnings/")
        balance = self.client.get("/payment/balance/")

        self.assertEqual(earnings.status_code, 200)
        self.assertEqual(earnings.data["summary"]["available"], 3000)
        self.assertEqual(len(earnings.data["earnings"]), 1)
        self.assertEqual(balance.data["available_balance"], 3000)

    def test_staff_lists_all_balances(self):
        self.make_earning(self.seller, 3000)
        self.client.force_authenticate(self.admin)
        response = self.client.get("/payment/balances/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["available_balance"], 3000)


class SettingsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(email="admin@example.com", password="Pass123!", is_staff=True)
        self.client.force_authenticate(self.admin)

    def test_publish_commission_settings(self):
        response = self.client.put(
            "/payment/commission-settings/",
            {
                "default_rate": "12.50",
                "category_rates": {"books": "5.00"},
                "seller_rates": {"seller-9": "6.00"},
                "tiers": [{"name": "base", "min_sales": 0, "rate": "12.50"}],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["version"], 1)
        row = CommissionSettings.objects.get(is_active=True)
        self.assertEqual(row.category_rates, {"books": "5.00"})
        self.assertEqual(row.seller_rates, {"seller-9": "6.00"})
        self.assertEqual(row.tiers, [{"name": "base", "min_sales": 0, "rate": "12.50"}])
        self.assertEqual(load_settings_snapshot().default_rate, Decimal("12.50"))

    def test_rate_above_hundred_is_rejected(self):
        response = self.client.put("/payment/commission-settings/", {"default_rate": "150.00"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(CommissionSettings.objects.exists())

    def test_get_defaults_without_rows(self):
        response = self.client.get("/payment/commission-settings/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["default_rate"], "15.00")

    def test_update_payout_settings(self):
        response = self.client.put(
            "/payment/payout-settings/",
            {"holding_period_days": 3, "auto_approve_threshold": 5000},
            format="json",
        )
        self.assertEqual(response.status_code, 200, response.data)
        snapshot = load_settings_snapshot()
        self.assertEqual(snapshot.holding_period_days, 3)
        self.assertEqual(snapshot.auto_approve_threshold, 5000)

    def test_minimum_above_maximum_is_rejected(self):
        response = self.client.put(
            "/payment/payout-settings/",
            {"minimum_payout_amount": 5000, "maximum_payout_amount": 1000},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
