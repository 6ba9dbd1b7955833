from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import IntegrityError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from account.models import User
from catalog.models import Category, Product
from notifications.models import Notification
from order.fulfillment import compute_rollup, update_fulfillment_status
from order.models import Order, OrderItem, SubOrder
from order.services import LineItem, OrderService, OrderSplitter, dominant_category, group_by_seller
from payment.models import Earning, SellerBalance
from payment.services.commission import SettingsSnapshot, fallback_snapshot, resolve_rate
from payment.services.errors import (
    DuplicateSubOrder,
    InvalidFulfillmentTransition,
    SplitPartialFailure,
    ValidationError,
)


FLAT_15 = SettingsSnapshot(default_rate=Decimal("15.00"))


class SettlementFixtures:
    def make_users(self):
        self.customer = User.objects.create_user(email="buyer@example.com", password="Pass123!")
        self.seller1 = User.objects.create_user(email="seller1@example.com", password="Pass123!", role="SELLER")
        self.seller2 = User.objects.create_user(email="seller2@example.com", password="Pass123!", role="SELLER")
        self.staff = User.objects.create_user(email="ops@example.com", password="Pass123!", is_staff=True)

    def make_order(self, order_number="ORD-1001", total=10000):
        return Order.objects.create(
            order_number=order_number,
            user=self.customer,
            status=Order.Status.PAID,
            subtotal=total,
            total_amount=total,
        )

    def scenario_a_items(self, category_id=None):
        return [
            LineItem(product_id="p-1", seller_id=str(self.seller1.id), unit_price=6000, quantity=1, category_id=category_id),
            LineItem(product_id="p-2", seller_id=str(self.seller2.id), unit_price=4000, quantity=1),
        ]


class GroupingTests(SimpleTestCase):
    def test_groups_keep_first_appearance_order(self):
        items = [
            LineItem(product_id="a", seller_id="s2", unit_price=100, quantity=1),
            LineItem(product_id="b", seller_id="s1", unit_price=100, quantity=1),
            LineItem(product_id="c", seller_id="s2", unit_price=100, quantity=2),
        ]
        groups = group_by_seller(items)
        self.assertEqual(list(groups.keys()), ["s2", "s1"])
        self.assertEqual([item.product_id for item in groups["s2"]], ["a", "c"])

    def test_dominant_category_is_highest_value_line(self):
        items = [
            LineItem(product_id="a", seller_id="s", unit_price=500, quantity=1, category_id="cheap"),
            LineItem(product_id="b", seller_id="s", unit_price=300, quantity=2, category_id="bulk"),
        ]
        self.assertEqual(dominant_category(items), "bulk")

    def test_dominant_category_tie_keeps_first(self):
        items = [
            LineItem(product_id="a", seller_id="s", unit_price=500, quantity=1, category_id="first"),
            LineItem(product_id="b", seller_id="s", unit_price=250, quantity=2, category_id="second"),
        ]
        self.assertEqual(dominant_category(items), "first")


class RollupTests(SimpleTestCase):
    def test_rollup_rules(self):
        cases = [
            ([], "pending"),
            (["pending", "confirmed"], "pending"),
            (["confirmed", "confirmed"], "confirmed"),
            (["shipped", "confirmed"], "partially_shipped"),
            (["shipped", "delivered"], "shipped"),
            (["delivered", "delivered"], "delivered"),
            (["delivered", "cancelled"], "partially_shipped"),
            (["shipped", "cancelled"], "partially_shipped"),
            (["cancelled", "cancelled"], "cancelled"),
            (["confirmed", "cancelled"], "confirmed"),
        ]
        for statuses, expected in cases:
            with self.subTest(statuses=statuses):
                self.assertEqual(compute_rollup(statuses), expected)


class OrderSplitterTests(SettlementFixtures, TestCase):
    def setUp(self):
        self.make_users()
        self.order = self.make_order()

    def test_scenario_a_two_sellers_default_rate(self):
        result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        self.assertTrue(result.success)
        self.assertIsNone(result.partial_failure)
        self.assertEqual(result.earnings_created, 2)

        first = SubOrder.objects.get(parent_order=self.order, seller=self.seller1)
        second = SubOrder.objects.get(parent_order=self.order, seller=self.seller2)
        self.assertEqual((first.subtotal, first.commission_amount, first.seller_payout), (6000, 900, 5100))
        self.assertEqual((second.subtotal, second.commission_amount, second.seller_payout), (4000, 600, 3400))

        sub_orders = SubOrder.objects.filter(parent_order=self.order)
        self.assertEqual(sum(s.subtotal for s in sub_orders), self.order.total_amount)
        self.assertEqual(sum(s.seller_payout + s.commission_amount for s in sub_orders), 10000)

    def test_each_sub_order_has_exactly_one_pending_earning(self):
        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        for sub_order in SubOrder.objects.filter(parent_order=self.order):
            earnings = Earning.objects.filter(sub_order=sub_order)
            self.assertEqual(earnings.count(), 1)
            earning = earnings.get()
            self.assertEqual(earning.status, Earning.Status.PENDING)
            self.assertEqual(earning.net_amount, sub_order.seller_payout)
            self.assertEqual(earning.available_date, timezone.localdate() + timedelta(days=7))

    def test_split_credits_pending_balance_and_commission(self):
        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        balance = SellerBalance.objects.get(seller=self.seller1)
        self.assertEqual(balance.pending_balance, 5100)
        self.assertEqual(balance.available_balance, 0)
        self.assertEqual(balance.total_commission_paid, 900)

    def test_split_is_idempotent(self):
        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)
        result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        self.assertTrue(result.success)
        self.assertEqual(result.earnings_created, 0)
        self.assertEqual(len(result.sub_orders), 2)
        self.assertEqual(SubOrder.objects.filter(parent_order=self.order).count(), 2)
        self.assertEqual(Earning.objects.filter(order=self.order).count(), 2)
        self.assertEqual(SellerBalance.objects.get(seller=self.seller1).pending_balance, 5100)
        self.assertEqual(Notification.objects.filter(type="new_sub_order").count(), 2)

    def test_single_seller_order_yields_one_sub_order(self):
        items = [
            LineItem(product_id="p-1", seller_id=str(self.seller1.id), unit_price=2500, quantity=2),
            LineItem(product_id="p-2", seller_id=str(self.seller1.id), unit_price=5000, quantity=1),
        ]
        result = OrderSplitter.split_order(self.order.id, items, snapshot=FLAT_15)

        self.assertEqual(len(result.sub_orders), 1)
        self.assertEqual(result.sub_orders[0].subtotal, 10000)
        self.assertEqual(len(result.sub_orders[0].items), 2)

    def test_category_override_uses_dominant_category(self):
        category = Category.objects.create(name="Books")
        snapshot = SettingsSnapshot(default_rate=Decimal("15.00"), category_rates={str(category.id): Decimal("5.00")})

        OrderSplitter.split_order(self.order.id, self.scenario_a_items(category_id=str(category.id)), snapshot=snapshot)

        first = SubOrder.objects.get(parent_order=self.order, seller=self.seller1)
        self.assertEqual(first.commission_source, SubOrder.CommissionSource.CATEGORY)
        self.assertEqual(first.commission_amount, 300)
        second = SubOrder.objects.get(parent_order=self.order, seller=self.seller2)
        self.assertEqual(second.commission_source, SubOrder.CommissionSource.DEFAULT)

    def test_seller_rate_applies_to_that_seller_only(self):
        snapshot = SettingsSnapshot(default_rate=Decimal("15.00"), seller_rates={str(self.seller2.id): Decimal("10.00")})

        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=snapshot)

        second = SubOrder.objects.get(parent_order=self.order, seller=self.seller2)
        self.assertEqual(second.commission_source, SubOrder.CommissionSource.SELLER)
        self.assertEqual((second.commission_amount, second.seller_payout), (400, 3600))
        first = SubOrder.objects.get(parent_order=self.order, seller=self.seller1)
        self.assertEqual(first.commission_amount, 900)

    def test_fallback_snapshot_flags_earnings_for_audit(self):
        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=fallback_snapshot())

        earnings = Earning.objects.filter(order=self.order)
        self.assertTrue(all(e.needs_audit for e in earnings))
        self.assertTrue(all(e.audit_reason for e in earnings))
        self.assertEqual(
            set(SubOrder.objects.filter(parent_order=self.order).values_list("commission_source", flat=True)),
            {SubOrder.CommissionSource.FALLBACK},
        )

    def test_partial_failure_keeps_successful_groups(self):
        failing_seller = str(self.seller2.id)

        def flaky_resolve(seller_id, *args, **kwargs):
            if str(seller_id) == failing_seller:
                raise RuntimeError("rate lookup exploded")
            return resolve_rate(seller_id, *args, **kwargs)

        with patch("order.services.resolve_rate", side_effect=flaky_resolve):
            result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        self.assertFalse(result.success)
        self.assertIsInstance(result.partial_failure, SplitPartialFailure)
        self.assertEqual([f.seller_id for f in result.failed_groups], [failing_seller])
        self.assertTrue(SubOrder.objects.filter(parent_order=self.order, seller=self.seller1).exists())
        self.assertFalse(SubOrder.objects.filter(parent_order=self.order, seller=self.seller2).exists())
        self.assertFalse(Earning.objects.filter(seller=self.seller2).exists())
        self.assertFalse(SellerBalance.objects.filter(seller=self.seller2, pending_balance__gt=0).exists())

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertTrue(self.order.needs_reconciliation)
        self.assertEqual(self.order.reconciliation_notes[0]["seller_id"], failing_seller)

        # Retry settles the missing group and clears the flag
        retry = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)
        self.assertTrue(retry.success)
        self.assertEqual(retry.earnings_created, 1)
        self.order.refresh_from_db()
        self.assertFalse(self.order.needs_reconciliation)
        self.assertEqual(Earning.objects.filter(order=self.order).count(), 2)

    def test_earning_insert_failure_only_fails_its_seller(self):
        failing_seller = str(self.seller1.id)
        real_create = Earning.objects.create

        def flaky_create(**kwargs):
            if str(kwargs["seller_id"]) == failing_seller:
                raise IntegrityError("earning insert rejected")
            return real_create(**kwargs)

        with patch.object(Earning.objects, "create", side_effect=flaky_create):
            result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        self.assertFalse(result.success)
        self.assertEqual([f.seller_id for f in result.failed_groups], [failing_seller])
        self.assertEqual(result.earnings_created, 1)
        # The sub-order insert is rolled back with the earning
        self.assertFalse(SubOrder.objects.filter(parent_order=self.order, seller=self.seller1).exists())
        self.assertFalse(SellerBalance.objects.filter(seller=self.seller1, pending_balance__gt=0).exists())
        self.assertTrue(Earning.objects.filter(order=self.order, seller=self.seller2).exists())
        self.order.refresh_from_db()
        self.assertTrue(self.order.needs_reconciliation)

    def test_duplicate_without_rows_is_a_group_failure(self):
        with patch(
            "order.services.OrderSplitter._settle_seller_group",
            side_effect=DuplicateSubOrder("raced"),
        ):
            result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)

        self.assertFalse(result.success)
        self.assertEqual(len(result.failed_groups), 2)
        self.assertEqual(result.sub_orders, [])
        self.order.refresh_from_db()
        self.assertTrue(self.order.needs_reconciliation)

    def test_rejects_non_positive_quantity(self):
        items = [LineItem(product_id="p-1", seller_id=str(self.seller1.id), unit_price=100, quantity=0)]
        with self.assertRaises(ValidationError):
            OrderSplitter.split_order(self.order.id, items, snapshot=FLAT_15)
        self.assertFalse(SubOrder.objects.exists())

    def test_notification_failure_does_not_break_split(self):
        with patch("notifications.services.Notification.objects.create", side_effect=RuntimeError("down")):
            result = OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)
        self.assertTrue(result.success)
        self.assertEqual(Earning.objects.filter(order=self.order).count(), 2)


class ConfirmPaymentTests(SettlementFixtures, TestCase):
    def setUp(self):
        self.make_users()
        self.category = Category.objects.create(name="Home")
        self.lamp = Product.objects.create(name="Lamp", seller=self.seller1, price=6000, category=self.category)
        self.mug = Product.objects.create(name="Mug", seller=self.seller2, price=2000)

    def test_resolves_missing_fields_from_catalog(self):
        order, result = OrderService.confirm_payment(
            order_number="PAY-1",
            payer=self.customer,
            amount=10000,
            line_items=[
                {"product_id": str(self.lamp.id), "quantity": 1},
                {"product_id": str(self.mug.id), "quantity": 2},
            ],
        )

        self.assertTrue(result.success)
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertEqual(order.total_amount, 10000)
        self.assertEqual(OrderItem.objects.filter(order=order).count(), 2)
        lamp_item = OrderItem.objects.get(order=order, product=self.lamp)
        self.assertEqual(lamp_item.seller, self.seller1)
        self.assertEqual(lamp_item.category, self.category)
        self.assertEqual(SubOrder.objects.get(parent_order=order, seller=self.seller2).subtotal, 4000)

    def test_amount_mismatch_is_rejected_before_any_write(self):
        with self.assertRaises(ValidationError):
            OrderService.confirm_payment(
                order_number="PAY-2",
                payer=self.customer,
                amount=9999,
                line_items=[{"product_id": str(self.lamp.id), "quantity": 1}],
            )
        self.assertFalse(Order.objects.filter(order_number="PAY-2").exists())

    def test_unknown_seller_is_rejected(self):
        with self.assertRaisesMessage(ValidationError, "Unknown seller"):
            OrderService.confirm_payment(
                order_number="PAY-3",
                payer=self.customer,
                amount=500,
                line_items=[
                    {"product_id": "ext-1", "seller_id": str(self.customer.id), "unit_price": 500, "quantity": 1}
                ],
            )

    def test_confirming_twice_does_not_duplicate(self):
        payload = dict(
            order_number="PAY-4",
            payer=self.customer,
            amount=6000,
            line_items=[{"product_id": str(self.lamp.id), "quantity": 1}],
        )
        first_order, _ = OrderService.confirm_payment(**payload)
        second_order, result = OrderService.confirm_payment(**payload)

        self.assertEqual(first_order.id, second_order.id)
        self.assertEqual(result.earnings_created, 0)
        self.assertEqual(Order.objects.filter(order_number="PAY-4").count(), 1)
        self.assertEqual(OrderItem.objects.filter(order=first_order).count(), 1)
        self.assertEqual(Earning.objects.filter(order=first_order).count(), 1)


class PaymentConfirmViewTests(SettlementFixtures, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_users()

    def _payload(self):
        return {
            "orderId": "ORD-API-1",
            "payerId": str(self.customer.id),
            "amountMinorUnits": 10000,
            "lineItems": [
                {"productId": "sku-1", "sellerId": str(self.seller1.id), "unitPrice": 6000, "quantity": 1},
                {"productId": "sku-2", "sellerId": str(self.seller2.id), "unitPrice": 4000, "quantity": 1},
            ],
        }

    def test_staff_can_confirm_payment(self):
        self.client.force_authenticate(self.staff)
        response = self.client.post("/order/payments/confirm/", self._payload(), format="json")

        self.assertEqual(response.status_code, 201, response.data)
        self.assertTrue(response.data["success"])
        self.assertEqual(len(response.data["sub_orders"]), 2)

    def test_customer_cannot_confirm_payment(self):
        self.client.force_authenticate(self.customer)
        response = self.client.post("/order/payments/confirm/", self._payload(), format="json")
        self.assertEqual(response.status_code, 403)

    def test_amount_mismatch_returns_400(self):
        self.client.force_authenticate(self.staff)
        payload = self._payload()
        payload["amountMinorUnits"] = 9000
        response = self.client.post("/order/payments/confirm/", payload, format="json")
        self.assertEqual(response.status_code, 400, response.data)
        self.assertIn("does not match", response.data["detail"])

    def test_partial_failure_returns_207(self):
        self.client.force_authenticate(self.staff)
        with patch("order.services.OrderSplitter._settle_seller_group", side_effect=RuntimeError("boom")):
            response = self.client.post("/order/payments/confirm/", self._payload(), format="json")
        self.assertEqual(response.status_code, 207, response.data)
        self.assertFalse(response.data["success"])
        self.assertEqual(len(response.data["failed_groups"]), 2)


class FulfillmentTests(SettlementFixtures, TestCase):
    def setUp(self):
        self.client = APIClient()
        self.make_users()
        self.order = self.make_order()
        OrderSplitter.split_order(self.order.id, self.scenario_a_items(), snapshot=FLAT_15)
        self.sub1 = SubOrder.objects.get(parent_order=self.order, seller=self.seller1)
        self.sub2 = SubOrder.objects.get(parent_order=self.order, seller=self.seller2)

    def test_shipping_updates_timestamps_and_rollup(self):
        update_fulfillment_status(self.sub1.id, "confirmed")
        updated = update_fulfillment_status(self.sub1.id, "shipped", tracking_number="TRK1", carrier="UPS")

        self.assertEqual(updated.fulfillment_status, "shipped")
        self.assertEqual(updated.tracking_number, "TRK1")
        self.assertIsNotNone(updated.shipped_at)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PARTIALLY_SHIPPED)

    def test_all_delivered_rolls_up_and_notifies_buyer(self):
        for sub_order in (self.sub1, self.sub2):
            update_fulfillment_status(sub_order.id, "confirmed")
            update_fulfillment_status(sub_order.id, "shipped")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.SHIPPED)

        for sub_order in (self.sub1, self.sub2):
            update_fulfillment_status(sub_order.id, "delivered")
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.DELIVERED)
        self.assertTrue(Notification.objects.filter(user=self.customer, type="order_delivered").exists())

    def test_invalid_transition_raises(self):
        with self.assertRaises(InvalidFulfillmentTransition) as ctx:
            update_fulfillment_status(self.sub1.id, "delivered")
        self.assertEqual(ctx.exception.current_status, "pending")
        self.sub1.refresh_from_db()
        self.assertEqual(self.sub1.fulfillment_status, "pending")

    def test_cancel_does_not_touch_earnings(self):
        update_fulfillment_status(self.sub2.id, "cancelled")
        self.assertEqual(Earning.objects.get(sub_order=self.sub2).status, Earning.Status.PENDING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PENDING)

    def test_cancelled_sibling_keeps_order_out_of_delivered(self):
        update_fulfillment_status(self.sub2.id, "cancelled")
        for status in ("confirmed", "shipped", "delivered"):
            update_fulfillment_status(self.sub1.id, status)

        self.order.refresh_from_db()
        self.assertEqual(self.order.fulfillment_status, Order.FulfillmentStatus.PARTIALLY_SHIPPED)
        self.assertFalse(Notification.objects.filter(user=self.customer, type="order_delivered").exists())

    def test_seller_patches_own_sub_order(self):
        self.client.force_authenticate(self.seller1)
        response = self.client.patch(
            f"/order/sub-orders/{self.sub1.id}/fulfillment/",
            {"status": "confirmed"},
            format="json",
        )
        self.assertEqual(response.status_code, 200, response.data)
        self.assertEqual(response.data["fulfillment_status"], "confirmed")

    def test_invalid_transition_returns_409(self):
        self.client.force_authenticate(self.seller1)
        response = self.client.patch(
            f"/order/sub-orders/{self.sub1.id}/fulfillment/",
            {"status": "delivered"},
            format="json",
        )
        self.assertEqual(response.status_code, 409, response.data)
        self.assertEqual(response.data["current_status"], "pending")

    def test_seller_cannot_see_other_sellers_sub_order(self):
        self.client.force_authenticate(self.seller1)
        response = self.client.get(f"/order/sub-orders/{self.sub2.id}/")
        self.assertEqual(response.status_code, 404)

    def test_seller_lists_only_own_sub_orders(self):
        self.client.force_authenticate(self.seller2)
        response = self.client.get("/order/sub-orders/", {"payout_status": "pending"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.data], [str(self.sub2.id)])

    def test_buyer_sees_sub_orders_of_own_order(self):
        self.client.force_authenticate(self.customer)
        response = self.client.get(f"/order/orders/{self.order.id}/sub-orders/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["sub_orders"]), 2)
