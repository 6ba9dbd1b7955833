from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Order, SubOrder

User = get_user_model()


class PaymentLineItemSerializer(serializers.Serializer):
    productId = serializers.CharField(source="product_id", max_length=64)
    sellerId = serializers.UUIDField(source="seller_id", required=False)
    unitPrice = serializers.IntegerField(source="unit_price", min_value=0, required=False)
    quantity = serializers.IntegerField(min_value=1)
    categoryId = serializers.UUIDField(source="category_id", required=False, allow_null=True)
    productName = serializers.CharField(source="product_name", required=False, allow_blank=True)


class PaymentConfirmationSerializer(serializers.Serializer):
    """Payload sent by the payment boundary once a charge has succeeded."""

    orderId = serializers.CharField(source="order_number", max_length=64)
    payerId = serializers.PrimaryKeyRelatedField(source="payer", queryset=User.objects.all())
    amountMinorUnits = serializers.IntegerField(source="amount", min_value=1)
    currency = serializers.CharField(max_length=10, required=False)
    paymentReference = serializers.CharField(source="payment_reference", max_length=100, required=False)
    paymentMethod = serializers.CharField(source="payment_method", max_length=50, required=False, allow_blank=True)
    lineItems = PaymentLineItemSerializer(source="line_items", many=True, allow_empty=False)


class SubOrderSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="parent_order.order_number", read_only=True)

    class Meta:
        model = SubOrder
        fields = [
            "id",
            "parent_order",
            "order_number",
            "seller",
            "items",
            "subtotal",
            "commission_rate",
            "commission_source",
            "commission_amount",
            "processing_fee",
            "platform_fee",
            "seller_payout",
            "fulfillment_status",
            "payout_status",
            "tracking_number",
            "carrier",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class FulfillmentUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=SubOrder.FulfillmentStatus.choices)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    carrier = serializers.CharField(max_length=100, required=False, allow_blank=True)


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user",
            "status",
            "fulfillment_status",
            "subtotal",
            "total_amount",
            "currency",
            "payment_reference",
            "needs_reconciliation",
            "reconciliation_notes",
            "created_at",
        ]
        read_only_fields = fields
