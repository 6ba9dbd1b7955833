from decimal import Decimal

from rest_framework import serializers

from account.models import PayoutMethod
from .models import CommissionSettings, Earning, PayoutRequest, PayoutSettings, SellerBalance


class EarningSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = Earning
        fields = [
            "id",
            "seller",
            "sub_order",
            "order",
            "order_number",
            "payout",
            "gross_amount",
            "commission_rate",
            "commission_amount",
            "processing_fee",
            "platform_fee",
            "net_amount",
            "status",
            "available_date",
            "needs_audit",
            "audit_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SellerBalanceSerializer(serializers.ModelSerializer):
    seller_email = serializers.EmailField(source="seller.email", read_only=True)

    class Meta:
        model = SellerBalance
        fields = [
            "seller",
            "seller_email",
            "escrow_balance",
            "pending_balance",
            "available_balance",
            "total_commission_paid",
            "updated_at",
        ]
        read_only_fields = fields


class PayoutRequestSerializer(serializers.ModelSerializer):
    earnings = serializers.SerializerMethodField()

    class Meta:
        model = PayoutRequest
        fields = [
            "id",
            "seller",
            "amount",
            "reserved_amount",
            "status",
            "method",
            "account_details",
            "is_automatic",
            "requested_at",
            "approved_at",
            "approved_by",
            "rejected_at",
            "rejected_by",
            "failure_reason",
            "earnings",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_earnings(self, obj):
        return [str(pk) for pk in obj.earning_items.values_list("id", flat=True)]


class PayoutCreateSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    method = serializers.ChoiceField(choices=PayoutMethod.Method.choices, required=False)
    account_details = serializers.JSONField(required=False)

    def validate(self, attrs):
        # Fall back to the seller's default payout method
        if "method" not in attrs:
            seller = self.context["request"].user
            default = PayoutMethod.objects.filter(seller=seller).order_by("-is_default", "created_at").first()
            if default is None:
                raise serializers.ValidationError("method is required when no payout method is saved")
            attrs["method"] = default.method
            attrs.setdefault("account_details", default.account_details)
        return attrs


class PayoutRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class TierSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    min_sales = serializers.IntegerField(min_value=0)
    rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"))


class CommissionSettingsSerializer(serializers.ModelSerializer):
    tiers = TierSerializer(many=True, required=False)
    category_rates = serializers.DictField(
        child=serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100")),
        required=False,
    )
    seller_rates = serializers.DictField(
        child=serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100")),
        required=False,
    )

    class Meta:
        model = CommissionSettings
        fields = [
            "id",
            "version",
            "default_rate",
            "seller_rates",
            "category_rates",
            "tiers",
            "processing_fee_percent",
            "processing_fee_fixed",
            "platform_fee",
            "is_active",
            "effective_date",
            "notes",
            "updated_at",
        ]
        read_only_fields = ["id", "version", "is_active", "effective_date", "updated_at"]
        extra_kwargs = {
            "default_rate": {"min_value": Decimal("0"), "max_value": Decimal("100")},
            "processing_fee_percent": {"min_value": Decimal("0"), "max_value": Decimal("100")},
        }

    def to_publish_values(self):
        """Validated data in the shape stored on the row: rates as strings inside JSON."""
        values = dict(self.validated_data)
        if "tiers" in values:
            values["tiers"] = [
                {"name": tier["name"], "min_sales": tier["min_sales"], "rate": str(tier["rate"])}
                for tier in values["tiers"]
            ]
        for key in ("category_rates", "seller_rates"):
            if key in values:
                values[key] = {str(k): str(rate) for k, rate in values[key].items()}
        return values


class PayoutSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = PayoutSettings
        fields = [
            "id",
            "holding_period_days",
            "minimum_payout_amount",
            "maximum_payout_amount",
            "auto_approve_threshold",
            "auto_payout_enabled",
            "is_active",
            "updated_at",
        ]
        read_only_fields = ["id", "is_active", "updated_at"]

    def validate(self, attrs):
        minimum = attrs.get("minimum_payout_amount", getattr(self.instance, "minimum_payout_amount", 0))
        maximum = attrs.get("maximum_payout_amount", getattr(self.instance, "maximum_payout_amount", 0))
        if maximum and minimum > maximum:
            raise serializers.ValidationError("minimum_payout_amount cannot exceed maximum_payout_amount")
        return attrs
