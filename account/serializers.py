from rest_framework.serializers import ModelSerializer
from django.contrib.auth import get_user_model
from .models import PayoutMethod
from rest_framework import serializers
User = get_user_model()


class UserSerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'email', 'phone_number', 'role', 'created_at', 'updated_at', 'password']
        extra_kwargs = {
            'password': {'write_only': True},}
        read_only_fields = ('id', 'role', 'created_at', 'updated_at')

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        return User.objects.create_user(password=password, role='CUSTOMER', **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        user = super().update(instance, validated_data)
        if password:
            user.set_password(password)
            user.save(update_fields=['password'])
        return user


class SellerSerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'store_name', 'email', 'phone_number', 'role', 'created_at', 'updated_at', 'password']
        extra_kwargs = {
            'password': {'write_only': True},}
        read_only_fields = ('id', 'role', 'created_at', 'updated_at')

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        return User.objects.create_user(password=password, role='SELLER', **validated_data)


class PayoutMethodSerializer(ModelSerializer):
    REQUIRED_DETAILS = {
        PayoutMethod.Method.BANK_TRANSFER: "account_number",
        PayoutMethod.Method.PAYPAL: "email",
        PayoutMethod.Method.STRIPE_CONNECT: "account_id",
    }

    class Meta:
        model = PayoutMethod
        fields = ["id", "method", "account_details", "is_default", "created_at"]
        read_only_fields = ("id", "created_at")

    def validate(self, attrs):
        method = attrs.get("method")
        details = attrs.get("account_details") or {}
        required_key = self.REQUIRED_DETAILS.get(method)
        if required_key and not details.get(required_key):
            raise serializers.ValidationError({"account_details": f"{required_key} is required for {method}."})
        return attrs

    def create(self, validated_data):
        user = self.context['request'].user
        if not user.is_seller:
            raise serializers.ValidationError("Only sellers can add payout methods.")

        validated_data['seller'] = user
        if validated_data.get("is_default"):
            PayoutMethod.objects.filter(seller=user, is_default=True).update(is_default=False)
        return super().create(validated_data)
