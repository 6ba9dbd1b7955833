import logging

from django.db import transaction
from rest_framework import permissions, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import CommissionSettings, Earning, PayoutRequest, PayoutSettings
from .serializers import (
    CommissionSettingsSerializer,
    EarningSerializer,
    PayoutCreateSerializer,
    PayoutRejectSerializer,
    PayoutRequestSerializer,
    PayoutSettingsSerializer,
    SellerBalanceSerializer,
)
from .services import ledger
from .services.commission import publish_commission_settings
from .services.errors import (
    InsufficientFunds,
    InvalidFulfillmentTransition,
    InvalidPayoutState,
    SettlementError,
    ValidationError,
)
from .services.payouts import PayoutService

logger = logging.getLogger(__name__)


def settlement_error_response(exc: SettlementError) -> Response:
    if isinstance(exc, InsufficientFunds):
        return Response(
            {
                "detail": str(exc),
                "bucket": exc.bucket,
                "available": exc.available,
                "requested": exc.requested,
            },
            status=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, (InvalidPayoutState, InvalidFulfillmentTransition)):
        return Response(
            {"detail": str(exc), "current_status": exc.current_status},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, ValidationError):
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    logger.exception("Settlement error: %s", exc)
    return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class EarningsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        queryset = Earning.objects.select_related("order").filter(seller=request.user).order_by("-created_at")
        earning_status = request.query_params.get("status")
        if earning_status:
            queryset = queryset.filter(status=earning_status.upper())
        return Response(
            {
                "summary": PayoutService.get_earnings_summary(request.user),
                "earnings": EarningSerializer(queryset, many=True).data,
            }
        )


class SellerBalanceView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        if not getattr(request.user, "is_seller", False):
            return Response({"detail": "Only sellers have a balance"}, status=status.HTTP_403_FORBIDDEN)
        balance = ledger.get_or_create_balance(request.user.id)
        return Response(SellerBalanceSerializer(balance).data)


class AllBalancesView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response(SellerBalanceSerializer(ledger.get_all_balances(), many=True).data)


class PayoutRequestView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if not getattr(request.user, "is_seller", False):
            return Response({"detail": "Only sellers can request payouts"}, status=status.HTTP_403_FORBIDDEN)

        serializer = PayoutCreateSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            payout = PayoutService.request_payout(
                request.user,
                data["amount"],
                data["method"],
                data.get("account_details"),
            )
        except SettlementError as exc:
            return settlement_error_response(exc)
        except Exception:
            logger.exception("Unexpected payout request error for seller=%s", request.user.id)
            return Response({"detail": "Unexpected payout error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(PayoutRequestSerializer(payout).data, status=status.HTTP_201_CREATED)


class PayoutHistoryView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        if request.user.is_staff:
            queryset = PayoutRequest.objects.select_related("seller").all()
        else:
            queryset = PayoutRequest.objects.filter(seller=request.user)
        payout_status = request.query_params.get("status")
        if payout_status:
            queryset = queryset.filter(status=payout_status.upper())
        data = PayoutRequestSerializer(queryset.order_by("-requested_at"), many=True).data
        balance = ledger.get_balance(request.user.id)
        return Response(
            {
                "available_balance": balance.available_balance if balance else 0,
                "history": data,
            }
        )


class PayoutApproveView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, pk):
        try:
            payout = PayoutService.approve_payout(pk, admin=request.user)
        except PayoutRequest.DoesNotExist:
            return Response({"detail": "Payout not found"}, status=status.HTTP_404_NOT_FOUND)
        except SettlementError as exc:
            return settlement_error_response(exc)
        return Response(PayoutRequestSerializer(payout).data)


class PayoutRejectView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, pk):
        serializer = PayoutRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payout = PayoutService.reject_payout(pk, admin=request.user, reason=serializer.validated_data["reason"])
        except PayoutRequest.DoesNotExist:
            return Response({"detail": "Payout not found"}, status=status.HTTP_404_NOT_FOUND)
        except SettlementError as exc:
            return settlement_error_response(exc)
        return Response(PayoutRequestSerializer(payout).data)


class CommissionSettingsView(APIView):
    """Read the active commission settings or publish a new version."""

    permission_classes = [IsAdminUser]

    def get(self, request):
        current = CommissionSettings.objects.filter(is_active=True).order_by("-version").first()
        return Response(CommissionSettingsSerializer(current or CommissionSettings()).data)

    def put(self, request):
        serializer = CommissionSettingsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        try:
            row = publish_commission_settings(updated_by=request.user, **serializer.to_publish_values())
        except SettlementError as exc:
            return settlement_error_response(exc)
        return Response(CommissionSettingsSerializer(row).data)


class PayoutSettingsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        current = PayoutSettings.objects.filter(is_active=True).order_by("-updated_at").first()
        return Response(PayoutSettingsSerializer(current or PayoutSettings()).data)

    def put(self, request):
        current = PayoutSettings.objects.filter(is_active=True).order_by("-updated_at").first()
        serializer = PayoutSettingsSerializer(current, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            row = serializer.save(updated_by=request.user, is_active=True)
        logger.info("Payout settings updated by=%s", request.user.id)
        return Response(PayoutSettingsSerializer(row).data)
