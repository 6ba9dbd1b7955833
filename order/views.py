import logging

from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from payment.services.errors import SettlementError
from payment.views import settlement_error_response
from .fulfillment import update_fulfillment_status
from .models import Order, SubOrder
from .serializers import FulfillmentUpdateSerializer, PaymentConfirmationSerializer, SubOrderSerializer
from .services import OrderService, OrderSplitter

logger = logging.getLogger(__name__)


def _split_response(order, result, created_status=status.HTTP_201_CREATED):
    body = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "success": result.success,
        "earnings_created": result.earnings_created,
        "sub_orders": SubOrderSerializer(result.sub_orders, many=True).data,
        "failed_groups": [
            {"seller_id": str(failure.seller_id), "error": failure.error} for failure in result.failed_groups
        ],
    }
    if result.partial_failure is not None:
        body["detail"] = str(result.partial_failure)
        return Response(body, status=status.HTTP_207_MULTI_STATUS)
    return Response(body, status=created_status)


class PaymentConfirmView(APIView):
    """Called by the payment boundary after a customer charge succeeds."""

    permission_classes = [IsAdminUser]

    def post(self, request):
        serializer = PaymentConfirmationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order, result = OrderService.confirm_payment(**serializer.validated_data)
        except SettlementError as exc:
            return settlement_error_response(exc)
        except Exception:
            logger.exception("Unexpected error confirming payment for order=%s", serializer.validated_data["order_number"])
            return Response({"detail": "Unexpected settlement error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return _split_response(order, result)


class OrderSplitRetryView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, pk):
        order = get_object_or_404(Order, pk=pk)
        if order.status != Order.Status.PAID:
            return Response(
                {"detail": f"Order cannot be split in status '{order.status}'"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            result = OrderSplitter.split_order(order.id, OrderService.line_items_for(order))
        except SettlementError as exc:
            return settlement_error_response(exc)
        order.refresh_from_db()
        return _split_response(order, result, created_status=status.HTTP_200_OK)


class OrderSubOrdersView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        order = get_object_or_404(Order, pk=pk)
        if not request.user.is_staff and order.user_id != request.user.id:
            return Response({"detail": "Order not found"}, status=status.HTTP_404_NOT_FOUND)
        sub_orders = order.sub_orders.select_related("parent_order").order_by("created_at")
        return Response(
            {
                "order_id": str(order.id),
                "fulfillment_status": order.fulfillment_status,
                "sub_orders": SubOrderSerializer(sub_orders, many=True).data,
            }
        )


class SellerSubOrderListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        queryset = SubOrder.objects.select_related("parent_order").filter(seller=request.user)
        fulfillment_status = request.query_params.get("fulfillment_status")
        if fulfillment_status:
            queryset = queryset.filter(fulfillment_status=fulfillment_status)
        payout_status = request.query_params.get("payout_status")
        if payout_status:
            queryset = queryset.filter(payout_status=payout_status.upper())
        serializer = SubOrderSerializer(queryset.order_by("-created_at"), many=True)
        return Response(serializer.data)


def _get_visible_sub_order(request, pk):
    sub_order = get_object_or_404(SubOrder.objects.select_related("parent_order"), pk=pk)
    if not request.user.is_staff and sub_order.seller_id != request.user.id:
        return None
    return sub_order


class SubOrderDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        sub_order = _get_visible_sub_order(request, pk)
        if sub_order is None:
            return Response({"detail": "Sub-order not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(SubOrderSerializer(sub_order).data)


class SubOrderFulfillmentView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, pk):
        sub_order = _get_visible_sub_order(request, pk)
        if sub_order is None:
            return Response({"detail": "Sub-order not found"}, status=status.HTTP_404_NOT_FOUND)

        serializer = FulfillmentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            sub_order = update_fulfillment_status(
                sub_order.id,
                data["status"],
                tracking_number=data.get("tracking_number"),
                carrier=data.get("carrier"),
            )
        except SettlementError as exc:
            return settlement_error_response(exc)
        return Response(SubOrderSerializer(sub_order).data)
