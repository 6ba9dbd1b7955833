# payment/urls.py
from django.urls import path
from .views import *

urlpatterns = [
    path("earnings/", EarningsView.as_view(), name="seller-earnings"),
    path("balance/", SellerBalanceView.as_view(), name="seller-balance"),
    path("balances/", AllBalancesView.as_view(), name="all-balances"),
    path("payouts/request/", PayoutRequestView.as_view(), name="payout-request"),
    path("payouts/history/", PayoutHistoryView.as_view(), name="payout-history"),
    path("payouts/<uuid:pk>/approve/", PayoutApproveView.as_view(), name="payout-approve"),
    path("payouts/<uuid:pk>/reject/", PayoutRejectView.as_view(), name="payout-reject"),
    # Admin configuration
    path("commission-settings/", CommissionSettingsView.as_view(), name="commission-settings"),
    path("payout-settings/", PayoutSettingsView.as_view(), name="payout-settings"),
]
