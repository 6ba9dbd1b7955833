from django.urls import path
from .views import *
urlpatterns = [
    path('payments/confirm/', PaymentConfirmView.as_view(), name='payment-confirm'),
    path('orders/<uuid:pk>/split/', OrderSplitRetryView.as_view(), name='order-split'),
    path('orders/<uuid:pk>/sub-orders/', OrderSubOrdersView.as_view(), name='order-sub-orders'),
    path('sub-orders/', SellerSubOrderListView.as_view(), name='seller-sub-orders'),
    path('sub-orders/<uuid:pk>/', SubOrderDetailView.as_view(), name='sub-order-detail'),
    path('sub-orders/<uuid:pk>/fulfillment/', SubOrderFulfillmentView.as_view(), name='sub-order-fulfillment'),
]
