from django.contrib import admin

from .models import Order, OrderItem, SubOrder


class OrderItemInline(admin.TabularInline):
	model = OrderItem
	extra = 0
	readonly_fields = ("product", "seller", "category", "product_name", "unit_price", "quantity", "total")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
	list_display = ("order_number", "user", "status", "fulfillment_status", "total_amount", "needs_reconciliation", "created_at")
	list_filter = ("status", "fulfillment_status", "needs_reconciliation")
	search_fields = ("order_number", "payment_reference", "user__email")
	inlines = [OrderItemInline]


@admin.register(SubOrder)
class SubOrderAdmin(admin.ModelAdmin):
	list_display = ("id", "parent_order", "seller", "subtotal", "commission_amount", "seller_payout", "fulfillment_status", "payout_status")
	list_filter = ("fulfillment_status", "payout_status", "commission_source")
	search_fields = ("parent_order__order_number", "seller__email")
