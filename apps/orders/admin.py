from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ("item_name", "price", "quantity", "menu_item")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "restaurant",
        "customer",
        "status",
        "order_type",
        "payment_method",
        "payment_confirmed",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "order_type", "payment_method", "payment_confirmed")
    search_fields = ("id", "restaurant__name", "customer__username", "customer__email")
    list_select_related = ("restaurant", "customer")
    ordering = ("-created_at",)
    # Status and payment fields only change through the order and payment services.
    readonly_fields = ("status", "payment_method", "payment_confirmed", "total_amount", "created_at", "updated_at")
    inlines = [OrderItemInline]
