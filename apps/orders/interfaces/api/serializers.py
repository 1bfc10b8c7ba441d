from __future__ import annotations

from rest_framework import serializers

from apps.orders.domain.policies import MAX_LINES_PER_ORDER
from apps.orders.domain.state_machine import OrderStatus
from apps.orders.models import Order, OrderItem
from apps.payments.models import PaymentAttempt


class OrderLineInputSerializer(serializers.Serializer):
    menu_item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class PlaceOrderInputSerializer(serializers.Serializer):
    restaurant_id = serializers.UUIDField()
    order_type = serializers.CharField(max_length=20)
    delivery_address = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    items = serializers.ListField(child=OrderLineInputSerializer(), allow_empty=False, max_length=MAX_LINES_PER_ORDER)


class UpdateOrderStatusInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField(required=False)
    new_status = serializers.CharField(max_length=32, required=False)
    # Older clients send `status`.
    status = serializers.CharField(max_length=32, required=False)

    def validate(self, attrs):
        target = attrs.get("new_status") or attrs.get("status")
        if not target:
            raise serializers.ValidationError({"new_status": "This field is required."})
        attrs["new_status"] = target
        return attrs


class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = OrderItem
        fields = ("id", "menu_item_id", "item_name", "price", "quantity")


class OrderSerializer(serializers.ModelSerializer):
    restaurant_id = serializers.UUIDField(read_only=True)
    customer_id = serializers.ReadOnlyField()
    items = OrderItemSerializer(many=True, read_only=True)
    awaiting_payment = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = (
            "id",
            "restaurant_id",
            "customer_id",
            "status",
            "order_type",
            "payment_method",
            "payment_confirmed",
            "awaiting_payment",
            "total_amount",
            "delivery_address",
            "notes",
            "items",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_awaiting_payment(self, order: Order) -> bool:
        if order.payment_confirmed or order.status != OrderStatus.CONFIRMED:
            return False
        return PaymentAttempt.objects.filter(order=order, status=PaymentAttempt.STATUS_PENDING).exists()
