from __future__ import annotations

from rest_framework import serializers


class CheckoutInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    successUrl = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    cancelUrl = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    failureUrl = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")


class VerifyPaymentInputSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
