from __future__ import annotations

from rest_framework import serializers


class PaymentCredentialsSerializer(serializers.Serializer):
    secret_key = serializers.CharField(max_length=200, write_only=True, trim_whitespace=True)
    public_key = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
