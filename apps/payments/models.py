"""
Payments models.

Represents online payment attempts linked to orders (pending/completed/failed)
and the log of provider webhook deliveries.
"""

from django.db import models
from django.db.models import Q


class PaymentAttempt(models.Model):
    """One provider checkout opened for an order."""

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, related_name="payment_attempts"
    )
    provider = models.CharField(max_length=30)
    provider_checkout_id = models.CharField(max_length=100, unique=True)
    provider_payment_id = models.CharField(max_length=100, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    amount = models.PositiveIntegerField(help_text="Amount in minor units (cents).")
    currency = models.CharField(max_length=3)
    redirect_url = models.TextField(blank=True, default="")
    failure_reason = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["order", "status", "created_at"], name="payment_order_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(status="pending"),
                name="payment_one_pending_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} - {self.provider_checkout_id} - {self.status}"


class WebhookEvent(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PROCESSED = "processed"
    STATUS_IGNORED = "ignored"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSED, "Processed"),
        (STATUS_IGNORED, "Ignored"),
        (STATUS_FAILED, "Failed"),
    ]

    provider_code = models.CharField(max_length=30)
    event_id = models.CharField(max_length=128, blank=True, default="")
    event_type = models.CharField(max_length=64, blank=True, default="")
    idempotency_key = models.CharField(max_length=200, unique=True)
    payload_json = models.JSONField(default=dict, blank=True)
    processing_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    note = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["provider_code", "created_at"], name="webhook_provider_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.provider_code}:{self.event_type} ({self.processing_status})"
