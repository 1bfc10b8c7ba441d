from django.contrib import admin

from .models import PaymentAttempt, WebhookEvent


@admin.register(PaymentAttempt)
class PaymentAttemptAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "provider", "provider_checkout_id", "status", "amount", "currency", "created_at")
    list_filter = ("status", "provider", "currency")
    search_fields = ("provider_checkout_id", "provider_payment_id", "order__id")
    ordering = ("-created_at",)
    readonly_fields = (
        "order",
        "provider",
        "provider_checkout_id",
        "provider_payment_id",
        "status",
        "amount",
        "currency",
        "redirect_url",
        "failure_reason",
        "created_at",
        "updated_at",
        "completed_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("id", "provider_code", "event_type", "processing_status", "note", "created_at", "processed_at")
    list_filter = ("provider_code", "processing_status", "event_type")
    search_fields = ("idempotency_key", "event_id")
    ordering = ("-created_at",)
    readonly_fields = (
        "provider_code",
        "event_id",
        "event_type",
        "idempotency_key",
        "payload_json",
        "processing_status",
        "note",
        "created_at",
        "processed_at",
    )

    def has_add_permission(self, request):
        return False
