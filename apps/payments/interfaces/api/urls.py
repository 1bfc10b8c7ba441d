from django.urls import path

from .views import CheckoutAPI, PaymentWebhookAPI, VerifyPaymentAPI

urlpatterns = [
    path("payments/checkout/", CheckoutAPI.as_view(), name="api_payments_checkout"),
    path("payments/verify/", VerifyPaymentAPI.as_view(), name="api_payments_verify"),
    path("payments/webhook/", PaymentWebhookAPI.as_view(), name="api_payments_webhook"),
]
