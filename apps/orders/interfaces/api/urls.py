from django.urls import path

from .views import ConfirmCashPaymentAPI, OrderDetailAPI, PlaceOrderAPI, UpdateOrderStatusAPI

urlpatterns = [
    path("orders/", PlaceOrderAPI.as_view(), name="api_orders_place"),
    path("orders/<uuid:order_id>/", OrderDetailAPI.as_view(), name="api_orders_detail"),
    path("orders/<uuid:order_id>/status/", UpdateOrderStatusAPI.as_view(), name="api_orders_status"),
    path("orders/<uuid:order_id>/payment/cash/", ConfirmCashPaymentAPI.as_view(), name="api_orders_payment_cash"),
]
