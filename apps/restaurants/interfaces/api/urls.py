from django.urls import path

from .views import RestaurantPaymentCredentialsAPI

urlpatterns = [
    path(
        "restaurants/<uuid:restaurant_id>/payment-credentials/",
        RestaurantPaymentCredentialsAPI.as_view(),
        name="api_restaurant_payment_credentials",
    ),
]
