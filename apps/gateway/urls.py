# apps/gateway/urls.py
from django.urls import path

from .api_views import (
    GatewayCallbackApi,
    PaymentRedirectApi,
    PaymentStartApi,
    TransactionDetailApi,
    TransactionLogListApi,
)

urlpatterns = [
    path("payments/", PaymentStartApi.as_view(), name="gateway-payment-start"),
    path("payments/<int:pk>/redirect/", PaymentRedirectApi.as_view(), name="gateway-payment-redirect"),
    path("callback/", GatewayCallbackApi.as_view(), name="gateway-callback"),
    path("transactions/<int:pk>/", TransactionDetailApi.as_view(), name="gateway-transaction-detail"),
    path("transactions/<int:pk>/logs/", TransactionLogListApi.as_view(), name="gateway-transaction-logs"),
]
