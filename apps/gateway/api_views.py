# apps/gateway/api_views.py
from django.core import signing
from django.http import HttpResponseRedirect
from django.shortcuts import get_object_or_404, render
from django.urls import reverse
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .logic.transactions import get_transaction
from .models import Transaction, TransactionLog
from .resolver import GatewayResolver
from .serializers import PaymentStartSerializer, TransactionLogSerializer, TransactionSerializer

REDIRECT_LINK_SALT = "gateway.redirect"
REDIRECT_LINK_MAX_AGE = 15 * 60


def _client_ip(request):
    return request.META.get("REMOTE_ADDR") or None


def _callback_params(request) -> dict:
    """
    Банки возвращают параметры и в query string, и в теле POST.
    Тело имеет приоритет.
    """
    params = request.query_params.dict()
    data = request.data
    if hasattr(data, "dict"):
        data = data.dict()
    if isinstance(data, dict):
        params.update(data)
    return params


def redirect_link_path(tx_id: int) -> str:
    sig = signing.dumps(tx_id, salt=REDIRECT_LINK_SALT)
    return f'{reverse("gateway-payment-redirect", args=[tx_id])}?sig={sig}'


def _check_redirect_sig(request, tx_id: int) -> None:
    sig = request.query_params.get("sig")
    if not sig:
        raise PermissionDenied("Missing redirect signature.")
    try:
        signed_id = signing.loads(sig, salt=REDIRECT_LINK_SALT, max_age=REDIRECT_LINK_MAX_AGE)
    except signing.BadSignature:
        raise PermissionDenied("Invalid or expired redirect signature.")
    if signed_id != tx_id:
        raise PermissionDenied("Invalid or expired redirect signature.")


class PaymentStartApi(APIView):
    """
    Инициировать оплату: создаёт транзакцию (PENDING), получает ref_id у банка
    и отдаёт данные для redirect.
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PaymentStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        resolver = GatewayResolver().make(data["port"])
        resolver.port.set_ip(_client_ip(request))
        if data.get("callback_url"):
            resolver.port.set_callback(data["callback_url"])

        tx = resolver.set(data["amount"]).ready()
        descriptor = resolver.redirect(tx)

        return Response(
            {
                "transaction": TransactionSerializer(tx).data,
                "redirect": descriptor.as_dict(),
                "redirect_url": request.build_absolute_uri(redirect_link_path(tx.pk)),
            },
            status=status.HTTP_201_CREATED,
        )


class PaymentRedirectApi(APIView):
    """
    Отправить пользователя в банк: 302 на URL или self-submit форма.
    Статус транзакции тут не меняется.

    Доступ без сессии (это браузер плательщика), но только по подписанной
    ссылке из PaymentStartApi (?sig=..., живёт REDIRECT_LINK_MAX_AGE).
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        _check_redirect_sig(request, pk)
        tx = get_transaction(pk)
        descriptor = GatewayResolver().make(tx.port).redirect(tx)

        if not descriptor.is_form:
            return HttpResponseRedirect(descriptor.url)

        return render(
            request,
            "gateway/redirector.html",
            {"url": descriptor.url, "method": descriptor.method, "fields": dict(descriptor.fields)},
        )


class GatewayCallbackApi(APIView):
    """
    Callback от банка (GET или POST — зависит от банка).

    Ошибки (InvalidRequest / TransactionNotFound / RetryRejected / GatewayError)
    отдаются DRF с их HTTP-кодами (400 / 404 / 409 / 502).
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request):
        return self._verify(request)

    def post(self, request):
        return self._verify(request)

    def _verify(self, request):
        tx = GatewayResolver().verify(_callback_params(request))
        return Response(TransactionSerializer(tx).data, status=status.HTTP_200_OK)


class TransactionDetailApi(generics.RetrieveAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = TransactionSerializer
    queryset = Transaction.objects.all()


class TransactionLogListApi(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = TransactionLogSerializer

    def get_queryset(self):
        tx = get_object_or_404(Transaction, pk=self.kwargs["pk"])
        return TransactionLog.objects.filter(transaction=tx).order_by("created_at", "id")
