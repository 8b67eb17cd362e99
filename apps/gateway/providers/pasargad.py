# apps/gateway/providers/pasargad.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from apps.gateway.enums import TRANSACTION_FAILED_TEXT, TRANSACTION_SUCCEED_TEXT, Port
from apps.gateway.exceptions import GatewayError
from apps.gateway.logic import transport
from apps.gateway.logic.signing import canonical_string, load_private_key, sign_sha1
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor

logger = logging.getLogger(__name__)

# 1003 = покупка
ACTION_PURCHASE = 1003


class PasargadError(GatewayError):
    error_messages = {
        "0": TRANSACTION_SUCCEED_TEXT,
        "-1": TRANSACTION_FAILED_TEXT,
    }
    unknown_message = TRANSACTION_FAILED_TEXT


def redirect_sign_data(
    *,
    merchant_code,
    terminal_code,
    invoice_number,
    invoice_date: str,
    amount,
    redirect_url: str,
    action,
    timestamp: str,
) -> str:
    return canonical_string(
        merchant_code,
        terminal_code,
        invoice_number,
        invoice_date,
        amount,
        redirect_url,
        action,
        timestamp,
    )


def verify_sign_data(*, merchant_code, terminal_code, invoice_number, invoice_date: str, amount, timestamp: str) -> str:
    return canonical_string(merchant_code, terminal_code, invoice_number, invoice_date, amount, timestamp)


def _as_int(value) -> int | None:
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        return None


class Pasargad(BasePort):
    """
    Pasargad (PEP) — подписанный redirect + XML polling.

    ready():  только создаёт транзакцию (у банка нет предавторизации)
    redirect: self-submit форма на gateway.aspx, подпись RSA(SHA-1)
    verify(): CheckTransactionResult по tref -> VerifyPayment (тоже подписанный).
              SUCCEED только если VerifyPayment вернул result=True.

    Банк возвращает пользователя с iN (номер инвойса = id транзакции),
    iD (дата инвойса) и tref (ссылка транзакции).
    """

    port_name = Port.PASARGAD
    error_class = PasargadError
    required_options = ("merchantId", "terminalId", "certificate-path")
    pre_authorizes = False

    gate_url = "https://pep.shaparak.ir/gateway.aspx"
    check_transaction_url = "https://pep.shaparak.ir/CheckTransactionResult.aspx"
    verify_url = "https://pep.shaparak.ir/VerifyPayment.aspx"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.private_key = None

    def boot(self) -> None:
        super().boot()
        self.private_key = load_private_key(self.options.require("certificate-path"))

    @property
    def merchant_code(self) -> str:
        return str(self.options.require("merchantId"))

    @property
    def terminal_code(self) -> str:
        return str(self.options.require("terminalId"))

    def get_callback(self, transaction: Transaction) -> str:
        # Pasargad сам добавляет iN/iD/tref, transaction_id не нужен
        base = self.callback_url or self.options.callback_url
        if not base:
            return super().get_callback(transaction)
        return base

    def ready(self) -> Transaction:
        return self.new_transaction()

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)

        invoice_date = self.format_datetime(transaction.created_at)
        timestamp = self.format_datetime()
        redirect_url = self.get_callback(transaction)

        data = redirect_sign_data(
            merchant_code=self.merchant_code,
            terminal_code=self.terminal_code,
            invoice_number=transaction.pk,
            invoice_date=invoice_date,
            amount=transaction.amount,
            redirect_url=redirect_url,
            action=ACTION_PURCHASE,
            timestamp=timestamp,
        )

        return RedirectDescriptor(
            url=self.gate_url,
            method="POST",
            fields={
                "merchantCode": self.merchant_code,
                "terminalCode": self.terminal_code,
                "invoiceNumber": str(transaction.pk),
                "invoiceDate": invoice_date,
                "amount": str(transaction.amount),
                "redirectAddress": redirect_url,
                "action": str(ACTION_PURCHASE),
                "timeStamp": timestamp,
                "sign": sign_sha1(data, self.private_key),
            },
        )

    def _post_xml(self, transaction: Transaction, url: str, fields: dict[str, Any]) -> dict[str, Any]:
        body = self.provider_call(transaction, transport.post_form, url, fields, timeout=self.timeout)
        return self.provider_call(transaction, transport.parse_xml_tree, body)

    def _check_matches(self, transaction: Transaction, check: dict[str, Any]) -> bool:
        if str(check.get("invoiceNumber")) != str(transaction.pk):
            return False
        if _as_int(check.get("amount")) != transaction.amount:
            return False
        if check.get("merchantCode") and str(check["merchantCode"]) != self.merchant_code:
            return False
        if check.get("terminalCode") and str(check["terminalCode"]) != self.terminal_code:
            return False
        return True

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        tref = params.get("tref")
        if not tref:
            self.fail(transaction, -1, "Invalid callback request.")

        tree = self._post_xml(transaction, self.check_transaction_url, {"invoiceUID": tref})
        check = tree.get("resultObj")
        if not isinstance(check, dict) or check.get("result") != "True":
            self.fail(transaction, -1)

        if not self._check_matches(transaction, check):
            self.fail(transaction, -1, "Transaction result does not match the invoice.")

        invoice_date = params.get("iD") or check.get("invoiceDate") or self.format_datetime(transaction.created_at)
        timestamp = self.format_datetime()

        fields = {
            "MerchantCode": self.merchant_code,
            "TerminalCode": self.terminal_code,
            "InvoiceNumber": str(transaction.pk),
            "InvoiceDate": invoice_date,
            "amount": str(transaction.amount),
            "TimeStamp": timestamp,
        }
        fields["sign"] = sign_sha1(
            verify_sign_data(
                merchant_code=fields["MerchantCode"],
                terminal_code=fields["TerminalCode"],
                invoice_number=fields["InvoiceNumber"],
                invoice_date=invoice_date,
                amount=fields["amount"],
                timestamp=timestamp,
            ),
            self.private_key,
        )

        tree = self._post_xml(transaction, self.verify_url, fields)
        result = tree.get("actionResult")
        if not isinstance(result, dict) or result.get("result") != "True":
            message = result.get("resultMessage") if isinstance(result, dict) else None
            self.fail(transaction, -1, message or None)

        payer_meta = {}
        if check.get("traceNumber"):
            payer_meta["trace_number"] = check["traceNumber"]

        return self.succeed(
            transaction,
            0,
            TRANSACTION_SUCCEED_TEXT,
            ref_id=check.get("referenceNumber") or None,
            tracking_code=str(tref),
            payer_meta=payer_meta,
        )
