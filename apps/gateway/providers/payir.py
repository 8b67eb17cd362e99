# apps/gateway/providers/payir.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class PayirError(GatewayError):
    error_messages = {
        "0": "Payment was cancelled by the user.",
        "1": "Transaction completed successfully.",
        "-1": "API key is required.",
        "-2": "Amount (or token) is required.",
        "-3": "Amount must be a number.",
        "-4": "Amount is below the minimum.",
        "-5": "Redirect URL is required.",
        "-6": "Gateway not found.",
        "-7": "Gateway is not active.",
        "-8": "Request IP does not match the registered IP.",
        "-9": "Redirect URL domain does not match the registered domain.",
        "-12": "Mobile number is not valid.",
        "-13": "Valid card numbers are not valid.",
        "-14": "Transaction has already been verified.",
        "-15": "Transaction not found.",
    }


class Payir(BasePort):
    """
    Pay.ir — JSON REST.

    ready():  pg/send -> token
    redirect: GET https://pay.ir/pg/<token>
    verify(): status=1 в callback, pg/verify status=1 и amount == сумме транзакции.
    """

    port_name = Port.PAYIR
    error_class = PayirError
    required_options = ("api",)

    send_url = "https://pay.ir/pg/send"
    verify_url = "https://pay.ir/pg/verify"
    gate_url = "https://pay.ir/pg/"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.mobile = None
        self.description = None

    def set_mobile(self, mobile: str):
        self.mobile = mobile
        return self

    def set_description(self, description: str):
        self.description = description
        return self

    def _fail_with_body(self, transaction: Transaction, data: dict[str, Any]):
        code = data.get("errorCode", -1)
        self.fail(transaction, code, data.get("errorMessage") or None)

    def ready(self) -> Transaction:
        tx = self.new_transaction()

        payload = {
            "api": self.options.require("api"),
            "amount": tx.amount,
            "redirect": self.get_callback(tx),
            "factorNumber": str(tx.pk),
        }
        if self.mobile:
            payload["mobile"] = self.mobile
        if self.description:
            payload["description"] = self.description

        data = self.provider_call(tx, transport.post_json, self.send_url, payload, timeout=self.timeout)

        if str(data.get("status")) == "1" and data.get("token"):
            return self.transaction_set_ref_id(tx, data["token"])

        self._fail_with_body(tx, data)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=f"{self.gate_url}{transaction.ref_id}")

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        status = params.get("status")
        token = params.get("token")

        if str(status) != "1":
            self.fail(transaction, 0)
        if str(token) != str(transaction.ref_id):
            self.fail(transaction, -15, "Token does not match the transaction.")

        data = self.provider_call(
            transaction,
            transport.post_json,
            self.verify_url,
            {"api": self.options.require("api"), "token": token},
            timeout=self.timeout,
        )

        if str(data.get("status")) != "1":
            self._fail_with_body(transaction, data)

        if str(data.get("amount")) != str(transaction.amount):
            self.fail(transaction, -1, "Verified amount does not match the transaction amount.")

        payer_meta = {}
        if data.get("cardNumber"):
            payer_meta["card_number"] = data["cardNumber"]

        return self.succeed(
            transaction,
            1,
            PayirError.message_for(1),
            tracking_code=str(data.get("transId") or token),
            payer_meta=payer_meta,
        )
