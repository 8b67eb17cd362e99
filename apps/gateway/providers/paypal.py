# apps/gateway/providers/paypal.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import ConfigurationError, GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class PaypalError(GatewayError):
    error_messages = {
        "COMPLETED": "Payment completed successfully.",
        "CANCELLED": "Payment was cancelled by the user.",
        "AUTHENTICATION_FAILURE": "PayPal authentication failed.",
        "invalid_client": "PayPal client credentials are not valid.",
        "INVALID_REQUEST": "Request is not valid.",
        "UNPROCESSABLE_ENTITY": "PayPal could not process the request.",
        "RESOURCE_NOT_FOUND": "PayPal order not found.",
        "ORDER_NOT_APPROVED": "Order has not been approved by the payer.",
        "ORDER_ALREADY_CAPTURED": "Order has already been captured.",
        "INSTRUMENT_DECLINED": "Payment method was declined.",
        "PAYER_ACTION_REQUIRED": "Payer action is required.",
        "DECLINED": "Capture was declined.",
        "PENDING": "Capture is pending review.",
    }


class Paypal(BasePort):
    """
    PayPal — REST Orders v2.

    ready():  OAuth2 token -> POST /v2/checkout/orders -> order id (ref_id)
    redirect: GET checkoutnow?token=<order id>
    verify(): token из callback == ref_id, PayerID есть, capture -> COMPLETED.

    amount хранится в минимальных единицах (центах).
    """

    port_name = Port.PAYPAL
    error_class = PaypalError
    required_options = ("client-id", "secret")

    api_urls = {
        "sandbox": "https://api-m.sandbox.paypal.com",
        "live": "https://api-m.paypal.com",
    }
    web_urls = {
        "sandbox": "https://www.sandbox.paypal.com",
        "live": "https://www.paypal.com",
    }

    def boot(self) -> None:
        super().boot()
        if self.mode not in self.api_urls:
            raise ConfigurationError(f"Unknown PayPal mode: {self.mode}", code="invalid_option", port=self.port_name)

    @property
    def mode(self) -> str:
        return self.options.get("mode", "sandbox")

    @property
    def currency(self) -> str:
        return self.options.get("currency", "USD")

    @staticmethod
    def format_amount(amount: int) -> str:
        return f"{amount // 100}.{amount % 100:02d}"

    def _access_token(self, transaction: Transaction) -> str:
        data = self.provider_call(
            transaction,
            transport.post_json,
            f"{self.api_urls[self.mode]}/v1/oauth2/token",
            {"grant_type": "client_credentials"},
            timeout=self.timeout,
            form=True,
            auth=(self.options.require("client-id"), self.options.require("secret")),
        )
        token = data.get("access_token")
        if not token:
            self.fail(transaction, data.get("error", -1), data.get("error_description") or None)
        return token

    def _api(self, transaction: Transaction, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self.provider_call(
            transaction,
            transport.post_json,
            f"{self.api_urls[self.mode]}{path}",
            payload,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self._access_token(transaction)}",
                "Prefer": "return=representation",
            },
        )

    def _fail_with_body(self, transaction: Transaction, data: dict[str, Any]):
        code = data.get("name") or data.get("status") or -1
        self.fail(transaction, code, data.get("message") or None)

    def ready(self) -> Transaction:
        tx = self.new_transaction()

        callback = self.get_callback(tx)
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": str(tx.pk),
                    "amount": {"currency_code": self.currency, "value": self.format_amount(tx.amount)},
                }
            ],
            "application_context": {
                "return_url": callback,
                "cancel_url": self.options.get("cancel-url") or callback,
                "user_action": "PAY_NOW",
            },
        }
        data = self._api(tx, "/v2/checkout/orders", payload)

        if data.get("id") and data.get("status") in ("CREATED", "PAYER_ACTION_REQUIRED"):
            return self.transaction_set_ref_id(tx, data["id"])

        self._fail_with_body(tx, data)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=f"{self.web_urls[self.mode]}/checkoutnow?token={transaction.ref_id}")

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        token = params.get("token")
        payer_id = params.get("PayerID")

        if str(token) != str(transaction.ref_id):
            self.fail(transaction, "RESOURCE_NOT_FOUND", "Token does not match the transaction.")
        if not payer_id:
            self.fail(transaction, "CANCELLED")

        data = self._api(transaction, f"/v2/checkout/orders/{transaction.ref_id}/capture", {})
        if data.get("status") != "COMPLETED":
            self._fail_with_body(transaction, data)

        try:
            capture = data["purchase_units"][0]["payments"]["captures"][0]
        except (KeyError, IndexError, TypeError):
            self.fail(transaction, -1, "Capture response has no capture details.")

        if capture.get("status") != "COMPLETED":
            self.fail(transaction, capture.get("status") or -1)

        payer = data.get("payer") or {}
        name = payer.get("name") or {}
        payer_meta = {"payer_id": payer.get("payer_id") or payer_id}
        full_name = " ".join(p for p in (name.get("given_name"), name.get("surname")) if p)
        if full_name:
            payer_meta["payer_name"] = full_name
        if payer.get("email_address"):
            payer_meta["payer_email"] = payer["email_address"]

        return self.succeed(
            transaction,
            "COMPLETED",
            PaypalError.message_for("COMPLETED"),
            tracking_code=str(capture.get("id")),
            payer_meta=payer_meta,
        )
