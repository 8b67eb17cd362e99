# apps/gateway/providers/zarinpal.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import ConfigurationError, GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class ZarinpalError(GatewayError):
    error_messages = {
        "100": "Transaction completed successfully.",
        "101": "Transaction has already been verified.",
        "-1": "Submitted information is incomplete.",
        "-2": "Merchant id or IP address is not valid.",
        "-3": "Amount is below the minimum allowed by Shaparak.",
        "-4": "Merchant verification level is below silver.",
        "-11": "Request not found.",
        "-12": "Request cannot be edited.",
        "-21": "No financial operation found for this transaction.",
        "-22": "Transaction was not successful.",
        "-33": "Paid amount does not match the requested amount.",
        "-34": "Transaction split limit exceeded.",
        "-40": "Access to this method is not allowed.",
        "-41": "Additional data is not valid.",
        "-42": "Authority lifetime is not valid.",
        "-54": "Request has been archived.",
        "NOK": "Payment was cancelled by the user.",
    }


class Zarinpal(BasePort):
    """
    Zarinpal — SOAP WebGate.

    Zarinpal принимает сумму в томанах: amount (риалы) // 10.
    """

    port_name = Port.ZARINPAL
    error_class = ZarinpalError
    required_options = ("merchant-id",)

    servers = {
        "germany": "https://de.zarinpal.com/pg/services/WebGate/wsdl",
        "iran": "https://ir.zarinpal.com/pg/services/WebGate/wsdl",
        "test": "https://sandbox.zarinpal.com/pg/services/WebGate/wsdl",
    }
    gate_url = "https://www.zarinpal.com/pg/StartPay/"
    sandbox_gate_url = "https://sandbox.zarinpal.com/pg/StartPay/"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.description = None
        self.email = None
        self.mobile = None

    def boot(self) -> None:
        super().boot()
        server = self.options.get("server", "germany")
        if server not in self.servers:
            raise ConfigurationError(f"Unknown Zarinpal server: {server}", code="invalid_option", port=self.port_name)

    @property
    def server_url(self) -> str:
        return self.servers[self.options.get("server", "germany")]

    def set_description(self, description: str):
        self.description = description
        return self

    def set_email(self, email: str):
        self.email = email
        return self

    def set_mobile(self, mobile: str):
        self.mobile = mobile
        return self

    @staticmethod
    def toman(amount: int) -> int:
        return amount // 10

    def ready(self) -> Transaction:
        tx = self.new_transaction()

        response = self.provider_call(
            tx,
            transport.soap_call,
            self.server_url,
            "PaymentRequest",
            timeout=self.timeout,
            MerchantID=self.options.require("merchant-id"),
            Amount=self.toman(tx.amount),
            CallbackURL=self.get_callback(tx),
            Description=self.description or self.options.get("description", ""),
            Email=self.email or "",
            Mobile=self.mobile or "",
        )
        if not isinstance(response, dict):
            self.fail(tx, -1, "Invalid response from Zarinpal gateway.")

        status = response.get("Status")
        authority = response.get("Authority")
        if str(status) == "100" and authority:
            return self.transaction_set_ref_id(tx, authority)

        self.fail(tx, status if status is not None else -1)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)

        if self.options.get("server") == "test":
            return RedirectDescriptor(url=f"{self.sandbox_gate_url}{transaction.ref_id}")

        url = f"{self.gate_url}{transaction.ref_id}"
        if self.options.get("type") == "zarin-gate":
            url += "/ZarinGate"
        return RedirectDescriptor(url=url)

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        authority = params.get("Authority")
        status = params.get("Status")

        if status != "OK":
            self.fail(transaction, status or "NOK")
        if str(authority) != str(transaction.ref_id):
            self.fail(transaction, -11, "Authority does not match the transaction.")

        response = self.provider_call(
            transaction,
            transport.soap_call,
            self.server_url,
            "PaymentVerification",
            timeout=self.timeout,
            MerchantID=self.options.require("merchant-id"),
            Authority=authority,
            Amount=self.toman(transaction.amount),
        )
        if not isinstance(response, dict):
            self.fail(transaction, -1, "Invalid response from Zarinpal gateway.")

        status = response.get("Status")
        ref_id = response.get("RefID")
        if str(status) != "100" or not ref_id:
            self.fail(transaction, status if status is not None else -1)

        return self.succeed(
            transaction,
            status,
            ZarinpalError.message_for(status),
            tracking_code=str(ref_id),
        )
