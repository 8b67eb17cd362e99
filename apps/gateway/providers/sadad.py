# apps/gateway/providers/sadad.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import GatewayError
from apps.gateway.logic import transport
from apps.gateway.logic.signing import encrypt_3des, validate_3des_key
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class SadadError(GatewayError):
    error_messages = {
        "0": "Transaction completed successfully.",
        "-1": "Parameters are not valid.",
        "3": "Merchant is not valid.",
        "23": "Security error.",
        "58": "Terminal is not allowed to perform this transaction.",
        "61": "Amount exceeds the limit.",
        "101": "Request has timed out.",
        "1000": "Parameters are in the wrong order.",
        "1001": "Parameters are not valid.",
        "1002": "System error.",
        "1003": "IP address is not valid.",
        "1004": "Merchant is not valid.",
        "1011": "Order id is duplicate.",
        "1012": "Merchant information is not valid.",
        "1015": "Response is not valid.",
        "1017": "Transaction date is out of range.",
        "1018": "Transaction is too old.",
        "1019": "Amount is not valid for this terminal.",
        "1020": "Terminal is not active.",
        "1023": "Sign data is not valid.",
        "1024": "Request timestamp is not valid.",
        "1025": "Order id is not valid.",
        "1026": "Terminal is not valid.",
        "1027": "Amount is not valid.",
    }


class Sadad(BasePort):
    """
    Sadad (Bank Melli) — JSON API, SignData = 3DES(...).

    ready():  PaymentRequest (SignData = 3DES("terminal;order;amount")) -> Token
    redirect: GET Purchase?Token=<token>
    verify(): ResCode=0 в callback, Advice/Verify (SignData = 3DES(token)) ResCode=0.
    """

    port_name = Port.SADAD
    error_class = SadadError
    required_options = ("merchant", "terminalId", "transactionKey")

    request_url = "https://sadad.shaparak.ir/VPG/api/v0/Request/PaymentRequest"
    verify_url = "https://sadad.shaparak.ir/VPG/api/v0/Advice/Verify"
    gate_url = "https://sadad.shaparak.ir/VPG/Purchase?Token="

    def boot(self) -> None:
        super().boot()
        validate_3des_key(self.options.require("transactionKey"))

    def _sign(self, data: str) -> str:
        return encrypt_3des(data, self.options.require("transactionKey"))

    def ready(self) -> Transaction:
        tx = self.new_transaction()
        terminal_id = self.options.require("terminalId")

        payload = {
            "MerchantId": self.options.require("merchant"),
            "TerminalId": terminal_id,
            "Amount": tx.amount,
            "OrderId": tx.pk,
            "LocalDateTime": self.now().strftime("%m/%d/%Y %I:%M:%S %p"),
            "ReturnUrl": self.get_callback(tx),
            "SignData": self._sign(f"{terminal_id};{tx.pk};{tx.amount}"),
        }
        data = self.provider_call(tx, transport.post_json, self.request_url, payload, timeout=self.timeout)

        code = data.get("ResCode")
        token = data.get("Token")
        if str(code) == "0" and token:
            return self.transaction_set_ref_id(tx, token)

        self.fail(tx, code if code is not None else -1, data.get("Description") or None)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=f"{self.gate_url}{transaction.ref_id}")

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        token = params.get("token") or params.get("Token")
        code = params.get("ResCode")
        order_id = params.get("OrderId")

        if code is None or not token:
            self.fail(transaction, -1, "Invalid callback request.")
        if str(code) != "0":
            self.fail(transaction, code)
        if str(token) != str(transaction.ref_id):
            self.fail(transaction, -1, "Token does not match the transaction.")
        if order_id is not None and str(order_id) != str(transaction.pk):
            self.fail(transaction, 1025)

        data = self.provider_call(
            transaction,
            transport.post_json,
            self.verify_url,
            {"Token": token, "SignData": self._sign(str(token))},
            timeout=self.timeout,
        )

        code = data.get("ResCode")
        if str(code) != "0":
            self.fail(transaction, code if code is not None else -1, data.get("Description") or None)

        amount = data.get("Amount")
        if amount is not None and str(amount) != str(transaction.amount):
            self.fail(transaction, 1027, "Verified amount does not match the transaction amount.")

        payer_meta = {}
        if data.get("SystemTraceNo"):
            payer_meta["system_trace_no"] = str(data["SystemTraceNo"])

        return self.succeed(
            transaction,
            code,
            data.get("Description") or SadadError.message_for(code),
            tracking_code=str(data.get("RetrivalRefNo") or token),
            payer_meta=payer_meta,
        )
