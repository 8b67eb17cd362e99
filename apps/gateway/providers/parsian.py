# apps/gateway/providers/parsian.py
from __future__ import annotations

import logging
from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor

logger = logging.getLogger(__name__)


class ParsianError(GatewayError):
    error_messages = {
        "0": "Transaction completed successfully.",
        "-1": "Parsian gateway server error.",
        "-100": "Merchant is disabled.",
        "-101": "Merchant authentication failed.",
        "-103": "Sale is disabled for this merchant.",
        "-104": "Bill payment is disabled for this merchant.",
        "-106": "Top-up is disabled for this merchant.",
        "-107": "Confirmation is disabled for this merchant.",
        "-108": "Reversal is disabled for this merchant.",
        "-111": "Amount exceeds the merchant limit.",
        "-112": "Order id is duplicate.",
        "-113": "Required parameter is empty.",
        "-114": "Bill id is not valid.",
        "-115": "Payment id is not valid.",
        "-116": "Value exceeds the maximum length.",
        "-117": "Value is below the minimum length.",
        "-118": "Value is not a number.",
        "-119": "Organization is not valid.",
        "-121": "Amount is not valid.",
        "-126": "Merchant id is not valid.",
        "-127": "Internet address is not valid.",
        "-128": "IP address format is not valid.",
        "-130": "Token has expired.",
        "-131": "Token is not valid.",
        "-132": "Amount is below the minimum.",
        "-138": "Payment was cancelled by the user.",
        "-1505": "Transaction was confirmed by the merchant.",
        "-1507": "Reversal was sent to the switch.",
        "-1527": "Request type is not valid.",
        "-1528": "Payment information not found.",
        "-1530": "Merchant is not allowed to confirm this transaction.",
        "-1531": "Confirmation failed: the transaction was cancelled.",
        "-1533": "Transaction has already been confirmed.",
        "-1540": "Transaction confirmation failed.",
        "-1549": "Reversal time window has expired.",
        "-1550": "Reversal is not possible in the current state.",
        "-1551": "Payment has already been reversed.",
        "-1552": "Payment request is not valid for reversal.",
        "-32768": "Unknown error.",
    }


class Parsian(BasePort):
    """
    Parsian (PEC) — SOAP.

    ready():  SalePaymentRequest -> Token (ref_id)
    redirect: GET https://pec.shaparak.ir/NewIPG/?Token=<token>
    verify(): callback Token/status/RRN, затем ConfirmPayment.
              SUCCEED только если ConfirmPayment вернул 0.
    """

    port_name = Port.PARSIAN
    error_class = ParsianError
    required_options = ("pin",)

    server_url = "https://pec.shaparak.ir/NewIPGServices/Sale/SaleService.asmx?WSDL"
    confirm_url = "https://pec.shaparak.ir/NewIPGServices/Confirm/ConfirmService.asmx?WSDL"
    gate_url = "https://pec.shaparak.ir/NewIPG/?Token="

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.additional_data = ""

    def set_additional_data(self, data: str):
        self.additional_data = data or ""
        return self

    def ready(self) -> Transaction:
        tx = self.new_transaction()

        params = {
            "LoginAccount": self.options.require("pin"),
            "Amount": tx.amount,
            "OrderId": tx.pk,
            "CallBackUrl": self.get_callback(tx),
            "AdditionalData": self.additional_data,
        }
        response = self.provider_call(
            tx,
            transport.soap_call,
            self.server_url,
            "SalePaymentRequest",
            timeout=self.timeout,
            requestData=params,
        )
        result = transport.soap_result(response, "SalePaymentRequestResult")
        if not isinstance(result, dict):
            self.fail(tx, -1, "Invalid response from Parsian gateway.")

        token = result.get("Token")
        status = result.get("Status")

        if token and str(status) == "0":
            logger.info("parsian token issued for transaction %s", tx.pk)
            return self.transaction_set_ref_id(tx, str(token))

        self.fail(tx, status if status is not None else -1)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=f"{self.gate_url}{transaction.ref_id}")

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        token = params.get("Token")
        status = params.get("status")
        rrn = params.get("RRN")

        if token is None or status is None:
            self.fail(transaction, -1, "Invalid callback request.")

        if str(status) != "0":
            self.fail(transaction, status)

        if not rrn or str(rrn) == "0":
            self.fail(transaction, -1, "Callback has no retrieval reference number.")

        if str(token) != str(transaction.ref_id):
            self.fail(transaction, -1, "Token does not match the transaction.")

        response = self.provider_call(
            transaction,
            transport.soap_call,
            self.confirm_url,
            "ConfirmPayment",
            timeout=self.timeout,
            requestData={"LoginAccount": self.options.require("pin"), "Token": token},
        )
        result = transport.soap_result(response, "ConfirmPaymentResult")
        if not isinstance(result, dict) or result.get("Status") is None:
            self.fail(transaction, -1, "Invalid response from Parsian gateway.")

        status = result["Status"]
        if str(status) != "0":
            self.fail(transaction, status)

        payer_meta = {}
        if result.get("CardNumberMasked"):
            payer_meta["card_number"] = result["CardNumberMasked"]

        return self.succeed(
            transaction,
            status,
            ParsianError.message_for(status),
            tracking_code=str(rrn),
            payer_meta=payer_meta,
        )
