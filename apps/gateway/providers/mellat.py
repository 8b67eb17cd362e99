# apps/gateway/providers/mellat.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import ConfigurationError, GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class MellatError(GatewayError):
    error_messages = {
        "0": "Transaction completed successfully.",
        "11": "Card number is not valid.",
        "12": "Insufficient funds.",
        "13": "Incorrect PIN.",
        "14": "Too many PIN attempts.",
        "15": "Card is not valid.",
        "16": "Too many withdrawals.",
        "17": "Payment was cancelled by the user.",
        "18": "Card has expired.",
        "19": "Withdrawal amount exceeds the limit.",
        "111": "Card issuer is not valid.",
        "112": "Card issuer switch error.",
        "113": "No response from the card issuer.",
        "114": "Card holder is not allowed to perform this transaction.",
        "21": "Merchant is not valid.",
        "23": "Security error.",
        "24": "Merchant credentials are not valid.",
        "25": "Amount is not valid.",
        "31": "Response is not valid.",
        "32": "Data format is not valid.",
        "33": "Account is not valid.",
        "34": "System error.",
        "35": "Date is not valid.",
        "41": "Order id is duplicate.",
        "42": "Sale transaction not found.",
        "43": "Verify request has already been sent.",
        "44": "Verify request not found.",
        "45": "Transaction has been settled.",
        "46": "Transaction has not been settled.",
        "47": "Settle transaction not found.",
        "48": "Transaction has been reversed.",
        "49": "Refund transaction not found.",
        "412": "Bill id is not valid.",
        "413": "Payment id is not valid.",
        "414": "Bill issuer is not valid.",
        "415": "Session has expired.",
        "416": "Error while storing data.",
        "417": "Payer id is not valid.",
        "418": "Error while defining customer information.",
        "419": "Too many data entry attempts.",
        "421": "IP address is not valid.",
        "51": "Duplicate transaction.",
        "54": "Reference transaction does not exist.",
        "55": "Transaction is not valid.",
        "61": "Deposit error.",
    }


# 45 = уже settle-нута: для нас это тоже успех
SETTLE_OK_CODES = ("0", "45")


class Mellat(BasePort):
    """
    Behpardakht Mellat — SOAP.

    ready():  bpPayRequest -> "0,<RefId>"
    redirect: POST RefId на startpay.mellat
    verify(): ResCode=0 в callback, bpVerifyRequest=0, затем bpSettleRequest in (0, 45).
    """

    port_name = Port.MELLAT
    error_class = MellatError
    required_options = ("terminalId", "username", "password")

    server_url = "https://bpm.shaparak.ir/pgwchannel/services/pgw?wsdl"
    gate_url = "https://bpm.shaparak.ir/pgwchannel/startpay.mellat"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.additional_data = ""

    def set_additional_data(self, data: str):
        self.additional_data = data or ""
        return self

    def boot(self) -> None:
        super().boot()
        if not str(self.options.require("terminalId")).isdigit():
            raise ConfigurationError("Mellat terminalId must be numeric.", code="invalid_option", port=self.port_name)

    def _credentials(self) -> dict[str, Any]:
        return {
            "terminalId": int(self.options.require("terminalId")),
            "userName": self.options.require("username"),
            "userPassword": self.options.require("password"),
        }

    def _call(self, transaction: Transaction, operation: str, **params) -> str:
        response = self.provider_call(
            transaction,
            transport.soap_call,
            self.server_url,
            operation,
            timeout=self.timeout,
            **params,
        )
        return str(transport.soap_result(response, "return") or "").strip()

    def ready(self) -> Transaction:
        tx = self.new_transaction()
        now = self.now()

        result = self._call(
            tx,
            "bpPayRequest",
            **self._credentials(),
            orderId=tx.pk,
            amount=tx.amount,
            localDate=now.strftime("%Y%m%d"),
            localTime=now.strftime("%H%M%S"),
            additionalData=self.additional_data,
            callBackUrl=self.get_callback(tx),
            payerId=0,
        )

        code, _, ref_id = result.partition(",")
        if code == "0" and ref_id:
            return self.transaction_set_ref_id(tx, ref_id)

        self.fail(tx, code or -1)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=self.gate_url, method="POST", fields={"RefId": transaction.ref_id})

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        res_code = params.get("ResCode")
        ref_id = params.get("RefId")
        sale_order_id = params.get("SaleOrderId")
        sale_reference_id = params.get("SaleReferenceId")
        card_holder_info = params.get("CardHolderInfo")

        if res_code is None:
            self.fail(transaction, -1, "Invalid callback request.")
        if str(res_code) != "0":
            self.fail(transaction, res_code)
        if str(ref_id) != str(transaction.ref_id):
            self.fail(transaction, -1, "RefId does not match the transaction.")
        if sale_order_id is not None and str(sale_order_id) != str(transaction.pk):
            self.fail(transaction, -1, "SaleOrderId does not match the transaction.")
        if not sale_reference_id or not str(sale_reference_id).isdigit():
            self.fail(transaction, -1, "Callback has no sale reference id.")

        request = {
            **self._credentials(),
            "orderId": transaction.pk,
            "saleOrderId": transaction.pk,
            "saleReferenceId": int(sale_reference_id),
        }

        code = self._call(transaction, "bpVerifyRequest", **request)
        if code != "0":
            self.fail(transaction, code or -1)

        code = self._call(transaction, "bpSettleRequest", **request)
        if code not in SETTLE_OK_CODES:
            self.fail(transaction, code or -1)

        payer_meta = {"card_number": card_holder_info} if card_holder_info else {}

        return self.succeed(
            transaction,
            code,
            MellatError.message_for(code),
            tracking_code=str(sale_reference_id),
            payer_meta=payer_meta,
        )
