# apps/gateway/providers/saman.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from apps.gateway.enums import TRANSACTION_SUCCEED_TEXT, Port
from apps.gateway.exceptions import GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class SamanError(GatewayError):
    error_messages = {
        # callback State
        "Canceled By User": "Payment was cancelled by the user.",
        "Invalid Amount": "Amount is not valid.",
        "Invalid Transaction": "Transaction is not valid.",
        "Invalid Card Number": "Card number is not valid.",
        "No Such Issuer": "Card issuer not found.",
        "Expired Card Pick Up": "Card has expired.",
        "Incorrect PIN": "Incorrect PIN.",
        "Allowable PIN Tries Exceeded Pick Up": "Too many PIN attempts.",
        "No Sufficient Funds": "Insufficient funds.",
        "Issuer Down Slm": "Card issuer is not available.",
        "TME Error": "Gateway internal error.",
        "Exceeds Withdrawal Amount Limit": "Withdrawal amount exceeds the limit.",
        "Transaction Cannot Be Completed": "Transaction cannot be completed.",
        "Response Received Too Late": "Response was received too late.",
        "Suspected Fraud Pick Up": "Suspected fraud.",
        # verifyTransaction
        "-1": "Gateway internal error.",
        "-3": "Inputs contain invalid characters.",
        "-4": "Merchant authentication failed.",
        "-6": "Transaction has been reversed or the session has expired.",
        "-7": "Reference number is empty.",
        "-8": "Input length exceeds the maximum.",
        "-9": "Amount contains invalid characters.",
        "-10": "Reference number contains invalid characters.",
        "-11": "Input length is below the minimum.",
        "-12": "Amount is negative.",
        "-13": "Refund amount exceeds the original amount.",
        "-14": "Transaction is not defined.",
        "-15": "Refund amount is not an integer.",
        "-16": "Gateway internal error.",
        "-17": "Partial refund is not allowed for this card.",
        "-18": "Merchant IP address is not valid.",
    }


class Saman(BasePort):
    """
    Saman (SEP) — форма POST + SOAP verifyTransaction.

    ready():  только создаёт транзакцию
    redirect: POST Amount/MID/ResNum/RedirectURL на Payment.aspx
    verify(): State=OK, verifyTransaction(RefNum, MID) == сумма транзакции.

    SEP молча принимает повторный verify, поэтому защита от повтора
    полностью на нашей стороне (терминальный статус).
    """

    port_name = Port.SAMAN
    error_class = SamanError
    required_options = ("merchant",)
    pre_authorizes = False

    gate_url = "https://sep.shaparak.ir/Payment.aspx"
    verify_url = "https://sep.shaparak.ir/payments/referencepayment.asmx?WSDL"

    def ready(self) -> Transaction:
        return self.new_transaction()

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(
            url=self.gate_url,
            method="POST",
            fields={
                "Amount": str(transaction.amount),
                "MID": str(self.options.require("merchant")),
                "ResNum": str(transaction.pk),
                "RedirectURL": self.get_callback(transaction),
            },
        )

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        state = params.get("State")
        ref_num = params.get("RefNum")
        res_num = params.get("ResNum")

        if state != "OK":
            self.fail(transaction, state or -1)
        if res_num is not None and str(res_num) != str(transaction.pk):
            self.fail(transaction, -14, "ResNum does not match the transaction.")
        if not ref_num:
            self.fail(transaction, -7)

        response = self.provider_call(
            transaction,
            transport.soap_call,
            self.verify_url,
            "verifyTransaction",
            timeout=self.timeout,
            String_1=ref_num,
            String_2=str(self.options.require("merchant")),
        )
        result = transport.soap_result(response, "result")

        try:
            paid = int(Decimal(str(result)))
        except (InvalidOperation, ValueError, TypeError):
            self.fail(transaction, -1, "Invalid response from Saman gateway.")

        if paid <= 0:
            self.fail(transaction, paid)
        if paid != transaction.amount:
            self.fail(transaction, -1, "Paid amount does not match the transaction amount.")

        payer_meta = {}
        if params.get("SecurePan"):
            payer_meta["card_number"] = params["SecurePan"]

        return self.succeed(
            transaction,
            0,
            TRANSACTION_SUCCEED_TEXT,
            ref_id=str(ref_num),
            tracking_code=str(params.get("TRACENO") or ref_num),
            payer_meta=payer_meta,
        )
