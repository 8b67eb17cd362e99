# apps/gateway/providers/asanpardakht.py
from __future__ import annotations

from typing import Any, Mapping

from apps.gateway.enums import Port
from apps.gateway.exceptions import ConfigurationError, GatewayError
from apps.gateway.logic import transport
from apps.gateway.models import Transaction
from apps.gateway.providers.port import BasePort, RedirectDescriptor


class AsanpardakhtError(GatewayError):
    error_messages = {
        "0": "Transaction completed successfully.",
        "00": "Transaction completed successfully.",
        "500": "Transaction verified successfully.",
        "501": "Transaction verification failed.",
        "502": "Transaction to verify was not found.",
        "503": "Transaction has already been verified.",
        "600": "Transaction reconciled successfully.",
        "601": "Transaction reconciliation failed.",
        "602": "Transaction to reconcile was not found.",
        "603": "Transaction has already been reconciled.",
    }
    unknown_message = "Asan Pardakht returned an error."


# ReturningParams: amount,saleOrderId,refId,resCode,resMessage,payGateTranID,rrn,lastFourDigitOfPAN
RETURNING_PARAMS = (
    "amount",
    "sale_order_id",
    "ref_id",
    "res_code",
    "res_message",
    "pay_gate_tran_id",
    "rrn",
    "last_four_digit_of_pan",
)


class Asanpardakht(BasePort):
    """
    Asan Pardakht — SOAP. Шифрование (AES) делает сам провайдер
    через internalutils.asmx (EncryptInAES / DecryptInAES).

    ready():  RequestOperation(encrypted "1,user,pass,order,amount,date,data,callback,0") -> "0,<RefId>"
    redirect: POST RefId на asan.shaparak.ir
    verify(): расшифровать ReturningParams, RequestVerification=500, RequestReconciliation=600.
    """

    port_name = Port.ASANPARDAKHT
    error_class = AsanpardakhtError
    required_options = ("merchantConfigId", "username", "password", "key", "iv")

    utils_url = "https://services.asanpardakht.net/paygate/internalutils.asmx?WSDL"
    merchant_url = "https://services.asanpardakht.net/paygate/merchantservices.asmx?WSDL"
    gate_url = "https://asan.shaparak.ir"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.additional_data = ""

    def boot(self) -> None:
        super().boot()
        if not str(self.options.require("merchantConfigId")).isdigit():
            raise ConfigurationError(
                "Asan Pardakht merchantConfigId must be numeric.",
                code="invalid_option",
                port=self.port_name,
            )

    def set_additional_data(self, data: str):
        self.additional_data = data or ""
        return self

    @property
    def merchant_config_id(self) -> int:
        return int(self.options.require("merchantConfigId"))

    def _soap(self, transaction: Transaction, url: str, operation: str, **params) -> Any:
        response = self.provider_call(
            transaction,
            transport.soap_call,
            url,
            operation,
            timeout=self.timeout,
            **params,
        )
        return transport.soap_result(response, f"{operation}Result")

    def _encrypt(self, transaction: Transaction, plain: str) -> str:
        result = self._soap(
            transaction,
            self.utils_url,
            "EncryptInAES",
            aesKey=self.options.require("key"),
            aesVector=self.options.require("iv"),
            toBeEncrypted=plain,
        )
        if not result:
            self.fail(transaction, -1, "Asan Pardakht encryption failed.")
        return str(result)

    def _decrypt(self, transaction: Transaction, encrypted: str) -> str:
        result = self._soap(
            transaction,
            self.utils_url,
            "DecryptInAES",
            aesKey=self.options.require("key"),
            aesVector=self.options.require("iv"),
            toBeDecrypted=encrypted,
        )
        if not result:
            self.fail(transaction, -1, "Asan Pardakht decryption failed.")
        return str(result)

    def ready(self) -> Transaction:
        tx = self.new_transaction()

        request = ",".join(
            [
                "1",
                str(self.options.require("username")),
                str(self.options.require("password")),
                str(tx.pk),
                str(tx.amount),
                self.now().strftime("%Y%m%d %H%M%S"),
                self.additional_data,
                self.get_callback(tx),
                "0",
            ]
        )

        result = self._soap(
            tx,
            self.merchant_url,
            "RequestOperation",
            merchantConfigurationID=self.merchant_config_id,
            encryptedRequest=self._encrypt(tx, request),
        )

        code, _, ref_id = str(result or "").partition(",")
        if code == "0" and ref_id:
            return self.transaction_set_ref_id(tx, ref_id)

        self.fail(tx, code or -1)

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        self.assert_redirectable(transaction)
        return RedirectDescriptor(url=self.gate_url, method="POST", fields={"RefId": transaction.ref_id})

    def parse_returning_params(self, transaction: Transaction, encrypted: str) -> dict[str, str]:
        values = self._decrypt(transaction, encrypted).split(",")
        if len(values) < len(RETURNING_PARAMS):
            self.fail(transaction, -1, "Returning params are not valid.")
        return dict(zip(RETURNING_PARAMS, values))

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        super().verify(transaction, params)

        encrypted = params.get("ReturningParams")
        if not encrypted:
            self.fail(transaction, -1, "Invalid callback request.")

        result = self.parse_returning_params(transaction, encrypted)

        if result["res_code"] not in ("0", "00"):
            self.fail(transaction, result["res_code"], result["res_message"] or None)
        if result["ref_id"] != str(transaction.ref_id):
            self.fail(transaction, -1, "RefId does not match the transaction.")
        if result["sale_order_id"] != str(transaction.pk):
            self.fail(transaction, -1, "Sale order id does not match the transaction.")

        credentials = self._encrypt(
            transaction,
            f'{self.options.require("username")},{self.options.require("password")}',
        )
        request = {
            "merchantConfigurationID": self.merchant_config_id,
            "encryptedCredentials": credentials,
            "payGateTranID": result["pay_gate_tran_id"],
        }

        code = str(self._soap(transaction, self.merchant_url, "RequestVerification", **request))
        if code != "500":
            self.fail(transaction, code)

        code = str(self._soap(transaction, self.merchant_url, "RequestReconciliation", **request))
        if code != "600":
            self.fail(transaction, code)

        payer_meta = {"pay_gate_tran_id": result["pay_gate_tran_id"]}
        if result["last_four_digit_of_pan"]:
            payer_meta["card_number"] = result["last_four_digit_of_pan"]

        return self.succeed(
            transaction,
            code,
            AsanpardakhtError.message_for(code),
            tracking_code=result["rrn"],
            payer_meta=payer_meta,
        )
