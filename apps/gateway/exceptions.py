# apps/gateway/exceptions.py
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class GatewayException(APIException):
    """
    Базовое исключение шлюза.

    Наследуемся от DRF APIException, чтобы API-слой отдавал
    правильный HTTP-код без дополнительной обвязки.

    Каждое исключение несёт контекст для аудита:
    - port: имя порта из каталога (если известно)
    - transaction_id: id транзакции (если известен)
    - code: код провайдера или внутренний код
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Payment gateway error."
    default_code = "gateway_error"

    def __init__(self, detail=None, *, code=None, port=None, transaction_id=None):
        super().__init__(detail=detail, code=code)
        self.code = code if code is not None else self.default_code
        self.port = port
        self.transaction_id = transaction_id

    @property
    def message(self) -> str:
        return str(self.detail)


class ConfigurationError(GatewayException):
    default_detail = "Payment gateway is not configured."
    default_code = "configuration_error"


class PortNotFound(ConfigurationError):
    default_detail = "Payment port not found."
    default_code = "port_not_found"


class InvalidRequest(GatewayException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Callback request is missing the transaction id."
    default_code = "invalid_request"


class TransactionNotFound(GatewayException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Transaction not found."
    default_code = "transaction_not_found"


class RetryRejected(GatewayException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Transaction has already been processed."
    default_code = "retry_rejected"


class GatewayError(GatewayException):
    """
    Ошибка провайдера/транспорта.

    У каждого драйвера свой подкласс со своей таблицей code -> message
    (см. error_messages). code — то, что вернул банк (число или строка).
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment provider returned an error."
    default_code = -1

    # переопределяется в драйвере
    error_messages: dict[str, str] = {}
    unknown_message = "Unknown provider error."

    @classmethod
    def message_for(cls, code) -> str:
        return cls.error_messages.get(str(code), cls.unknown_message)

    @classmethod
    def from_code(cls, code, *, port=None, transaction_id=None) -> "GatewayError":
        return cls(cls.message_for(code), code=code, port=port, transaction_id=transaction_id)


class TransportFailure(Exception):
    """
    Сбой на сетевой границе: таймаут, обрыв, SOAP Fault, битый ответ.

    Это НЕ публичная ошибка: драйвер обязан перевести её в свой GatewayError
    (с transaction_failed() + new_log()).
    """

    def __init__(self, message: str, *, url: str | None = None):
        super().__init__(message)
        self.url = url
