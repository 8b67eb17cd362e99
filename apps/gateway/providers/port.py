# apps/gateway/providers/port.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, NoReturn, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from django.utils import timezone

from apps.gateway.conf import GatewayConfig, PortConfig
from apps.gateway.exceptions import (
    ConfigurationError,
    GatewayError,
    RetryRejected,
    TransactionNotFound,
    TransportFailure,
)
from apps.gateway.logic import transactions
from apps.gateway.models import Transaction

logger = logging.getLogger(__name__)

# формат дат, который ждут банки (Pasargad: 2024/01/01 00:00:00)
BANK_DATETIME_FORMAT = "%Y/%m/%d %H:%M:%S"


@dataclass(frozen=True)
class RedirectDescriptor:
    """
    Куда и как отправить пользователя в банк.

    - GET: голый URL (токен уже в URL)
    - POST: action URL + упорядоченные поля для self-submit формы
    Рендер формы — дело шаблона (templates/gateway/redirector.html).
    """

    url: str
    method: str = "GET"
    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_form(self) -> bool:
        return self.method.upper() == "POST"

    def as_dict(self) -> dict[str, Any]:
        return {"url": self.url, "method": self.method, "fields": dict(self.fields)}


class GatewayPort(Protocol):
    """
    Порт (интерфейс) банковского драйвера.

    Жизненный цикл: configure -> set_port_name -> boot -> set -> ready -> redirect
    и позже, в callback: verify.
    """

    port_name: str

    def configure(self, config: GatewayConfig) -> "GatewayPort":
        ...

    def set_port_name(self, name: str) -> "GatewayPort":
        ...

    def boot(self) -> None:
        ...

    def set(self, amount: int) -> "GatewayPort":
        ...

    def ready(self) -> Transaction:
        ...

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        ...

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        ...


class BasePort:
    """
    Общая логика жизненного цикла транзакции для всех драйверов.

    Конфигурация (immutable) хранится на драйвере, а транзакция
    передаётся в redirect()/verify() явно.
    """

    port_name: str = ""
    error_class: type[GatewayError] = GatewayError

    # ключи, без которых драйвер не поднимется (проверяются в boot())
    required_options: tuple[str, ...] = ()

    # есть ли у банка шаг предавторизации (ref_id до redirect)
    pre_authorizes: bool = True

    def __init__(self, *, clock: Callable[[], datetime] | None = None):
        self.config: GatewayConfig = GatewayConfig()
        self.clock = clock or timezone.now
        self.amount: int | None = None
        self.ip: str | None = None
        self.callback_url: str | None = None

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------

    def configure(self, config: GatewayConfig):
        self.config = config
        return self

    def set_port_name(self, name: str):
        self.port_name = name.upper()
        return self

    @property
    def options(self) -> PortConfig:
        return self.config.port(self.port_name)

    @property
    def timeout(self) -> int:
        return self.config.timeout

    def boot(self) -> None:
        for key in self.required_options:
            self.options.require(key)

    def now(self) -> datetime:
        return timezone.localtime(self.clock(), self.config.tzinfo)

    def format_datetime(self, value: datetime | None = None) -> str:
        value = self.now() if value is None else timezone.localtime(value, self.config.tzinfo)
        return value.strftime(BANK_DATETIME_FORMAT)

    # ------------------------------------------------------------------
    # request data
    # ------------------------------------------------------------------

    def set(self, amount: int):
        self.amount = int(amount)
        return self

    def set_ip(self, ip: str | None):
        self.ip = ip
        return self

    def set_callback(self, url: str):
        self.callback_url = url
        return self

    def callback_base(self) -> str:
        base = self.callback_url or self.options.callback_url
        if not base:
            raise ConfigurationError(
                f'Missing "callback-url" for {self.port_name} gateway.',
                code="missing_option",
                port=self.port_name,
            )
        return base

    def get_callback(self, transaction: Transaction) -> str:
        """
        callback-url из конфига + transaction_id как correlation-параметр.
        """
        parts = urlsplit(self.callback_base())
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "transaction_id"]
        query.append(("transaction_id", str(transaction.pk)))
        return urlunsplit(parts._replace(query=urlencode(query)))

    # ------------------------------------------------------------------
    # transaction lifecycle
    # ------------------------------------------------------------------

    def new_transaction(self) -> Transaction:
        if self.amount is None:
            raise ConfigurationError("Amount is not set; call set(amount) first.", port=self.port_name)
        # без callback-url банк некуда вернуть: падаем до INSERT, а не с висящей PENDING
        self.callback_base()
        return transactions.create_transaction(port=self.port_name, amount=self.amount, ip=self.ip)

    def transaction_set_ref_id(self, transaction: Transaction, ref_id: str) -> Transaction:
        return transactions.set_ref_id(transaction=transaction, ref_id=ref_id)

    def transaction_succeed(self, transaction: Transaction, **fields) -> Transaction:
        return transactions.mark_succeed(transaction=transaction, **fields)

    def transaction_failed(self, transaction: Transaction) -> Transaction:
        return transactions.mark_failed(transaction=transaction)

    def new_log(self, transaction: Transaction, status_code, message: str):
        return transactions.append_log(transaction=transaction, status_code=status_code, message=message)

    def fail(self, transaction: Transaction, code, message: str | None = None) -> NoReturn:
        """
        Единый путь ошибки провайдера:
        FAILED + запись в лог + GatewayError с кодом банка.
        """
        if message is None:
            message = self.error_class.message_for(code)

        logger.warning("%s rejected transaction %s: [%s] %s", self.port_name, transaction.pk, code, message)

        self.transaction_failed(transaction)
        self.new_log(transaction, code, message)
        raise self.error_class(message, code=code, port=self.port_name, transaction_id=transaction.pk)

    def provider_call(self, transaction: Transaction, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Сетевой вызов к банку; TransportFailure -> fail() с кодом -1."""
        try:
            return fn(*args, **kwargs)
        except TransportFailure as exc:
            self.fail(transaction, -1, f"Provider connection error: {exc}")

    def succeed(self, transaction: Transaction, code, message: str, **fields) -> Transaction:
        tx = self.transaction_succeed(transaction, **fields)
        self.new_log(tx, code, message)
        return tx

    # ------------------------------------------------------------------
    # contract
    # ------------------------------------------------------------------

    def ready(self) -> Transaction:
        raise NotImplementedError

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        raise NotImplementedError

    def assert_redirectable(self, transaction: Transaction) -> None:
        if not transaction.is_pending:
            raise RetryRejected(
                f"Transaction {transaction.pk} is not pending.",
                port=self.port_name,
                transaction_id=transaction.pk,
            )
        if self.pre_authorizes and not transaction.ref_id:
            raise ConfigurationError(
                f"Transaction {transaction.pk} has no ref_id; call ready() first.",
                port=self.port_name,
                transaction_id=transaction.pk,
            )

    def verify(self, transaction: Transaction, params: Mapping[str, Any]) -> Transaction:
        """
        Базовая проверка: транзакция есть и она PENDING,
        затем захват транзакции под verify (до любого вызова к банку).
        Драйверы вызывают super().verify() первым делом.
        """
        if transaction is None:
            raise TransactionNotFound("No transaction to verify.", port=self.port_name)
        if not transaction.is_pending:
            raise RetryRejected(
                f"Transaction {transaction.pk} has already been processed.",
                port=self.port_name,
                transaction_id=transaction.pk,
            )
        return transactions.claim_for_verify(transaction=transaction)
