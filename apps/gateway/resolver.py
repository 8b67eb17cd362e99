# apps/gateway/resolver.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from apps.gateway.conf import GatewayConfig
from apps.gateway.enums import TERMINAL_STATUSES, Port
from apps.gateway.exceptions import InvalidRequest, PortNotFound, RetryRejected
from apps.gateway.logic import transactions
from apps.gateway.models import Transaction
from apps.gateway.providers import registry
from apps.gateway.providers.port import BasePort, RedirectDescriptor

logger = logging.getLogger(__name__)

# Оба имени — равноправные алиасы correlation id:
# transaction_id добавляем мы сами (get_callback), iN присылает Pasargad.
CORRELATION_PARAMS = ("transaction_id", "iN")


class GatewayResolver:
    """
    Публичная точка входа.

    Пример:
        resolver = GatewayResolver()
        tx = resolver.make("mellat").set(10000).ready()
        descriptor = resolver.redirect(tx)
        ...
        # в callback:
        tx = GatewayResolver().verify(request.GET)

    Специфичные для банка методы (set_additional_data и т.п.)
    доступны через resolver.port после make().
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        port: str | BasePort | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or GatewayConfig.from_settings()
        self.clock = clock
        self._port: BasePort | None = None

        if port is not None:
            self.make(port)

    def supported_ports(self) -> list[str]:
        return list(Port.values)

    def make(self, port: str | BasePort) -> "GatewayResolver":
        """
        Выбрать драйвер по имени (без учёта регистра) или принять готовый инстанс,
        передать ему конфиг/имя порта/часы и вызвать boot().
        """
        if isinstance(port, BasePort):
            name = registry.port_name_for(port)
            driver = port
            if self.clock is not None:
                driver.clock = self.clock
        elif isinstance(port, str):
            port_class = registry.get_port_class(port)
            name = port.strip().upper()
            driver = port_class(clock=self.clock)
        else:
            raise PortNotFound(f"Unsupported payment port: {port!r}")

        driver.configure(self.config)
        driver.set_port_name(name)
        driver.boot()

        self._port = driver
        return self

    @property
    def port(self) -> BasePort:
        if self._port is None:
            raise PortNotFound("No active payment port; call make() first.")
        return self._port

    # ------------------------------------------------------------------
    # явные pass-through методы активного драйвера
    # ------------------------------------------------------------------

    def set(self, amount: int) -> "GatewayResolver":
        self.port.set(amount)
        return self

    def ready(self) -> Transaction:
        return self.port.ready()

    def redirect(self, transaction: Transaction) -> RedirectDescriptor:
        return self.port.redirect(transaction)

    # ------------------------------------------------------------------
    # callback
    # ------------------------------------------------------------------

    @staticmethod
    def correlation_id(params: Mapping[str, Any]) -> str:
        for name in CORRELATION_PARAMS:
            value = params.get(name)
            if value not in (None, ""):
                value = str(value).strip()
                if not value.isdigit():
                    raise InvalidRequest(f'Callback parameter "{name}" is not a valid transaction id.')
                return value
        raise InvalidRequest()

    def verify(self, params: Mapping[str, Any]) -> Transaction:
        """
        Callback от банка.

        Порядок важен (fail fast, без лишних вызовов к банку):
        1) correlation id есть            -> иначе InvalidRequest
        2) транзакция есть                -> иначе TransactionNotFound
        3) транзакция ещё PENDING         -> иначе RetryRejected
        4) драйвер по tx.port -> driver.verify(tx, params)

        Гонку двух verify на одной транзакции разруливает захват
        (logic/transactions.claim_for_verify) до первого вызова к банку:
        проигравший получает RetryRejected и к банку не ходит.
        """
        pk = self.correlation_id(params)
        tx = transactions.get_transaction(pk)

        if tx.status in TERMINAL_STATUSES:
            logger.info("verify rejected: transaction %s is already %s", tx.pk, tx.status)
            raise RetryRejected(
                f"Transaction {tx.pk} has already been processed.",
                port=tx.port,
                transaction_id=tx.pk,
            )

        self.make(tx.port)
        return self.port.verify(tx, params)
