# apps/gateway/conf.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from types import MappingProxyType
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings

from apps.gateway.exceptions import ConfigurationError

DEFAULT_TABLE = "gateway_transactions"
DEFAULT_TIMEOUT = 30

# Общие ключи settings.GATEWAY; всё остальное — секции портов
GLOBAL_KEYS = frozenset({"timezone", "table", "timeout"})


@dataclass(frozen=True)
class PortConfig:
    """
    Опции одного порта (merchant id, terminal id, ключи, callback-url ...).

    Только чтение: драйверы и резолвер никогда это не сохраняют.
    """

    name: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def require(self, key: str) -> Any:
        value = self.options.get(key)
        if value in (None, ""):
            raise ConfigurationError(
                f'Missing "{key}" for {self.name} gateway.',
                code="missing_option",
                port=self.name,
            )
        return value

    @property
    def callback_url(self) -> str | None:
        return self.options.get("callback-url")


@dataclass(frozen=True)
class GatewayConfig:
    timezone: str = "UTC"
    table: str = DEFAULT_TABLE
    timeout: int = DEFAULT_TIMEOUT
    ports: Mapping[str, PortConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> "GatewayConfig":
        raw = raw or {}
        ports = {}
        for key, value in raw.items():
            if key in GLOBAL_KEYS or not isinstance(value, Mapping):
                continue
            name = key.upper()
            ports[name] = PortConfig(name=name, options=MappingProxyType(dict(value)))

        return cls(
            timezone=raw.get("timezone") or "UTC",
            table=raw.get("table") or DEFAULT_TABLE,
            timeout=int(raw.get("timeout") or DEFAULT_TIMEOUT),
            ports=MappingProxyType(ports),
        )

    @classmethod
    def from_settings(cls) -> "GatewayConfig":
        return cls.from_dict(getattr(settings, "GATEWAY", None))

    def port(self, name: str) -> PortConfig:
        # Отсутствующая секция — это не ошибка сама по себе:
        # драйвер упадёт в boot() на первом обязательном ключе.
        name = name.upper()
        return self.ports.get(name) or PortConfig(name=name)

    @property
    def tzinfo(self) -> tzinfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone: {self.timezone}", code="invalid_timezone")


def transactions_table() -> str:
    raw = getattr(settings, "GATEWAY", None) or {}
    return raw.get("table") or DEFAULT_TABLE
