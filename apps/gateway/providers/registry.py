# apps/gateway/providers/registry.py
from __future__ import annotations

from apps.gateway.enums import Port
from apps.gateway.exceptions import PortNotFound
from apps.gateway.providers.asanpardakht import Asanpardakht
from apps.gateway.providers.mellat import Mellat
from apps.gateway.providers.parsian import Parsian
from apps.gateway.providers.pasargad import Pasargad
from apps.gateway.providers.payir import Payir
from apps.gateway.providers.paypal import Paypal
from apps.gateway.providers.port import BasePort
from apps.gateway.providers.sadad import Sadad
from apps.gateway.providers.saman import Saman
from apps.gateway.providers.zarinpal import Zarinpal

# Закрытый реестр: каталог Port -> класс драйвера.
# Без рефлексии по имени класса: неизвестное имя -> PortNotFound.
PORT_CLASSES: dict[str, type[BasePort]] = {
    Port.MELLAT: Mellat,
    Port.SADAD: Sadad,
    Port.ZARINPAL: Zarinpal,
    Port.PARSIAN: Parsian,
    Port.PASARGAD: Pasargad,
    Port.SAMAN: Saman,
    Port.PAYPAL: Paypal,
    Port.ASANPARDAKHT: Asanpardakht,
    Port.PAYIR: Payir,
}


def get_port_class(name: str) -> type[BasePort]:
    key = str(name or "").strip().upper()
    try:
        return PORT_CLASSES[key]
    except KeyError:
        raise PortNotFound(f"Unknown payment port: {name}", port=name)


def port_name_for(instance: BasePort) -> str:
    """Каноническое имя порта для уже созданного драйвера."""
    for name, cls in PORT_CLASSES.items():
        if type(instance) is cls:
            return str(name)
    for name, cls in PORT_CLASSES.items():
        if isinstance(instance, cls):
            return str(name)
    raise PortNotFound(f"Unsupported payment port: {type(instance).__name__}")
