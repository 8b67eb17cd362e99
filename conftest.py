# conftest.py
import base64
from datetime import datetime, timezone as dt_timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


CALLBACK_URL = "https://shop.test/api/v1/gateway/callback/"
FIXED_NOW = datetime(2024, 1, 1, 0, 0, 0, tzinfo=dt_timezone.utc)

# 24 байта -> валидный 3DES ключ
SADAD_KEY = base64.b64encode(b"0123456789abcdefghijklmn").decode("ascii")


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def pasargad_key_path(rsa_private_key, tmp_path_factory):
    """
    PEM-ключ мерчанта на диске (Pasargad читает его по certificate-path).
    """
    path = tmp_path_factory.mktemp("keys") / "pasargad.pem"
    path.write_bytes(
        rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return str(path)


@pytest.fixture(autouse=True)
def gateway_settings(settings, pasargad_key_path):
    """
    Тестовый settings.GATEWAY: все порты сконфигурированы, время в UTC.
    """
    settings.GATEWAY = {
        "timezone": "UTC",
        "table": "gateway_transactions",
        "timeout": 5,
        "mellat": {
            "terminalId": "1234",
            "username": "mellat-user",
            "password": "mellat-pass",
            "callback-url": CALLBACK_URL,
        },
        "sadad": {
            "merchant": "SADAD-M",
            "terminalId": "SADAD-T",
            "transactionKey": SADAD_KEY,
            "callback-url": CALLBACK_URL,
        },
        "zarinpal": {
            "merchant-id": "zp-merchant",
            "type": "normal",
            "server": "germany",
            "description": "test payment",
            "callback-url": CALLBACK_URL,
        },
        "parsian": {
            "pin": "parsian-pin",
            "callback-url": CALLBACK_URL,
        },
        "pasargad": {
            "merchantId": "M1",
            "terminalId": "T1",
            "certificate-path": pasargad_key_path,
            "callback-url": CALLBACK_URL,
        },
        "saman": {
            "merchant": "SEP-1",
            "callback-url": CALLBACK_URL,
        },
        "paypal": {
            "client-id": "client-id",
            "secret": "secret",
            "mode": "sandbox",
            "currency": "USD",
            "callback-url": CALLBACK_URL,
        },
        "asanpardakht": {
            "merchantId": "AP-1",
            "merchantConfigId": "77",
            "username": "ap-user",
            "password": "ap-pass",
            "key": "ap-key",
            "iv": "ap-iv",
            "callback-url": CALLBACK_URL,
        },
        "payir": {
            "api": "test",
            "callback-url": CALLBACK_URL,
        },
    }
    return settings.GATEWAY


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def resolver(db, fixed_clock):
    from apps.gateway.resolver import GatewayResolver

    return GatewayResolver(clock=fixed_clock)


class FakeProvider:
    """
    Подменяет сетевую функцию транспорта.

    responses: ключ (операция SOAP или URL) -> значение | callable(params) | Exception
    calls:     список (ключ, params) в порядке вызова
    """

    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def reply(self, key, params):
        self.calls.append((key, params))
        value = self.responses[key]
        if isinstance(value, list):
            value = value.pop(0)
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(params)
        return value

    @property
    def keys(self):
        return [key for key, _ in self.calls]


@pytest.fixture
def fake_soap(monkeypatch):
    """
    fake = fake_soap({"bpPayRequest": "0,REF"})
    """
    def _install(responses):
        fake = FakeProvider(responses)

        def soap_call(wsdl, operation, *, timeout, **params):
            return fake.reply(operation, params)

        monkeypatch.setattr("apps.gateway.logic.transport.soap_call", soap_call)
        return fake

    return _install


@pytest.fixture
def fake_json(monkeypatch):
    """
    fake = fake_json({"https://pay.ir/pg/send": {"status": 1, "token": "T"}})
    """
    def _install(responses):
        fake = FakeProvider(responses)

        def post_json(url, payload=None, *, timeout, form=False, headers=None, auth=None):
            return fake.reply(url, payload)

        monkeypatch.setattr("apps.gateway.logic.transport.post_json", post_json)
        return fake

    return _install


@pytest.fixture
def fake_form(monkeypatch):
    def _install(responses):
        fake = FakeProvider(responses)

        def post_form(url, fields, *, timeout):
            return fake.reply(url, fields)

        monkeypatch.setattr("apps.gateway.logic.transport.post_form", post_form)
        return fake

    return _install
