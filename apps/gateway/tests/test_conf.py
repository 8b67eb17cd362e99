# apps/gateway/tests/test_conf.py
import pytest

from apps.gateway.conf import GatewayConfig
from apps.gateway.exceptions import ConfigurationError


def test_from_dict_splits_global_keys_and_port_sections():
    config = GatewayConfig.from_dict(
        {
            "timezone": "Asia/Tehran",
            "timeout": "12",
            "mellat": {"terminalId": "1"},
            "payir": {"api": "test"},
        }
    )

    assert config.timezone == "Asia/Tehran"
    assert config.timeout == 12
    assert config.table == "gateway_transactions"
    assert set(config.ports) == {"MELLAT", "PAYIR"}
    assert config.port("mellat").require("terminalId") == "1"


def test_port_options_are_read_only():
    config = GatewayConfig.from_dict({"mellat": {"terminalId": "1"}})

    with pytest.raises(TypeError):
        config.port("MELLAT").options["terminalId"] = "2"


def test_missing_section_fails_on_first_required_key():
    config = GatewayConfig.from_dict({})

    with pytest.raises(ConfigurationError) as exc:
        config.port("saman").require("merchant")

    assert exc.value.code == "missing_option"
    assert exc.value.port == "SAMAN"


def test_unknown_timezone_is_configuration_error():
    config = GatewayConfig.from_dict({"timezone": "Mars/Olympus"})

    with pytest.raises(ConfigurationError):
        config.tzinfo


def test_from_settings_reads_django_settings(gateway_settings):
    config = GatewayConfig.from_settings()

    assert config.timezone == "UTC"
    assert config.port("parsian").callback_url == gateway_settings["parsian"]["callback-url"]
