# apps/gateway/tests/test_transaction_lifecycle.py
import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import ValidationError

from apps.gateway.enums import Port, TransactionStatus
from apps.gateway.exceptions import ConfigurationError, GatewayError, RetryRejected, TransportFailure
from apps.gateway.logic import transactions
from apps.gateway.models import Transaction, TransactionLog


@pytest.mark.django_db
def test_ready_creates_single_pending_transaction_with_ref_id(resolver, fake_soap):
    # ----------------------------------------
    # Arrange
    # ----------------------------------------
    fake = fake_soap({"bpPayRequest": "0,REF-123"})

    # ----------------------------------------
    # Act
    # ----------------------------------------
    tx = resolver.make("mellat").set(10000).ready()

    # ----------------------------------------
    # Assert
    # ----------------------------------------
    assert Transaction.objects.count() == 1
    tx.refresh_from_db()
    assert tx.port == Port.MELLAT
    assert tx.amount == 10000
    assert tx.status == TransactionStatus.PENDING
    assert tx.ref_id == "REF-123"
    assert tx.logs.count() == 0

    _, params = fake.calls[0]
    assert params["orderId"] == tx.pk
    assert params["callBackUrl"].endswith(f"transaction_id={tx.pk}")
    assert params["localDate"] == "20240101"


@pytest.mark.django_db
def test_ready_failure_marks_failed_and_writes_exactly_one_log(resolver, fake_soap):
    """
    GIVEN:
        - банк отвечает на bpPayRequest кодом 21 (merchant не валиден)

    WHEN:
        - ready()

    THEN:
        - ровно одна транзакция, FAILED
        - ровно одна запись лога с кодом 21
        - GatewayError с кодом и сообщением из таблицы Mellat
    """
    fake_soap({"bpPayRequest": "21"})

    with pytest.raises(GatewayError) as exc:
        resolver.make("mellat").set(10000).ready()

    assert exc.value.code == "21"
    assert exc.value.message == "Merchant is not valid."
    assert exc.value.port == Port.MELLAT

    tx = Transaction.objects.get()
    assert tx.status == TransactionStatus.FAILED
    assert list(tx.logs.values_list("status_code", "message")) == [("21", "Merchant is not valid.")]
    assert exc.value.transaction_id == tx.pk


@pytest.mark.django_db
def test_ready_transport_failure_is_recorded_as_provider_error(resolver, fake_soap):
    fake_soap({"SalePaymentRequest": TransportFailure("timed out")})

    with pytest.raises(GatewayError) as exc:
        resolver.make("parsian").set(5000).ready()

    assert exc.value.code == -1
    tx = Transaction.objects.get()
    assert tx.status == TransactionStatus.FAILED
    log = tx.logs.get()
    assert log.status_code == "-1"
    assert "timed out" in log.message


@pytest.mark.django_db
def test_ready_without_amount_creates_nothing(resolver, fake_soap):
    fake = fake_soap({})

    with pytest.raises(ConfigurationError):
        resolver.make("mellat").ready()

    assert Transaction.objects.count() == 0
    assert fake.calls == []


@pytest.mark.django_db
@pytest.mark.parametrize("amount", [0, -10, True, "100"])
def test_create_transaction_rejects_non_positive_or_non_int_amount(amount):
    with pytest.raises(ValidationError):
        transactions.create_transaction(port=Port.MELLAT, amount=amount)

    assert Transaction.objects.count() == 0


@pytest.mark.django_db
def test_redirect_requires_ref_id_for_pre_authorizing_ports(resolver):
    tx = Transaction.objects.create(port=Port.MELLAT, amount=1000)

    with pytest.raises(ConfigurationError):
        resolver.make("mellat").redirect(tx)


@pytest.mark.django_db
def test_redirect_rejects_terminal_transaction(resolver):
    tx = Transaction.objects.create(port=Port.PARSIAN, amount=1000, ref_id="TOKEN")
    transactions.mark_failed(transaction=tx)

    with pytest.raises(RetryRejected):
        resolver.make("parsian").redirect(tx)


@pytest.mark.django_db
def test_redirect_does_not_change_status(resolver):
    tx = Transaction.objects.create(port=Port.PARSIAN, amount=1000, ref_id="TOKEN")

    descriptor = resolver.make("parsian").redirect(tx)

    tx.refresh_from_db()
    assert tx.status == TransactionStatus.PENDING
    assert descriptor.method == "GET"
    assert descriptor.url == "https://pec.shaparak.ir/NewIPG/?Token=TOKEN"


@pytest.mark.django_db
def test_direct_save_cannot_change_status():
    """
    Смена статуса через .save() (админка, shell) запрещена.
    """
    tx = Transaction.objects.create(port=Port.SAMAN, amount=1000)

    tx.status = TransactionStatus.SUCCEED
    with pytest.raises(DjangoValidationError):
        tx.save()

    tx.refresh_from_db()
    assert tx.status == TransactionStatus.PENDING


@pytest.mark.django_db
def test_terminal_status_is_final():
    tx = Transaction.objects.create(port=Port.SAMAN, amount=1000)
    transactions.mark_succeed(transaction=tx, tracking_code="TR-1")

    with pytest.raises(RetryRejected):
        transactions.mark_failed(transaction=tx)

    tx.refresh_from_db()
    assert tx.status == TransactionStatus.SUCCEED
    assert tx.tracking_code == "TR-1"
    assert tx.payment_date is not None


@pytest.mark.django_db
def test_transaction_log_is_write_once():
    tx = Transaction.objects.create(port=Port.SAMAN, amount=1000)
    log = transactions.append_log(transaction=tx, status_code=-1, message="boom")

    log.message = "edited"
    with pytest.raises(DjangoValidationError):
        log.save()

    assert TransactionLog.objects.get(pk=log.pk).message == "boom"


@pytest.mark.django_db
def test_mark_succeed_merges_payer_meta():
    tx = Transaction.objects.create(port=Port.PAYIR, amount=1000, payer_meta={"mobile": "0912"})

    transactions.mark_succeed(transaction=tx, tracking_code="T", payer_meta={"card_number": "6037****1234"})

    tx.refresh_from_db()
    assert tx.payer_meta == {"mobile": "0912", "card_number": "6037****1234"}


@pytest.mark.django_db
@pytest.mark.parametrize("port", ["parsian", "mellat", "saman", "pasargad"])
def test_ready_without_callback_url_creates_nothing(settings, fake_soap, port):
    """
    GIVEN:
        - у порта нет callback-url ни в конфиге, ни через set_callback()

    WHEN:
        - ready()

    THEN:
        - ConfigurationError
        - транзакция не создана (нет висящей PENDING), к банку не ходили
    """
    from apps.gateway.resolver import GatewayResolver

    settings.GATEWAY[port].pop("callback-url")
    fake = fake_soap({})

    with pytest.raises(ConfigurationError) as exc:
        GatewayResolver().make(port).set(5000).ready()

    assert exc.value.code == "missing_option"
    assert Transaction.objects.count() == 0
    assert fake.calls == []


@pytest.mark.django_db
def test_ready_uses_runtime_callback_when_config_has_none(settings, fake_soap):
    from apps.gateway.resolver import GatewayResolver

    settings.GATEWAY["parsian"].pop("callback-url")
    fake = fake_soap({"SalePaymentRequest": {"Token": 1, "Status": 0}})

    resolver = GatewayResolver().make("parsian")
    resolver.port.set_callback("https://shop.test/back/")
    tx = resolver.set(5000).ready()

    _, sale = fake.calls[0]
    assert sale["requestData"]["CallBackUrl"] == f"https://shop.test/back/?transaction_id={tx.pk}"


@pytest.mark.django_db
def test_claim_for_verify_is_granted_once():
    tx = Transaction.objects.create(port=Port.MELLAT, amount=1000, ref_id="R")
    other = Transaction.objects.get(pk=tx.pk)

    transactions.claim_for_verify(transaction=tx)

    with pytest.raises(RetryRejected):
        transactions.claim_for_verify(transaction=other)

    tx.refresh_from_db()
    assert tx.status == TransactionStatus.PENDING
    assert tx.verify_claimed_at is not None

    # захват не мешает захватившему завершить транзакцию
    transactions.mark_succeed(transaction=tx, tracking_code="T")
    tx.refresh_from_db()
    assert tx.status == TransactionStatus.SUCCEED
