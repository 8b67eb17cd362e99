# apps/gateway/tests/test_pasargad.py
import base64

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from apps.gateway.enums import Port, TransactionStatus
from apps.gateway.exceptions import GatewayError
from apps.gateway.models import Transaction
from apps.gateway.providers.pasargad import redirect_sign_data, verify_sign_data

CHECK_URL = "https://pep.shaparak.ir/CheckTransactionResult.aspx"
VERIFY_URL = "https://pep.shaparak.ir/VerifyPayment.aspx"


def _check_xml(tx, *, result="True", amount=None, invoice=None):
    return (
        "<resultObj>"
        f"<result>{result}</result>"
        "<action>1003</action>"
        f"<invoiceNumber>{invoice if invoice is not None else tx.pk}</invoiceNumber>"
        "<invoiceDate>2024/01/01 00:00:00</invoiceDate>"
        "<merchantCode>M1</merchantCode>"
        "<terminalCode>T1</terminalCode>"
        f"<amount>{amount if amount is not None else tx.amount}</amount>"
        "<traceNumber>112233</traceNumber>"
        "<referenceNumber>445566778</referenceNumber>"
        "<transactionDate>2024/01/01 00:05:00</transactionDate>"
        "</resultObj>"
    )


def _verify_xml(result="True", message="Successful"):
    return f"<actionResult><result>{result}</result><resultMessage>{message}</resultMessage></actionResult>"


def _assert_signed(public_key, sign, data):
    public_key.verify(base64.b64decode(sign), data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1())


@pytest.mark.django_db
def test_pasargad_ready_only_creates_transaction(resolver, fake_form):
    fake = fake_form({})

    tx = resolver.make("pasargad").set(10000).ready()

    assert tx.status == TransactionStatus.PENDING
    assert tx.ref_id is None
    assert fake.calls == []


@pytest.mark.django_db
def test_pasargad_redirect_form_is_signed(resolver, rsa_private_key):
    """
    GIVEN:
        - транзакция Pasargad (без ref_id: предавторизации нет)

    WHEN:
        - redirect()

    THEN:
        - POST-форма на gateway.aspx с полями банка
        - sign = RSA(SHA-1) от "#merchant#terminal#invoice#date#amount#redirect#1003#timestamp#"
    """
    tx = resolver.make("pasargad").set(10000).ready()

    descriptor = resolver.redirect(tx)
    fields = descriptor.fields

    assert descriptor.is_form
    assert descriptor.url == "https://pep.shaparak.ir/gateway.aspx"
    assert fields["merchantCode"] == "M1"
    assert fields["terminalCode"] == "T1"
    assert fields["invoiceNumber"] == str(tx.pk)
    assert fields["invoiceDate"] == tx.created_at.strftime("%Y/%m/%d %H:%M:%S")
    assert fields["amount"] == "10000"
    assert fields["action"] == "1003"
    assert fields["timeStamp"] == "2024/01/01 00:00:00"
    assert fields["redirectAddress"] == "https://shop.test/api/v1/gateway/callback/"

    data = redirect_sign_data(
        merchant_code="M1",
        terminal_code="T1",
        invoice_number=tx.pk,
        invoice_date=fields["invoiceDate"],
        amount=10000,
        redirect_url=fields["redirectAddress"],
        action=1003,
        timestamp="2024/01/01 00:00:00",
    )
    _assert_signed(rsa_private_key.public_key(), fields["sign"], data)


@pytest.mark.django_db
def test_pasargad_verify_success(resolver, fake_form, rsa_private_key):
    tx = Transaction.objects.create(port=Port.PASARGAD, amount=10000)
    fake = fake_form({CHECK_URL: _check_xml(tx), VERIFY_URL: _verify_xml()})

    tx = resolver.verify({"iN": str(tx.pk), "iD": "2024/01/01 00:00:00", "tref": "TREF-1"})

    assert fake.keys == [CHECK_URL, VERIFY_URL]
    _, check = fake.calls[0]
    assert check == {"invoiceUID": "TREF-1"}

    _, verify = fake.calls[1]
    assert verify["InvoiceNumber"] == str(tx.pk)
    assert verify["InvoiceDate"] == "2024/01/01 00:00:00"
    assert verify["TimeStamp"] == "2024/01/01 00:00:00"
    data = verify_sign_data(
        merchant_code="M1",
        terminal_code="T1",
        invoice_number=tx.pk,
        invoice_date="2024/01/01 00:00:00",
        amount=10000,
        timestamp="2024/01/01 00:00:00",
    )
    _assert_signed(rsa_private_key.public_key(), verify["sign"], data)

    tx.refresh_from_db()
    assert tx.status == TransactionStatus.SUCCEED
    assert tx.tracking_code == "TREF-1"
    assert tx.ref_id == "445566778"
    assert tx.payer_meta == {"trace_number": "112233"}


@pytest.mark.django_db
def test_pasargad_verify_result_false_is_never_succeed(resolver, fake_form):
    """
    CheckTransactionResult = True, но VerifyPayment = False -> FAILED.
    """
    tx = Transaction.objects.create(port=Port.PASARGAD, amount=10000)
    fake_form({CHECK_URL: _check_xml(tx), VERIFY_URL: _verify_xml("False", "Transaction reversed")})

    with pytest.raises(GatewayError) as exc:
        resolver.verify({"iN": str(tx.pk), "tref": "TREF-1"})

    assert exc.value.message == "Transaction reversed"
    tx.refresh_from_db()
    assert tx.status == TransactionStatus.FAILED
    assert tx.tracking_code is None


@pytest.mark.django_db
@pytest.mark.parametrize(
    "overrides",
    [{"result": "False"}, {"amount": "99"}, {"invoice": "0"}],
)
def test_pasargad_check_mismatch_skips_verify_call(resolver, fake_form, overrides):
    tx = Transaction.objects.create(port=Port.PASARGAD, amount=10000)
    fake = fake_form({CHECK_URL: _check_xml(tx, **overrides), VERIFY_URL: _verify_xml()})

    with pytest.raises(GatewayError):
        resolver.verify({"iN": str(tx.pk), "tref": "TREF-1"})

    assert fake.keys == [CHECK_URL]
    tx.refresh_from_db()
    assert tx.status == TransactionStatus.FAILED
    assert tx.logs.count() == 1


@pytest.mark.django_db
def test_pasargad_malformed_xml_is_provider_error(resolver, fake_form):
    tx = Transaction.objects.create(port=Port.PASARGAD, amount=10000)
    fake_form({CHECK_URL: "<html>Service Unavailable"})

    with pytest.raises(GatewayError) as exc:
        resolver.verify({"iN": str(tx.pk), "tref": "TREF-1"})

    assert exc.value.code == -1
    tx.refresh_from_db()
    assert tx.status == TransactionStatus.FAILED
