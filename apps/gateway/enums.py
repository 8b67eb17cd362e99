# apps/gateway/enums.py
from __future__ import annotations

from django.db import models


class Port(models.TextChoices):
    """
    Каталог поддерживаемых портов (банков/провайдеров).

    Новый банк = новая запись здесь + новый драйвер в providers/registry.py.
    """

    MELLAT = "MELLAT", "Mellat"
    SADAD = "SADAD", "Sadad"
    ZARINPAL = "ZARINPAL", "Zarinpal"
    PARSIAN = "PARSIAN", "Parsian"
    PASARGAD = "PASARGAD", "Pasargad"
    SAMAN = "SAMAN", "Saman"
    PAYPAL = "PAYPAL", "PayPal"
    ASANPARDAKHT = "ASANPARDAKHT", "Asan Pardakht"
    PAYIR = "PAYIR", "Pay.ir"


class TransactionStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    SUCCEED = "SUCCEED", "Succeed"
    FAILED = "FAILED", "Failed"


TERMINAL_STATUSES = frozenset({TransactionStatus.SUCCEED, TransactionStatus.FAILED})

TRANSACTION_PENDING_TEXT = "Transaction is waiting for payment."
TRANSACTION_SUCCEED_TEXT = "Payment completed successfully."
TRANSACTION_FAILED_TEXT = "Payment failed."
