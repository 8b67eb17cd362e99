# apps/gateway/models.py
from django.core.exceptions import ValidationError
from django.db import models

from apps.gateway.conf import transactions_table
from apps.gateway.enums import Port, TransactionStatus


class Transaction(models.Model):
    """
    Одна попытка оплаты через банковский порт.

    Инварианты:
    - status: только PENDING -> SUCCEED или PENDING -> FAILED, назад нельзя.
    - после терминального статуса повторный verify запрещён (RetryRejected).
    - status меняем только через logic/transactions.py (условный UPDATE),
      прямой .save() со сменой статуса падает (см. save()).
    - verify идёт к банку только после захвата (verify_claimed_at), один раз.
    - id уходит в банк как номер заказа/инвойса (correlation id).
    """

    Status = TransactionStatus

    port = models.CharField(max_length=32, choices=Port.choices)
    amount = models.PositiveBigIntegerField()

    ref_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    tracking_code = models.CharField(max_length=255, null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING,
        db_index=True,
    )

    # маска карты, имя плательщика и т.п. — зависит от провайдера
    payer_meta = models.JSONField(default=dict, blank=True)

    ip = models.GenericIPAddressField(null=True, blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)

    # захват под verify: выставляется один раз, до вызова к банку
    verify_claimed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _status_change_allowed: bool = False
    _loaded_status: str | None = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loaded_status = self.status

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_status = instance.status
        instance._status_change_allowed = False
        return instance

    def save(self, *args, **kwargs):
        """
        Инвариант: статус нельзя менять прямым .save() (админка, shell, чужой код).
        Переходы статуса идут только через logic/transactions.py.
        """
        if self.pk is not None:
            status_changed = (self._loaded_status is not None) and (self.status != self._loaded_status)
            if status_changed and not self._status_change_allowed:
                raise ValidationError({"status": "Transaction.status can only be changed by the gateway."})

        super().save(*args, **kwargs)

        self._loaded_status = self.status
        self._status_change_allowed = False

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    class Meta:
        db_table = transactions_table()
        ordering = ["-id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="gateway_tx_amount_positive"),
        ]

    def __str__(self) -> str:
        return f"Transaction({self.pk}) {self.port} {self.status} {self.amount}"


class TransactionLog(models.Model):
    """
    Аудит общения с банком: только append, статус транзакции отсюда не берём.
    """

    transaction = models.ForeignKey(Transaction, on_delete=models.CASCADE, related_name="logs")

    status_code = models.CharField(max_length=64)
    message = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = f"{transactions_table()}_logs"
        ordering = ["created_at", "id"]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("TransactionLog rows are write-once.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"TransactionLog({self.transaction_id}) {self.status_code}"
