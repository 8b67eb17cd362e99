# apps/gateway/logic/transactions.py
from __future__ import annotations

import logging
from typing import Any

from django.db import transaction as db_transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.gateway.enums import Port, TransactionStatus
from apps.gateway.exceptions import PortNotFound, RetryRejected, TransactionNotFound
from apps.gateway.models import Transaction, TransactionLog

logger = logging.getLogger(__name__)


def create_transaction(*, port: str, amount: int, ip: str | None = None) -> Transaction:
    """
    Создаёт транзакцию в статусе PENDING.

    Вызывается ДО любого сетевого вызова к банку: запись для аудита
    должна существовать даже если банк не ответил.
    """
    if port not in Port.values:
        raise PortNotFound(f"Unknown port: {port}", port=port)

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError({"amount": ["Amount must be a positive integer."]})

    tx = Transaction.objects.create(
        port=port,
        amount=amount,
        status=TransactionStatus.PENDING,
        ip=ip,
    )
    logger.info("transaction %s created: port=%s amount=%s", tx.pk, port, amount)
    return tx


def get_transaction(pk) -> Transaction:
    try:
        return Transaction.objects.get(pk=pk)
    except (Transaction.DoesNotExist, ValueError, TypeError):
        raise TransactionNotFound(f"Transaction {pk} not found.", transaction_id=pk)


def _guarded_update(*, tx: Transaction, fields: dict[str, Any], **where) -> Transaction:
    """
    Условный UPDATE ... WHERE status = PENDING [AND ...].

    Ноль обновлённых строк -> кто-то уже перевёл транзакцию -> RetryRejected.
    """
    fields = {**fields, "updated_at": timezone.now()}

    with db_transaction.atomic():
        updated = Transaction.objects.filter(
            pk=tx.pk,
            status=TransactionStatus.PENDING,
            **where,
        ).update(**fields)

    if not updated:
        raise RetryRejected(
            f"Transaction {tx.pk} is no longer pending.",
            port=tx.port,
            transaction_id=tx.pk,
        )

    for name, value in fields.items():
        setattr(tx, name, value)
    tx._loaded_status = tx.status
    return tx


def claim_for_verify(*, transaction: Transaction) -> Transaction:
    """
    Захват PENDING-транзакции под verify, до любого вызова к банку.

    Защита от двойного verify (F5, повторный callback банка):
    - UPDATE ... SET verify_claimed_at = now WHERE status = PENDING AND verify_claimed_at IS NULL
    - выигрывает ровно один запрос, он и подтверждает платёж у банка
    - второй получает RetryRejected и к банку не ходит (settle не уйдёт дважды)
    """
    try:
        tx = _guarded_update(
            tx=transaction,
            fields={"verify_claimed_at": timezone.now()},
            verify_claimed_at__isnull=True,
        )
    except RetryRejected:
        logger.info("verify rejected: transaction %s is already being verified", transaction.pk)
        raise
    return tx


def set_ref_id(*, transaction: Transaction, ref_id: str) -> Transaction:
    return _guarded_update(tx=transaction, fields={"ref_id": str(ref_id)})


def mark_succeed(
    *,
    transaction: Transaction,
    tracking_code: str | None = None,
    ref_id: str | None = None,
    payer_meta: dict[str, Any] | None = None,
) -> Transaction:
    """
    PENDING -> SUCCEED одним UPDATE.

    ref_id тоже можно передать сюда: у портов без предавторизации
    (Pasargad, Saman) ссылка банка приходит только в callback.
    """
    fields: dict[str, Any] = {
        "status": TransactionStatus.SUCCEED,
        "payment_date": timezone.now(),
    }
    if tracking_code is not None:
        fields["tracking_code"] = str(tracking_code)
    if ref_id is not None:
        fields["ref_id"] = str(ref_id)
    if payer_meta:
        fields["payer_meta"] = {**(transaction.payer_meta or {}), **payer_meta}

    tx = _guarded_update(tx=transaction, fields=fields)
    logger.info("transaction %s succeed: port=%s tracking_code=%s", tx.pk, tx.port, tx.tracking_code)
    return tx


def mark_failed(*, transaction: Transaction) -> Transaction:
    tx = _guarded_update(tx=transaction, fields={"status": TransactionStatus.FAILED})
    logger.info("transaction %s failed: port=%s", tx.pk, tx.port)
    return tx


def append_log(*, transaction: Transaction, status_code, message: str) -> TransactionLog:
    return TransactionLog.objects.create(
        transaction=transaction,
        status_code=str(status_code),
        message=message or "",
    )
