# FILE: services/persistence.py
"""
Persistence verifier: insert, read back, compare.

A record only counts as saved when the row read back by (id, ownerId)
matches what was written. Every datastore call is bounded by a timeout.
"""

import logging
from asyncio import wait_for
from datetime import datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Tuple, Union
from uuid import uuid4

from configurations.config import PERSISTENCE_TIMEOUT
from models.records import TargetRecord, TransactionRecord, WriteResult
from services.amounts import CENT

# -----------------------------
# Logging Setup
# -----------------------------
logger = logging.getLogger("persistence_verifier")
logger.setLevel(logging.INFO)
if not logger.handlers:
    fh = logging.FileHandler("persistence_verifier.log")
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh.setFormatter(formatter)
    logger.addHandler(fh)


Record = Union[TransactionRecord, TargetRecord]

# Fields that must read back unchanged
TRANSACTION_FIELDS = ("id", "ownerId", "kind", "amount", "category", "description")
TARGET_FIELDS = ("id", "ownerId", "title", "targetAmount", "targetType", "category")


def _same(expected: Any, actual: Any) -> bool:
    if isinstance(expected, Decimal):
        try:
            return Decimal(str(actual)).quantize(CENT) == expected.quantize(CENT)
        except InvalidOperation:
            return False
    return expected == actual


def transaction_data(record_id: str, owner_id: str, record: TransactionRecord) -> Dict[str, Any]:
    return {
        "id": record_id,
        "ownerId": owner_id,
        "kind": record.kind.value,
        "amount": record.amount,
        "category": record.category,
        "description": record.description,
        "occurredAt": record.timestamp,
        "currency": record.currency,
    }


def target_data(record_id: str, owner_id: str, record: TargetRecord) -> Dict[str, Any]:
    target_date = None
    if record.target_date is not None:
        target_date = datetime.combine(record.target_date, time(), tzinfo=timezone.utc)
    return {
        "id": record_id,
        "ownerId": owner_id,
        "title": record.title,
        "targetAmount": record.target_amount,
        "currency": record.currency,
        "targetType": record.target_type.value,
        "targetDate": target_date,
        "category": record.category,
        "description": record.description,
    }


class PersistenceVerifier:
    """
    Writes transaction and target records for one owner and proves each
    write by reading it back.
    """

    def __init__(self, db, timeout: float = PERSISTENCE_TIMEOUT):
        self.db = db
        self.timeout = timeout

    def _table_for(self, record: Record) -> Tuple[Any, Tuple[str, ...], str]:
        if isinstance(record, TransactionRecord):
            return self.db.txn, TRANSACTION_FIELDS, "transaction"
        return self.db.target, TARGET_FIELDS, record.target_type.value

    def _table_for_type(self, record_type: str):
        return self.db.txn if record_type == "transaction" else self.db.target

    async def write(self, owner_id: str, record: Record) -> WriteResult:
        record_id = str(uuid4())
        table, fields, record_type = self._table_for(record)
        if isinstance(record, TransactionRecord):
            data = transaction_data(record_id, owner_id, record)
        else:
            data = target_data(record_id, owner_id, record)

        try:
            await wait_for(table.create(data=data), timeout=self.timeout)
        except Exception as e:
            logger.error(f"[WRITE] user_id={owner_id} type={record_type} insert failed: {e}")
            return WriteResult(ok=False, verified=False, record_type=record_type, error=str(e))

        try:
            row = await wait_for(
                table.find_first(where={"id": record_id, "ownerId": owner_id}),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"[VERIFY] user_id={owner_id} id={record_id} read-back failed: {e}")
            return WriteResult(ok=True, verified=False, id=record_id, record_type=record_type, error=str(e))

        if row is None:
            logger.error(f"[VERIFY] user_id={owner_id} id={record_id} row missing after insert")
            return WriteResult(ok=True, verified=False, id=record_id, record_type=record_type,
                               error="Row not found after insert")

        mismatched = [f for f in fields if not _same(data[f], getattr(row, f, None))]
        if mismatched:
            logger.error(f"[VERIFY] user_id={owner_id} id={record_id} mismatched fields={mismatched}")
            return WriteResult(ok=True, verified=False, id=record_id, record_type=record_type,
                               error=f"Read-back mismatch: {', '.join(mismatched)}")

        logger.info(f"[VERIFY] user_id={owner_id} id={record_id} type={record_type} verified")
        return WriteResult(ok=True, verified=True, id=record_id, record_type=record_type)

    async def discard(self, owner_id: str, result: WriteResult) -> bool:
        """Compensating delete of a row this turn wrote. Never raises."""
        if not result.ok or not result.id or not result.record_type:
            return False
        table = self._table_for_type(result.record_type)
        try:
            await wait_for(
                table.delete_many(where={"id": result.id, "ownerId": owner_id}),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"[DISCARD] user_id={owner_id} id={result.id} delete failed: {e}")
            return False
        logger.info(f"[DISCARD] user_id={owner_id} id={result.id} removed")
        return True
