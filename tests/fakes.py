"""
In-memory stand-ins for the Prisma client and the completion client.
Only the calls the services make are implemented.
"""

from copy import copy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional


class FakeTable:
    def __init__(self):
        self.rows: List[SimpleNamespace] = []
        self.fail_create = False
        self.fail_read = False
        self.drop_after_create = False
        self.tamper: Dict[str, Any] = {}
        self.deleted: List[Dict[str, Any]] = []

    @staticmethod
    def _matches(row, where: Optional[Dict[str, Any]]) -> bool:
        for key, expected in (where or {}).items():
            # Range filters such as {"gte": since} are not checked
            if isinstance(expected, dict):
                continue
            if getattr(row, key, None) != expected:
                return False
        return True

    async def create(self, data: Dict[str, Any]):
        if self.fail_create:
            raise RuntimeError("insert failed")
        row = SimpleNamespace(**{**data, **self.tamper})
        if not self.drop_after_create:
            self.rows.append(row)
        return row

    async def find_first(self, where: Dict[str, Any]):
        if self.fail_read:
            raise RuntimeError("read failed")
        for row in self.rows:
            if self._matches(row, where):
                return copy(row)
        return None

    async def find_many(self, where: Optional[Dict[str, Any]] = None, order=None, take: Optional[int] = None):
        if self.fail_read:
            raise RuntimeError("read failed")
        found = [copy(r) for r in self.rows if self._matches(r, where)]
        return found[:take] if take else found

    async def delete_many(self, where: Dict[str, Any]):
        self.deleted.append(dict(where))
        before = len(self.rows)
        self.rows = [r for r in self.rows if not self._matches(r, where)]
        return before - len(self.rows)


class FakeDb:
    def __init__(self):
        self.txn = FakeTable()
        self.target = FakeTable()
        self.subscription = FakeTable()
        self.profile = FakeTable()

    def make_premium(self, owner_id: str, expires_at=None):
        self.subscription.rows.append(
            SimpleNamespace(ownerId=owner_id, plan="premium", status="active", expiresAt=expires_at)
        )


class FakeCompletion:
    """Returns scripted replies in order and records every call."""

    def __init__(self, *replies: str, error: Optional[Exception] = None):
        self.replies = list(replies)
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, messages, instruction, max_tokens=None, temperature=None, timeout=None):
        self.calls.append({
            "messages": list(messages),
            "instruction": instruction,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if self.error is not None:
            raise self.error
        if not self.replies:
            return "Okay."
        return self.replies.pop(0)
