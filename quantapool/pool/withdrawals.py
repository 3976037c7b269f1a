"""
Per-user withdrawal queues.

Each user owns an append-only list of requests plus a cursor pointing at the
first unprocessed entry. Claims only ever take the entry at the cursor (FIFO);
cancellation may hit any entry at or after the cursor. The cursor skips over
every processed entry, so ``cursor == len(requests)`` means nothing is pending.
"""

from typing import Dict, List, Optional

from ..exceptions import AlreadyProcessedError, RequestNotFoundError
from .types import WithdrawalRequest


class WithdrawalQueue:
    """Request arena and cursors for every user."""

    def __init__(self):
        self._requests: Dict[str, List[WithdrawalRequest]] = {}
        self._cursors: Dict[str, int] = {}

    def append(self, user: str, request: WithdrawalRequest) -> int:
        """Store *request* and return its index in *user*'s list."""
        requests = self._requests.setdefault(user, [])
        requests.append(request)
        return len(requests) - 1

    def requests_of(self, user: str) -> List[WithdrawalRequest]:
        return list(self._requests.get(user, []))

    def count(self, user: str) -> int:
        return len(self._requests.get(user, []))

    def cursor(self, user: str) -> int:
        return self._cursors.get(user, 0)

    def get(self, user: str, index: int) -> WithdrawalRequest:
        requests = self._requests.get(user, [])
        if index < 0 or index >= len(requests):
            raise RequestNotFoundError(f"Withdrawal request {index} not found for {user}")
        return requests[index]

    def head(self, user: str) -> Optional[WithdrawalRequest]:
        """The request at the cursor, or None when nothing is pending."""
        requests = self._requests.get(user, [])
        cursor = self.cursor(user)
        return requests[cursor] if cursor < len(requests) else None

    def get_pending(self, user: str, index: int) -> WithdrawalRequest:
        """Request *index* if it is still cancellable (at/after cursor, unprocessed)."""
        request = self.get(user, index)
        if index < self.cursor(user) or request.processed:
            raise AlreadyProcessedError(f"Withdrawal request {index} already processed")
        return request

    def advance(self, user: str) -> int:
        """Move the cursor past every processed entry. Returns the new cursor."""
        requests = self._requests.get(user, [])
        cursor = self.cursor(user)
        while cursor < len(requests) and requests[cursor].processed:
            cursor += 1
        self._cursors[user] = cursor
        return cursor

    def pending_count(self, user: str) -> int:
        requests = self._requests.get(user, [])
        return sum(1 for r in requests[self.cursor(user):] if not r.processed)

    def locked_shares(self, user: str) -> int:
        """Shares committed to *user*'s unprocessed requests."""
        requests = self._requests.get(user, [])
        return sum(r.shares for r in requests[self.cursor(user):] if not r.processed)

    def users(self) -> List[str]:
        return list(self._requests)
