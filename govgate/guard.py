"""
Reentrancy Guard

One guard is shared by execute and withdraw. Entering hands out a
GuardToken; the token must be returned to release the guard. A second
entry while a token is outstanding fails with ReentrantCall.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional
from uuid import uuid4

from govgate.errors import ReentrantCall


@dataclass(frozen=True)
class GuardToken:
    operation: str
    nonce: str


class ReentrancyGuard:
    def __init__(self):
        self._held: Optional[GuardToken] = None

    @property
    def locked(self) -> bool:
        return self._held is not None

    def acquire(self, operation: str) -> GuardToken:
        if self._held is not None:
            raise ReentrantCall()
        token = GuardToken(operation=operation, nonce=uuid4().hex)
        self._held = token
        return token

    def release(self, token: GuardToken) -> None:
        if self._held != token:
            raise RuntimeError(f"guard released with a foreign token ({token.operation})")
        self._held = None

    @contextmanager
    def entered(self, operation: str) -> Iterator[GuardToken]:
        token = self.acquire(operation)
        try:
            yield token
        finally:
            self.release(token)
