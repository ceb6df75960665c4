"""
Explicit success/failure values returned by cache tiers and the store.

Callers branch on ``result.ok`` instead of catching exceptions, so each
fallback decision is visible at the call site.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str = ""
    ok: bool = False

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}" if self.message else self.kind.value


Result = Union[Ok[T], Err]
