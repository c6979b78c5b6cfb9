"""Tagged results for optional-dependency boundaries.

Calls into an LLM, compressor or history store return ``Ok`` when the
dependency produced the value and ``Fallback`` when the deterministic path
had to stand in. Callers read ``.value`` either way and record ``.reason``
in diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Fallback(Generic[T]):
    value: T
    reason: str

    @property
    def is_fallback(self) -> bool:
        return True


Outcome = Ok[T] | Fallback[T]
