"""
sqeval/core/errors.py

Error types raised by planning, caching and evaluation.

Every error derives from SqevalError and from the builtin exception a
caller would naturally catch for that kind of failure.
"""

from __future__ import annotations


class SqevalError(Exception):
    """Base class for all sqeval errors."""


class ShapeMismatchError(SqevalError, ValueError):
    """Leaf data inconsistent with the index spaces it was requested for."""


class MissingLeafError(SqevalError, KeyError):
    """No data registered for a requested leaf descriptor."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class MalformedCombinationError(SqevalError, ValueError):
    """Operands with incompatible rank or index-role layout were combined."""


class DuplicateStoreError(SqevalError, RuntimeError):
    """A fingerprint was stored twice: some result was computed redundantly."""


class ComplexNarrowingError(SqevalError, ValueError):
    """A nonzero imaginary part met a real-valued backend."""
