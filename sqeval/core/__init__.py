"""
Core configuration, index-space registry, errors and logging helpers.
"""

from sqeval.core.errors import (
    ComplexNarrowingError,
    DuplicateStoreError,
    MalformedCombinationError,
    MissingLeafError,
    ShapeMismatchError,
    SqevalError,
)
from sqeval.core.registry import DEFAULT_PREFIXES, IndexSpaceRegistry
from sqeval.core.config import EvalConfig, default_config, resolve_config
from sqeval.core.log import enable_console_logging, get_logger

__all__ = [
    "ComplexNarrowingError",
    "DuplicateStoreError",
    "MalformedCombinationError",
    "MissingLeafError",
    "ShapeMismatchError",
    "SqevalError",
    "DEFAULT_PREFIXES",
    "IndexSpaceRegistry",
    "EvalConfig",
    "default_config",
    "resolve_config",
    "enable_console_logging",
    "get_logger",
]
