"""Structural object filter for the listing endpoints."""

from __future__ import annotations

from typing import Any


def passes_filter(obj: Any, flt: Any) -> bool:
    """True when every key of ``flt`` is present in ``obj`` with an equal value.

    Nested objects are matched recursively, so ``{}`` matches everything.
    Other values, strings included, must be exactly equal.
    """
    if isinstance(flt, dict):
        if not isinstance(obj, dict):
            return False
        return all(key in obj and passes_filter(obj[key], value) for key, value in flt.items())
    if isinstance(flt, bool) or isinstance(obj, bool):
        return type(flt) is type(obj) and flt == obj
    return obj == flt
