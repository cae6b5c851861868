# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Per-entry isolation for the extractors."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

from ..utils import get_logger


T = TypeVar("T")
R = TypeVar("R")


def collect(items: Iterable[T], build: Callable[[T], R | None], *, kind: str) -> list[R]:
    """Build one entry per item, skipping items that fail or yield ``None``.

    A construct that cannot be understood drops only its own entry.
    """
    entries: list[R] = []
    for item in items:
        try:
            entry = build(item)
        except Exception:  # noqa: BLE001
            get_logger("mcpbridge.introspection").warning("Skipping unreadable %s", kind, exc_info=True)
            continue
        if entry is not None:
            entries.append(entry)
    return entries


__all__ = ["collect"]
