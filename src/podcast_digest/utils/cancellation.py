"""Cooperative cancellation checks.

A run is cancelled by setting a ``threading.Event``. Long operations call
``raise_if_cancelled`` at their next suspension point.
"""

from __future__ import annotations

import threading
from typing import Optional

from ..exceptions import CancelledError


def is_cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def raise_if_cancelled(
    cancel_event: Optional[threading.Event], stage: Optional[str] = None
) -> None:
    """Raise CancelledError when ``cancel_event`` is set."""
    if is_cancelled(cancel_event):
        raise CancelledError(stage=stage)
