from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StoreContext:
    """
    Tenant scope for one request.

    Every service call takes one of these instead of reading ambient state,
    so a caller can never act on a store it did not name.
    """
    store_id: int
    user_id: int | None = None
