from __future__ import annotations

import threading
from typing import Dict, Optional

from devicefleet.shared.models import BudgetSnapshot


class BudgetHistory:
    """Latest budget snapshot per month, used to compare against the previous month."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_month: Dict[str, BudgetSnapshot] = {}

    def record(self, snapshot: BudgetSnapshot) -> Optional[BudgetSnapshot]:
        """Store ``snapshot`` and return the most recent snapshot from an earlier month."""
        with self._lock:
            self._by_month[snapshot.month] = snapshot
            earlier = [month for month in self._by_month if month < snapshot.month]
            if not earlier:
                return None
            return self._by_month[max(earlier)]
