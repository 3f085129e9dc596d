"""
One-shot handoff of a fresh analysis from the submission request to the
founder's next dashboard load.

The submission endpoint publishes the normalized result under the founder's
id; the dashboard consumes it exactly once and falls back to the persisted
row afterwards. Publishing again before it is consumed replaces the pending
result. At most ``max_pending`` results are held; past that the oldest
unconsumed one is dropped, and that founder simply sees the persisted row.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from venturelens.analysis.normalizer import AnalysisResult

logger = logging.getLogger(__name__)

MAX_PENDING = 1000


class ResultHandoff:
    def __init__(self, max_pending: int = MAX_PENDING):
        self.max_pending = max_pending
        self._pending: "OrderedDict[str, AnalysisResult]" = OrderedDict()
        self._lock = threading.Lock()

    def publish(self, founder_id: str, result: AnalysisResult) -> None:
        evicted = []
        with self._lock:
            replaced = founder_id in self._pending
            self._pending[founder_id] = result
            self._pending.move_to_end(founder_id)
            while len(self._pending) > self.max_pending:
                oldest, _ = self._pending.popitem(last=False)
                evicted.append(oldest)
        if replaced:
            logger.info("Replaced unconsumed analysis for founder %s", founder_id)
        for oldest in evicted:
            logger.warning("Dropped unconsumed analysis for founder %s", oldest)

    def consume(self, founder_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            return self._pending.pop(founder_id, None)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


handoff = ResultHandoff()
