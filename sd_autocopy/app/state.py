from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Set

from sd_autocopy.domain.models import CopyResult

RESULT_HISTORY_LIMIT = 100


@dataclass
class MonitorState:
    attached_volumes: Set[str] = field(default_factory=set)
    last_poll: float = 0.0
    poll_count: int = 0
    results: Deque[CopyResult] = field(
        default_factory=lambda: deque(maxlen=RESULT_HISTORY_LIMIT)
    )
    _results_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def record_result(self, result: CopyResult) -> None:
        with self._results_lock:
            self.results.append(result)

    def recent_results(self) -> List[CopyResult]:
        with self._results_lock:
            return list(self.results)
