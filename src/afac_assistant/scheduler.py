"""
Background learning loop: pattern mining, site-data training and stale-pattern eviction.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .pattern_miner import PatternMiner
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

LEARNING_INTERVAL_SECONDS = 3600.0


class LearningScheduler:
    """
    Runs one learning cycle at start() and then every `interval_seconds` on a daemon thread.

    No schedule state is persisted; a restarted process simply starts a fresh timer.
    """

    def __init__(
        self,
        miner: PatternMiner,
        pattern_store: PatternStore,
        interval_seconds: float = LEARNING_INTERVAL_SECONDS,
        max_idle_days: int = 0,
        confidence_floor: float = 0.7,
    ) -> None:
        self.miner = miner
        self.pattern_store = pattern_store
        self.interval_seconds = interval_seconds
        self.max_idle_days = max_idle_days
        self.confidence_floor = confidence_floor
        self.cycles_completed = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="afac-learning", daemon=True)
        self._thread.start()
        logger.info("Learning scheduler started (interval %.0fs)", self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Learning scheduler stopped")

    def run_once(self) -> None:
        """One learning cycle; each step degrades on its own store errors."""
        mined = self.miner.analyze_patterns()
        trained = self.miner.train_from_site_data()
        evicted = self.pattern_store.evict_stale_patterns(self.max_idle_days, self.confidence_floor)
        self.cycles_completed += 1
        logger.info(
            "Learning cycle %d: %d mined, %d trained, %d evicted",
            self.cycles_completed,
            len(mined),
            len(trained),
            evicted,
        )

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Learning cycle failed")
            if self._stop_event.wait(self.interval_seconds):
                break
