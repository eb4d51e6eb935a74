# elections_relay/reconciliation.py
"""
Periodic ledger -> cache reconciliation.

Each pass reads absolute values from the ledger (all voting options and
every page of registered voters) and merges them into the cache with
idempotent upserts. Overlapping passes are skipped, never queued.
"""
import logging
import threading
import time
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel

from .cache_store import CacheStore
from .errors import CacheWriteFailure, ReconciliationFetchFailure, RelayError
from .models.voting import VotingOption

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"


class LedgerSnapshot(BaseModel):
    options: List[VotingOption]
    voters: List[str]


class ReconciliationResult(BaseModel):
    ok: bool = True
    options_merged: int = 0
    voters_merged: int = 0
    pages_fetched: int = 0
    error: Optional[str] = None
    finished_at: float


class ScheduleHandle:
    def __init__(self, thread: threading.Thread, stop_event: threading.Event):
        self.thread = thread
        self.stop_event = stop_event

    @property
    def running(self) -> bool:
        return self.thread.is_alive()


class ReconciliationEngine:
    def __init__(self, ledger, cache: CacheStore, interval: float = 60.0, page_size: int = 100,
                 start_offset: int = 0, max_pages: int = 1000):
        self.ledger = ledger
        self.cache = cache
        self.interval = interval
        self.page_size = page_size
        self.start_offset = start_offset
        self.max_pages = max_pages
        self.state = EngineState.IDLE
        self.last_result: Optional[ReconciliationResult] = None
        self.last_error: Optional[str] = None
        self._pass_lock = threading.Lock()

    # ------------------------------------------------------------------
    # One pass
    # ------------------------------------------------------------------

    def fetch(self) -> Tuple[LedgerSnapshot, int]:
        """Read everything the cache projects. Raises ReconciliationFetchFailure."""
        try:
            options = self.ledger.get_voting_options()
            voters, pages = self._fetch_all_voters()
        except RelayError as e:
            raise ReconciliationFetchFailure(f"Ledger fetch failed: {e.message}")
        except Exception as e:
            raise ReconciliationFetchFailure(f"Ledger data could not be decoded: {e}")
        return LedgerSnapshot(options=options, voters=voters), pages

    def _fetch_all_voters(self) -> Tuple[List[str], int]:
        voters = []
        offset = self.start_offset
        pages = 0
        while pages < self.max_pages:
            page = self.ledger.get_registered_voters(offset, self.page_size)
            pages += 1
            voters.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        else:
            logger.warning(f"Stopped voter sweep after {self.max_pages} pages at offset {offset}")
        return voters, pages

    def merge(self, snapshot: LedgerSnapshot) -> Tuple[int, int]:
        options_merged = self.cache.upsert_voting_options(snapshot.options) if snapshot.options else 0
        voters_merged = self.cache.upsert_registered_voters(snapshot.voters) if snapshot.voters else 0
        return options_merged, voters_merged

    def run_pass(self) -> Optional[ReconciliationResult]:
        """
        Run one fetch-and-merge pass.

        Returns None without doing anything if another pass is in flight.
        A failed fetch or merge is logged and reported with ok=False.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.info("Reconciliation already in progress, skipping trigger")
            return None
        try:
            self.state = EngineState.FETCHING
            snapshot, pages = self.fetch()

            self.state = EngineState.MERGING
            options_merged, voters_merged = self.merge(snapshot)

            result = ReconciliationResult(
                options_merged=options_merged,
                voters_merged=voters_merged,
                pages_fetched=pages,
                finished_at=time.time(),
            )
            self.last_result = result
            self.last_error = None
            logger.info(
                f"Reconciliation pass merged {options_merged} options and {voters_merged} voters"
            )
            return result
        except ReconciliationFetchFailure as e:
            self.last_error = e.message
            logger.error(f"Reconciliation pass aborted before merging: {e.message}")
            return ReconciliationResult(ok=False, error=e.message, finished_at=time.time())
        except CacheWriteFailure as e:
            self.last_error = e.message
            logger.error(f"Reconciliation merge failed, will retry next pass: {e.message}")
            return ReconciliationResult(ok=False, error=e.message, finished_at=time.time())
        finally:
            self.state = EngineState.IDLE
            self._pass_lock.release()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _loop(self, stop_event: threading.Event) -> None:
        self._run_guarded()
        while not stop_event.wait(self.interval):
            self._run_guarded()

    def _run_guarded(self) -> None:
        # the schedule must survive anything a single pass throws
        try:
            self.run_pass()
        except Exception:
            logger.exception("Unexpected error in reconciliation pass")

    def start(self) -> ScheduleHandle:
        """Run one pass immediately, then one every `interval` seconds on a daemon thread."""
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop, args=(stop_event,), name="reconciliation", daemon=True,
        )
        thread.start()
        logger.info(f"Reconciliation scheduled every {self.interval} seconds")
        return ScheduleHandle(thread, stop_event)

    def stop(self, handle: ScheduleHandle, timeout: Optional[float] = 10.0) -> None:
        handle.stop_event.set()
        handle.thread.join(timeout)
        logger.info("Reconciliation stopped")
