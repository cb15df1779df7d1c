"""Reconciliation loop: detect public IP changes and push them to every record."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, Optional

from .errors import DDNSError
from .ip import ExternalIPState, IPSourceSelector
from .records import RecordStore

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL_SECONDS = 5

# =============================================================================
# Core Syncer
# =============================================================================


class DDNSSyncer:
    def __init__(
        self,
        *,
        ip_selector: IPSourceSelector,
        ip_state: ExternalIPState,
        record_store: RecordStore,
        poll_interval_seconds: float = 300,
    ):
        self.ip_selector = ip_selector
        self.ip_state = ip_state
        self.record_store = record_store
        self.poll_interval_seconds = max(MIN_POLL_INTERVAL_SECONDS, poll_interval_seconds)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sync_once(self) -> bool:
        """Run one reconciliation cycle.

        Returns True when a new IP was detected and pushed out. Failures to
        update single records are logged and do not stop the remaining ones.
        """
        try:
            current = self.ip_selector.discover()
        except DDNSError as e:
            logger.error(f"Failed to get external IP: {e}")
            return False

        logger.info(f"Current IP: {current.ip} from {current.source}")

        previous = self.ip_state.get()
        if previous is not None and previous.ip == current.ip:
            logger.info("IP hasn't changed")
            return False

        logger.info(
            f"IP changed ({previous.ip if previous else 'unknown'} -> {current.ip}), "
            f"updating records"
        )
        self.ip_state.set(current)

        snapshot = self.record_store.snapshot()
        results: Dict[str, int] = {"updated": 0, "failed": 0}
        for zone_name, records in snapshot.items():
            for record in records:
                try:
                    self.record_store.upsert(zone_name, replace(record, content=current.ip))
                    results["updated"] += 1
                except DDNSError as e:
                    results["failed"] += 1
                    logger.error(f"Error updating record {zone_name}/{record.name}: {e}")
                except Exception as e:
                    results["failed"] += 1
                    logger.error(
                        f"Unexpected error updating record {zone_name}/{record.name}: {e}",
                        exc_info=True,
                    )

        if results["failed"]:
            logger.warning(
                f"Propagated {current.ip} to {results['updated']} record(s), "
                f"{results['failed']} failed"
            )
        else:
            logger.info(f"Propagated {current.ip} to {results['updated']} record(s)")
        return True

    def run(self) -> None:
        """Reconcile every poll interval until ``stop()`` is called."""
        logger.info(f"Reconciliation loop started (interval {self.poll_interval_seconds}s)")
        while not self._stop.is_set():
            try:
                self.sync_once()
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}", exc_info=True)
            self._stop.wait(self.poll_interval_seconds)
        logger.info("Reconciliation loop stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="ddns-syncer", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
