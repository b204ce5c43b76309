"""Checkpoint persistence for parameter sweeps.

Result snapshots are written as JSON lists of flat records, one file per
checkpoint event, by a single background thread so file I/O never stalls
the sweep.  A failed write is retried and then reported as a warning; the
results already held in memory stay valid either way.
"""

import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pinforge.optimizer.results import OptimizationResult

logger = logging.getLogger("pinforge.optimizer.checkpoint")


def checkpoint_filename(label: str, now: Optional[datetime] = None) -> str:
    """``<label>_YYYYmmdd_HHMMSS_ffffff.json`` in UTC."""
    now = now or datetime.now(timezone.utc)
    return f"{label}_{now:%Y%m%d_%H%M%S_%f}.json"


def write_results(path: Path, results: list[OptimizationResult]) -> None:
    """Serialise *results* to *path*, replacing it atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(
        json.dumps([r.to_record() for r in results], indent=2, default=str),
        encoding="utf-8",
    )
    tmp.replace(path)


def load_checkpoint(path: str | Path) -> list[OptimizationResult]:
    """Read a checkpoint or final file back into result objects."""
    records = json.loads(Path(path).read_text(encoding="utf-8"))
    return [OptimizationResult.from_record(r) for r in records]


class CheckpointWriter:
    """Writes result snapshots on one background thread.

    Args:
        results_dir: Directory receiving the JSON files.
        retries: Attempts per file before giving up with a warning.
        retry_delay: Seconds to wait between attempts.
    """

    def __init__(
        self,
        results_dir: str | Path,
        retries: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self._dir = Path(results_dir)
        self._retries = max(1, retries)
        self._retry_delay = retry_delay
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="checkpoint")
        self._pending: list[Future] = []
        self._issued: set[Path] = set()
        self._written: list[str] = []

    # ── Public API ───────────────────────────────────────────────────────

    def submit(self, results: list[OptimizationResult], label: str = "checkpoint") -> Future:
        """Queue a snapshot of *results* for writing and return immediately."""
        snapshot = list(results)
        path = self._dir / checkpoint_filename(label)
        if path in self._issued:
            path = path.with_name(f"{path.stem}_{len(self._issued)}.json")
        self._issued.add(path)
        future = self._executor.submit(self._write_with_retry, path, snapshot)
        self._pending.append(future)
        return future

    def close(self) -> list[str]:
        """Wait for queued writes; return the paths written successfully."""
        self._executor.shutdown(wait=True)
        for future in self._pending:
            try:
                future.result()
            except Exception:
                logger.exception("Checkpoint write failed unexpectedly; sweep results are unaffected")
        self._pending.clear()
        return list(self._written)

    @property
    def written(self) -> list[str]:
        return list(self._written)

    def __enter__(self) -> "CheckpointWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _write_with_retry(self, path: Path, results: list[OptimizationResult]) -> Optional[Path]:
        for attempt in range(1, self._retries + 1):
            try:
                write_results(path, results)
            except OSError as exc:
                logger.warning(
                    "Checkpoint write to %s failed (attempt %d/%d): %s",
                    path, attempt, self._retries, exc,
                )
                if attempt < self._retries:
                    time.sleep(self._retry_delay)
                continue
            self._written.append(str(path))
            logger.info("Saved %d result(s) → %s", len(results), path)
            return path
        logger.warning("Giving up on checkpoint %s; sweep continues", path)
        return None
