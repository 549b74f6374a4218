"""Async processor - decouples event delivery from registry mutation.

Wraps EventIngestor with bounded queues + worker threads so the transport
callback returns immediately after enqueue instead of waiting for
validation, registry commit and subscriber notification.

- Each bench id maps to one shard (bench_id % num_workers), and each shard
  is drained by exactly one worker, so events of the same bench are applied
  in delivery order. Different benches progress independently.
- A full shard raises Backpressure to the producer; nothing is dropped
  silently.
- Workers pull up to batch_max_size events and apply them as one batch,
  so subscribers get one notification per batch.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Optional

from ..core.errors import Backpressure
from ..metrics.ingestion_metrics import BACKPRESSURE_REJECTIONS, QUEUE_DEPTH
from .backpressure_config import BackpressureConfig, BackpressureStats
from .ingestor import EventIngestor
from .validators import peek_bench_id

logger = logging.getLogger(__name__)


class AsyncEventProcessor:
    """Sharded queue + worker threads in front of EventIngestor."""

    def __init__(self, ingestor: EventIngestor, config: Optional[BackpressureConfig] = None):
        self._ingestor = ingestor
        self._config = config or BackpressureConfig.from_env()
        self._num_shards = max(1, self._config.num_workers)
        self._queues: list[queue.Queue] = [
            queue.Queue(maxsize=self._config.max_queue_size)
            for _ in range(self._num_shards)
        ]
        self._stop_event = threading.Event()
        self._workers: list[threading.Thread] = []

        self._stats = BackpressureStats()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start one worker thread per shard."""
        if self._workers:
            return
        self._stop_event.clear()
        for shard in range(self._num_shards):
            t = threading.Thread(
                target=self._worker_loop,
                args=(shard,),
                daemon=True,
                name=f"bench-ingest-{shard}",
            )
            t.start()
            self._workers.append(t)
        logger.info(
            "[ASYNC_PROC] Started workers=%d queue_max=%d batch_max=%d",
            self._num_shards, self._config.max_queue_size, self._config.batch_max_size,
        )

    def stop(self, drain: bool = True) -> None:
        """Stop workers. If drain=True, apply queued events first."""
        if drain and self._workers:
            self.join()
        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[ASYNC_PROC] Stopped. %s", self.metrics)

    def join(self) -> None:
        """Block until every queued event has been applied."""
        for q in self._queues:
            q.join()

    def submit(self, raw_event: Any, block: bool = False, timeout: Optional[float] = None) -> None:
        """Enqueue an event for its bench's shard.

        Raises:
            Backpressure: the shard is full (after waiting up to `timeout`
                when block=True).
        """
        shard = self._shard_for(raw_event)
        # Antes del put: un worker puede hacer dec apenas el evento entra
        QUEUE_DEPTH.inc()
        try:
            self._queues[shard].put(raw_event, block=block, timeout=timeout)
        except queue.Full:
            QUEUE_DEPTH.dec()
            with self._lock:
                self._stats.rejected += 1
            BACKPRESSURE_REJECTIONS.inc()
            logger.warning("[ASYNC_PROC] Shard %d full, rejecting event", shard)
            raise Backpressure(
                f"Ingestion buffer full ({self._config.max_queue_size} events), retry later",
                bench_id=peek_bench_id(raw_event),
            )

        with self._lock:
            self._stats.enqueued += 1

    def _shard_for(self, raw_event: Any) -> int:
        bench_id = peek_bench_id(raw_event)
        if bench_id is None:
            return 0
        return bench_id % self._num_shards

    def _worker_loop(self, shard: int) -> None:
        q = self._queues[shard]
        while not self._stop_event.is_set():
            try:
                first = q.get(timeout=0.5)
            except queue.Empty:
                continue

            batch = [first]
            while len(batch) < self._config.batch_max_size:
                try:
                    batch.append(q.get_nowait())
                except queue.Empty:
                    break

            try:
                self._ingestor.ingest_batch(batch)
                with self._lock:
                    self._stats.processed += len(batch)
                    self._stats.batches += 1
            except Exception as e:
                with self._lock:
                    self._stats.errors += len(batch)
                logger.exception("[ASYNC_PROC] Worker %d error: %s", shard, e)
            finally:
                QUEUE_DEPTH.dec(len(batch))
                for _ in batch:
                    q.task_done()

    @property
    def pending(self) -> int:
        return sum(q.qsize() for q in self._queues)

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self.pending,
                "queue_max": self._config.max_queue_size,
                "shards": self._num_shards,
                "enqueued": self._stats.enqueued,
                "processed": self._stats.processed,
                "rejected": self._stats.rejected,
                "errors": self._stats.errors,
                "batches": self._stats.batches,
                "running": self.running,
            }

