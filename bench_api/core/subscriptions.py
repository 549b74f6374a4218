"""Hub de suscripciones a cambios del registro.

Los observadores (dashboards, alarmas, loggers) se registran con un callback
que recibe los ids de banco modificados y luego leen las vistas agregadas.

GARANTÍAS:
- Cada suscriptor vigente y libre recibe exactamente una notificación por lote.
- Un callback que falla o se demora no afecta a los demás ni a la ingesta:
  el error se loguea y se cuenta, nunca se propaga.
- La espera por lote está acotada por timeout_seconds.
- Un suscriptor con un callback todavía en curso no recibe el lote nuevo
  (dropped); nunca acumula más de un hilo ocupado.
"""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..metrics.ingestion_metrics import SUBSCRIBER_FAILURES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeNotification:
    """Payload entregado a cada suscriptor."""

    changed_ids: frozenset[int]
    version: int = 0


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int
    name: str


SubscriberCallback = Callable[[ChangeNotification], None]


class _Subscriber:
    """Suscriptor con su propio worker y el callback en curso (si lo hay)."""

    def __init__(self, handle: SubscriptionHandle, callback: SubscriberCallback):
        self.handle = handle
        self.callback = callback
        self.executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"bench-notify-{handle.id}",
        )
        self.in_flight: Optional[Future] = None

    @property
    def busy(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()


class SubscriptionHub:
    """Registro de observadores desacoplado del mecanismo de entrega.

    Cada suscriptor tiene un único worker: un callback colgado solo bloquea
    su propio hilo, y mientras siga corriendo sus notificaciones siguientes
    se descartan (se cuentan como dropped).

    Uso:
        hub = SubscriptionHub(timeout_seconds=2.0)
        handle = hub.subscribe(lambda n: print(n.changed_ids))
        hub.notify({1, 2})
        hub.unsubscribe(handle)
    """

    def __init__(self, timeout_seconds: Optional[float] = 2.0):
        self._timeout = timeout_seconds
        self._subscribers: dict[int, _Subscriber] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

        # Stats
        self._delivered = 0
        self._failed = 0
        self._timed_out = 0
        self._dropped = 0

    def subscribe(self, callback: SubscriberCallback, name: Optional[str] = None) -> SubscriptionHandle:
        with self._lock:
            sub_id = next(self._ids)
            handle = SubscriptionHandle(
                id=sub_id,
                name=name or getattr(callback, "__name__", f"subscriber-{sub_id}"),
            )
            self._subscribers[sub_id] = _Subscriber(handle, callback)
        logger.info("[HUB] Subscribed %s (id=%d)", handle.name, handle.id)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Elimina la suscripción. Returns False si ya no existía."""
        with self._lock:
            subscriber = self._subscribers.pop(handle.id, None)
        if subscriber is None:
            return False
        subscriber.executor.shutdown(wait=False)
        logger.info("[HUB] Unsubscribed %s (id=%d)", handle.name, handle.id)
        return True

    def notify(self, changed_ids: Iterable[int], version: int = 0) -> int:
        """Notifica a todos los suscriptores vigentes.

        Returns:
            Número de suscriptores que completaron sin error dentro del timeout.
        """
        notification = ChangeNotification(changed_ids=frozenset(changed_ids), version=version)
        futures: dict[Future, SubscriptionHandle] = {}
        skipped: list[SubscriptionHandle] = []

        with self._lock:
            for subscriber in self._subscribers.values():
                if subscriber.busy:
                    skipped.append(subscriber.handle)
                    continue
                future = subscriber.executor.submit(subscriber.callback, notification)
                subscriber.in_flight = future
                futures[future] = subscriber.handle
            self._dropped += len(skipped)

        for handle in skipped:
            SUBSCRIBER_FAILURES.labels(reason="dropped").inc()
            logger.warning(
                "[HUB] Subscriber %s still busy, dropping notification for benches %s",
                handle.name,
                sorted(notification.changed_ids),
            )

        if not futures:
            return 0

        done, pending = wait(futures, timeout=self._timeout)

        delivered = 0
        for future in done:
            handle = futures[future]
            error = future.exception()
            if error is None:
                delivered += 1
                continue
            with self._lock:
                self._failed += 1
            SUBSCRIBER_FAILURES.labels(reason="error").inc()
            logger.error(
                "[HUB] Subscriber %s failed for benches %s",
                handle.name,
                sorted(notification.changed_ids),
                exc_info=error,
            )

        for future in pending:
            handle = futures[future]
            future.cancel()
            with self._lock:
                self._timed_out += 1
            SUBSCRIBER_FAILURES.labels(reason="timeout").inc()
            logger.warning(
                "[HUB] Subscriber %s timed out after %.2fs", handle.name, self._timeout
            )

        with self._lock:
            self._delivered += delivered
        return delivered

    def close(self) -> None:
        """Da de baja a todos los suscriptores y libera sus workers."""
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.executor.shutdown(wait=False)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "subscribers": len(self._subscribers),
                "delivered": self._delivered,
                "failed": self._failed,
                "timed_out": self._timed_out,
                "dropped": self._dropped,
            }
