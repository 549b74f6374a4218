"""Registro de bancos de prueba.

FUENTE ÚNICA DE VERDAD para el estado de cada banco.

Reglas:
- Un BenchRecord por id; un id nunca se reutiliza para otro puerto.
- Las mutaciones (apply_event, remove) se serializan con un lock.
- Cada commit reemplaza el BenchRecord (inmutable) y reconstruye un
  snapshot ordenado por id, de modo que las lecturas nunca ven un
  registro aplicado a medias y no necesitan el lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional

from .errors import InvalidTransition, MalformedEvent, RegistryInvariantError, UnknownBench
from .models import (
    READING_FIELDS,
    AppliedChange,
    BenchRecord,
    BenchState,
    BenchUpdate,
    CompletionStatus,
)
from .state_machine import is_valid_status_transition, is_valid_transition, starts_run

logger = logging.getLogger(__name__)

# Recibe los campos de lectura afectados por un commit y la nueva versión
InvalidationListener = Callable[[frozenset[str], int], None]


@dataclass(frozen=True)
class RegistrySnapshot:
    """Par consistente (versión, registros ordenados por id)."""

    version: int
    records: tuple[BenchRecord, ...]


class BenchRegistry:
    """Dueño exclusivo de los BenchRecord.

    Uso:
        registry = BenchRegistry()
        change = registry.apply_event(update)
        registry.get(change.bench_id)
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[int, BenchRecord] = {}
        self._ports: dict[str, int] = {}
        # id -> puerto de bancos desconectados (un id no cambia de puerto)
        self._retired: dict[int, str] = {}
        self._snapshot = RegistrySnapshot(version=0, records=())
        self._listeners: list[InvalidationListener] = []

    # ------------------------------------------------------------------
    # Lecturas (sin lock: el snapshot es inmutable)
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get(self, bench_id: int) -> Optional[BenchRecord]:
        return self._records.get(bench_id)

    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def snapshot_all(self) -> tuple[BenchRecord, ...]:
        return self._snapshot.records

    def __len__(self) -> int:
        return len(self._snapshot.records)

    def __contains__(self, bench_id: object) -> bool:
        return bench_id in self._records

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Registra un callback invocado tras cada commit que cambia algo."""
        with self._lock:
            self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Mutaciones
    # ------------------------------------------------------------------

    def apply_event(self, update: BenchUpdate) -> AppliedChange:
        """Crea o actualiza el banco referenciado por el evento.

        Raises:
            MalformedEvent: conflicto de identidad (puerto) para el id.
            InvalidTransition: cambio de state/status no permitido; el
                registro queda intacto.
        """
        with self._lock:
            previous = self._records.get(update.bench_id)
            if previous is None:
                self._check_new_identity(update)
                base = BenchRecord(id=update.bench_id, port=update.port)
            else:
                if previous.port != update.port:
                    raise MalformedEvent(
                        f"Bench {update.bench_id} is bound to port '{previous.port}', "
                        f"got '{update.port}'",
                        bench_id=update.bench_id,
                    )
                base = previous

            record = self._transition(base, update)

            changed = record.diff(base)
            if previous is not None and not changed:
                return AppliedChange(
                    bench_id=update.bench_id,
                    current=previous,
                    previous=previous,
                    version=self.version,
                )

            self._commit(record, previous)
            version = self.version
            self._notify_listeners(changed.intersection(READING_FIELDS), version)

        if previous is None:
            logger.info(
                "[REGISTRY] Bench %d registered on port %s", record.id, record.port
            )
        return AppliedChange(
            bench_id=record.id,
            current=record,
            previous=previous,
            created=previous is None,
            changed_fields=frozenset(changed),
            version=version,
        )

    def remove(self, bench_id: int) -> AppliedChange:
        """Elimina un banco desconectado.

        Raises:
            UnknownBench: si el id no existe.
        """
        with self._lock:
            previous = self._records.get(bench_id)
            if previous is None:
                raise UnknownBench(f"Bench {bench_id} is not registered", bench_id=bench_id)

            del self._records[bench_id]
            self._ports.pop(previous.port, None)
            self._retired[bench_id] = previous.port
            self._rebuild_snapshot()
            version = self.version
            self._notify_listeners(READING_FIELDS, version)

        logger.info("[REGISTRY] Bench %d disconnected from port %s", bench_id, previous.port)
        return AppliedChange(
            bench_id=bench_id,
            current=None,
            previous=previous,
            removed=True,
            version=version,
        )

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _check_new_identity(self, update: BenchUpdate) -> None:
        owner = self._ports.get(update.port)
        if owner is not None:
            raise MalformedEvent(
                f"Port '{update.port}' is already bound to bench {owner}",
                bench_id=update.bench_id,
            )
        retired_port = self._retired.get(update.bench_id)
        if retired_port is not None and retired_port != update.port:
            raise MalformedEvent(
                f"Bench id {update.bench_id} was used by port '{retired_port}'",
                bench_id=update.bench_id,
            )

    def _transition(self, record: BenchRecord, update: BenchUpdate) -> BenchRecord:
        """Calcula el nuevo registro sin tocar el almacenamiento."""
        state = record.state
        status = record.status
        start_date = record.start_date
        end_date = record.end_date

        if update.state is not None and update.state != state:
            if not is_valid_transition(state, update.state):
                raise InvalidTransition(
                    f"Bench {record.id}: {state.value} → {update.state.value} "
                    "must pass through STANDBY",
                    bench_id=record.id,
                )
            if starts_run(state, update.state):
                status = CompletionStatus.IN_PROGRESS
                start_date = update.timestamp
                end_date = None
            state = update.state

        if update.status is not None and update.status != status:
            if not is_valid_status_transition(status, update.status):
                current = status.value if status else "no run"
                raise InvalidTransition(
                    f"Bench {record.id}: status {current} → {update.status.value} not allowed",
                    bench_id=record.id,
                )
            # Una corrida concluye solo cuando el banco vuelve a STANDBY
            if state != BenchState.STANDBY:
                raise InvalidTransition(
                    f"Bench {record.id}: status {update.status.value} requires STANDBY "
                    f"(state is {state.value})",
                    bench_id=record.id,
                )
            if start_date is not None and update.timestamp < start_date:
                raise InvalidTransition(
                    f"Bench {record.id}: run cannot end before it started",
                    bench_id=record.id,
                )
            status = update.status
            end_date = update.timestamp

        return replace(
            record,
            state=state,
            status=status,
            start_date=start_date,
            end_date=end_date,
            **update.readings(),
        )

    def _commit(self, record: BenchRecord, previous: Optional[BenchRecord]) -> None:
        if previous is None and record.id in self._records:
            raise RegistryInvariantError(f"Duplicate bench id {record.id}")
        _check_invariants(record)

        self._records[record.id] = record
        self._ports[record.port] = record.id
        self._retired.pop(record.id, None)
        self._rebuild_snapshot()

    def _rebuild_snapshot(self) -> None:
        records = tuple(self._records[key] for key in sorted(self._records))
        self._snapshot = RegistrySnapshot(
            version=self._snapshot.version + 1,
            records=records,
        )

    def _notify_listeners(self, fields: Iterable[str], version: int) -> None:
        affected = frozenset(fields)
        for listener in list(self._listeners):
            listener(affected, version)


def _check_invariants(record: BenchRecord) -> None:
    if record.start_date is not None and record.end_date is not None:
        if record.end_date < record.start_date:
            raise RegistryInvariantError(f"Bench {record.id}: end_date before start_date")

    if record.start_date is None:
        if record.status is not None or record.end_date is not None:
            raise RegistryInvariantError(f"Bench {record.id}: run fields set without start_date")
        return

    in_progress = record.status == CompletionStatus.IN_PROGRESS
    if in_progress != (record.end_date is None):
        raise RegistryInvariantError(
            f"Bench {record.id}: status {record.status} inconsistent with end_date"
        )
