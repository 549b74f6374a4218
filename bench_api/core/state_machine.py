"""Máquina de estados del banco.

Toda corrida empieza y termina en STANDBY: no se permite pasar de CHARGE a
DISCHARGE (ni al revés) sin volver primero a STANDBY.
"""

from __future__ import annotations

from typing import Optional

from .models import BenchState, CompletionStatus


# Transiciones válidas de la máquina de estados
VALID_TRANSITIONS = {
    BenchState.STANDBY: {
        BenchState.CHARGE,
        BenchState.DISCHARGE,
    },
    BenchState.CHARGE: {
        BenchState.STANDBY,
    },
    BenchState.DISCHARGE: {
        BenchState.STANDBY,
    },
}

# Un IN_PROGRESS solo concluye hacia SUCCESS o FAIL
VALID_STATUS_TRANSITIONS = {
    CompletionStatus.IN_PROGRESS: {
        CompletionStatus.SUCCESS,
        CompletionStatus.FAIL,
    },
    CompletionStatus.SUCCESS: set(),
    CompletionStatus.FAIL: set(),
}


def is_valid_transition(from_state: BenchState, to_state: BenchState) -> bool:
    """Verifica si una transición de estado es válida."""
    if from_state == to_state:
        return True
    allowed = VALID_TRANSITIONS.get(from_state, set())
    return to_state in allowed


def starts_run(from_state: BenchState, to_state: BenchState) -> bool:
    """True si la transición inicia una corrida (STANDBY → CHARGE/DISCHARGE)."""
    return from_state == BenchState.STANDBY and to_state != BenchState.STANDBY


def is_valid_status_transition(
    from_status: Optional[CompletionStatus],
    to_status: CompletionStatus,
) -> bool:
    """Verifica un cambio de status independiente del cambio de state."""
    if from_status == to_status:
        return True
    if from_status is None:
        return False
    return to_status in VALID_STATUS_TRANSITIONS.get(from_status, set())
