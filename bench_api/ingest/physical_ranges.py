"""Utilidades para manejo de rangos físicos de las lecturas del banco."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Optional

from ..core.errors import OutOfRange

ABSOLUTE_ZERO_C = -273.15


@dataclass(frozen=True)
class PhysicalRange:
    """Rango físico de una lectura (hard limits)."""

    min_value: Optional[float]
    max_value: Optional[float]

    def violates(self, value: float) -> bool:
        """Verifica si un valor viola el rango físico."""
        if self.min_value is not None and value < self.min_value:
            return True
        if self.max_value is not None and value > self.max_value:
            return True
        return False

    def describe(self) -> str:
        low = "-inf" if self.min_value is None else f"{self.min_value:g}"
        high = "+inf" if self.max_value is None else f"{self.max_value:g}"
        return f"[{low}, {high}]"


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class PlausibilityLimits:
    """Límites de plausibilidad por campo (°C, V, A)."""

    # Tolerancia pequeña para el ruido del ADC con la batería desconectada
    voltage: PhysicalRange = field(default_factory=lambda: PhysicalRange(-0.5, 100.0))
    current: PhysicalRange = field(default_factory=lambda: PhysicalRange(-200.0, 200.0))
    temperature: PhysicalRange = field(default_factory=lambda: PhysicalRange(ABSOLUTE_ZERO_C, 200.0))

    @classmethod
    def from_env(cls) -> "PlausibilityLimits":
        temperature = PhysicalRange(
            _env_float("BENCH_TEMPERATURE_MIN", ABSOLUTE_ZERO_C),
            _env_float("BENCH_TEMPERATURE_MAX", 200.0),
        )
        # Nada por debajo del cero absoluto, aunque se configure así
        if temperature.min_value is None or temperature.min_value < ABSOLUTE_ZERO_C:
            temperature = PhysicalRange(ABSOLUTE_ZERO_C, temperature.max_value)

        return cls(
            voltage=PhysicalRange(
                _env_float("BENCH_VOLTAGE_MIN", -0.5),
                _env_float("BENCH_VOLTAGE_MAX", 100.0),
            ),
            current=PhysicalRange(
                _env_float("BENCH_CURRENT_MIN", -200.0),
                _env_float("BENCH_CURRENT_MAX", 200.0),
            ),
            temperature=temperature,
        )

    def range_for(self, field_name: str) -> PhysicalRange:
        if field_name == "voltage":
            return self.voltage
        if field_name == "current":
            return self.current
        return self.temperature

    def check(self, field_name: str, value: float, bench_id: Optional[int] = None) -> None:
        """Valida una lectura.

        Raises:
            OutOfRange: NaN, infinito o fuera del rango físico del campo.
        """
        if math.isnan(value):
            raise OutOfRange(f"{field_name} is NaN", bench_id=bench_id, field=field_name, value=value)
        if math.isinf(value):
            raise OutOfRange(
                f"{field_name} is infinite", bench_id=bench_id, field=field_name, value=value
            )

        physical = self.range_for(field_name)
        if physical.violates(value):
            raise OutOfRange(
                f"{field_name}={value:g} outside physical range {physical.describe()}",
                bench_id=bench_id,
                field=field_name,
                value=value,
            )
