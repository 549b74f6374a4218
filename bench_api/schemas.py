from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .core.aggregates import AggregatePoint
from .core.models import BenchRecord, BenchState, CompletionStatus


class BenchOut(BaseModel):
    id: int
    port: str
    state: BenchState
    status: Optional[CompletionStatus] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    battery_temperature: Optional[float] = None
    electronic_load_temperature: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: BenchRecord) -> "BenchOut":
        return cls(
            id=record.id,
            port=record.port,
            state=record.state,
            status=record.status,
            voltage=record.voltage,
            current=record.current,
            temperature=record.temperature,
            battery_temperature=record.battery_temperature,
            electronic_load_temperature=record.electronic_load_temperature,
            start_date=record.start_date,
            end_date=record.end_date,
        )


class AggregatePointOut(BaseModel):
    bench_id: int
    value: float


class AggregateOut(BaseModel):
    family: str
    points: List[AggregatePointOut] = Field(default_factory=list)

    @classmethod
    def from_points(cls, family: str, points: tuple[AggregatePoint, ...]) -> "AggregateOut":
        return cls(
            family=family,
            points=[AggregatePointOut(bench_id=p.bench_id, value=p.value) for p in points],
        )


class AggregatesOut(BaseModel):
    version: int
    families: Dict[str, List[AggregatePointOut]] = Field(default_factory=dict)


class IngestResultOut(BaseModel):
    accepted: bool
    bench_id: Optional[int] = None
    changed: bool = False
    warnings: List[str] = Field(default_factory=list)


class QueuedOut(BaseModel):
    queued: bool
    queue_depth: int
