"""Series agregadas por familia de métrica."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from ..core.aggregates import MetricFamily
from ..schemas import AggregateOut, AggregatePointOut, AggregatesOut
from ..service import get_service

router = APIRouter(tags=["aggregates"])


@router.get("/aggregates", response_model=AggregatesOut)
def list_aggregates():
    service = get_service()
    version = service.registry.version
    families = {}
    for family in MetricFamily:
        families[family.value] = [
            AggregatePointOut(bench_id=p.bench_id, value=p.value)
            for p in service.get_aggregate(family)
        ]
    return AggregatesOut(version=version, families=families)


@router.get("/aggregates/{family}", response_model=AggregateOut)
def get_aggregate(family: str):
    """Serie (bench_id, value) ordenada por bench_id.

    Acepta plurales y guiones: `voltages`, `battery-temperature`.
    """
    try:
        metric_family = MetricFamily.parse(family)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown metric family '{family}'")
    return AggregateOut.from_points(metric_family.value, get_service().get_aggregate(metric_family))
