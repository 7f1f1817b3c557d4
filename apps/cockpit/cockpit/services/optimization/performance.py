"""Performance scoring: observed KPI vs. target as a dimensionless signal."""

from __future__ import annotations

from cockpit.services.optimization.base import KpiKind, LineItem, PerformanceSignal


def score_performance(
    item: LineItem,
    *,
    target_kpi: float,
    kpi_kind: KpiKind,
) -> PerformanceSignal:
    """Return the performance signal for *item*.

    Cost-type KPIs (CPC, CPA, ...) are inverted so that a line spending less
    than the target per KPI unit scores above 1. A cost KPI of exactly zero
    means nothing was observed and yields ``PerformanceSignal.missing()``.
    Quality-type KPIs (CTR, VTR, ...) are a straight ratio and a zero is a
    legitimate, poor measurement.
    """
    if kpi_kind is KpiKind.COST:
        if item.kpi_actual == 0:
            return PerformanceSignal.missing()
        return PerformanceSignal.measured(target_kpi / item.kpi_actual)
    return PerformanceSignal.measured(item.kpi_actual / target_kpi)
