"""Line item reallocation optimizer: pure components."""

from cockpit.services.optimization.allocation import AllocationScorer
from cockpit.services.optimization.base import (
    KpiKind,
    LineItem,
    MarginGoal,
    OptimizationParameters,
    PerformanceSignal,
    ScoredLineItem,
    kpi_kind_for,
)
from cockpit.services.optimization.cpm import (
    CeilingAwareCpmAdjuster,
    RevenueCpmAdjuster,
    SimpleCpmAdjuster,
    build_cpm_adjuster,
)
from cockpit.services.optimization.margin import MarginAdjuster
from cockpit.services.optimization.performance import score_performance
from cockpit.services.optimization.reallocation import BudgetReallocator

__all__ = [
    "AllocationScorer",
    "BudgetReallocator",
    "CeilingAwareCpmAdjuster",
    "KpiKind",
    "LineItem",
    "MarginAdjuster",
    "MarginGoal",
    "OptimizationParameters",
    "PerformanceSignal",
    "RevenueCpmAdjuster",
    "ScoredLineItem",
    "SimpleCpmAdjuster",
    "build_cpm_adjuster",
    "kpi_kind_for",
    "score_performance",
]
