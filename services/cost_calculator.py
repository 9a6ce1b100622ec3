"""Cost Calculator for DrawQuote.

Deterministic material, labor and overhead arithmetic over validated
drawing specs. Generic manufacturing cost tables (Phase 1); client-specific
tables can be injected at construction.
"""

import math
from typing import Dict, List, Mapping, Optional

import structlog

from config.errors import CostCalculationError
from models.drawing import DrawingSpecs, normalize_name
from models.quote import (
    CostBreakdown,
    LaborLineItem,
    MaterialLineItem,
    OverheadLineItem,
)

logger = structlog.get_logger()


# =============================================================================
# DEFAULT COST TABLES
# =============================================================================

# $ per kg
MATERIAL_COSTS: Dict[str, float] = {
    "aluminum": 3.5,
    "steel": 1.2,
    "stainless_steel": 5.0,
    "copper": 8.5,
    "plastic": 0.8,
    "titanium": 15.0,
    "brass": 6.0,
}
DEFAULT_MATERIAL_UNIT_COST = 5.0

# $ per hour
LABOR_RATES: Dict[str, float] = {
    "cnc": 50.0,
    "welding": 45.0,
    "casting": 35.0,
    "milling": 48.0,
    "turning": 40.0,
    "assembly": 30.0,
    "3d_printing": 60.0,
}
DEFAULT_LABOR_RATE = 45.0

# Complexity rating -> labor hours
COMPLEXITY_HOURS: Dict[int, float] = {
    1: 0.5,   # very simple, 30 min minimum
    2: 0.75,
    3: 1.0,
    4: 1.25,
    5: 1.5,
    6: 2.0,
    7: 2.5,
    8: 3.5,
    9: 4.5,
    10: 6.0,  # very complex
}
DEFAULT_LABOR_HOURS = 2.0

OVERHEAD_PERCENTAGE = 30.0


class CostCalculator:
    """Computes a CostBreakdown from DrawingSpecs.

    The calculator holds its own copies of the lookup tables and has no other
    state, so the same specs always produce an identical breakdown.
    """

    def __init__(
        self,
        material_costs: Optional[Mapping[str, float]] = None,
        labor_rates: Optional[Mapping[str, float]] = None,
        complexity_hours: Optional[Mapping[int, float]] = None,
        default_unit_cost: float = DEFAULT_MATERIAL_UNIT_COST,
        default_labor_rate: float = DEFAULT_LABOR_RATE,
        default_hours: float = DEFAULT_LABOR_HOURS,
        overhead_percentage: float = OVERHEAD_PERCENTAGE,
    ):
        """Initialize CostCalculator.

        Args:
            material_costs: Normalized material name -> $ per unit.
            labor_rates: Normalized process name -> $ per hour.
            complexity_hours: Complexity rating -> labor hours.
            default_unit_cost: Unit cost for unknown materials.
            default_labor_rate: Hourly rate for unknown processes or none.
            default_hours: Hours when complexity is missing or unmapped.
            overhead_percentage: Overhead as percent of direct costs.
        """
        self.material_costs = dict(MATERIAL_COSTS if material_costs is None else material_costs)
        self.labor_rates = dict(LABOR_RATES if labor_rates is None else labor_rates)
        self.complexity_hours = dict(COMPLEXITY_HOURS if complexity_hours is None else complexity_hours)
        self.default_unit_cost = default_unit_cost
        self.default_labor_rate = default_labor_rate
        self.default_hours = default_hours
        self.overhead_percentage = overhead_percentage

    def material_unit_cost(self, material: str) -> float:
        return self.material_costs.get(normalize_name(material), self.default_unit_cost)

    def labor_hours(self, complexity: Optional[int]) -> float:
        if complexity is None:
            return self.default_hours
        return self.complexity_hours.get(complexity, self.default_hours)

    def hourly_rate(self, processes: List[str]) -> float:
        """Arithmetic mean of the per-process hourly rates."""
        rates = [
            self.labor_rates.get(normalize_name(process), self.default_labor_rate)
            for process in processes
        ]
        if not rates:
            return self.default_labor_rate
        return sum(rates) / len(rates)

    def compute_cost(self, specs: DrawingSpecs) -> CostBreakdown:
        """Calculate manufacturing cost from validated specs.

        Args:
            specs: Validated drawing specifications.

        Returns:
            CostBreakdown with material, labor, overhead and base cost.

        Raises:
            CostCalculationError: If material quantity is absent or not finite.
        """
        quantity = specs.material_quantity
        if quantity is None or not math.isfinite(quantity):
            raise CostCalculationError(
                message="Material quantity is required to compute cost",
                details={"material": specs.material, "material_quantity": quantity}
            )

        unit_cost = self.material_unit_cost(specs.material)
        material_total = quantity * unit_cost

        hours = self.labor_hours(specs.complexity)
        rate = self.hourly_rate(specs.manufacturing_process)
        labor_total = hours * rate

        direct_costs = material_total + labor_total
        overhead_total = direct_costs * (self.overhead_percentage / 100)

        base_cost = material_total + labor_total + overhead_total

        return CostBreakdown(
            material=MaterialLineItem(
                description=specs.material,
                quantity=quantity,
                unit_cost=unit_cost,
                total_cost=material_total,
            ),
            labor=LaborLineItem(
                hours=hours,
                hourly_rate=rate,
                total_cost=labor_total,
            ),
            overhead=OverheadLineItem(
                percentage=self.overhead_percentage,
                total_cost=overhead_total,
            ),
            base_cost=base_cost,
        )

    def compute_costs_batch(self, specs_list: List[DrawingSpecs]) -> List[CostBreakdown]:
        """Compute one breakdown per spec, zero-filled for any that fail."""
        results: List[CostBreakdown] = []
        for index, specs in enumerate(specs_list):
            try:
                results.append(self.compute_cost(specs))
            except CostCalculationError as e:
                logger.warning("batch_cost_calculation_failed", index=index, error=e.message)
                results.append(CostBreakdown.zero())
        return results
