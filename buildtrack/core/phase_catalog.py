"""
Project lifecycle phase catalog.

Single source of truth for phase order and the share of total project
completion each phase contributes. The catalog is an immutable value:
``create_app`` builds one from ``PHASE_WEIGHTS`` config, validates it, and
hands it to the progress service. Tests build their own with
``PhaseCatalog.from_weights``.

Usage:
    from buildtrack.core.phase_catalog import DEFAULT_CATALOG

    DEFAULT_CATALOG.phase_order()            # ("concept", "design", ...)
    DEFAULT_CATALOG.phase_weight("execution")  # 45
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ProjectPhase(str, Enum):
    """Lifecycle phases, in lifecycle order."""

    CONCEPT = "concept"
    DESIGN = "design"
    PRE_CONSTRUCTION = "pre_construction"
    EXECUTION = "execution"
    HANDOVER = "handover"
    OPERATIONS_MAINTENANCE = "operations_maintenance"
    RENOVATION_DEMOLITION = "renovation_demolition"


PHASE_VALUES = tuple(p.value for p in ProjectPhase)

# Share of total completion; zero-weight phases are post-completion tracks
DEFAULT_PHASE_WEIGHTS: dict[str, int] = {
    ProjectPhase.CONCEPT.value: 10,
    ProjectPhase.DESIGN.value: 20,
    ProjectPhase.PRE_CONSTRUCTION.value: 15,
    ProjectPhase.EXECUTION.value: 45,
    ProjectPhase.HANDOVER.value: 10,
    ProjectPhase.OPERATIONS_MAINTENANCE.value: 0,
    ProjectPhase.RENOVATION_DEMOLITION.value: 0,
}


class CatalogError(ValueError):
    """Raised when a phase catalog violates its invariants."""


@dataclass(frozen=True)
class PhaseCatalog:
    """Ordered phases with their completion weights."""

    order: tuple[str, ...]
    weights: Mapping[str, int]

    def __post_init__(self):
        # Freeze the mapping so a shared catalog cannot be mutated in place
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    @classmethod
    def from_weights(cls, weights: Mapping[str, int], *, strict: bool = True) -> "PhaseCatalog":
        """Build a catalog from an ordered ``{phase: weight}`` mapping.

        Args:
            weights: Phase identifiers in lifecycle order mapped to weights.
            strict: Require the nonzero weights to sum to exactly 100.

        Raises:
            CatalogError: empty catalog, weight outside 0..100, or a
                strict catalog whose weights do not add up to 100.
        """
        catalog = cls(order=tuple(weights.keys()), weights=dict(weights))
        catalog.validate(strict=strict)
        return catalog

    def validate(self, *, strict: bool = True) -> None:
        if not self.order:
            raise CatalogError("Phase catalog is empty")
        if len(set(self.order)) != len(self.order):
            raise CatalogError("Phase catalog contains duplicate phases")
        for phase in self.order:
            weight = self.weights.get(phase)
            if not isinstance(weight, int) or isinstance(weight, bool):
                raise CatalogError(f"Weight for phase '{phase}' must be an integer")
            if not 0 <= weight <= 100:
                raise CatalogError(f"Weight for phase '{phase}' must be within 0..100, got {weight}")
        total = sum(self.weights[p] for p in self.order)
        if strict and total != 100:
            raise CatalogError(f"Phase weights must sum to 100, got {total}")

    def phase_order(self) -> tuple[str, ...]:
        return self.order

    def phase_weight(self, phase: str | None) -> int:
        """Weight of ``phase``; unknown phases weigh nothing."""
        if phase is None:
            return 0
        return int(self.weights.get(phase, 0))

    def index_of(self, phase: str | None) -> int:
        """Position of ``phase`` in the order, or -1 when it is not catalogued."""
        try:
            return self.order.index(phase)
        except ValueError:
            return -1

    def contains(self, phase: str | None) -> bool:
        return self.index_of(phase) >= 0

    def first_phase(self) -> str:
        return self.order[0]

    def next_phase(self, phase: str) -> str | None:
        """Phase immediately after ``phase``, or None at the end / if unknown."""
        idx = self.index_of(phase)
        if idx < 0 or idx + 1 >= len(self.order):
            return None
        return self.order[idx + 1]

    def weight_before(self, phase: str) -> int:
        """Total weight of every phase strictly before ``phase``."""
        idx = self.index_of(phase)
        if idx < 0:
            return 0
        return sum(self.phase_weight(p) for p in self.order[:idx])

    def active_phases(self) -> tuple[str, ...]:
        """Phases that count toward project completion (weight > 0)."""
        return tuple(p for p in self.order if self.phase_weight(p) > 0)

    def final_active_phase(self) -> str:
        """Last phase with nonzero weight ("handover" in the default catalog)."""
        active = self.active_phases()
        return active[-1] if active else self.order[-1]

    def to_dict(self) -> dict:
        return {
            "phase_order": list(self.order),
            "phase_weights": dict(self.weights),
        }


DEFAULT_CATALOG = PhaseCatalog.from_weights(DEFAULT_PHASE_WEIGHTS)
