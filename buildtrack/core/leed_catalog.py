"""
LEED v4.1 credit catalog.

Each subcategory (credit or prerequisite) carries the maximum points it can
earn. Tasks reference a subcategory by id (``"EAc2"``) and take their
``leed_points_possible`` from here. The built-in catalog is LEED v4.1
Building Design and Construction: New Construction; ``parse_subcategories_csv``
loads any other rating system exported in the same column layout.

Usage:
    from buildtrack.core.leed_catalog import DEFAULT_LEED_CATALOG

    DEFAULT_LEED_CATALOG.get("EAc2").max_score   # 18
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

BD_C_NEW_CONSTRUCTION = "Building Design and Construction: New Construction"
LEED_VERSION = "v4.1"

CATEGORY_NAMES: Mapping[str, str] = MappingProxyType({
    "IP": "Integrative Process",
    "LT": "Location and Transportation",
    "SS": "Sustainable Sites",
    "WE": "Water Efficiency",
    "EA": "Energy and Atmosphere",
    "MR": "Materials and Resources",
    "IEQ": "Indoor Environmental Quality",
    "I": "Innovation",
    "RP": "Regional Priority",
    # Cities & Communities categories
    "NSE": "Natural Systems & Ecology",
    "TL": "Transportation & Land Use",
    "EGGE": "Energy and Greenhouse Gas Emissions",
    "QL": "Quality of Life",
})

# Lifecycle phase in which work for a category is normally done
CATEGORY_PHASES: Mapping[str, str] = MappingProxyType({
    "IP": "design",
    "LT": "pre_construction",
    "SS": "pre_construction",
    "WE": "execution",
    "EA": "execution",
    "MR": "execution",
    "EGGE": "execution",
    "IEQ": "handover",
    "QL": "handover",
    "I": "operations_maintenance",
    "RP": "operations_maintenance",
    "NSE": "operations_maintenance",
    "TL": "operations_maintenance",
})

_CATEGORY_PREFIX = re.compile(r"^[A-Z]+")
_PREREQUISITE_ID = re.compile(r"^[A-Z]+p\d")


class LEEDCatalogError(ValueError):
    """A subcategory export could not be parsed."""


def category_from_subcategory(subcategory_id: str) -> str:
    """``"IEQc4"`` -> ``"IEQ"``; ``"Unknown"`` when there is no category prefix."""
    match = _CATEGORY_PREFIX.match(subcategory_id or "")
    return match.group(0) if match else "Unknown"


def category_name(category_id: str) -> str:
    return CATEGORY_NAMES.get(category_id, category_id)


@dataclass(frozen=True)
class LEEDSubcategory:
    id: str
    name: str
    max_score: int
    category_id: str
    category: str
    certification: str = BD_C_NEW_CONSTRUCTION
    version: str = LEED_VERSION

    @property
    def is_prerequisite(self) -> bool:
        """Prerequisites (``SSp1``) are mandatory and earn no points."""
        return bool(_PREREQUISITE_ID.match(self.id))

    @property
    def phase(self) -> str:
        return CATEGORY_PHASES.get(self.category_id, "execution")

    @property
    def priority(self) -> str:
        if self.is_prerequisite or self.max_score >= 5:
            return "high"
        if self.max_score <= 1:
            return "low"
        return "medium"

    @property
    def task_title(self) -> str:
        return f"{self.id}: {self.name}"

    @property
    def task_description(self) -> str:
        prerequisite = " (Prerequisite)" if self.is_prerequisite else ""
        points = "point" if self.max_score == 1 else "points"
        return (
            f"LEED {self.version} {self.category} - {self.name}{prerequisite} "
            f"- Maximum {self.max_score} {points}"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "max_score": self.max_score,
            "category_id": self.category_id,
            "category": self.category,
            "certification": self.certification,
            "version": self.version,
            "is_prerequisite": self.is_prerequisite,
            "phase": self.phase,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class LEEDCatalog:
    """Immutable lookup of subcategories by id."""

    subcategories: Mapping[str, LEEDSubcategory]

    @classmethod
    def from_subcategories(cls, subcategories: Iterable[LEEDSubcategory]) -> "LEEDCatalog":
        return cls(MappingProxyType({s.id: s for s in subcategories}))

    def get(self, subcategory_id: str | None) -> LEEDSubcategory | None:
        if not subcategory_id:
            return None
        return self.subcategories.get(subcategory_id)

    def contains(self, subcategory_id: str | None) -> bool:
        return self.get(subcategory_id) is not None

    def by_category(self, category_id: str) -> list[LEEDSubcategory]:
        return [s for s in self.subcategories.values() if s.category_id == category_id]

    def __len__(self) -> int:
        return len(self.subcategories)


def _bdc(subcategory_id: str, name: str, max_score: int) -> LEEDSubcategory:
    category_id = category_from_subcategory(subcategory_id)
    return LEEDSubcategory(
        id=subcategory_id,
        name=name,
        max_score=max_score,
        category_id=category_id,
        category=category_name(category_id),
    )


_BD_C_V41 = (
    _bdc("IPc1", "Integrative Process", 1),
    _bdc("LTc1", "Sensitive Land Protection", 1),
    _bdc("LTc2", "High-Priority Site and Equitable Development", 2),
    _bdc("LTc3", "Surrounding Density and Diverse Uses", 5),
    _bdc("LTc4", "Access to Quality Transit", 5),
    _bdc("LTc5", "Bicycle Facilities", 1),
    _bdc("LTc6", "Reduced Parking Footprint", 1),
    _bdc("LTc7", "Electric Vehicles", 1),
    _bdc("SSp1", "Construction Activity Pollution Prevention", 0),
    _bdc("SSc1", "Site Assessment", 1),
    _bdc("SSc2", "Protect or Restore Habitat", 2),
    _bdc("SSc3", "Open Space", 1),
    _bdc("SSc4", "Rainwater Management", 3),
    _bdc("SSc5", "Heat Island Reduction", 2),
    _bdc("SSc6", "Light Pollution Reduction", 1),
    _bdc("WEp1", "Outdoor Water Use Reduction", 0),
    _bdc("WEp2", "Indoor Water Use Reduction", 0),
    _bdc("WEp3", "Building-Level Water Metering", 0),
    _bdc("WEc1", "Outdoor Water Use Reduction", 2),
    _bdc("WEc3", "Indoor Water Use Reduction", 6),
    _bdc("WEc4", "Optimize Process Water Use", 2),
    _bdc("WEc5", "Water Metering", 1),
    _bdc("EAp1", "Fundamental Commissioning and Verification", 0),
    _bdc("EAp2", "Minimum Energy Performance", 0),
    _bdc("EAp3", "Building-Level Energy Metering", 0),
    _bdc("EAp4", "Fundamental Refrigerant Management", 0),
    _bdc("EAc1", "Enhanced Commissioning", 6),
    _bdc("EAc2", "Optimize Energy Performance", 18),
    _bdc("EAc3", "Advanced Energy Metering", 1),
    _bdc("EAc4", "Grid Harmonization", 2),
    _bdc("EAc5", "Renewable Energy", 5),
    _bdc("EAc6", "Enhanced Refrigerant Management", 1),
    _bdc("MRp1", "Storage and Collection of Recyclables", 0),
    _bdc("MRc1", "Building Life-Cycle Impact Reduction", 5),
    _bdc("MRc2", "Environmental Product Declarations", 2),
    _bdc("MRc3", "Sourcing of Raw Materials", 2),
    _bdc("MRc4", "Material Ingredients", 2),
    _bdc("MRc5", "Construction and Demolition Waste Management", 2),
    _bdc("IEQp1", "Minimum Indoor Air Quality Performance", 0),
    _bdc("IEQp2", "Environmental Tobacco Smoke Control", 0),
    _bdc("IEQc1", "Enhanced Indoor Air Quality Strategies", 2),
    _bdc("IEQc2", "Low-Emitting Materials", 3),
    _bdc("IEQc3", "Construction Indoor Air Quality Management Plan", 1),
    _bdc("IEQc4", "Indoor Air Quality Assessment", 2),
    _bdc("IEQc5", "Thermal Comfort", 1),
    _bdc("IEQc6", "Interior Lighting", 2),
    _bdc("IEQc7", "Daylight", 3),
    _bdc("IEQc8", "Quality Views", 1),
    _bdc("IEQc9", "Acoustic Performance", 1),
    _bdc("Ic1", "Innovation", 5),
    _bdc("Ic2", "LEED Accredited Professional", 1),
    _bdc("RPc1", "Regional Priority", 4),
)

DEFAULT_LEED_CATALOG = LEEDCatalog.from_subcategories(_BD_C_V41)


# ── CSV import ───────────────────────────────────────────────────────────────


def parse_subcategories_csv(file_content: str | bytes) -> LEEDCatalog:
    """Build a catalog from a subcategory export.

    Headers are matched case-insensitively; a blank or non-numeric
    ``max score`` counts as 0.

    Raises:
        LEEDCatalogError: the ``subcategory id`` column is missing.
    """
    if isinstance(file_content, bytes):
        file_content = file_content.decode("utf-8-sig")

    reader = csv.DictReader(io.StringIO(file_content))
    fieldnames = [f.strip().lower() for f in reader.fieldnames or []]
    if "subcategory id" not in fieldnames:
        raise LEEDCatalogError(
            "CSV must have a 'subcategory id' column. "
            f"Found columns: {', '.join(reader.fieldnames or [])}"
        )

    subcategories = []
    for row in reader:
        row = {(k or "").strip().lower(): (v or "").strip() for k, v in row.items()}
        subcategory_id = row.get("subcategory id", "")
        if not subcategory_id:
            continue
        try:
            max_score = int(row.get("max score") or 0)
        except ValueError:
            max_score = 0
        category_id = row.get("category id") or category_from_subcategory(subcategory_id)
        subcategories.append(LEEDSubcategory(
            id=subcategory_id,
            name=row.get("subcategory") or subcategory_id,
            max_score=max_score,
            category_id=category_id,
            category=row.get("category") or category_name(category_id),
            certification=row.get("certification") or BD_C_NEW_CONSTRUCTION,
            version=row.get("version") or LEED_VERSION,
        ))
    return LEEDCatalog.from_subcategories(subcategories)
