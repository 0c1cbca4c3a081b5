"""Phase catalog: order, weights and startup validation."""

import pytest

from buildtrack.core.phase_catalog import (
    DEFAULT_CATALOG,
    CatalogError,
    PhaseCatalog,
    ProjectPhase,
)


def test_default_order_matches_lifecycle():
    assert DEFAULT_CATALOG.phase_order() == (
        "concept",
        "design",
        "pre_construction",
        "execution",
        "handover",
        "operations_maintenance",
        "renovation_demolition",
    )
    assert DEFAULT_CATALOG.phase_order() == tuple(p.value for p in ProjectPhase)


def test_default_weights():
    assert DEFAULT_CATALOG.phase_weight("concept") == 10
    assert DEFAULT_CATALOG.phase_weight("design") == 20
    assert DEFAULT_CATALOG.phase_weight("pre_construction") == 15
    assert DEFAULT_CATALOG.phase_weight("execution") == 45
    assert DEFAULT_CATALOG.phase_weight("handover") == 10
    assert DEFAULT_CATALOG.phase_weight("operations_maintenance") == 0
    assert DEFAULT_CATALOG.phase_weight("renovation_demolition") == 0


def test_unknown_phase_weighs_nothing():
    assert DEFAULT_CATALOG.phase_weight("landscaping") == 0
    assert DEFAULT_CATALOG.phase_weight(None) == 0
    assert DEFAULT_CATALOG.index_of("landscaping") == -1
    assert not DEFAULT_CATALOG.contains("landscaping")


def test_navigation():
    assert DEFAULT_CATALOG.first_phase() == "concept"
    assert DEFAULT_CATALOG.next_phase("concept") == "design"
    assert DEFAULT_CATALOG.next_phase("handover") == "operations_maintenance"
    assert DEFAULT_CATALOG.next_phase("renovation_demolition") is None
    assert DEFAULT_CATALOG.next_phase("landscaping") is None


def test_weight_before_and_active_phases():
    assert DEFAULT_CATALOG.weight_before("concept") == 0
    assert DEFAULT_CATALOG.weight_before("execution") == 45
    assert DEFAULT_CATALOG.weight_before("operations_maintenance") == 100
    assert DEFAULT_CATALOG.active_phases() == (
        "concept", "design", "pre_construction", "execution", "handover",
    )
    assert DEFAULT_CATALOG.final_active_phase() == "handover"


def test_catalog_is_immutable():
    with pytest.raises(TypeError):
        DEFAULT_CATALOG.weights["concept"] = 50
    with pytest.raises(AttributeError):
        DEFAULT_CATALOG.order = ("concept",)


def test_from_weights_rejects_bad_sum():
    with pytest.raises(CatalogError, match="sum to 100"):
        PhaseCatalog.from_weights({"a": 40, "b": 40})


def test_from_weights_non_strict_allows_any_sum():
    catalog = PhaseCatalog.from_weights({"a": 40, "b": 40}, strict=False)
    assert catalog.weight_before("b") == 40


@pytest.mark.parametrize(
    "weights",
    [
        {},
        {"a": 120},
        {"a": -10, "b": 110},
        {"a": "50", "b": 50},
    ],
)
def test_from_weights_rejects_invalid(weights):
    with pytest.raises(CatalogError):
        PhaseCatalog.from_weights(weights)


def test_to_dict():
    data = PhaseCatalog.from_weights({"plan": 30, "build": 70}).to_dict()
    assert data == {"phase_order": ["plan", "build"], "phase_weights": {"plan": 30, "build": 70}}
