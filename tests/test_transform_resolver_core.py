from __future__ import annotations

import math
from typing import Any

import pytest

from map_quiz.geometry import Affine, BoundingBox
from map_quiz.map_asset import parse_map_document
from map_quiz.registry import Entity, EntityRegistry, RegionTag
from map_quiz.transform_resolver import TransformResolver

ENTITIES = (
    Entity("nested", "Nested", RegionTag.CARIBBEAN),
    Entity("turned", "Turned", RegionTag.CARIBBEAN),
    Entity("hidden", "Hidden", RegionTag.CARIBBEAN),
    Entity("flat", "Flat", RegionTag.CARIBBEAN),
)


def _doc(viewport: tuple[float, float, float, float] = (0.0, 0.0, 200.0, 200.0)) -> Any:
    data = {
        "viewBox": [0, 0, 100, 100],
        "children": [
            {
                "type": "group",
                "transform": "translate(10 20) scale(2)",
                "children": [
                    {
                        "type": "group",
                        "transform": "translate(5 5) scale(0.5)",
                        "children": [
                            {"type": "shape", "id": "nested", "points": [[0, 0], [4, 0], [4, 2], [0, 2]]},
                        ],
                    },
                ],
            },
            {
                "type": "group",
                "transform": "translate(50 50)",
                "children": [
                    {"type": "shape", "id": "turned", "transform": "rotate(90)", "points": [[0, 0], [4, 0], [4, 2], [0, 2]]},
                ],
            },
            {"type": "shape", "id": "hidden", "hidden": True, "points": [[0, 0], [1, 0], [1, 1]]},
            {"type": "shape", "id": "flat", "transform": "scale(0 1)", "points": [[0, 0], [1, 0], [1, 1]]},
        ],
    }
    return parse_map_document(data, viewport=viewport)


def _resolver(doc: Any) -> TransformResolver:
    return TransformResolver(root=doc, shapes=EntityRegistry.build(ENTITIES, doc))


def _box_tuple(box: Any) -> tuple[float, float, float, float]:
    return (box.x, box.y, box.width, box.height)


def test_two_levels_of_scale_and_translate_resolve_to_root_space() -> None:
    box = _resolver(_doc()).resolve_bounding_box("nested")
    assert box is not None
    # (x, y) -> (5 + x/2, 5 + y/2) -> (10 + 2*qx, 20 + 2*qy)
    assert _box_tuple(box) == pytest.approx((20.0, 30.0, 4.0, 2.0))


@pytest.mark.parametrize(
    "viewport",
    [
        (0.0, 0.0, 200.0, 200.0),
        (13.0, 57.0, 640.0, 180.0),
        (0.0, 0.0, 37.0, 911.0),
    ],
)
def test_root_space_box_is_independent_of_device_viewport(viewport: tuple[float, float, float, float]) -> None:
    box = _resolver(_doc(viewport)).resolve_bounding_box("nested")
    assert box is not None
    assert _box_tuple(box) == pytest.approx((20.0, 30.0, 4.0, 2.0))


def test_root_space_box_survives_zoomed_view_box() -> None:
    doc = _doc()
    resolver = _resolver(doc)
    before = resolver.resolve_bounding_box("nested")
    doc.view_box = BoundingBox(15, 25, 20, 10)
    after = resolver.resolve_bounding_box("nested")
    assert before is not None and after is not None
    assert _box_tuple(after) == pytest.approx(_box_tuple(before))


def test_rotation_is_resolved_from_all_corners() -> None:
    box = _resolver(_doc()).resolve_bounding_box("turned")
    assert box is not None
    # rotate(90): (x, y) -> (-y, x), then translate(50, 50)
    assert _box_tuple(box) == pytest.approx((48.0, 50.0, 2.0, 4.0))


def test_unrendered_or_degenerate_shapes_resolve_to_none() -> None:
    resolver = _resolver(_doc())
    assert resolver.resolve_bounding_box("hidden") is None
    assert resolver.resolve_bounding_box("flat") is None
    assert resolver.resolve_bounding_box("not-on-map") is None


def test_zero_sized_viewport_resolves_to_none() -> None:
    resolver = _resolver(_doc((0.0, 0.0, 0.0, 0.0)))
    assert resolver.resolve_bounding_box("nested") is None


def test_non_finite_transform_resolves_to_none() -> None:
    doc = _doc()
    registry = EntityRegistry.build(ENTITIES, doc)
    shape = registry.shape_for("nested")
    assert shape is not None
    shape.transform = Affine(a=math.inf)
    assert TransformResolver(root=doc, shapes=registry).resolve_bounding_box("nested") is None
