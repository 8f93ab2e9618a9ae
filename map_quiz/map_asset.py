"""Load a map document from JSON.

Format::

    {
      "viewBox": [x, y, width, height],
      "children": [
        {"type": "group", "id": "...", "transform": "translate(10 20)", "children": [...]},
        {"type": "shape", "id": "us", "dataId": "us", "points": [[x, y], ...]},
        {"type": "shape", "id": "bs", "polygons": [[[x, y], ...], ...]}
      ]
    }

``transform`` uses SVG transform-list syntax (matrix, translate, scale,
rotate, skewX, skewY). A missing or malformed file is not fatal: the loader
logs a warning and returns an empty document.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pygame.math import Vector2

from .geometry import Affine, BoundingBox
from .scene import GroupNode, MapDocument, SceneNode, ShapeNode

logger = logging.getLogger(__name__)

DEFAULT_VIEW_BOX = BoundingBox(0.0, 0.0, 1000.0, 600.0)

_TRANSFORM_RE = re.compile(r"([A-Za-z]+)\s*\(([^)]*)\)")
_NUMBER_SPLIT_RE = re.compile(r"[\s,]+")


class MapAssetError(ValueError):
    pass


def parse_transform(text: str | None) -> Affine:
    """Parse an SVG transform list; functions compose left to right."""

    if text is None or text.strip() == "":
        return Affine.identity()

    matrix = Affine.identity()
    consumed = 0
    for match in _TRANSFORM_RE.finditer(text):
        if text[consumed : match.start()].strip(" ,\t\n") != "":
            raise MapAssetError(f"unexpected text in transform: {text!r}")
        consumed = match.end()
        name = match.group(1)
        args = _parse_numbers(match.group(2))
        matrix = matrix @ _transform_function(name, args)
    if text[consumed:].strip(" ,\t\n") != "":
        raise MapAssetError(f"unexpected text in transform: {text!r}")
    return matrix


def _parse_numbers(raw: str) -> list[float]:
    raw = raw.strip()
    if raw == "":
        return []
    try:
        return [float(tok) for tok in _NUMBER_SPLIT_RE.split(raw) if tok != ""]
    except ValueError:
        raise MapAssetError(f"bad transform arguments: {raw!r}") from None


def _transform_function(name: str, args: list[float]) -> Affine:
    n = len(args)
    if name == "matrix" and n == 6:
        return Affine(*args)
    if name == "translate" and n in (1, 2):
        return Affine.translate(args[0], args[1] if n == 2 else 0.0)
    if name == "scale" and n in (1, 2):
        return Affine.scale(args[0], args[1] if n == 2 else None)
    if name == "rotate" and n in (1, 3):
        return Affine.rotate(args[0], *(args[1:] if n == 3 else ()))
    if name == "skewX" and n == 1:
        return Affine.skew_x(args[0])
    if name == "skewY" and n == 1:
        return Affine.skew_y(args[0])
    raise MapAssetError(f"unsupported transform {name}({', '.join(str(a) for a in args)})")


def parse_map_document(
    data: Mapping[str, Any],
    *,
    viewport: tuple[float, float, float, float] = (0.0, 0.0, 960.0, 600.0),
) -> MapDocument:
    view_box = _parse_view_box(data.get("viewBox"))
    doc = MapDocument(view_box=view_box, viewport=viewport)
    for child in _as_list(data.get("children", []), "children"):
        doc.add(_parse_node(child))
    return doc


def load_map_document(
    path: Path,
    *,
    viewport: tuple[float, float, float, float] = (0.0, 0.0, 960.0, 600.0),
) -> MapDocument:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise MapAssetError("map document must be a JSON object")
        doc = parse_map_document(data, viewport=viewport)
    except (OSError, json.JSONDecodeError, MapAssetError) as exc:
        logger.warning("could not load map %s: %s", path, exc)
        return MapDocument(view_box=DEFAULT_VIEW_BOX, viewport=viewport)

    logger.info("map loaded from %s (%d shapes)", path, sum(1 for _ in doc.iter_shapes()))
    return doc


def _parse_view_box(raw: object) -> BoundingBox:
    if raw is None:
        return DEFAULT_VIEW_BOX
    if isinstance(raw, str):
        parts: Sequence[object] = _parse_numbers(raw)
    elif isinstance(raw, list):
        parts = raw
    else:
        raise MapAssetError(f"bad viewBox: {raw!r}")
    if len(parts) != 4:
        raise MapAssetError(f"viewBox needs 4 numbers: {raw!r}")
    try:
        x, y, w, h = (float(v) for v in parts)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise MapAssetError(f"bad viewBox: {raw!r}") from None
    box = BoundingBox(x, y, w, h)
    if box.is_degenerate():
        raise MapAssetError(f"viewBox must have positive size: {raw!r}")
    return box


def _parse_node(raw: object) -> SceneNode:
    if not isinstance(raw, dict):
        raise MapAssetError(f"node must be an object: {raw!r}")

    kind = raw.get("type", "shape")
    common: dict[str, Any] = {
        "node_id": _opt_str(raw.get("id")),
        "data_id": _opt_str(raw.get("dataId")),
        "transform": parse_transform(_opt_str(raw.get("transform"))),
        "visible": not bool(raw.get("hidden", False)),
    }

    if kind == "group":
        group = GroupNode(**common)
        for child in _as_list(raw.get("children", []), "children"):
            group.add(_parse_node(child))
        return group

    if kind == "shape":
        if "polygons" in raw:
            polygons = [_parse_polygon(p) for p in _as_list(raw["polygons"], "polygons")]
        else:
            polygons = [_parse_polygon(raw.get("points", []))]
        shape = ShapeNode(**common, primitives=[p for p in polygons if p])
        classes = raw.get("class")
        if isinstance(classes, str):
            shape.add_class(*classes.split())
        return shape

    raise MapAssetError(f"unknown node type {kind!r}")


def _parse_polygon(raw: object) -> tuple[Vector2, ...]:
    points: list[Vector2] = []
    for pt in _as_list(raw, "points"):
        if not isinstance(pt, list) or len(pt) != 2:
            raise MapAssetError(f"point must be [x, y]: {pt!r}")
        try:
            points.append(Vector2(float(pt[0]), float(pt[1])))
        except (TypeError, ValueError):
            raise MapAssetError(f"point must be numeric: {pt!r}") from None
    return tuple(points)


def _as_list(raw: object, what: str) -> list[Any]:
    if not isinstance(raw, list):
        raise MapAssetError(f"{what} must be a list")
    return raw


def _opt_str(raw: object) -> str | None:
    if raw is None:
        return None
    return str(raw)
