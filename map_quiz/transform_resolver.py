"""Entity bounding boxes in the map's root coordinate space.

Shapes may sit under any number of grouping transforms. The resolver reads
the shape's local extent and its local-to-device matrix, undoes the root's
own root-to-device matrix, and maps all four local corners into root space.
Anything that cannot be resolved yields ``None``; callers drop that entity
from the current computation.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .geometry import Affine, BoundingBox, SingularTransformError

logger = logging.getLogger(__name__)


class ShapeHandle(Protocol):
    def local_extent(self) -> BoundingBox | None: ...
    def screen_ctm(self) -> Affine | None: ...


class RootHandle(Protocol):
    def screen_ctm(self) -> Affine | None: ...


class ShapeLookup(Protocol):
    def shape_for(self, entity_id: str) -> ShapeHandle | None: ...


class TransformResolver:
    def __init__(self, *, root: RootHandle, shapes: ShapeLookup) -> None:
        self._root = root
        self._shapes = shapes

    def resolve_bounding_box(self, entity_id: str) -> BoundingBox | None:
        shape = self._shapes.shape_for(entity_id)
        if shape is None:
            return None
        return resolve_shape_box(shape, self._root)


def resolve_shape_box(shape: ShapeHandle, root: RootHandle) -> BoundingBox | None:
    extent = shape.local_extent()
    if extent is None:
        return None
    shape_ctm = shape.screen_ctm()
    root_ctm = root.screen_ctm()
    if shape_ctm is None or root_ctm is None:
        return None
    try:
        local_to_root = root_ctm.inverse() @ shape_ctm
    except SingularTransformError:
        logger.debug("root transform is singular; cannot resolve shape box")
        return None
    if not local_to_root.is_finite() or abs(local_to_root.determinant) < 1e-12:
        logger.debug("degenerate shape transform; cannot resolve shape box")
        return None
    box = extent.transformed(local_to_root)
    if not box.is_finite():
        return None
    return box
