"""Scene graph for a rendered vector map.

A ``MapDocument`` owns a tree of ``GroupNode``/``ShapeNode`` instances. Each
node carries a local ``Affine`` transform; the document maps its coordinate
space (the view box) onto a device viewport the same way an SVG root with
``preserveAspectRatio="xMidYMid meet"`` does.

Only the rendering layer mutates geometry. The quiz core reads extents and
transforms and toggles presentation classes on shapes.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

import cv2
import numpy as np
from pygame.math import Vector2

from .geometry import Affine, BoundingBox, SingularTransformError

Polygon = tuple[Vector2, ...]


@dataclass(eq=False)
class SceneNode:
    node_id: str | None = None
    data_id: str | None = None
    transform: Affine = field(default_factory=Affine.identity)
    visible: bool = True
    parent: "GroupNode | MapDocument | None" = field(default=None, repr=False)

    def identifiers(self) -> tuple[str, ...]:
        return tuple(v for v in (self.data_id, self.node_id) if v)

    def document(self) -> "MapDocument | None":
        node: SceneNode | MapDocument | None = self
        while isinstance(node, SceneNode):
            node = node.parent
        return node

    def is_rendered(self) -> bool:
        node: SceneNode | MapDocument | None = self
        while isinstance(node, SceneNode):
            if not node.visible:
                return False
            node = node.parent
        return isinstance(node, MapDocument) and node.visible

    def local_to_root(self) -> Affine:
        """Accumulated transform from this node's space to document space."""

        matrix = self.transform
        node = self.parent
        while isinstance(node, SceneNode):
            matrix = node.transform @ matrix
            node = node.parent
        return matrix

    def screen_ctm(self) -> Affine | None:
        """Local space to device pixels, or ``None`` when not rendered."""

        if not self.is_rendered():
            return None
        doc = self.document()
        assert doc is not None
        root_ctm = doc.screen_ctm()
        if root_ctm is None:
            return None
        return root_ctm @ self.local_to_root()


@dataclass(eq=False)
class GroupNode(SceneNode):
    children: list[SceneNode] = field(default_factory=list)

    def add(self, child: SceneNode) -> SceneNode:
        child.parent = self
        self.children.append(child)
        return child


@dataclass(eq=False)
class ShapeNode(SceneNode):
    primitives: list[Polygon] = field(default_factory=list)
    classes: set[str] = field(default_factory=set)

    def add_class(self, *names: str) -> None:
        self.classes.update(names)

    def remove_class(self, *names: str) -> None:
        self.classes.difference_update(names)

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def local_extent(self) -> BoundingBox | None:
        return BoundingBox.from_points(p for poly in self.primitives for p in poly)

    def contains_device_point(self, point: Vector2 | tuple[float, float]) -> bool:
        ctm = self.screen_ctm()
        if ctm is None:
            return False
        try:
            local = ctm.inverse().apply_point(point)
        except SingularTransformError:
            return False
        return any(_point_in_polygon(local, poly) for poly in self.primitives)


class MapDocument:
    """Root of the scene: view box, device viewport and top-level children."""

    def __init__(
        self,
        *,
        view_box: BoundingBox,
        viewport: tuple[float, float, float, float] = (0.0, 0.0, 960.0, 600.0),
    ) -> None:
        self._view_box = view_box
        self._viewport = tuple(float(v) for v in viewport)
        self.visible = True
        self.children: list[SceneNode] = []

    @property
    def view_box(self) -> BoundingBox:
        return self._view_box

    @view_box.setter
    def view_box(self, box: BoundingBox) -> None:
        self._view_box = box

    @property
    def viewport(self) -> tuple[float, float, float, float]:
        return self._viewport  # type: ignore[return-value]

    def set_viewport(self, x: float, y: float, width: float, height: float) -> None:
        self._viewport = (float(x), float(y), float(width), float(height))

    def add(self, child: SceneNode) -> SceneNode:
        child.parent = self
        self.children.append(child)
        return child

    def screen_ctm(self) -> Affine | None:
        """Document space to device pixels (uniform fit, centered)."""

        vb = self._view_box
        vx, vy, vw, vh = self._viewport
        if vb.is_degenerate() or vw <= 0.0 or vh <= 0.0:
            return None
        scale = min(vw / vb.width, vh / vb.height)
        tx = vx + (vw - vb.width * scale) / 2.0 - vb.x * scale
        ty = vy + (vh - vb.height * scale) / 2.0 - vb.y * scale
        return Affine(a=scale, d=scale, e=tx, f=ty)

    def iter_nodes(self) -> Iterator[SceneNode]:
        stack: list[SceneNode] = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, GroupNode):
                stack.extend(reversed(node.children))

    def iter_shapes(self) -> Iterator[ShapeNode]:
        """Shapes in paint order (first painted first)."""

        for node in self.iter_nodes():
            if isinstance(node, ShapeNode):
                yield node

    def find(self, identifier: str) -> ShapeNode | None:
        """Exact identifier match; ``data_id`` wins over ``node_id``."""

        by_id: ShapeNode | None = None
        for shape in self.iter_shapes():
            if shape.data_id == identifier:
                return shape
            if by_id is None and shape.node_id == identifier:
                by_id = shape
        return by_id

    def shape_at_device(self, point: Vector2 | tuple[float, float]) -> ShapeNode | None:
        """Topmost rendered shape under a device-space point."""

        for shape in reversed(list(self.iter_shapes())):
            if shape.contains_device_point(point):
                return shape
        return None


def _point_in_polygon(point: Vector2, polygon: Sequence[Vector2]) -> bool:
    if len(polygon) < 3:
        return False
    contour = np.array([(p.x, p.y) for p in polygon], dtype=np.float32)
    # Points on the outline count as inside.
    return cv2.pointPolygonTest(contour, (float(point.x), float(point.y)), False) >= 0
