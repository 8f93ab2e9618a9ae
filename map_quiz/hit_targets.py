"""Synthetic circular hit targets for entities too small to click reliably.

Targets are a derived index keyed by entity id. Any load, resize or viewport
change simply rebuilds them from the current geometry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from pygame.math import Vector2

from .geometry import Affine
from .registry import EntityRegistry
from .scene import MapDocument
from .transform_resolver import TransformResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HitRadiusRule:
    """Radius in root coordinate units, with optional per-entity overrides."""

    default_radius: float = 18.0
    overrides: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_radius <= 0.0:
            raise ValueError("default_radius must be > 0")
        for entity_id, radius in self.overrides.items():
            if radius <= 0.0:
                raise ValueError(f"radius for {entity_id!r} must be > 0")

    def radius_for(self, entity_id: str) -> float:
        return float(self.overrides.get(entity_id, self.default_radius))


@dataclass(frozen=True, slots=True)
class HitTarget:
    entity_id: str
    center: Vector2
    radius: float

    def device_circle(self, root_ctm: Affine) -> tuple[Vector2, float]:
        """Center and radius in device pixels under a uniform-scale root matrix."""

        center = root_ctm.apply_point(self.center)
        scale = abs(root_ctm.determinant) ** 0.5
        return center, self.radius * scale


class HitTargetOverlay:
    """Hit targets painted and hit-tested above every native shape."""

    def __init__(self, *, resolver: TransformResolver) -> None:
        self._resolver = resolver
        self._targets: dict[str, HitTarget] = {}

    @property
    def targets(self) -> Mapping[str, HitTarget]:
        return MappingProxyType(self._targets)

    def target_for(self, entity_id: str) -> HitTarget | None:
        return self._targets.get(entity_id)

    def clear(self) -> None:
        self._targets.clear()

    def rebuild_for(self, entity_ids: Iterable[str], radius_by_rule: HitRadiusRule) -> None:
        for entity_id in entity_ids:
            self._targets.pop(entity_id, None)
            box = self._resolver.resolve_bounding_box(entity_id)
            if box is None or box.is_degenerate():
                logger.info("no hit target for %r: geometry unavailable", entity_id)
                continue
            self._targets[entity_id] = HitTarget(
                entity_id=entity_id,
                center=box.center,
                radius=radius_by_rule.radius_for(entity_id),
            )
        logger.debug("hit targets: %s", sorted(self._targets))

    def pick(self, root_point: Vector2 | tuple[float, float]) -> str | None:
        """Entity whose target contains the point; nearest center wins."""

        point = Vector2(root_point[0], root_point[1])
        best: HitTarget | None = None
        best_dist = 0.0
        for target in self._targets.values():
            dist = target.center.distance_to(point)
            if dist > target.radius:
                continue
            if best is None or dist < best_dist:
                best = target
                best_dist = dist
        return None if best is None else best.entity_id


def resolve_pointer(
    *,
    device_point: Vector2 | tuple[float, float],
    document: MapDocument,
    overlay: HitTargetOverlay,
    registry: EntityRegistry,
) -> str | None:
    """Map a device-space click to an entity id (overlay first, then shapes)."""

    root_ctm = document.screen_ctm()
    if root_ctm is None:
        return None
    root_point = root_ctm.inverse().apply_point(device_point)
    picked = overlay.pick(root_point)
    if picked is not None:
        return picked
    shape = document.shape_at_device(device_point)
    if shape is None:
        return None
    entity = registry.entity_for_shape(shape)
    return None if entity is None else entity.id
