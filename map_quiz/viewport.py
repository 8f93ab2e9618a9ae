"""Region viewport control: padded union-box zoom with full-map fallback."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .geometry import BoundingBox, union_all
from .registry import REGIONS, Entity, RegionDefinition, RegionTag
from .scene import MapDocument
from .scheduler import FrameScheduler, ScheduledCall
from .transform_resolver import TransformResolver

logger = logging.getLogger(__name__)


class RegionViewportController:
    """Owns the visible coordinate window of a ``MapDocument``.

    Region zooms read final layout, so they are computed after
    ``settle_frames`` render passes rather than inside the triggering event.
    A later request supersedes any still-pending one.
    """

    def __init__(
        self,
        *,
        document: MapDocument,
        resolver: TransformResolver,
        scheduler: FrameScheduler,
        regions: Mapping[RegionTag, RegionDefinition] = REGIONS,
        settle_frames: int = 2,
    ) -> None:
        if settle_frames < 0:
            raise ValueError("settle_frames must be >= 0")
        self._document = document
        self._resolver = resolver
        self._scheduler = scheduler
        self._regions = regions
        self._settle_frames = int(settle_frames)

        self._original_window: BoundingBox = document.view_box
        self._active_region: RegionTag = RegionTag.ALL
        self._generation = 0
        self._pending: ScheduledCall | None = None

    @property
    def original_window(self) -> BoundingBox:
        return self._original_window

    @property
    def active_region(self) -> RegionTag:
        return self._active_region

    @property
    def current_window(self) -> BoundingBox:
        return self._document.view_box

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.cancelled

    def region(self, tag: RegionTag) -> RegionDefinition:
        return self._regions[tag]

    def set_region(self, tag: RegionTag, pool: Iterable[Entity]) -> None:
        self._active_region = tag
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

        region = self._regions.get(tag)
        if region is None or region.is_all:
            self.restore_original()
            return

        generation = self._generation
        members = tuple(pool)

        def apply_when_settled() -> None:
            if generation != self._generation:
                return
            self._pending = None
            self.apply_now(tag, members)

        if self._settle_frames == 0:
            apply_when_settled()
            return
        self._pending = self._scheduler.after_frames(self._settle_frames, apply_when_settled)

    def apply_now(self, tag: RegionTag, pool: Iterable[Entity]) -> BoundingBox:
        window = self.compute_window(tag, pool)
        self._document.view_box = window
        logger.debug("viewport for %s set to %s", tag.value, window.as_view_box())
        return window

    def compute_window(self, tag: RegionTag, pool: Iterable[Entity]) -> BoundingBox:
        region = self._regions.get(tag)
        if region is None or region.is_all:
            return self._original_window

        union = union_all(self._resolver.resolve_bounding_box(e.id) for e in pool)
        if union is None or union.is_degenerate():
            logger.debug("region %s has no usable extent; keeping full map", tag.value)
            return self._original_window
        return union.padded(region.padding_fraction)

    def restore_original(self) -> None:
        self._document.view_box = self._original_window

    def reapply(self, pool: Iterable[Entity]) -> None:
        """Recompute the active region after a layout change."""

        self.set_region(self._active_region, pool)
