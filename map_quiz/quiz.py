"""MapQuiz: one map, one registry, one live session.

Wires the transform resolver, region viewport, hit-target overlay and the
session controller together and is the only object the UI talks to. The
UI calls ``frame()`` once after every render pass.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping

from pygame.math import Vector2

from .clock import Clock
from .config import QuizConfig
from .feedback import CompositeFeedback, FeedbackDispatcher, SessionToken
from .hit_targets import HitTargetOverlay, resolve_pointer
from .registry import AMERICAS, REGIONS, Entity, EntityRegistry, RegionDefinition, RegionTag
from .results import QuizResult, quiz_result_from_session
from .scene import MapDocument
from .scheduler import FrameScheduler, PeriodicTimer
from .session import QuizSessionController, SessionSnapshot, SessionState
from .transform_resolver import TransformResolver
from .viewport import RegionViewportController

logger = logging.getLogger(__name__)

SESSION_CLASSES = ("correct", "locked", "wrong")
DIMMED_CLASS = "disabled-island"


class ShapeClassFeedback:
    """Marks shapes ``correct``/``locked`` and flashes ``wrong`` briefly."""

    def __init__(self, *, registry: EntityRegistry, timer: PeriodicTimer, wrong_flash_s: float) -> None:
        self._registry = registry
        self._timer = timer
        self._wrong_flash_s = float(wrong_flash_s)

    def on_prompt_shown(self, entity: Entity, *, token: SessionToken) -> None:
        pass

    def on_correct(self, entity: Entity, *, token: SessionToken) -> None:
        shape = self._registry.shape_for(entity.id)
        if shape is not None:
            shape.remove_class("wrong")
            shape.add_class("correct", "locked")

    def on_wrong(self, selected_id: str, *, expected: Entity, token: SessionToken) -> None:
        shape = self._registry.shape_for(selected_id)
        if shape is None:
            return
        shape.add_class("wrong")

        def clear_flash(now: float) -> None:
            _ = now
            if token.is_current():
                shape.remove_class("wrong")

        self._timer.once(self._wrong_flash_s, clear_flash)

    def on_session_finished(self, percent: int, elapsed_ms: int, perfect: bool, *, token: SessionToken) -> None:
        pass

    def on_region_change_rejected(self) -> None:
        pass

    def cancel_pending(self) -> None:
        self.clear()

    def clear(self) -> None:
        for shape in self._registry.shapes().values():
            shape.remove_class(*SESSION_CLASSES)


class MapQuiz:
    def __init__(
        self,
        *,
        document: MapDocument,
        clock: Clock,
        feedback: FeedbackDispatcher | None = None,
        config: QuizConfig | None = None,
        rng: random.Random | None = None,
        entities: Iterable[Entity] = AMERICAS,
        regions: Mapping[RegionTag, RegionDefinition] = REGIONS,
        on_tick: Callable[[float], None] | None = None,
    ) -> None:
        self._config = config or QuizConfig()
        self._document = document
        self._regions = regions
        self._registry = EntityRegistry.build(entities, document)
        self._resolver = TransformResolver(root=document, shapes=self._registry)
        self._scheduler = FrameScheduler()
        self._timer = PeriodicTimer(clock=clock)
        self._viewport = RegionViewportController(
            document=document,
            resolver=self._resolver,
            scheduler=self._scheduler,
            regions=regions,
            settle_frames=self._config.viewport_settle_frames,
        )
        self._overlay = HitTargetOverlay(resolver=self._resolver)
        self._styler = ShapeClassFeedback(
            registry=self._registry,
            timer=self._timer,
            wrong_flash_s=self._config.wrong_flash_s,
        )
        dispatchers: list[FeedbackDispatcher] = [self._styler]
        if feedback is not None:
            dispatchers.append(feedback)
        self._session = QuizSessionController(
            clock=clock,
            feedback=CompositeFeedback(*dispatchers),
            timer=self._timer,
            rng=rng,
            scoring_policy=self._config.scoring_policy,
            timer_interval_s=self._config.timer_interval_s,
            on_tick=on_tick,
        )
        self._region_tag = RegionTag.ALL

        self.rebuild_hit_targets()
        self._apply_region_classes()

    @property
    def document(self) -> MapDocument:
        return self._document

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def resolver(self) -> TransformResolver:
        return self._resolver

    @property
    def viewport(self) -> RegionViewportController:
        return self._viewport

    @property
    def overlay(self) -> HitTargetOverlay:
        return self._overlay

    @property
    def session(self) -> QuizSessionController:
        return self._session

    @property
    def scheduler(self) -> FrameScheduler:
        return self._scheduler

    @property
    def timer(self) -> PeriodicTimer:
        return self._timer

    @property
    def region(self) -> RegionTag:
        return self._region_tag

    @property
    def regions(self) -> Mapping[RegionTag, RegionDefinition]:
        return self._regions

    @property
    def running(self) -> bool:
        return self._session.state is SessionState.RUNNING

    def pool(self) -> tuple[Entity, ...]:
        region = self._regions.get(self._region_tag) or self._regions[RegionTag.ALL]
        return self._registry.pool_for(region)

    def start(self) -> bool:
        if self.running:
            return False
        self._styler.clear()
        return self._session.start(self.pool())

    def reset_to_idle(self) -> None:
        self._session.reset_to_idle()

    def toggle_start(self) -> None:
        """Start when not running; otherwise start over (back to Idle)."""

        if self.running:
            self.reset_to_idle()
        else:
            self.start()

    def handle_selection(self, entity_id: str) -> bool:
        return self._session.handle_selection(entity_id)

    def select_at(self, device_point: Vector2 | tuple[float, float]) -> bool:
        if not self.running:
            return False
        entity_id = resolve_pointer(
            device_point=device_point,
            document=self._document,
            overlay=self._overlay,
            registry=self._registry,
        )
        if entity_id is None:
            return False
        return self.handle_selection(entity_id)

    def set_region(self, tag: RegionTag) -> bool:
        if not self._session.request_region_change():
            logger.debug("region change to %s rejected while running", tag.value)
            return False
        self._session.reset_to_idle()
        self._region_tag = tag
        pool = self.pool()
        logger.debug("region set to %s (%d entities)", tag.value, len(pool))
        self._viewport.set_region(tag, pool)
        self._apply_region_classes()
        return True

    def on_layout_changed(self, viewport: tuple[float, float, float, float]) -> None:
        self._document.set_viewport(*viewport)
        self._viewport.reapply(self.pool())
        self.rebuild_hit_targets()

    def rebuild_hit_targets(self) -> None:
        ids = [i for i in self._config.hit_target_ids if i in self._registry]
        self._overlay.clear()
        self._overlay.rebuild_for(ids, self._config.hit_radius)

    def frame(self) -> None:
        self._scheduler.on_frame()
        self._timer.update()

    def snapshot(self) -> SessionSnapshot:
        return self._session.snapshot()

    def result(self) -> QuizResult | None:
        return quiz_result_from_session(self._session)

    def label_anchor(self, entity_id: str) -> Vector2 | None:
        """Root-space point where an entity's name label goes."""

        target = self._overlay.target_for(entity_id)
        if target is not None:
            return Vector2(target.center)
        box = self._resolver.resolve_bounding_box(entity_id)
        return None if box is None else box.center

    def labels(self) -> list[tuple[str, Vector2]]:
        out: list[tuple[str, Vector2]] = []
        for entity_id in self._session.session.order:
            if entity_id not in self._session.session.completed_ids:
                continue
            entity = self._registry.entity(entity_id)
            anchor = self.label_anchor(entity_id)
            if entity is not None and anchor is not None:
                out.append((entity.display_name, anchor))
        return out

    def _apply_region_classes(self) -> None:
        dim = self._region_tag not in (RegionTag.ALL, RegionTag.CARIBBEAN)
        for entity in self._registry.entities:
            shape = self._registry.shape_for(entity.id)
            if shape is None:
                continue
            if dim and entity.region_tag is RegionTag.CARIBBEAN:
                shape.add_class(DIMMED_CLASS)
            else:
                shape.remove_class(DIMMED_CLASS)
