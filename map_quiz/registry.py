"""Entity catalog, region table and the id -> shape registry."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from .scene import MapDocument, ShapeNode

logger = logging.getLogger(__name__)


class RegionTag(str, Enum):
    ALL = "all"
    NORTH = "north"
    CENTRAL = "central"
    CARIBBEAN = "caribbean"
    SOUTH = "south"


@dataclass(frozen=True, slots=True)
class Entity:
    id: str
    display_name: str
    region_tag: RegionTag


@dataclass(frozen=True, slots=True)
class RegionDefinition:
    tag: RegionTag
    label: str
    padding_fraction: float
    membership: Callable[[Entity], bool]

    def __post_init__(self) -> None:
        if self.padding_fraction < 0.0:
            raise ValueError("padding_fraction must be >= 0")

    @property
    def is_all(self) -> bool:
        return self.tag is RegionTag.ALL


def _in_region(tag: RegionTag) -> Callable[[Entity], bool]:
    return lambda entity: entity.region_tag is tag


AMERICAS: tuple[Entity, ...] = (
    Entity("ca", "Canada", RegionTag.NORTH),
    Entity("us", "United States", RegionTag.NORTH),
    Entity("mx", "Mexico", RegionTag.NORTH),
    Entity("bz", "Belize", RegionTag.CENTRAL),
    Entity("gt", "Guatemala", RegionTag.CENTRAL),
    Entity("hn", "Honduras", RegionTag.CENTRAL),
    Entity("sv", "El Salvador", RegionTag.CENTRAL),
    Entity("ni", "Nicaragua", RegionTag.CENTRAL),
    Entity("cr", "Costa Rica", RegionTag.CENTRAL),
    Entity("pa", "Panama", RegionTag.CENTRAL),
    Entity("cu", "Cuba", RegionTag.CARIBBEAN),
    Entity("ht", "Haiti", RegionTag.CARIBBEAN),
    Entity("do", "Dominican Republic", RegionTag.CARIBBEAN),
    Entity("jm", "Jamaica", RegionTag.CARIBBEAN),
    Entity("bs", "Bahamas", RegionTag.CARIBBEAN),
    Entity("tt", "Trinidad and Tobago", RegionTag.CARIBBEAN),
    Entity("ag", "Antigua and Barbuda", RegionTag.CARIBBEAN),
    Entity("bb", "Barbados", RegionTag.CARIBBEAN),
    Entity("gd", "Grenada", RegionTag.CARIBBEAN),
    Entity("kn", "Saint Kitts and Nevis", RegionTag.CARIBBEAN),
    Entity("lc", "Saint Lucia", RegionTag.CARIBBEAN),
    Entity("vc", "Saint Vincent and the Grenadines", RegionTag.CARIBBEAN),
    Entity("dm", "Dominica", RegionTag.CARIBBEAN),
    Entity("co", "Colombia", RegionTag.SOUTH),
    Entity("ve", "Venezuela", RegionTag.SOUTH),
    Entity("gy", "Guyana", RegionTag.SOUTH),
    Entity("sr", "Suriname", RegionTag.SOUTH),
    Entity("ec", "Ecuador", RegionTag.SOUTH),
    Entity("pe", "Peru", RegionTag.SOUTH),
    Entity("br", "Brazil", RegionTag.SOUTH),
    Entity("bo", "Bolivia", RegionTag.SOUTH),
    Entity("py", "Paraguay", RegionTag.SOUTH),
    Entity("uy", "Uruguay", RegionTag.SOUTH),
    Entity("ar", "Argentina", RegionTag.SOUTH),
    Entity("cl", "Chile", RegionTag.SOUTH),
)

REGIONS: Mapping[RegionTag, RegionDefinition] = MappingProxyType(
    {
        RegionTag.ALL: RegionDefinition(RegionTag.ALL, "All", 0.0, lambda entity: True),
        RegionTag.CARIBBEAN: RegionDefinition(
            RegionTag.CARIBBEAN, "Caribbean", 0.12, _in_region(RegionTag.CARIBBEAN)
        ),
        RegionTag.CENTRAL: RegionDefinition(
            RegionTag.CENTRAL, "Central America", 0.10, _in_region(RegionTag.CENTRAL)
        ),
        RegionTag.SOUTH: RegionDefinition(RegionTag.SOUTH, "South America", 0.06, _in_region(RegionTag.SOUTH)),
    }
)


class EntityRegistry:
    """Immutable id -> shape table built once per loaded map.

    Entities whose id matches no shape are left out of every pool.
    """

    def __init__(self, entities: Iterable[Entity], shapes: Mapping[str, ShapeNode]) -> None:
        self._entities: tuple[Entity, ...] = tuple(e for e in entities if e.id in shapes)
        self._by_id: Mapping[str, Entity] = MappingProxyType({e.id: e for e in self._entities})
        self._shapes: Mapping[str, ShapeNode] = MappingProxyType(
            {e.id: shapes[e.id] for e in self._entities}
        )

    @classmethod
    def build(cls, entities: Iterable[Entity], document: MapDocument) -> "EntityRegistry":
        catalog = tuple(entities)
        shapes: dict[str, ShapeNode] = {}
        for entity in catalog:
            shape = document.find(entity.id)
            if shape is None:
                logger.debug("no shape for entity %r; excluded from pools", entity.id)
                continue
            shapes[entity.id] = shape
        registry = cls(catalog, shapes)
        logger.info("registry built: %d of %d entities matched", len(registry), len(catalog))
        return registry

    @classmethod
    def empty(cls) -> "EntityRegistry":
        return cls((), {})

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._by_id

    @property
    def entities(self) -> tuple[Entity, ...]:
        return self._entities

    def entity(self, entity_id: str) -> Entity | None:
        return self._by_id.get(entity_id)

    def shape_for(self, entity_id: str) -> ShapeNode | None:
        return self._shapes.get(entity_id)

    def shapes(self) -> Mapping[str, ShapeNode]:
        return self._shapes

    def entity_for_shape(self, shape: ShapeNode) -> Entity | None:
        for ident in shape.identifiers():
            entity = self._by_id.get(ident)
            if entity is not None and self._shapes[entity.id] is shape:
                return entity
        return None

    def pool_for(self, region: RegionDefinition) -> tuple[Entity, ...]:
        return tuple(e for e in self._entities if region.membership(e))
