"""Read-only catalog of target countries."""

from dataclasses import asdict, dataclass
import json
import logging
import os
import random
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ALL_REGIONS = 'All'
DEFAULT_CATALOG_PATH = os.path.join(os.path.dirname(__file__), 'data', 'countries.json')


@dataclass(frozen=True)
class Entity:
    name: str
    cities: Tuple[str, ...]
    region: str
    population: str
    currency: str
    language: str
    fact: str
    iso_code: str
    main_export: str
    flag: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entity':
        return cls(
            name=data['name'],
            cities=tuple(data.get('cities') or ()),
            region=data['region'],
            population=data.get('population', ''),
            currency=data.get('currency', ''),
            language=data.get('language', ''),
            fact=data.get('fact', ''),
            iso_code=data.get('iso_code', ''),
            main_export=data.get('main_export', ''),
            flag=data.get('flag', ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record['cities'] = list(self.cities)
        return record


class Catalog:
    """Immutable list of entities with a region-filtered random draw."""

    def __init__(self, entities: Iterable[Entity]):
        self._entities: Tuple[Entity, ...] = tuple(entities)
        if not self._entities:
            raise ValueError('catalog is empty')

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'Catalog':
        path = path or DEFAULT_CATALOG_PATH
        with open(path, encoding='utf-8') as fh:
            records = json.load(fh)
        catalog = cls(Entity.from_dict(r) for r in records)
        logger.info(f"[catalog] loaded {len(catalog)} entities from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self):
        return iter(self._entities)

    def regions(self) -> List[str]:
        return sorted({e.region for e in self._entities})

    def select(self, regions: Iterable[str] = ()) -> List[Entity]:
        wanted = set(regions or ())
        if not wanted or ALL_REGIONS in wanted:
            return list(self._entities)
        return [e for e in self._entities if e.region in wanted]

    def pick(self, regions: Iterable[str] = (), rng: random.Random = None) -> Entity:
        """Draw one entity uniformly from ``regions``.

        Falls back to the whole catalog when no entity matches, so a round
        can always start.
        """
        rng = rng or random
        regions = list(regions or ())
        pool = self.select(regions)
        if not pool:
            logger.info(f"[catalog] no entity in regions={sorted(regions)}, drawing from full catalog")
            pool = list(self._entities)
        return rng.choice(pool)
