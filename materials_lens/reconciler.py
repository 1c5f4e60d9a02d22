"""Fill or record per-item production summaries against the material cache."""
import dataclasses
import logging
from typing import Iterable

from materials_lens.cache import MaterialCache
from materials_lens.models import ItemAnalysis

logger = logging.getLogger(__name__)


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _reconcile_item(item: ItemAnalysis, cache: MaterialCache) -> tuple[ItemAnalysis, bool]:
    material = item.material
    match (_has_text(material), _has_text(item.production_summary)):
        case (False, _):
            return item, False
        case (True, False):
            cached = cache.get(material)
            match cached:
                case None:
                    logger.debug("CACHE MISS: no summary for '%s'", material)
                    return item, False
                case summary:
                    logger.debug("CACHE HIT: filled summary for '%s'", material)
                    return dataclasses.replace(item, production_summary=summary), False
        case (True, True):
            match cache.add(material, item.production_summary):
                case True:
                    logger.debug("CACHE UPDATE: added summary for '%s'", material)
                    return item, True
                case False:
                    logger.debug("CACHE EXISTS: summary for '%s' already cached", material)
                    return item, False


def reconcile(
    items: Iterable[ItemAnalysis], cache: MaterialCache
) -> tuple[list[ItemAnalysis], bool]:
    """Return items with cached summaries filled in, and whether the cache grew."""
    results = [_reconcile_item(item, cache) for item in items]
    return [item for item, _ in results], any(changed for _, changed in results)
