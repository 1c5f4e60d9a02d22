import json
import logging
import threading
from pathlib import Path
from typing import Any

from materials_lens.constants import (
    CACHE_ENTRIES_KEY,
    CACHE_MATERIAL_KEY,
    CACHE_SUMMARY_KEY,
    DEFAULT_CACHE_PATH,
)
from materials_lens.errors import CachePersistenceError
from materials_lens.models import CacheEntry

logger = logging.getLogger(__name__)


def _fold(material: str) -> str:
    return material.strip().casefold()


class MaterialCache:
    """Append-only material -> production summary store backed by one JSON document.

    Reads are lock-free. Appends take a process-wide lock so that the
    check, the append and the rewrite of the file happen as one step.
    """

    def __init__(self, path: Path = DEFAULT_CACHE_PATH) -> None:
        self._path = path
        self._entries: list[CacheEntry] = []
        self._index: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        match self._path.exists():
            case True:
                try:
                    with open(self._path) as f:
                        raw = json.load(f)
                    list(map(self._remember, _decode_entries(raw)))
                    logger.info("Loaded cache with %d entries", len(self._entries))
                except Exception as e:
                    logger.warning("Cache load failed: %s, starting fresh", e)
                    self._entries = []
                    self._index = {}
            case False:
                pass

    def _remember(self, entry: CacheEntry) -> bool:
        key = _fold(entry.material_name)
        match (key, entry.production_summary, key in self._index):
            case ("", _, _) | (_, "", _) | (_, _, True):
                return False
            case _:
                self._entries.append(entry)
                self._index[key] = entry
                return True

    def _write(self) -> None:
        document = {
            CACHE_ENTRIES_KEY: [
                {CACHE_MATERIAL_KEY: e.material_name, CACHE_SUMMARY_KEY: e.production_summary}
                for e in self._entries
            ]
        }
        try:
            with open(self._path, "w") as f:
                json.dump(document, f, indent=2)
        except OSError as e:
            raise CachePersistenceError(f"Cache save failed: {e}") from e

    def _save(self) -> None:
        try:
            self._write()
            logger.debug("Cache saved to %s", self._path)
        except CachePersistenceError as e:
            logger.warning("%s (in-memory cache kept)", e)

    def get(self, material: str | None) -> str | None:
        match material:
            case str() as m if m.strip():
                entry = self._index.get(_fold(m))
                return entry.production_summary if entry else None
            case _:
                return None

    def add(self, material: str | None, summary: str | None) -> bool:
        """Store a summary unless one already exists. Returns True when the cache changed."""
        match (material, summary):
            case (str() as m, str() as s) if m.strip() and s.strip():
                pass
            case _:
                return False
        with self._lock:
            match self._remember(CacheEntry(material_name=m.strip(), production_summary=s)):
                case True:
                    self._save()
                    return True
                case False:
                    return False

    def material_names(self) -> list[str]:
        return [e.material_name for e in self._entries]

    def entries(self) -> list[CacheEntry]:
        return list(self._entries)

    def __contains__(self, material: object) -> bool:
        return isinstance(material, str) and self.get(material) is not None

    def __len__(self) -> int:
        return len(self._entries)


def _decode_entries(raw: Any) -> list[CacheEntry]:
    match raw:
        case {"entries": list() as items}:
            pass
        case _:
            raise ValueError("cache document has no entries list")
    return [
        CacheEntry(
            material_name=str(item.get(CACHE_MATERIAL_KEY) or ""),
            production_summary=str(item.get(CACHE_SUMMARY_KEY) or ""),
        )
        for item in items
        if isinstance(item, dict)
    ]
