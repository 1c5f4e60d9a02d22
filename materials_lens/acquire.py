"""ImageSource — where image bytes come from. None means the user cancelled."""
import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class ImageSource(ABC):
    @abstractmethod
    async def acquire(self) -> Optional[bytes]:
        """Return image bytes, or None when acquisition was cancelled."""
        ...


class FileImageSource(ImageSource):

    def __init__(self, path: Optional[Path]) -> None:
        self._path = path

    async def acquire(self) -> Optional[bytes]:
        match self._path:
            case None:
                return None
            case path:
                return await asyncio.to_thread(path.read_bytes)


class BytesImageSource(ImageSource):
    """Wraps bytes already in memory: stdin for `analyze -`, or a native picker's handoff."""

    def __init__(self, data: Optional[bytes]) -> None:
        self._data = data

    async def acquire(self) -> Optional[bytes]:
        return self._data
