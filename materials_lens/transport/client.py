"""Transport — abstract base for provider HTTP backends."""
from abc import ABC, abstractmethod

from materials_lens.models import AnalysisRequest, RawResponse


class Transport(ABC):
    provider: str

    @abstractmethod
    async def send(self, request: AnalysisRequest) -> RawResponse:
        """POST one analysis request. Network failures come back as a RawResponse, never raised."""
        ...

    @abstractmethod
    async def probe(self, model_id: str) -> RawResponse:
        """Send a minimal text-only request to check that the credential works."""
        ...

    @property
    @abstractmethod
    def api_key(self) -> str | None: ...
