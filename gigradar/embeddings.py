"""Remote sentence-embedding client (Hugging Face feature-extraction API)."""
from __future__ import annotations

from typing import Any

import requests

from gigradar.errors import (
    DimensionMismatchError,
    EmbeddingServiceError,
    RateLimitedError,
    TransportError,
)
from gigradar.log import get_logger
from gigradar.pacing import retry

log = get_logger(__name__)

EMBEDDING_DIMENSION = 768
EMBEDDING_MODEL = "BAAI/bge-base-en-v1.5"


def _as_vector(data: Any) -> list[float]:
    """Accept a flat vector or a batch holding exactly one vector."""
    if isinstance(data, dict) and data.get("error"):
        raise EmbeddingServiceError(str(data["error"]))
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], list):
        data = data[0]
    if not isinstance(data, list) or not all(isinstance(x, (int, float)) for x in data):
        raise EmbeddingServiceError("embedding service returned an unexpected payload")
    return [float(x) for x in data]


class EmbeddingClient:
    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        *,
        timeout: float = 30.0,
        dimension: int = EMBEDDING_DIMENSION,
        http: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.dimension = dimension
        self.http = http or requests.Session()

    @retry(max_attempts=3, base_delay=5.0, max_delay=60.0, retryable=(RateLimitedError,))
    def _post(self, text: str) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            r = self.http.post(
                self.api_url,
                json={"inputs": text},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError("embedding service timed out") from exc
        except requests.RequestException as exc:
            raise TransportError(f"embedding service unreachable: {exc}") from exc

        # 503 is the hosted API saying the model is still loading.
        if r.status_code in (429, 503):
            raise RateLimitedError(f"embedding service HTTP {r.status_code}")
        if not r.ok:
            raise EmbeddingServiceError(f"embedding service HTTP {r.status_code}: {r.text[:200]}")
        try:
            return r.json()
        except ValueError as exc:
            raise EmbeddingServiceError("embedding service returned invalid JSON") from exc

    def embed(self, text: str) -> list[float]:
        vector = _as_vector(self._post(text))
        if len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector))
        return vector
