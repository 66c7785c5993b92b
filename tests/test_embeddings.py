import pytest
import requests
from conftest import FakeHTTP, FakeResponse

from gigradar.embeddings import EMBEDDING_DIMENSION, EmbeddingClient
from gigradar.errors import (
    DimensionMismatchError,
    EmbeddingServiceError,
    RateLimitedError,
    TransportError,
)

URL = "https://embed.example/feature-extraction"


def test_embed_returns_flat_vector() -> None:
    vector = [0.1] * EMBEDDING_DIMENSION
    http = FakeHTTP(FakeResponse(200, vector))
    client = EmbeddingClient(URL, "hf_secret", http=http)

    assert client.embed("React developer") == vector
    call = http.calls[0]
    assert call["json"] == {"inputs": "React developer"}
    assert call["headers"]["Authorization"] == "Bearer hf_secret"


def test_embed_unwraps_single_item_batch() -> None:
    http = FakeHTTP(FakeResponse(200, [[1, 2, 3, 4]]))
    assert EmbeddingClient(URL, dimension=4, http=http).embed("x") == [1.0, 2.0, 3.0, 4.0]


def test_no_auth_header_without_key() -> None:
    http = FakeHTTP(FakeResponse(200, [0.0, 1.0]))
    EmbeddingClient(URL, dimension=2, http=http).embed("x")
    assert "Authorization" not in http.calls[0]["headers"]


def test_wrong_dimension_is_fatal() -> None:
    http = FakeHTTP(FakeResponse(200, [0.1, 0.2, 0.3]))
    with pytest.raises(DimensionMismatchError) as exc:
        EmbeddingClient(URL, http=http).embed("x")
    assert exc.value.expected == EMBEDDING_DIMENSION
    assert exc.value.actual == 3


def test_model_loading_is_retried() -> None:
    http = FakeHTTP(
        FakeResponse(503, {"error": "Model is currently loading"}),
        FakeResponse(200, [0.5, 0.5]),
    )
    assert EmbeddingClient(URL, dimension=2, http=http).embed("x") == [0.5, 0.5]
    assert len(http.calls) == 2


def test_rate_limit_gives_up_after_retries() -> None:
    http = FakeHTTP(*[FakeResponse(429, None, "slow down") for _ in range(3)])
    with pytest.raises(RateLimitedError):
        EmbeddingClient(URL, dimension=2, http=http).embed("x")
    assert len(http.calls) == 3


def test_error_payload_is_a_service_error() -> None:
    http = FakeHTTP(FakeResponse(200, {"error": "bad input"}))
    with pytest.raises(EmbeddingServiceError, match="bad input"):
        EmbeddingClient(URL, dimension=2, http=http).embed("x")


def test_http_error_is_a_service_error() -> None:
    http = FakeHTTP(FakeResponse(400, None, "bad request"))
    with pytest.raises(EmbeddingServiceError):
        EmbeddingClient(URL, dimension=2, http=http).embed("x")


def test_timeout_is_a_transport_error() -> None:
    http = FakeHTTP(requests.Timeout("slow"))
    with pytest.raises(TransportError):
        EmbeddingClient(URL, dimension=2, http=http).embed("x")
