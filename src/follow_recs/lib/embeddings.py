"""Embedding provider interface and vector helpers.

The semantic candidate strategy and the semantic scoring scheme talk to an
external embedding service through :class:`EmbeddingProvider`.  When no
provider is configured both features are simply switched off.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Sequence

import httpx

from ..errors import ProviderUnavailable
from ..models import UserProfile

logger = logging.getLogger(__name__)


def profile_text(profile: UserProfile) -> str:
    """Text used to embed a profile: display name, bio and interests."""
    return " ".join(
        [
            profile.display_name or "",
            profile.bio or "",
            ", ".join(profile.tags),
        ]
    ).strip()


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for empty, mismatched or zero-norm vectors."""
    if not vec_a or not vec_b:
        return 0.0
    if len(vec_a) != len(vec_b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot += a * b
        norm_a += a * a
        norm_b += b * b
    if norm_a <= 0 or norm_b <= 0:
        return 0.0
    return dot / math.sqrt(norm_a * norm_b)


class EmbeddingProvider(ABC):
    """Turns text into a dense vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*.

        Raises :class:`ProviderUnavailable` when the provider cannot answer.
        """
        ...


class HttpEmbeddingProvider(EmbeddingProvider):
    """Calls an embedding service over HTTP.

    Request body:
      { "text": "..." }

    Response:
      { "embedding": [float, ...] }
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def embed(self, text: str) -> list[float]:
        if self._http is None:
            raise ProviderUnavailable("Embedding provider has not been started")
        try:
            resp = await self._http.post("/embed", json={"text": text})
            resp.raise_for_status()
            vector = resp.json()["embedding"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning("Embedding provider unavailable: %s", exc)
            raise ProviderUnavailable(str(exc)) from exc
        return [float(x) for x in vector]


async def profile_embedding(
    provider: EmbeddingProvider | None,
    profile: UserProfile,
) -> list[float] | None:
    """Return the cached embedding of *profile*, computing it when absent.

    Profiles without any text have no embedding.
    """
    if profile.profile_embedding:
        return profile.profile_embedding
    text = profile_text(profile)
    if not text:
        return None
    if provider is None:
        raise ProviderUnavailable("No embedding provider configured")
    return await provider.embed(text)
