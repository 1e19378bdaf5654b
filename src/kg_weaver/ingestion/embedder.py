"""Embedding gateway for OpenAI-compatible ``/embeddings`` endpoints."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests
from langchain_core.embeddings import Embeddings

from kg_weaver.config import EmbeddingSettings
from kg_weaver.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)

# text -> vector; raises TransportError on failure.
EmbeddingFunction = Callable[[str], list[float]]

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class EmbeddingGateway(Embeddings):
    """Turns one text into one vector via the configured embedding service.

    Also usable anywhere LangChain expects an ``Embeddings`` object.

    Parameters
    ----------
    settings:
        Endpoint, credential, model and transport limits.  ``api_key`` and
        ``base_url`` are mandatory.
    session:
        Optional ``requests.Session`` (connection pooling, testing).
    backoff:
        Base delay in seconds between retries; doubles on every attempt.
    """

    def __init__(
        self,
        settings: EmbeddingSettings,
        *,
        session: requests.Session | None = None,
        backoff: float = 1.0,
    ) -> None:
        missing = [name for name in ("api_key", "base_url") if not getattr(settings, name)]
        if missing:
            raise ConfigurationError(
                "embedding service is not configured; missing "
                + ", ".join(f"embedding.{name}" for name in missing)
            )
        self._settings = settings
        self._url = settings.base_url.rstrip("/") + "/embeddings"
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            }
        )
        self._backoff = backoff

    @property
    def model(self) -> str:
        return self._settings.model

    def __call__(self, text: str) -> list[float]:
        return self.embed(text)

    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises
        ------
        EmbeddingError
            When every attempt failed or the response has no usable vector.
        """
        payload: dict = {"model": self._settings.model, "input": text}
        if self._settings.dimensions:
            payload["dimensions"] = self._settings.dimensions
            payload["encoding_format"] = "float"

        response = self._post(payload)
        try:
            vector = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingError(f"malformed embedding response: {exc!r}") from exc
        if not isinstance(vector, list) or not vector:
            raise EmbeddingError("embedding response contained no vector")
        return [float(x) for x in vector]

    # -- LangChain Embeddings interface ---------------------------------------

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]

    # -- internals ------------------------------------------------------------

    def _post(self, payload: dict) -> requests.Response:
        attempts = self._settings.max_retries
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                resp = self._session.post(self._url, json=payload, timeout=self._settings.timeout)
                if resp.status_code in _RETRYABLE_STATUS:
                    raise requests.HTTPError(f"HTTP {resp.status_code}", response=resp)
                resp.raise_for_status()
                return resp
            except requests.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                if status not in _RETRYABLE_STATUS:
                    raise EmbeddingError(f"embedding request rejected: {exc}") from exc
                last_exc = exc
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_exc = exc
            except requests.RequestException as exc:
                raise EmbeddingError(f"embedding request failed: {exc}") from exc

            if attempt < attempts:
                wait = self._backoff * 2 ** (attempt - 1)
                logger.warning("Retry %d/%d for embedding request (wait %.1fs): %s",
                               attempt, attempts, wait, last_exc)
                time.sleep(wait)

        raise EmbeddingError(f"embedding request failed after {attempts} attempts: {last_exc}")
