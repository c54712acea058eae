"""Emotion classification gateway — sends a frame to the analysis service."""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np
import requests

from . import config
from .capture import encode_frame
from .emotions import Emotion
from .errors import AuthenticationError, ClassificationError


@dataclass(frozen=True)
class Classification:
    """Normalized analysis result."""

    emotion: Emotion
    source: str | None = None


def token_from_env() -> str | None:
    return os.environ.get(config.ENV_SUPABASE_JWT) or None


class ClassificationGateway:
    """Wraps one request/response exchange with the emotion analysis service.

    The service receives `{"image": <jpeg data URL>}` with a bearer token and
    answers `{"final_emotion": ..., "source": ...}`. Labels are normalized to
    the Emotion enum, so unexpected values arrive as Emotion.UNKNOWN.

    There is no retry here: every failure is raised to the caller, which
    decides whether to try again on its next sample.
    """

    def __init__(
        self,
        url: str | None = None,
        token_provider: Callable[[], str | None] = token_from_env,
        timeout: float = config.CLASSIFY_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url or os.environ.get(config.ENV_ANALYZE_URL) or config.ANALYZE_URL
        self._token_provider = token_provider
        self._timeout = timeout
        self._http = session or requests.Session()

    @property
    def url(self) -> str:
        return self._url

    def classify_sync(self, frame: np.ndarray) -> Classification:
        """Blocking classification of a single frame."""
        token = self._token_provider()
        if not token:
            raise AuthenticationError("No access token; log in again")

        try:
            payload = {"image": encode_frame(frame)}
        except ValueError as e:
            raise ClassificationError(str(e)) from e
        headers = {"Authorization": f"Bearer {token}"}

        start = time.time()
        try:
            response = self._http.post(self._url, json=payload, headers=headers, timeout=self._timeout)
        except requests.Timeout as e:
            raise ClassificationError(f"Analysis timed out after {self._timeout}s") from e
        except requests.RequestException as e:
            raise ClassificationError(f"Analysis request failed: {type(e).__name__}: {e}") from e
        elapsed = time.time() - start

        if response.status_code == 401:
            print(f"[CLASSIFIER] Auth rejected (401) ({elapsed:.1f}s)")
            raise AuthenticationError("Access token rejected; log in again")
        if not 200 <= response.status_code < 300:
            raise ClassificationError(f"Backend error: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ClassificationError("Analysis response is not JSON") from e
        if not isinstance(body, dict):
            raise ClassificationError("Analysis response is not an object")

        result = Classification(
            emotion=Emotion.parse(body.get("final_emotion")),
            source=body.get("source"),
        )
        print(f"[CLASSIFIER] {result.emotion.value} (source={result.source}) ({elapsed:.1f}s)")
        return result

    async def classify(self, frame: np.ndarray) -> Classification:
        """Classify without blocking the event loop."""
        return await asyncio.to_thread(self.classify_sync, frame)
