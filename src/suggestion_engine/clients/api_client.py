"""HTTP client for the blog backend's suggestion endpoints."""

from __future__ import annotations

import logging
import os

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from suggestion_engine.config import ApiConfig
from suggestion_engine.errors import RetryableResolutionError, TerminalResolutionError
from suggestion_engine.models.suggestion import Suggestion

logger = logging.getLogger(__name__)


class SuggestionApiClient:
    """Async client bound to one post.

    Implements the backend interface the resolution manager calls. Network
    errors, 5xx and 429 responses are retried in-call with exponential
    backoff; any other 4xx fails immediately.
    """

    def __init__(
        self,
        post_id: str,
        config: ApiConfig | None = None,
        *,
        token: str | None = None,
        backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ApiConfig()
        base_url = self.config.resolved_base_url
        if not base_url:
            raise ValueError(
                "Suggestion API URL required. Set SUGGESTION_API_URL env var or api.base_url in config.yaml."
            )
        self.post_id = post_id
        self.token = token or os.environ.get("SUGGESTION_API_TOKEN")
        self.backoff = backoff
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self.config.timeout),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> SuggestionApiClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _path(self, suggestion_id: str | None = None) -> str:
        path = f"/api/posts/{self.post_id}/suggestions"
        if suggestion_id is not None:
            path = f"{path}/{suggestion_id}"
        return path

    async def _send(self, method: str, path: str, suggestion_id: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise RetryableResolutionError(suggestion_id, f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise RetryableResolutionError(suggestion_id, f"{method} {path} returned {status}", status)
        if status >= 400:
            raise TerminalResolutionError(suggestion_id, f"{method} {path} returned {status}", status)
        return response

    async def _request(self, method: str, path: str, suggestion_id: str = "", **kwargs) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, max=10),
            retry=retry_if_exception_type(RetryableResolutionError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug("Retrying %s %s (attempt %d)", method, path, attempt.retry_state.attempt_number)
                return await self._send(method, path, suggestion_id, **kwargs)

    async def _update_status(self, suggestion_id: str, status: str, edited_text: str | None = None) -> None:
        payload: dict = {"status": status}
        if edited_text is not None:
            payload["editedText"] = edited_text
        logger.info("Marking suggestion %s as %s", suggestion_id, status)
        await self._request("PUT", self._path(suggestion_id), suggestion_id, json=payload)

    async def accept_suggestion(self, suggestion_id: str, edited_text: str | None = None) -> None:
        await self._update_status(suggestion_id, "accepted", edited_text)

    async def reject_suggestion(self, suggestion_id: str) -> None:
        await self._update_status(suggestion_id, "rejected")

    async def get_suggestions(self) -> list[Suggestion]:
        """Fetch the current suggestion list for the post."""
        response = await self._request("GET", self._path())
        data = response.json()
        items = data.get("suggestions", []) if isinstance(data, dict) else data
        return [Suggestion.model_validate(item) for item in items]
