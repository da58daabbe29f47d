"""
Mirakurun Data Source

Fetches the service list and per-service program lists from a Mirakurun
tuner server over HTTP, with retry on transient failures.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from tuner_guide.errors import FetchError
from tuner_guide.models import Program, ServerVersion, Service, sort_services
from tuner_guide.utils.endpoints import EndpointBuilder
from tuner_guide.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERVICES_ADAPTER = TypeAdapter(list[Service])
_PROGRAMS_ADAPTER = TypeAdapter(list[Program])
_VERSION_ADAPTER = TypeAdapter(ServerVersion)


class EPGDataSource(Protocol):
    """Contract consumed by the refresh engine."""

    async def fetch_services(self, server_url: str) -> list[Service]: ...

    async def fetch_programs(self, server_url: str, network_id: int, service_id: int) -> list[Program]: ...

    async def check_version(self, server_url: str) -> ServerVersion: ...

    async def close(self) -> None: ...


class MirakurunClient:
    """
    HTTP client for the Mirakurun API.

    Retries on transient network errors and 5xx responses with exponential
    backoff. 4xx responses and undecodable bodies fail immediately.
    Every failure surfaces as FetchError.
    """

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def check_version(self, server_url: str) -> ServerVersion:
        endpoint = EndpointBuilder(server_url)
        return await self._get(endpoint.version_url, _VERSION_ADAPTER)

    async def fetch_services(self, server_url: str) -> list[Service]:
        """
        Fetch playable broadcast services ordered by channel type and remote key

        Raises:
            FetchError: If the request fails or the body cannot be decoded
        """
        endpoint = EndpointBuilder(server_url)
        services = await self._get(endpoint.services_url, _SERVICES_ADAPTER)
        playable = [service for service in services if service.is_playable_broadcast]
        logger.debug(
            "Fetched %s services from %s (%s playable)",
            len(services),
            sanitize_url(server_url),
            len(playable),
        )
        return sort_services(playable)

    async def fetch_programs(self, server_url: str, network_id: int, service_id: int) -> list[Program]:
        """
        Fetch the program list of one service

        The server's ordering is not relied upon; callers sort as needed.

        Raises:
            FetchError: If the request fails or the body cannot be decoded
        """
        endpoint = EndpointBuilder(server_url)
        programs = await self._get(
            endpoint.programs_url(network_id=network_id, service_id=service_id),
            _PROGRAMS_ADAPTER,
        )
        logger.debug(
            "Fetched %s programs for network %s service %s",
            len(programs),
            network_id,
            service_id,
        )
        return programs

    async def _get(self, url: str, adapter: TypeAdapter[T]) -> T:
        payload = await self._get_json(url)
        try:
            return adapter.validate_python(payload)
        except ValidationError as e:
            logger.error("Invalid response from %s: %s", sanitize_url(url), e)
            raise FetchError(f"Unexpected response from tuner server: {e.error_count()} invalid field(s)") from e

    async def _get_json(self, url: str) -> Any:
        last_error: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                response = await self._client.get(url)
                response.raise_for_status()
                return response.json()

            except (httpx.TimeoutException, httpx.TransportError) as e:
                # Transient network errors - retry
                last_error = e
                if attempt < self._max_retries - 1:
                    wait_time = self._backoff_factor ** attempt
                    logger.warning(
                        f"Request attempt {attempt + 1}/{self._max_retries} failed (transient error): {type(e).__name__}. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"Request to {sanitize_url(url)} failed after {self._max_retries} attempts (transient error)")

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                # HTTP errors - don't retry on 4xx (client error), retry on 5xx (server error)
                if 400 <= status < 500:
                    logger.error(f"HTTP {status} (client error) from {sanitize_url(url)}")
                    raise FetchError(f"Mirakurun request failed with status {status}.", status_code=status) from e

                last_error = e
                if attempt < self._max_retries - 1:
                    wait_time = self._backoff_factor ** attempt
                    logger.warning(
                        f"Request attempt {attempt + 1}/{self._max_retries} failed "
                        f"(HTTP {status} server error). "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"Request to {sanitize_url(url)} failed after {self._max_retries} attempts (HTTP {status})")

            except ValueError as e:
                logger.error("Response from %s is not valid JSON: %s", sanitize_url(url), e)
                raise FetchError("Tuner server returned a malformed response.") from e

        if isinstance(last_error, httpx.HTTPStatusError):
            status = last_error.response.status_code
            raise FetchError(f"Mirakurun request failed with status {status}.", status_code=status) from last_error
        if last_error:
            raise FetchError(f"Could not reach tuner server: {type(last_error).__name__}") from last_error

        raise FetchError(f"Failed to fetch {sanitize_url(url)} after {self._max_retries} attempts")
