"""
Guide Service

Presentation-facing facade over the refresh engine. Resolves the configured
server URL, exposes the published guide state and builds logo/stream URLs.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from tuner_guide.config import CustomSettings
from tuner_guide.errors import ConfigurationError
from tuner_guide.models import Program, Service
from tuner_guide.services.fetch_types import NowNextPair, ReloadOutcome
from tuner_guide.services.mirakurun_client import EPGDataSource, MirakurunClient
from tuner_guide.services.now_next import sort_programs
from tuner_guide.services.refresh_scheduler import NowNextRefresher
from tuner_guide.services.sample_data_source import SampleDataSource
from tuner_guide.utils.endpoints import logo_url, resolve_stream_url


logger = logging.getLogger(__name__)


class GuideService:
    """Facade used by the API layer and scheduled jobs."""

    def __init__(
        self,
        settings: CustomSettings,
        data_source: EPGDataSource,
        refresher: NowNextRefresher | None = None,
    ) -> None:
        self.settings = settings
        self.data_source = data_source
        self.refresher = refresher or NowNextRefresher.from_settings(data_source, settings)

    @classmethod
    def from_settings(
        cls,
        settings: CustomSettings,
        *,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> GuideService:
        """Build the service with the data source selected by settings."""
        if settings.use_sample_data:
            logger.info("Using sample data source")
            data_source: EPGDataSource = SampleDataSource(clock) if clock else SampleDataSource()
        else:
            data_source = MirakurunClient(
                timeout=settings.http_timeout_sec,
                max_retries=settings.http_max_retries,
                backoff_factor=settings.http_backoff_factor,
            )

        overrides = {}
        if clock is not None:
            overrides["clock"] = clock
        if sleep is not None:
            overrides["sleep"] = sleep
        refresher = NowNextRefresher.from_settings(data_source, settings, **overrides)
        return cls(settings, data_source, refresher)

    @property
    def server_url(self) -> str | None:
        return self.settings.server_url

    @property
    def services(self) -> tuple[Service, ...]:
        return self.refresher.services

    @property
    def uniquified_services(self) -> tuple[Service, ...]:
        return self.refresher.uniquified_services

    @property
    def error_message(self) -> str | None:
        return self.refresher.error_message

    async def reload(self, *, force: bool = False) -> ReloadOutcome:
        return await self.refresher.reload(self.server_url, force=force)

    async def ensure_now_next(self, service: Service, force_refresh: bool = False) -> NowNextPair | None:
        return await self.refresher.ensure_now_next(service, self.server_url, force_refresh)

    def now_next_for(self, service_id: int) -> NowNextPair | None:
        return self.refresher.now_next_for(service_id)

    def find_service(self, service_id: int) -> Service | None:
        for service in self.refresher.services:
            if service.id == service_id:
                return service
        return None

    async def fetch_programs(self, service: Service) -> list[Program]:
        """
        Fetch the full program list of one service, sorted by start time

        Raises:
            ConfigurationError: If no valid server URL is configured
            FetchError: If the data source fails
        """
        server_url = self.server_url
        if not server_url:
            raise ConfigurationError()
        programs = await self.data_source.fetch_programs(server_url, service.network_id, service.service_id)
        return sort_programs(programs)

    def logo_url(self, service: Service) -> str | None:
        return logo_url(service, self.server_url)

    def stream_url(self, service: Service) -> str | None:
        return resolve_stream_url(
            service,
            self.server_url,
            use_hls_override=self.settings.use_hls_override,
            hls_template=self.settings.hls_template,
        )

    async def close(self) -> None:
        await self.refresher.close()
        await self.data_source.close()
