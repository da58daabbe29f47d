"""
Sample Data Source

Offline stand-in for the tuner server used for demos and UI testing. It
satisfies the same contract as MirakurunClient.
"""
import logging
from collections.abc import Callable

from tuner_guide.models import ChannelType, Program, ServerVersion, Service, ServiceChannel, sort_services
from tuner_guide.utils.timezone import now_ms


logger = logging.getLogger(__name__)

HALF_HOUR_MS = 30 * 60 * 1000


def _sample_service(
    id: int,
    name: str,
    network_id: int,
    remote_control_key_id: int,
    channel_type: ChannelType,
    channel: str,
) -> Service:
    return Service(
        id=id,
        service_id=id,
        network_id=network_id,
        name=name,
        service_type=1,
        has_logo_data=False,
        remote_control_key_id=remote_control_key_id,
        epg_ready=True,
        channel=ServiceChannel(type=channel_type, channel=channel, name="Sample"),
    )


SAMPLE_SERVICES: list[Service] = [
    _sample_service(101, "NHK Sample 1", 1, 1, ChannelType.GR, "27"),
    _sample_service(103, "NHK Sample 1 (Sub)", 1, 1, ChannelType.GR, "27"),
    _sample_service(102, "Tokyo MX Sample", 1, 9, ChannelType.GR, "23"),
    _sample_service(201, "BS Sample 4K", 4, 4, ChannelType.BS, "141"),
]


class SampleDataSource:
    """Generates a fixed service list and two back-to-back programs per service."""

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock

    async def close(self) -> None:
        return None

    async def check_version(self, server_url: str) -> ServerVersion:
        return ServerVersion(current="sample", latest=None)

    async def fetch_services(self, server_url: str) -> list[Service]:
        logger.debug("Serving %s sample services", len(SAMPLE_SERVICES))
        return sort_services(SAMPLE_SERVICES)

    async def fetch_programs(self, server_url: str, network_id: int, service_id: int) -> list[Program]:
        # Align to the half hour so simulcast samples share start times
        start = self._clock() // HALF_HOUR_MS * HALF_HOUR_MS
        base_id = service_id * 10
        return [
            Program(
                id=base_id + 1,
                event_id=1,
                service_id=service_id,
                network_id=network_id,
                start_at=start,
                duration_ms=HALF_HOUR_MS,
                name="Sample Program A",
                description="Sample data for UI verification.",
            ),
            Program(
                id=base_id + 2,
                event_id=2,
                service_id=service_id,
                network_id=network_id,
                start_at=start + HALF_HOUR_MS,
                duration_ms=HALF_HOUR_MS,
                name="Sample Program B",
                description="Next program in UI test dataset.",
            ),
        ]
