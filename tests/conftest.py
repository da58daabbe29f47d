"""
Shared fixtures for the tuner guide tests.
"""
import asyncio

import pytest

from tuner_guide.errors import FetchError
from tuner_guide.models import ChannelType, Program, Service, ServiceChannel


T0 = 1_700_000_000_000
MINUTE_MS = 60_000
SERVER_URL = "http://tuner.local:40772"


def make_service(
    id: int,
    *,
    remote_control_key_id: int | None = 1,
    channel_type: ChannelType | None = ChannelType.GR,
    network_id: int = 1,
    service_id: int | None = None,
    name: str | None = None,
    has_logo_data: bool | None = None,
) -> Service:
    return Service(
        id=id,
        service_id=service_id if service_id is not None else id,
        network_id=network_id,
        name=name or f"Service {id}",
        service_type=1,
        has_logo_data=has_logo_data,
        remote_control_key_id=remote_control_key_id,
        channel=ServiceChannel(type=channel_type, channel="27") if channel_type else None,
    )


def make_program(
    id: int,
    start_at: int,
    minutes: int = 30,
    *,
    name: str | None = "News",
    service_id: int = 1,
    network_id: int = 1,
) -> Program:
    return Program(
        id=id,
        event_id=id,
        service_id=service_id,
        network_id=network_id,
        start_at=start_at,
        duration_ms=minutes * MINUTE_MS,
        name=name,
    )


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeDataSource:
    """In-memory data source recording every call."""

    def __init__(self, services=None, programs=None):
        self.services = list(services or [])
        self.programs: dict[int, list[Program]] = dict(programs or {})
        self.service_calls = 0
        self.program_calls: list[int] = []
        self.fail_services = False
        self.failing_program_ids: set[int] = set()
        self.gates: dict[int, asyncio.Event] = {}
        self.service_gates: list[asyncio.Event] = []
        self.closed = False

    async def fetch_services(self, server_url):
        self.service_calls += 1
        if self.service_gates:
            await self.service_gates.pop(0).wait()
        if self.fail_services:
            raise FetchError("Mirakurun request failed with status 500.", status_code=500)
        return list(self.services)

    async def fetch_programs(self, server_url, network_id, service_id):
        self.program_calls.append(service_id)
        gate = self.gates.get(service_id)
        if gate is not None:
            await gate.wait()
        if service_id in self.failing_program_ids:
            raise FetchError("Could not reach tuner server: ConnectError")
        return list(self.programs.get(service_id, []))

    async def check_version(self, server_url):
        raise NotImplementedError

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_source():
    return FakeDataSource()
