"""
Tuner server data models

Immutable records decoded from the Mirakurun JSON API.
"""
from enum import Enum
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


logger = logging.getLogger(__name__)

PLAYABLE_SERVICE_TYPES = frozenset({1, 173})


class ChannelType(str, Enum):
    """Broadcast channel type"""
    GR = "GR"
    BS = "BS"
    CS = "CS"
    SKY = "SKY"


CHANNEL_TYPE_RANK: dict[ChannelType | None, int] = {
    ChannelType.GR: 0,
    ChannelType.BS: 1,
    ChannelType.CS: 2,
    ChannelType.SKY: 3,
    None: 4,
}


class _Record(BaseModel):
    """Base class for frozen camelCase records"""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ServiceChannel(_Record):
    """Physical channel a service is carried on"""
    type: ChannelType | None = None
    channel: str = ""
    name: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def parse_channel_type(cls, value):
        """Map unknown channel types to None instead of failing the whole list."""
        if value is None or isinstance(value, ChannelType):
            return value
        try:
            return ChannelType(str(value).upper())
        except ValueError:
            logger.debug("Unknown channel type %r, treating as absent", value)
            return None


class Service(_Record):
    """Broadcast service as listed by the tuner server"""
    id: int
    service_id: int
    network_id: int
    name: str = ""
    service_type: int = Field(default=1, alias="type")
    logo_id: int | None = None
    has_logo_data: bool | None = None
    remote_control_key_id: int | None = None
    epg_ready: bool | None = None
    epg_updated_at: int | None = None
    channel: ServiceChannel | None = None

    @property
    def channel_type(self) -> ChannelType | None:
        return self.channel.type if self.channel else None

    @property
    def is_playable_broadcast(self) -> bool:
        return self.service_type in PLAYABLE_SERVICE_TYPES

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, rc={self.remote_control_key_id})>"


class Program(_Record):
    """Single EPG event; times are epoch milliseconds"""
    id: int
    event_id: int
    service_id: int
    network_id: int
    start_at: int
    duration_ms: int = Field(alias="duration")
    is_free: bool = True
    name: str | None = None
    description: str | None = None

    @property
    def end_at(self) -> int:
        return self.start_at + self.duration_ms

    def is_current(self, reference_time: int) -> bool:
        return self.start_at <= reference_time < self.end_at

    def __repr__(self) -> str:
        return f"<Program(id={self.id}, name={self.name}, start_at={self.start_at})>"


class ServerVersion(_Record):
    """Tuner server version information"""
    current: str
    latest: str | None = None


def service_sort_key(service: Service) -> tuple[int, float, int, int]:
    """
    Sort key implementing the service list ordering contract.

    Channel type rank (GR < BS < CS < SKY < absent), then remote control key
    (absent last), then service id, then id.
    """
    remote_key = service.remote_control_key_id
    return (
        CHANNEL_TYPE_RANK[service.channel_type],
        remote_key if remote_key is not None else float("inf"),
        service.service_id,
        service.id,
    )


def sort_services(services: list[Service]) -> list[Service]:
    """Return services ordered by the service list ordering contract."""
    return sorted(services, key=service_sort_key)
