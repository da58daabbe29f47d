from typing import Literal

from pydantic import BaseModel, Field

from tuner_guide.models import Program, Service
from tuner_guide.services.fetch_types import NowNextPair
from tuner_guide.utils.timezone import format_epoch_ms


class ProgramResponse(BaseModel):
    """Single program data"""
    id: int
    event_id: int
    name: str | None
    description: str | None
    start_time: str = Field(..., description="ISO8601 start time in the requested timezone")
    end_time: str = Field(..., description="ISO8601 end time in the requested timezone")
    duration_sec: int

    @classmethod
    def from_program(cls, program: Program, timezone_str: str = "UTC") -> "ProgramResponse":
        return cls(
            id=program.id,
            event_id=program.event_id,
            name=program.name,
            description=program.description,
            start_time=format_epoch_ms(program.start_at, timezone_str),
            end_time=format_epoch_ms(program.end_at, timezone_str),
            duration_sec=program.duration_ms // 1000,
        )


class NowNextResponse(BaseModel):
    """Now/next pair of one service"""
    service_id: int
    now: ProgramResponse | None = None
    next: ProgramResponse | None = None
    refresh_after: str | None = Field(None, description="ISO8601 time the entry goes stale")
    fetching: bool = False

    @classmethod
    def from_pair(
        cls,
        service_id: int,
        pair: NowNextPair | None,
        *,
        refresh_after: int | None = None,
        fetching: bool = False,
        timezone_str: str = "UTC",
    ) -> "NowNextResponse":
        return cls(
            service_id=service_id,
            now=ProgramResponse.from_program(pair.now, timezone_str) if pair and pair.now else None,
            next=ProgramResponse.from_program(pair.next, timezone_str) if pair and pair.next else None,
            refresh_after=format_epoch_ms(refresh_after, timezone_str),
            fetching=fetching,
        )


class ServiceResponse(BaseModel):
    """Service list entry"""
    id: int
    service_id: int
    network_id: int
    name: str
    channel_type: str | None
    channel: str | None
    remote_control_key_id: int | None
    logo_url: str | None = None
    now_next: NowNextResponse | None = None

    @classmethod
    def from_service(
        cls,
        service: Service,
        *,
        logo_url: str | None = None,
        now_next: NowNextResponse | None = None,
    ) -> "ServiceResponse":
        return cls(
            id=service.id,
            service_id=service.service_id,
            network_id=service.network_id,
            name=service.name,
            channel_type=service.channel_type.value if service.channel_type else None,
            channel=service.channel.channel if service.channel else None,
            remote_control_key_id=service.remote_control_key_id,
            logo_url=logo_url,
            now_next=now_next,
        )


class ServiceListResponse(BaseModel):
    """Service list response"""
    timestamp: str
    timezone: str
    unique: bool
    total_services: int
    services: list[ServiceResponse]
    error: str | None = None


class ProgramListResponse(BaseModel):
    """Full program list of one service"""
    service_id: int
    timezone: str
    total_programs: int
    programs: list[ProgramResponse]


class ServiceUrlsResponse(BaseModel):
    service_id: int
    logo_url: str | None
    stream_url: str | None


class ReloadResponse(BaseModel):
    """Reload result"""
    status: Literal["fetched", "cached", "superseded", "failed"]
    services: int
    unique_services: int
    duplicate_candidates: int
    error: str | None = None


class ErrorDetail(BaseModel):
    """Standard error detail"""
    code: str = Field(..., description="Error code (e.g., 'FETCH_FAILED', 'NOT_CONFIGURED')")
    message: str = Field(..., description="Human-readable error message")
    context: dict | None = Field(None, description="Additional context about the error")


class StandardErrorResponse(BaseModel):
    """Standardized error response for all endpoints"""
    status: str = Field("error", description="Status indicator")
    timestamp: str = Field(..., description="ISO8601 timestamp of error")
    error: ErrorDetail = Field(..., description="Error details")
