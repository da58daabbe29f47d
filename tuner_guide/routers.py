from datetime import datetime, timezone
from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from tuner_guide.dependencies import get_guide_service
from tuner_guide.models import Service
from tuner_guide.schemas import (
    NowNextResponse,
    ProgramListResponse,
    ProgramResponse,
    ReloadResponse,
    ServiceListResponse,
    ServiceResponse,
    ServiceUrlsResponse,
)
from tuner_guide.services import GuideService, guide_scheduler
from tuner_guide.utils.timezone import TimezoneError, format_epoch_ms, resolve_timezone


logger = logging.getLogger(__name__)

main_router = APIRouter()

GuideDep = Annotated[GuideService, Depends(get_guide_service)]


def validated_timezone(
    tz: Annotated[str, Query(alias="timezone", description="IANA timezone for response timestamps")] = "UTC",
) -> str:
    """Validate the timezone query parameter"""
    try:
        resolve_timezone(tz)
    except TimezoneError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return tz


TimezoneDep = Annotated[str, Depends(validated_timezone)]


def _require_service(guide: GuideService, service_id: int) -> Service:
    service = guide.find_service(service_id)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    return service


def _now_next_response(guide: GuideService, service_id: int, timezone_str: str) -> NowNextResponse:
    refresher = guide.refresher
    return NowNextResponse.from_pair(
        service_id,
        refresher.now_next_for(service_id),
        refresh_after=refresher.refresh_after_for(service_id),
        fetching=refresher.is_fetching(service_id),
        timezone_str=timezone_str,
    )


@main_router.get("/")
async def root() -> dict:
    """Root endpoint with service information"""
    next_run = guide_scheduler.get_next_run_time()

    return {
        "service": "Tuner Guide",
        "version": "0.1.0",
        "next_scheduled_reload": next_run.isoformat() if next_run else None,
        "endpoints": {
            "reload": "/reload - Reload the service list (POST)",
            "services": "/services - List services (simulcasts collapsed by default)",
            "now_next": "/services/{id}/now-next - Current and next program",
            "programs": "/services/{id}/programs - Full program list",
            "urls": "/services/{id}/urls - Logo and stream URLs",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check(guide: GuideDep) -> dict:
    """Health check endpoint"""
    next_run = guide_scheduler.get_next_run_time()
    return {
        "status": "ok" if guide.error_message is None else "degraded",
        "scheduler_running": guide_scheduler.running,
        "next_reload": next_run.isoformat() if next_run else None,
        "background_refresh_scheduled": guide.refresher.is_refresh_scheduled,
        "services": len(guide.services),
        "loading": guide.refresher.is_loading,
        "last_list_fetch": format_epoch_ms(guide.refresher.last_list_fetch),
        "error": guide.error_message,
    }


@main_router.post("/reload", response_model=ReloadResponse)
async def trigger_reload(guide: GuideDep, force: bool = False) -> ReloadResponse:
    """
    Reload the service list and refresh simulcast candidates

    A list fetched within the reuse window is reused unless force is set.
    """
    logger.info("Manual guide reload triggered via API (force=%s)", force)
    outcome = await guide.reload(force=force)
    return ReloadResponse(**outcome.to_dict())


@main_router.get("/services", response_model=ServiceListResponse)
async def list_services(
    guide: GuideDep,
    timezone_str: TimezoneDep,
    unique: bool = True,
) -> ServiceListResponse:
    """
    List services with their cached now/next programs

    Args:
        unique: Collapse simulcast duplicates currently airing the same program
    """
    services = guide.uniquified_services if unique else guide.services
    return ServiceListResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        timezone=timezone_str,
        unique=unique,
        total_services=len(services),
        services=[
            ServiceResponse.from_service(
                service,
                logo_url=guide.logo_url(service),
                now_next=_now_next_response(guide, service.id, timezone_str),
            )
            for service in services
        ],
        error=guide.error_message,
    )


@main_router.get("/services/{service_id}/now-next", response_model=NowNextResponse)
async def get_now_next(
    service_id: int,
    guide: GuideDep,
    timezone_str: TimezoneDep,
    force: bool = False,
) -> NowNextResponse:
    """Ensure the now/next entry of a service is fresh and return it"""
    service = _require_service(guide, service_id)
    await guide.ensure_now_next(service, force_refresh=force)
    return _now_next_response(guide, service_id, timezone_str)


@main_router.get("/services/{service_id}/programs", response_model=ProgramListResponse)
async def get_programs(
    service_id: int,
    guide: GuideDep,
    timezone_str: TimezoneDep,
) -> ProgramListResponse:
    """Full program list of a service, sorted by start time"""
    service = _require_service(guide, service_id)
    programs = await guide.fetch_programs(service)
    return ProgramListResponse(
        service_id=service_id,
        timezone=timezone_str,
        total_programs=len(programs),
        programs=[ProgramResponse.from_program(program, timezone_str) for program in programs],
    )


@main_router.get("/services/{service_id}/urls", response_model=ServiceUrlsResponse)
async def get_service_urls(service_id: int, guide: GuideDep) -> ServiceUrlsResponse:
    """Logo and playback URLs of a service"""
    service = _require_service(guide, service_id)
    return ServiceUrlsResponse(
        service_id=service_id,
        logo_url=guide.logo_url(service),
        stream_url=guide.stream_url(service),
    )
