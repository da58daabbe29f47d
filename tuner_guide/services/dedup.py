"""
Simulcast deduplication

Groups services sharing a remote control key and collapses services that are
currently airing the same program.
"""
import logging
from collections.abc import Mapping, Sequence

from tuner_guide.models import Service
from tuner_guide.services.fetch_types import DedupGroupKey, DedupIdentity, NowNextPair


logger = logging.getLogger(__name__)


def group_key(service: Service) -> DedupGroupKey | None:
    """Return the simulcast group key, or None when the service has no remote control key."""
    if service.remote_control_key_id is None:
        return None
    return DedupGroupKey(
        channel_type=service.channel_type,
        network_id=service.network_id,
        remote_control_key_id=service.remote_control_key_id,
    )


def candidate_groups(services: Sequence[Service]) -> dict[DedupGroupKey, list[Service]]:
    """
    Group services by simulcast key, keeping only groups with two or more members.

    Args:
        services: Service list in display order

    Returns:
        Mapping of group key to its members, both in service list order
    """
    groups: dict[DedupGroupKey, list[Service]] = {}
    for service in services:
        key = group_key(service)
        if key is not None:
            groups.setdefault(key, []).append(service)

    return {key: members for key, members in groups.items() if len(members) >= 2}


def duplicate_candidates(services: Sequence[Service]) -> list[Service]:
    """Flatten candidate groups back into service list order."""
    candidate_ids = {
        service.id
        for members in candidate_groups(services).values()
        for service in members
    }
    return [service for service in services if service.id in candidate_ids]


def normalize_title(title: str | None) -> str | None:
    """Strip surrounding whitespace; empty titles never take part in dedup."""
    if title is None:
        return None
    stripped = title.strip()
    return stripped or None


def dedup_identity(service: Service, pair: NowNextPair | None) -> DedupIdentity | None:
    """Identity of the broadcast a service is currently airing, if it can be determined."""
    key = group_key(service)
    if key is None or pair is None or pair.now is None:
        return None

    title = normalize_title(pair.now.name)
    if title is None:
        return None

    return DedupIdentity(
        group=key,
        title=title,
        start_at=pair.now.start_at,
        duration_ms=pair.now.duration_ms,
    )


def uniquify(
    services: Sequence[Service],
    now_next_by_service_id: Mapping[int, NowNextPair],
) -> list[Service]:
    """
    Drop services that air the same program as an earlier service in the list.

    Services without a group key or a titled current program are always kept.
    The result depends only on the inputs, so callers recompute it whenever
    either changes.
    """
    seen: set[DedupIdentity] = set()
    result: list[Service] = []

    for service in services:
        identity = dedup_identity(service, now_next_by_service_id.get(service.id))
        if identity is None:
            result.append(service)
            continue
        if identity in seen:
            logger.debug("Collapsing duplicate service %s (%s)", service.id, identity.title)
            continue
        seen.add(identity)
        result.append(service)

    return result
