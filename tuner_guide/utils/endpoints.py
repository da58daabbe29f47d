"""
Tuner server URL builders

Templated URL construction for the Mirakurun API, service logos and live
streams.
"""
from dataclasses import dataclass
from urllib.parse import urlencode

from tuner_guide.models import Service


@dataclass(frozen=True, slots=True)
class EndpointBuilder:
    """Builds Mirakurun API URLs from a normalized server URL (no trailing slash)."""
    server_url: str

    @property
    def api_base_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/api"

    @property
    def services_url(self) -> str:
        return f"{self.api_base_url}/services"

    @property
    def version_url(self) -> str:
        return f"{self.api_base_url}/version"

    def service_logo_url(self, service_id: int) -> str:
        return f"{self.services_url}/{service_id}/logo"

    def service_stream_url(self, service_id: int) -> str:
        return f"{self.services_url}/{service_id}/stream"

    def programs_url(self, network_id: int, service_id: int) -> str:
        query = urlencode({"networkId": network_id, "serviceId": service_id})
        return f"{self.api_base_url}/programs?{query}"


def logo_url(service: Service, server_url: str | None) -> str | None:
    """Logo URL for a service, or None when the server has no logo for it."""
    if service.has_logo_data is not True or not server_url:
        return None
    return EndpointBuilder(server_url).service_logo_url(service.id)


def resolve_stream_url(
    service: Service,
    server_url: str | None,
    *,
    use_hls_override: bool = False,
    hls_template: str = "",
) -> str | None:
    """
    Resolve the playback URL for a service

    When the HLS override is enabled and a template is set, placeholders
    {serviceId}, {networkId}, {channelType}, {channel} and {base} are
    substituted. Otherwise the raw MPEG-TS stream endpoint is returned.

    Returns:
        Playback URL, or None when no server is configured
    """
    if not server_url:
        return None

    template = hls_template.strip()
    if use_hls_override and template:
        replacements = {
            "{serviceId}": str(service.id),
            "{networkId}": str(service.network_id),
            "{channelType}": service.channel_type.value if service.channel_type else "",
            "{channel}": service.channel.channel if service.channel else "",
            "{base}": server_url,
        }
        value = template
        for placeholder, replacement in replacements.items():
            value = value.replace(placeholder, replacement)
        return value

    return EndpointBuilder(server_url).service_stream_url(service.id)
