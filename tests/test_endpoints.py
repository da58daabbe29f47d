"""
Tests for tuner server URL builders.
"""
from tests.conftest import SERVER_URL, make_service
from tuner_guide.models import ChannelType
from tuner_guide.utils.endpoints import EndpointBuilder, logo_url, resolve_stream_url


class TestEndpointBuilder:
    def test_api_urls(self):
        endpoint = EndpointBuilder(SERVER_URL)

        assert endpoint.services_url == f"{SERVER_URL}/api/services"
        assert endpoint.version_url == f"{SERVER_URL}/api/version"
        assert endpoint.service_logo_url(42) == f"{SERVER_URL}/api/services/42/logo"
        assert endpoint.service_stream_url(42) == f"{SERVER_URL}/api/services/42/stream"
        assert endpoint.programs_url(1, 2) == f"{SERVER_URL}/api/programs?networkId=1&serviceId=2"


class TestLogoUrl:
    def test_requires_logo_data(self):
        assert logo_url(make_service(1, has_logo_data=True), SERVER_URL) == f"{SERVER_URL}/api/services/1/logo"
        assert logo_url(make_service(1, has_logo_data=False), SERVER_URL) is None
        assert logo_url(make_service(1, has_logo_data=None), SERVER_URL) is None

    def test_requires_server(self):
        assert logo_url(make_service(1, has_logo_data=True), None) is None


class TestResolveStreamUrl:
    def test_default_stream_endpoint(self):
        assert resolve_stream_url(make_service(7), SERVER_URL) == f"{SERVER_URL}/api/services/7/stream"

    def test_hls_template(self):
        service = make_service(7, network_id=4, channel_type=ChannelType.BS)

        url = resolve_stream_url(
            service,
            SERVER_URL,
            use_hls_override=True,
            hls_template=" {base}/hls/{channelType}/{channel}/{serviceId}-{networkId}.m3u8 ",
        )

        assert url == f"{SERVER_URL}/hls/BS/27/7-4.m3u8"

    def test_blank_template_falls_back(self):
        url = resolve_stream_url(make_service(7), SERVER_URL, use_hls_override=True, hls_template="   ")

        assert url == f"{SERVER_URL}/api/services/7/stream"

    def test_no_server(self):
        assert resolve_stream_url(make_service(7), None) is None
