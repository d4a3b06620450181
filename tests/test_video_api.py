"""
Tests for the stream address and recordings helpers.
"""

import pytest

from ezviz_broker.errors import CredentialUnavailable, UpstreamError
from ezviz_broker.upstream.api import VideoApi

from fakes import TEST_DOMAIN, error_response, json_response

@pytest.fixture
def video_api(fake_client, valid_manager):
    return VideoApi(fake_client, valid_manager, timeout=5.0)

def sent_fields(call) -> list[tuple[str, str]]:
    return list(call["data"])

class TestVideoApi:

    @pytest.mark.asyncio
    async def test_live_address(self, video_api, fake_client):
        fake_client.responses.append(json_response({
            "code": "200",
            "data": {"id": "abc", "url": "https://hls.example/live.m3u8", "expireTime": "2026-10-19 10:00:00"},
        }))

        address = await video_api.fetch_live_stream_address("D123", channel=2, protocol=2)

        assert address.url == "https://hls.example/live.m3u8"
        assert address.id == "abc"
        call = fake_client.calls[0]
        assert call["url"] == f"{TEST_DOMAIN}/api/lapp/live/address/get"
        assert call["timeout"] == 5.0
        assert sent_fields(call) == [
            ("accessToken", "manager-token"),
            ("deviceSerial", "D123"),
            ("channelNo", "2"),
            ("protocol", "2"),
        ]

    @pytest.mark.asyncio
    async def test_playback_address(self, video_api, fake_client):
        fake_client.responses.append(json_response({"code": "200", "data": {"url": "https://hls.example/pb.m3u8"}}))

        address = await video_api.fetch_playback_address("D123", "2026-10-18 00:00:00", "2026-10-18 01:00:00")

        assert address.url == "https://hls.example/pb.m3u8"
        fields = dict(sent_fields(fake_client.calls[0]))
        assert fields["type"] == "2"
        assert fields["startTime"] == "2026-10-18 00:00:00"
        assert fields["endTime"] == "2026-10-18 01:00:00"

    @pytest.mark.asyncio
    async def test_malformed_address(self, video_api, fake_client):
        fake_client.responses.append(json_response({"code": "200", "data": {"id": "no-url"}}))

        with pytest.raises(UpstreamError):
            await video_api.fetch_live_stream_address("D123")

    @pytest.mark.asyncio
    async def test_device_error(self, video_api, fake_client):
        fake_client.responses.append(error_response("2003", "Device offline"))

        with pytest.raises(UpstreamError) as exc_info:
            await video_api.fetch_live_stream_address("D123")

        assert exc_info.value.code == "2003"

    @pytest.mark.asyncio
    async def test_local_recordings(self, video_api, fake_client):
        records = [{"startTime": 1, "endTime": 2}]
        fake_client.responses.append(json_response({"meta": {"code": 200, "message": "ok"}, "data": records}))

        result = await video_api.query_local_recordings("D123", "2026-10-18 00:00:00", "2026-10-18 23:59:59")

        assert result == records
        assert fake_client.calls[0]["url"] == f"{TEST_DOMAIN}/api/v3/das/device/local/video/query"

    @pytest.mark.asyncio
    async def test_local_recordings_empty(self, video_api, fake_client):
        fake_client.responses.append(json_response({"meta": {"code": 200}, "data": None}))

        assert await video_api.query_local_recordings("D123", "a", "b") == []

    @pytest.mark.asyncio
    async def test_disable_address(self, video_api, fake_client):
        fake_client.responses.append(json_response({"code": "200"}))

        assert await video_api.disable_stream_address("D123", "url-1") is True
        fields = dict(sent_fields(fake_client.calls[0]))
        assert fields["urlId"] == "url-1"

    @pytest.mark.asyncio
    async def test_requires_credential(self, fake_client, manager):
        video_api = VideoApi(fake_client, manager)

        with pytest.raises(CredentialUnavailable):
            await video_api.fetch_live_stream_address("D123")

        assert fake_client.calls == []
