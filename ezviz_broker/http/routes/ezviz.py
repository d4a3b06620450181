"""
EZVIZ stream, recordings and token status routes.

Camera ownership checks and field validation belong to the application in
front of this service; these routes only translate to upstream calls.
"""

from typing import Annotated

from litestar import Controller, delete, get, post
from litestar.params import Dependency, Parameter

from ...credentials import CredentialManager
from ...upstream.api import PROTOCOL_HLS, VideoApi

Channel = Annotated[int, Parameter(query="channelNo", ge=1)]
Protocol = Annotated[int, Parameter(query="protocol", ge=1, le=4)]
StartTime = Annotated[str, Parameter(query="startTime")]
EndTime = Annotated[str, Parameter(query="endTime")]

Credentials = Annotated[CredentialManager, Dependency(skip_validation=True)]
Video = Annotated[VideoApi, Dependency(skip_validation=True)]


class EzvizController(Controller):
    """Direct EZVIZ helper endpoints."""

    path = "/api/ezviz"

    @get("/status")
    async def get_status(self, credentials: Credentials) -> dict:
        """Get credential diagnostics."""
        return {"status": "OK", **credentials.diagnostics()}

    @post("/token/renew", status_code=200)
    async def renew_token(self, credentials: Credentials) -> dict:
        """Force a token acquisition (diagnostics)."""
        renewed = await credentials.force_renew()
        return {"renewed": renewed, **credentials.diagnostics()}

    @get("/live/{device_serial:str}")
    async def get_live_stream(
        self,
        device_serial: str,
        video_api: Video,
        channel: Channel = 1,
        protocol: Protocol = PROTOCOL_HLS,
    ) -> dict:
        """Get a live stream URL for a camera."""
        address = await video_api.fetch_live_stream_address(device_serial, channel, protocol)
        return {
            "message": "Live stream URL obtained successfully",
            "data": {
                "url": address.url,
                "id": address.id,
                "expireTime": address.expireTime,
                "deviceSerial": device_serial,
                "channelNo": channel,
                "protocol": protocol,
            },
        }

    @get("/playback/{device_serial:str}")
    async def get_playback_stream(
        self,
        device_serial: str,
        video_api: Video,
        start_time: StartTime,
        end_time: EndTime,
        channel: Channel = 1,
        protocol: Protocol = PROTOCOL_HLS,
    ) -> dict:
        """Get a playback stream URL for a recorded interval."""
        address = await video_api.fetch_playback_address(
            device_serial, start_time, end_time, channel, protocol
        )
        return {
            "message": "Playback stream URL obtained successfully",
            "data": {
                "url": address.url,
                "id": address.id,
                "expireTime": address.expireTime,
                "deviceSerial": device_serial,
                "startTime": start_time,
                "endTime": end_time,
                "channelNo": channel,
                "protocol": protocol,
            },
        }

    @get("/records/{device_serial:str}")
    async def get_records(
        self,
        device_serial: str,
        video_api: Video,
        start_time: StartTime,
        end_time: EndTime,
        channel: Channel = 1,
    ) -> dict:
        """Query recordings on the device's local storage."""
        records = await video_api.query_local_recordings(device_serial, start_time, end_time, channel)
        return {
            "message": "Local video records queried successfully",
            "data": {
                "records": records,
                "count": len(records),
                "deviceSerial": device_serial,
                "startTime": start_time,
                "endTime": end_time,
                "channelNo": channel,
            },
        }

    @delete("/live/{device_serial:str}/{url_id:str}", status_code=200)
    async def disable_live_stream(
        self,
        device_serial: str,
        url_id: str,
        video_api: Video,
        channel: Channel = 1,
    ) -> dict:
        """Invalidate a previously issued stream URL."""
        await video_api.disable_stream_address(device_serial, url_id, channel)
        return {"disabled": True, "deviceSerial": device_serial, "urlId": url_id}
