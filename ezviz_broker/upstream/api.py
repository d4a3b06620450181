"""
Direct EZVIZ API helpers used by the stream and recordings routes.

Each helper takes the current credential from the manager, calls one
endpoint on the credential's area domain, and unwraps the envelope.
"""

import logging
from typing import Any

from pydantic import ValidationError

from ..config import DEFAULT_CREDENTIAL_PARAM
from ..credentials import CredentialManager
from ..errors import UpstreamError
from .client import UpstreamClient, unwrap_envelope
from .messages import StreamAddress

logger = logging.getLogger(__name__)

LIVE_ADDRESS_PATH = "/api/lapp/live/address/get"
DISABLE_ADDRESS_PATH = "/api/lapp/live/address/disable"
LOCAL_VIDEO_QUERY_PATH = "/api/v3/das/device/local/video/query"

# Transport protocol codes for stream addresses
PROTOCOL_EZOPEN = 1
PROTOCOL_HLS = 2
PROTOCOL_RTMP = 3
PROTOCOL_FLV = 4

# type parameter of live/address/get selecting local playback
ADDRESS_TYPE_PLAYBACK = 2


class VideoApi:
    """Stream address and recordings helpers built on the shared credential."""

    def __init__(
        self,
        client: UpstreamClient,
        credentials: CredentialManager,
        timeout: float = 10.0,
        credential_param: str = DEFAULT_CREDENTIAL_PARAM,
    ):
        self._client = client
        self._credentials = credentials
        self.timeout = timeout
        self.credential_param = credential_param

    async def _call(self, path: str, fields: list[tuple[str, Any]]) -> Any:
        """
        POST a form to path on the credential's area domain.

        Raises:
            CredentialUnavailable: If no credential is held
            UpstreamError: On a failure envelope
            UpstreamTimeout / ProxyError: On transport failure
        """
        credential = self._credentials.get_credential()
        body = [(self.credential_param, credential.token)] + [(k, str(v)) for k, v in fields]
        response = await self._client.post(
            f"{credential.area_domain}{path}",
            body=body,
            timeout=self.timeout,
        )
        return unwrap_envelope(response)

    async def _stream_address(self, fields: list[tuple[str, Any]]) -> StreamAddress:
        data = await self._call(LIVE_ADDRESS_PATH, fields)
        try:
            return StreamAddress.model_validate(data)
        except ValidationError:
            raise UpstreamError(code="200", message="Stream address response is malformed")

    async def fetch_live_stream_address(
        self,
        device_serial: str,
        channel: int = 1,
        protocol: int = PROTOCOL_HLS,
    ) -> StreamAddress:
        """
        Get a live stream URL for a device channel.

        Args:
            device_serial: Device serial number
            channel: Channel number (1-based)
            protocol: Transport protocol code (1 ezopen, 2 HLS, 3 RTMP, 4 FLV)

        Returns:
            StreamAddress with url, id and expireTime
        """
        logger.info(f"Requesting live address for {device_serial} ch{channel} protocol={protocol}")
        return await self._stream_address([
            ("deviceSerial", device_serial),
            ("channelNo", channel),
            ("protocol", protocol),
        ])

    async def fetch_playback_address(
        self,
        device_serial: str,
        start_time: str,
        end_time: str,
        channel: int = 1,
        protocol: int = PROTOCOL_HLS,
    ) -> StreamAddress:
        """
        Get a playback URL for recorded video between start_time and end_time.

        Times use the upstream format YYYY-MM-DD HH:mm:ss.
        """
        logger.info(f"Requesting playback address for {device_serial} ch{channel} {start_time} - {end_time}")
        return await self._stream_address([
            ("deviceSerial", device_serial),
            ("channelNo", channel),
            ("protocol", protocol),
            ("type", ADDRESS_TYPE_PLAYBACK),
            ("startTime", start_time),
            ("endTime", end_time),
        ])

    async def query_local_recordings(
        self,
        device_serial: str,
        start_time: str,
        end_time: str,
        channel: int = 1,
    ) -> list:
        """List recordings stored on the device's local storage."""
        logger.info(f"Querying local recordings for {device_serial} ch{channel} {start_time} - {end_time}")
        data = await self._call(LOCAL_VIDEO_QUERY_PATH, [
            ("deviceSerial", device_serial),
            ("channelNo", channel),
            ("startTime", start_time),
            ("endTime", end_time),
        ])
        return data or []

    async def disable_stream_address(self, device_serial: str, url_id: str, channel: int = 1) -> bool:
        """Invalidate a previously issued stream URL."""
        logger.info(f"Disabling stream address {url_id} for {device_serial} ch{channel}")
        await self._call(DISABLE_ADDRESS_PATH, [
            ("deviceSerial", device_serial),
            ("channelNo", channel),
            ("urlId", url_id),
        ])
        return True
