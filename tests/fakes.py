"""
Test doubles and response builders shared across broker tests.
"""

import asyncio
import json
import time
from typing import Any, Optional

from ezviz_broker.errors import ProxyError
from ezviz_broker.upstream.client import RawResponse

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000

TEST_DOMAIN = "https://isaopen.ezvizlife.com"


class FakeClock:
    """Callable clock returning epoch seconds; advance() moves it forward."""

    def __init__(self, start: Optional[float] = None):
        self.now = start if start is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms / 1000

    @property
    def now_ms(self) -> int:
        return int(self.now * 1000)


class FakeUpstreamClient:
    """
    Scripted UpstreamClient.

    Each call pops the next entry from `responses`; an Exception entry is
    raised instead of returned. Set `hold` to an asyncio.Event to keep calls
    in flight until it is set.
    """

    def __init__(self, responses: Optional[list] = None):
        self.responses = list(responses or [])
        self.calls: list[dict] = []
        self.hold: Optional[asyncio.Event] = None

    async def _next(self, method: str, url: Any, **kwargs) -> RawResponse:
        self.calls.append({"method": method, "url": str(url), **kwargs})
        if self.hold is not None:
            await self.hold.wait()
        if not self.responses:
            raise ProxyError("no scripted response left")
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def request(self, method, url, data=None, headers=None, params=None, timeout=None):
        return await self._next(method, url, data=data, headers=headers, params=params, timeout=timeout)

    async def post(self, url, body=None, headers=None, timeout=None):
        return await self._next("POST", url, data=body, headers=headers, timeout=timeout)

    async def get(self, url, params=None, headers=None, timeout=None):
        return await self._next("GET", url, params=params, headers=headers, timeout=timeout)

    async def close(self):
        pass


def json_response(payload: Any, status: int = 200) -> RawResponse:
    return RawResponse(
        status=status,
        headers=[("Content-Type", "application/json")],
        body=json.dumps(payload).encode("utf-8"),
    )


def token_response(token: str, expire_ms: int, area_domain: Optional[str] = TEST_DOMAIN) -> RawResponse:
    data = {"accessToken": token, "expireTime": expire_ms}
    if area_domain is not None:
        data["areaDomain"] = area_domain
    return json_response({"code": "200", "msg": "Operation succeeded", "data": data})


def error_response(code: str = "10017", msg: str = "appKey does not exist") -> RawResponse:
    return json_response({"code": code, "msg": msg})
