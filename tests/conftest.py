"""
pytest configuration and shared fixtures for broker tests.
"""

import pytest
import pytest_asyncio

from ezviz_broker.credentials import CredentialManager

from fakes import DAY_MS, FakeClock, FakeUpstreamClient, token_response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeUpstreamClient()


@pytest_asyncio.fixture
async def manager(fake_client, clock):
    """CredentialManager wired to the fake client; background tasks are cancelled afterwards."""
    mgr = CredentialManager(
        client=fake_client,
        app_key="test-key",
        app_secret="test-secret",
        retry_delay=3600,
        clock=clock,
    )
    yield mgr
    await mgr.stop()


@pytest_asyncio.fixture
async def valid_manager(manager, fake_client, clock):
    """Manager holding a token valid for seven days."""
    fake_client.responses.append(token_response("manager-token", clock.now_ms + 7 * DAY_MS))
    await manager.initialize()
    fake_client.calls.clear()
    return manager
