"""
Credential lifecycle manager.

Owns the single EZVIZ access token used by the whole process: acquires it,
checks daily whether it needs renewal, and keeps retrying after failures.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from ..config import DEFAULT_AREA_DOMAIN, DEFAULT_TOKEN_URL
from ..errors import (
    AcquisitionError,
    CredentialUnavailable,
    ProxyError,
    UpstreamError,
    UpstreamTimeout,
)
from ..sentry import capture_exception, traced
from ..upstream.client import UpstreamClient, unwrap_envelope
from ..upstream.messages import TokenData
from .models import Credential, CredentialState

logger = logging.getLogger(__name__)

ONE_DAY_MS = 24 * 60 * 60 * 1000


class CredentialManager:
    """
    Maintains exactly one valid EZVIZ credential for the process.

    All acquisitions (initialize, renewal_check, force_renew and delayed
    retries) pass through a single gate, so at most one token request is in
    flight at any time. A trigger arriving while the gate is held is a no-op.

    Lifecycle:
        manager = CredentialManager(client, app_key, app_secret)
        await manager.start()   # first acquisition, schedules renewal
        ...
        await manager.stop()    # cancels renewal and retry tasks
    """

    def __init__(
        self,
        client: UpstreamClient,
        app_key: str,
        app_secret: str,
        token_url: str = DEFAULT_TOKEN_URL,
        default_domain: str = DEFAULT_AREA_DOMAIN,
        retry_delay: float = 300.0,
        renewal_hour: Optional[int] = 2,
        acquire_timeout: float = 10.0,
        renewal_threshold_ms: int = ONE_DAY_MS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the credential manager.

        Args:
            client: UpstreamClient used for token requests
            app_key: EZVIZ application key
            app_secret: EZVIZ application secret
            token_url: Token endpoint
            default_domain: Area domain used when the token response has none
            retry_delay: Seconds to wait before re-initializing after a failure
            renewal_hour: Local hour of the daily renewal check (None: every 24h from start)
            acquire_timeout: Timeout for each token request in seconds
            renewal_threshold_ms: Renew when less than this much validity remains
            clock: Returns the current epoch time in seconds
        """
        self._client = client
        self._app_key = app_key
        self._app_secret = app_secret
        self.token_url = token_url
        self.default_domain = default_domain.rstrip("/")
        self.retry_delay = retry_delay
        self.renewal_hour = renewal_hour
        self.acquire_timeout = acquire_timeout
        self.renewal_threshold_ms = renewal_threshold_ms
        self._clock = clock

        self._state = CredentialState.UNINITIALIZED
        self._credential: Optional[Credential] = None

        # Acquisition gate
        self._gate = asyncio.Lock()

        self._renewal_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def acquisition_in_flight(self) -> bool:
        return self._gate.locked()

    @property
    def retry_pending(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def start(self) -> None:
        """Start the manager: first acquisition, then renewal scheduling."""
        self._closed = False
        await self.initialize()
        logger.info(f"Credential manager started (state={self._state.value})")

    async def stop(self) -> None:
        """Stop the manager and cancel background tasks."""
        self._closed = True

        for task in (self._renewal_task, self._retry_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._renewal_task = None
        self._retry_task = None
        logger.info("Credential manager stopped")

    # ==================== Public operations ====================

    async def initialize(self) -> None:
        """
        Acquire a credential.

        On success the daily renewal check is scheduled. On failure a single
        retry of initialize() is scheduled after retry_delay; this repeats
        until an acquisition succeeds. Failures are never raised.
        """
        logger.info("Initializing EZVIZ token...")
        await self._acquire("initialize")

    def get_credential(self) -> Credential:
        """
        Get the current credential without waiting.

        Raises:
            CredentialUnavailable: If the state is not VALID
        """
        credential = self._credential
        if self._state is not CredentialState.VALID or credential is None:
            raise CredentialUnavailable()
        return credential

    async def renewal_check(self) -> None:
        """
        Renew the credential if it expires within the renewal threshold.

        While the renewal is in flight the state is ACQUIRING, and after a
        failed renewal it is FAILED until a retry succeeds. In both cases
        get_credential() raises even though the previous token may still be
        valid for up to the renewal threshold.
        """
        credential = self._credential
        if credential is None:
            logger.warning("No token held, reinitializing...")
            await self.initialize()
            return

        remaining = credential.remaining_ms(self._now_ms())
        if remaining < self.renewal_threshold_ms:
            logger.info(f"Token expires in {remaining / 3_600_000:.1f}h, renewing...")
            await self._acquire("renewal")
        else:
            logger.info(f"Token is still valid for {remaining // ONE_DAY_MS} days")

    async def force_renew(self) -> bool:
        """
        Acquire a fresh credential now (administrative).

        Returns:
            True if a new credential was stored by this call
        """
        logger.info("Forced token renewal requested")
        return await self._acquire("forced")

    def diagnostics(self) -> dict:
        """Read-only status for the status endpoint."""
        credential = self._credential
        return {
            "state": self._state.value,
            "hasCredential": credential is not None,
            "expiresAt": credential.expires_at.isoformat() if credential else None,
            "areaDomain": credential.area_domain if credential else None,
            "retryPending": self.retry_pending,
        }

    # ==================== Acquisition ====================

    @traced(op="credential", name="acquire_token")
    async def _acquire(self, reason: str) -> bool:
        """
        Run one acquisition through the gate.

        Returns:
            True if a new credential was stored
        """
        if self._gate.locked():
            logger.info(f"Token acquisition already in flight, ignoring {reason} trigger")
            return False

        async with self._gate:
            self._state = CredentialState.ACQUIRING
            try:
                credential = await self._fetch_credential()
            except AcquisitionError as e:
                self._state = CredentialState.FAILED
                logger.error(f"Failed to acquire EZVIZ token ({reason}): {e}")
                capture_exception(e, reason=reason)
                self._schedule_retry()
                return False

            # Single assignment: readers see the old or the new credential
            self._credential = credential
            self._state = CredentialState.VALID

        logger.info(f"EZVIZ token obtained ({reason}). Expires: {credential.expires_at.isoformat()}")
        self._ensure_renewal_task()
        return True

    async def _fetch_credential(self) -> Credential:
        """
        Request a token from the token endpoint.

        Raises:
            AcquisitionError: On any network, envelope or payload failure
        """
        try:
            response = await self._client.post(
                self.token_url,
                body={"appKey": self._app_key, "appSecret": self._app_secret},
                timeout=self.acquire_timeout,
            )
            data = TokenData.model_validate(unwrap_envelope(response))
        except (UpstreamError, UpstreamTimeout, ProxyError) as e:
            raise AcquisitionError("EZVIZ token request failed", cause=e)
        except ValidationError as e:
            raise AcquisitionError("EZVIZ token response is malformed", cause=e)

        if data.expireTime <= self._now_ms():
            raise AcquisitionError("EZVIZ returned an already expired token")

        return Credential(
            token=data.accessToken,
            expires_at_ms=data.expireTime,
            area_domain=(data.areaDomain or self.default_domain).rstrip("/"),
        )

    # ==================== Scheduling ====================

    def _schedule_retry(self) -> None:
        """Schedule one delayed initialize() unless one is already pending."""
        pending = self._retry_task
        if self._closed or (
            pending is not None and not pending.done() and pending is not asyncio.current_task()
        ):
            return

        logger.info(f"Retrying token acquisition in {self.retry_delay:.0f}s")
        self._retry_task = asyncio.create_task(self._retry_after(self.retry_delay))

    async def _retry_after(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self.initialize()
        finally:
            # A failing initialize() may already have replaced the reference
            if self._retry_task is asyncio.current_task():
                self._retry_task = None

    def _ensure_renewal_task(self) -> None:
        if self._closed:
            return
        if self._renewal_task is None or self._renewal_task.done():
            self._renewal_task = asyncio.create_task(self._renewal_loop())
            logger.info(f"Token renewal scheduled (daily at {self._schedule_label()})")

    def _schedule_label(self) -> str:
        if self.renewal_hour is None:
            return "24h interval"
        return f"{self.renewal_hour:02d}:00"

    def seconds_until_next_check(self) -> float:
        """Seconds from now until the next daily renewal check."""
        if self.renewal_hour is None:
            return ONE_DAY_MS / 1000

        now = datetime.fromtimestamp(self._clock())
        next_run = now.replace(hour=self.renewal_hour, minute=0, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    async def _renewal_loop(self) -> None:
        """Run renewal_check() once per day."""
        while not self._closed:
            await asyncio.sleep(self.seconds_until_next_check())
            try:
                await self.renewal_check()
            except Exception as e:
                logger.error(f"Renewal check error: {e}")
                capture_exception(e)
