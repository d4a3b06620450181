#!/usr/bin/env python3
"""
EZVIZ Broker - Main entry point.

This service is responsible for:
1. Keeping one valid EZVIZ access token for the whole process
2. Renewing it before expiry and retrying after failures
3. Forwarding EZVIZ API calls with the token injected
4. Serving stream URL, recordings and status endpoints via HTTP
"""

import asyncio
import logging

import uvicorn
import uvloop
from dotenv import load_dotenv

from ezviz_broker.config import load_settings
from ezviz_broker.credentials import CredentialManager
from ezviz_broker.errors import ConfigError
from ezviz_broker.forwarding import AuthenticatedForwarder
from ezviz_broker.http import create_app
from ezviz_broker.sentry import init_sentry
from ezviz_broker.upstream import UpstreamClient
from ezviz_broker.upstream.api import VideoApi

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Main entry point."""
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return

    init_sentry(settings.sentry_dsn, environment=settings.environment)

    logger.info("Starting EZVIZ broker")
    logger.info(f"Token endpoint: {settings.token_url}")
    logger.info(f"Default domain: {settings.default_domain}")

    client = UpstreamClient(default_timeout=settings.acquire_timeout)

    credential_manager = CredentialManager(
        client=client,
        app_key=settings.app_key,
        app_secret=settings.app_secret,
        token_url=settings.token_url,
        default_domain=settings.default_domain,
        retry_delay=settings.retry_delay,
        renewal_hour=settings.renewal_hour,
        acquire_timeout=settings.acquire_timeout,
    )

    forwarder = AuthenticatedForwarder(
        client=client,
        credentials=credential_manager,
        default_domain=settings.default_domain,
        credential_param=settings.credential_param,
        timeout=settings.proxy_timeout,
    )

    video_api = VideoApi(
        client=client,
        credentials=credential_manager,
        timeout=settings.acquire_timeout,
        credential_param=settings.credential_param,
    )

    # First acquisition; failures are retried in the background
    await credential_manager.start()

    app = create_app(
        credentials=credential_manager,
        forwarder=forwarder,
        video_api=video_api,
        cors_origins=settings.cors_origins,
        environment=settings.environment,
    )

    config = uvicorn.Config(
        app=app,
        host=settings.http_host,
        port=settings.http_port,
        log_level="info",
        access_log=False,
    )
    http_server = uvicorn.Server(config)

    # uvicorn handles SIGINT/SIGTERM and returns from serve()
    logger.info(f"HTTP server starting on http://{settings.http_host}:{settings.http_port}")
    try:
        await http_server.serve()
    except asyncio.CancelledError:
        logger.info("Shutting down...")
    finally:
        await credential_manager.stop()
        await client.close()
        logger.info("EZVIZ broker stopped")


if __name__ == '__main__':
    # Use uvloop for better async performance
    uvloop.install()
    asyncio.run(main())
