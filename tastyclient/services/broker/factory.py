"""
Client Factory — The "Switch"
==============================
Creates a BrokerClient for the configured environment (sandbox or
production). Credentials are not handled here; callers log in explicitly.
"""

import logging

from tastyclient.config import Config
from tastyclient.services.broker.client import BrokerClient
from tastyclient.services.broker.exceptions import BrokerException

logger = logging.getLogger(__name__)


class ClientFactory:
    """Factory that creates a BrokerClient from Config.

    Usage:
        client = ClientFactory.get_client(use_sandbox=True)
        client.sessions.login('alice', 'secret')
        client.orders.place_order('5WT00000', order)
    """

    @staticmethod
    def get_client(use_sandbox: bool = None) -> BrokerClient:
        """Create a client for the sandbox or production API.

        Args:
            use_sandbox: True/False to force an environment; None uses
                TASTYTRADE_USE_SANDBOX

        Raises:
            BrokerException: If the resolved base URL is empty
        """
        base_url = Config.get_base_url(use_sandbox)
        if not base_url:
            raise BrokerException(
                "API base URL not configured. "
                "Set TASTYTRADE_SANDBOX_URL / TASTYTRADE_PRODUCTION_URL."
            )

        environment = "SANDBOX" if base_url == Config.TASTYTRADE_SANDBOX_URL else "PRODUCTION"
        logger.info(f"ClientFactory: creating BrokerClient (env={environment})")

        return BrokerClient(
            base_url=base_url,
            request_timeout=Config.REQUEST_TIMEOUT,
            expiry_margin=Config.SESSION_EXPIRY_MARGIN,
        )

    @staticmethod
    def get_client_direct(base_url: str, **kwargs) -> BrokerClient:
        """Create a client for an explicit base URL, bypassing Config.

        Used for testing and custom deployments.
        """
        return BrokerClient(base_url=base_url, **kwargs)
