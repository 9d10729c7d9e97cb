"""Azure authentication handler module.

Authentication is delegated to the Azure CLI: azrestore never stores or
requests credentials itself, it only checks that `az` is logged in and works
out which subscription to target.

Security:
- No credential storage
- Delegates to az CLI
- Validates subscription ID format
"""

import json
import logging
import os
import re
import subprocess

from azrestore.azure_cli_helper import get_az_command
from azrestore.azure_session import DEFAULT_TIMEOUT, AzureSession
from azrestore.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SUBSCRIPTION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class AzureAuthenticator:
    """Resolve the subscription and build an AzureSession for it."""

    def __init__(self, subscription_id: str | None = None):
        """Initialize Azure authenticator.

        Args:
            subscription_id: Optional Azure subscription ID
        """
        self._subscription_id = subscription_id

    @staticmethod
    def validate_subscription_id(subscription_id: str | None) -> bool:
        """Validate subscription ID format (UUID)."""
        if not subscription_id:
            return False
        return bool(SUBSCRIPTION_ID_PATTERN.match(subscription_id))

    def get_subscription_id(self) -> str:
        """Get Azure subscription ID.

        Priority order:
        1. Constructor parameter
        2. Environment variable (AZURE_SUBSCRIPTION_ID)
        3. Azure CLI default account (az account show)

        Returns:
            Subscription ID

        Raises:
            AuthenticationError: If no valid subscription found
        """
        subscription_id = self._subscription_id or os.environ.get("AZURE_SUBSCRIPTION_ID")
        if not subscription_id:
            subscription_id = self._account_show().get("id")

        if not self.validate_subscription_id(subscription_id):
            raise AuthenticationError(f"Invalid subscription ID: {subscription_id}")
        return subscription_id  # type: ignore[return-value]

    def create_session(
        self, *, read_only: bool = False, timeout: int = DEFAULT_TIMEOUT
    ) -> AzureSession:
        """Verify the login and return a session bound to the subscription.

        Raises:
            AuthenticationError: If az is not logged in or cannot access the subscription
        """
        subscription_id = self.get_subscription_id()
        account = self._account_show(subscription_id)
        logger.info(f"Using subscription: {account.get('name', subscription_id)}")
        return AzureSession(subscription_id, read_only=read_only, timeout=timeout)

    def _account_show(self, subscription_id: str | None = None) -> dict:
        cmd = [get_az_command(), "account", "show", "--output", "json"]
        if subscription_id:
            cmd.extend(["--subscription", subscription_id])
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=30, check=True)
            return json.loads(result.stdout)
        except FileNotFoundError as e:
            raise AuthenticationError(
                "Azure CLI not found. Install it from https://aka.ms/azure-cli", command=cmd
            ) from e
        except subprocess.CalledProcessError as e:
            raise AuthenticationError(
                (e.stderr or "").strip() or "Not logged in. Please run: az login",
                command=cmd,
                returncode=e.returncode,
            ) from e
        except (subprocess.TimeoutExpired, json.JSONDecodeError) as e:
            raise AuthenticationError(f"Failed to read Azure account: {e}", command=cmd) from e


__all__ = ["AzureAuthenticator"]
