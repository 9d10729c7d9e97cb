"""Explicit Azure CLI session.

Every management call in azrestore goes through an AzureSession. The session
carries the subscription, the az executable and the command timeout, and is
passed to each component instead of relying on the CLI's active account
(`az account set`).

Mutating calls go through `mutate()` and are counted. A read-only session
(used for dry runs) refuses them.

Security:
- No shell=True
- Explicit --subscription on every call
- Sanitized logging
"""

import json
import logging
import subprocess
from typing import Any

from azrestore.azure_cli_helper import get_az_command
from azrestore.exceptions import (
    AuthenticationError,
    AzureCliError,
    DryRunViolationError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600

NOT_FOUND_MARKERS = ("ResourceNotFound", "NotFound", "was not found", "could not be found")
AUTH_FAILURE_MARKERS = (
    "az login",
    "AuthorizationFailed",
    "AuthenticationFailed",
    "InvalidAuthenticationToken",
    "AADSTS",
)


class AzureSession:
    """Run Azure CLI commands against one subscription.

    Attributes:
        subscription_id: Subscription every command targets
        read_only: Refuse mutating commands (dry-run mode)
        timeout: Per-command timeout in seconds
    """

    def __init__(
        self,
        subscription_id: str,
        *,
        read_only: bool = False,
        timeout: int = DEFAULT_TIMEOUT,
        az_command: str | None = None,
    ):
        self.subscription_id = subscription_id
        self.read_only = read_only
        self.timeout = timeout
        self._az = az_command or get_az_command()
        self._mutation_count = 0

    @property
    def mutation_count(self) -> int:
        """Number of mutating commands issued by this session."""
        return self._mutation_count

    def query(
        self,
        args: list[str],
        *,
        resource: tuple[str, str] | None = None,
        subscription_scoped: bool = True,
    ) -> Any:
        """Run a read-only command and return its parsed JSON output.

        Args:
            args: az arguments without the leading "az", e.g. ["vm", "show", ...]
            resource: (kind, name) reported when Azure answers "not found"
            subscription_scoped: Append --subscription (False for `az rest`)

        Returns:
            Parsed JSON, or None when the command prints nothing

        Raises:
            NotFoundError: If the resource does not exist
            AuthenticationError: If Azure rejects the caller
            AzureCliError: For any other failure
        """
        return self._run(args, resource=resource, subscription_scoped=subscription_scoped)

    def mutate(
        self,
        args: list[str],
        *,
        resource: tuple[str, str] | None = None,
        subscription_scoped: bool = True,
    ) -> Any:
        """Run a command that changes Azure state.

        Same contract as query(); additionally counted in mutation_count.

        Raises:
            DryRunViolationError: If the session is read-only
        """
        if self.read_only:
            raise DryRunViolationError(
                f"Refusing to run mutating command in dry-run mode: az {' '.join(args)}"
            )
        self._mutation_count += 1
        return self._run(args, resource=resource, subscription_scoped=subscription_scoped)

    def _build_command(self, args: list[str], subscription_scoped: bool) -> list[str]:
        cmd = [self._az, *args]
        if subscription_scoped:
            cmd.extend(["--subscription", self.subscription_id])
        cmd.extend(["--output", "json"])
        return cmd

    def _run(
        self, args: list[str], *, resource: tuple[str, str] | None, subscription_scoped: bool
    ) -> Any:
        cmd = self._build_command(args, subscription_scoped)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout, check=False
            )
        except FileNotFoundError as e:
            raise AzureCliError(
                "Azure CLI not found. Install it from https://aka.ms/azure-cli", command=cmd
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AzureCliError(
                f"Command timed out after {self.timeout}s: az {' '.join(args[:3])}", command=cmd
            ) from e

        if result.returncode != 0:
            raise self._classify_error(result.stderr.strip(), cmd, result.returncode, resource)

        output = result.stdout.strip()
        if not output:
            return None

        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Azure CLI output: {e}")
            raise AzureCliError(f"Failed to parse Azure CLI output: {e}", command=cmd) from e

    @staticmethod
    def _classify_error(
        stderr: str, cmd: list[str], returncode: int, resource: tuple[str, str] | None
    ) -> Exception:
        if any(marker in stderr for marker in AUTH_FAILURE_MARKERS):
            return AuthenticationError(stderr, command=cmd, returncode=returncode)
        if resource and any(marker in stderr for marker in NOT_FOUND_MARKERS):
            kind, name = resource
            return NotFoundError(kind, name, stderr)
        return AzureCliError(stderr or f"az exited with code {returncode}", cmd, returncode)


__all__ = ["DEFAULT_TIMEOUT", "AzureSession"]
