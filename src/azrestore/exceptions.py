"""Exception hierarchy for azrestore.

Every error raised by azrestore derives from AzRestoreError so the CLI can
report it uniformly and exit non-zero.
"""


class AzRestoreError(Exception):
    """Base exception for azrestore errors."""

    exit_code = 1


class AzureCliError(AzRestoreError):
    """Raised when an Azure CLI command fails.

    The stderr of the failed command is kept verbatim for diagnosis.
    """

    def __init__(self, message: str, command: list[str] | None = None, returncode: int = 1):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode


class AuthenticationError(AzureCliError):
    """Raised when Azure rejects the caller's login or authorization."""


class NotFoundError(AzRestoreError):
    """Raised when a VM, disk, collection or restore point does not exist."""

    def __init__(self, kind: str, name: str, detail: str = ""):
        message = f"{kind} '{name}' not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.kind = kind
        self.name = name


class NoCollectionsFoundError(AzRestoreError):
    """Raised when a resource group holds no restore point collections."""


class NoRestorePointsFoundError(AzRestoreError):
    """Raised when every candidate collection is empty."""


class InvalidManifestError(AzRestoreError):
    """Raised when a restore point's disk manifest is malformed."""


class TierLookupFailedError(AzRestoreError):
    """Raised when the OS disk tier cannot be resolved from the VM."""


class DiskNameConflictError(AzRestoreError):
    """Raised when a target disk name is already taken."""


class DiskCreationFailedError(AzRestoreError):
    """Raised when creating a disk from a restore point fails.

    Attributes:
        created: Names of disks created before the failure (left in place)
    """

    def __init__(self, message: str, created: list[str] | None = None):
        super().__init__(message)
        self.created = created or []


class PreflightValidationError(AzRestoreError):
    """Raised when one or more pre-flight checks fail.

    Attributes:
        failures: Every failed check, collected in a single pass
    """

    def __init__(self, failures: list[str]):
        lines = "\n".join(f"  - {failure}" for failure in failures)
        super().__init__(f"Pre-flight validation failed:\n{lines}")
        self.failures = failures


class DryRunViolationError(AzRestoreError):
    """Raised when a read-only session is asked to run a mutating command."""


class ConfigError(AzRestoreError):
    """Raised when configuration operations fail."""


__all__ = [
    "AuthenticationError",
    "AzRestoreError",
    "AzureCliError",
    "ConfigError",
    "DiskCreationFailedError",
    "DiskNameConflictError",
    "DryRunViolationError",
    "InvalidManifestError",
    "NoCollectionsFoundError",
    "NoRestorePointsFoundError",
    "NotFoundError",
    "PreflightValidationError",
    "TierLookupFailedError",
]
