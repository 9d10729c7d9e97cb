"""Pytest configuration for azrestore tests.

CRITICAL: Protects the user's configuration from test modifications.
"""

import os
import shutil
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def protect_production_config():
    """Protect ~/.azrestore/config.toml from being modified by tests.

    Backs up the real config.toml before any test runs and restores it after
    the session. Tests should use the temp_config_dir fixture instead.
    """
    config_path = Path.home() / ".azrestore" / "config.toml"
    backup_path = Path.home() / ".azrestore" / ".config.toml.pytest-backup"

    config_existed = config_path.exists()
    if config_existed:
        shutil.copy2(config_path, backup_path)
        print(f"\n[PYTEST] Protected config.toml - backup at {backup_path}")

    yield

    if config_existed and backup_path.exists():
        shutil.copy2(backup_path, config_path)
        backup_path.unlink()
        print("\n[PYTEST] Restored config.toml from backup")
    elif backup_path.exists():
        backup_path.unlink()


@pytest.fixture(scope="session", autouse=True)
def prevent_real_azure_operations():
    """Mark test mode and make sure no subscription leaks in from the shell.

    Every test talks to the fake Azure CLI in tests/conftest.py.
    """
    os.environ["AZRESTORE_TEST_MODE"] = "true"
    saved_subscription = os.environ.pop("AZURE_SUBSCRIPTION_ID", None)

    yield

    os.environ.pop("AZRESTORE_TEST_MODE", None)
    if saved_subscription is not None:
        os.environ["AZURE_SUBSCRIPTION_ID"] = saved_subscription
