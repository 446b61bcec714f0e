"""Pytest configuration and shared fixtures."""
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root before running tests
project_root = Path(__file__).parent.parent.parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)
    # Also try loading from packages/core directory
    core_env_path = project_root / "packages" / "core" / ".env"
    if core_env_path.exists():
        load_dotenv(core_env_path, override=False)
else:
    core_env_path = project_root / "packages" / "core" / ".env"
    if core_env_path.exists():
        load_dotenv(core_env_path)

# Make the shared fixtures available to every test module
from fixtures.test_data import (  # noqa: E402, F401
    authorization_index,
    catalog,
    codec,
    observability,
    payment,
    registry,
    stager,
    store,
)
