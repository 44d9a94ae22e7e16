"""
Global pytest configuration.

Loads .env before collection so the live Azure DevOps tests see the same
credentials however pytest is started.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def pytest_configure():
    """Load environment variables from the project's .env file, if present."""
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    if env_file.exists():
        load_dotenv(env_file, override=True)
        logger.info(f"Loaded environment variables from {env_file}")

    required_vars = ["AZURE_DEVOPS_EXT_PAT", "ADO_ORGANIZATION_URL"]
    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        logger.info(f"Missing {missing_vars}; live Azure DevOps tests will be skipped")
