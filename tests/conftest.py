import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from infrastructure.lib.shared.environment import EnvironmentConfig  # noqa: E402

TEST_ACCOUNT = "123456789012"
TEST_REGION = "ap-southeast-1"


@pytest.fixture
def dev_environment() -> EnvironmentConfig:
    return EnvironmentConfig(
        account=TEST_ACCOUNT,
        region=TEST_REGION,
        pattern="dev",
        stage="test",
        owner="platform-team",
    )


@pytest.fixture
def dev_env_vars():
    return {
        "DEV_ACCOUNT": TEST_ACCOUNT,
        "DEV_REGION": TEST_REGION,
        "DEV_PATTERN": "dev",
        "DEV_STAGE": "test",
        "DEV_OWNER": "platform-team",
    }
