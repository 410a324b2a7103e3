"""
Pytest configuration and fixtures
"""

from typing import Dict, List

import pytest

from transactlab_sdk.models import Configuration

from .support import make_config


@pytest.fixture
def config() -> Configuration:
    """Valid sandbox configuration fixture"""
    return make_config()


@pytest.fixture
def sleeps() -> List[float]:
    """Records backoff sleeps instead of sleeping"""
    return []


@pytest.fixture
def env() -> Dict[str, str]:
    """Complete TL_* environment"""
    return {
        "TL_API_KEY": "sk_sandbox_env_key",
        "TL_WEBHOOK_SECRET": "whsec_env_secret",
        "TL_SUCCESS_URL": "https://merchant.test/success",
        "TL_CANCEL_URL": "https://merchant.test/cancel",
        "TL_CALLBACK_URL": "https://merchant.test/callback",
    }
