"""
Test Configuration

Shared fixtures: a controllable clock, a session store, a mocked backend
client and a dispatcher wired to them.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest

from helpers import FakeClock
from tg_bot.api_client import ApiResponse, BackendClient
from tg_bot.commands import CommandRegistry, setup_default_commands
from tg_bot.dispatcher import Dispatcher
from tg_bot.session_store import SessionStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(timeout_seconds=30 * 60, clock=clock)


@pytest.fixture
def mock_client():
    """Backend client whose endpoints return empty successes by default."""
    client = MagicMock(spec=BackendClient)
    client.get_ai_models = AsyncMock(return_value=ApiResponse(success=True, data=[]))
    client.get_exchanges = AsyncMock(return_value=ApiResponse(success=True, data=[]))
    client.get_traders = AsyncMock(return_value=ApiResponse(success=True, data={"traders": []}))
    client.create_ai_model = AsyncMock(
        return_value=ApiResponse(success=True, data={"id": "model_1", "name": "My Model"})
    )
    client.create_trader = AsyncMock(
        return_value=ApiResponse(success=True, data={"trader_id": "trader_1", "trader_name": "BTC Bot"})
    )
    client.start_trader = AsyncMock(return_value=ApiResponse(success=True, data={}))
    client.stop_trader = AsyncMock(return_value=ApiResponse(success=True, data={}))
    return client


@pytest.fixture
def registry():
    reg = CommandRegistry()
    setup_default_commands(reg)
    return reg


@pytest.fixture
def dispatcher(store, mock_client, registry):
    return Dispatcher(store, mock_client, registry)


# Environment setup
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    for name in (
        "TELEGRAM_BOT_TOKEN", "BOT_TOKEN", "BACKEND_API_BASE_URL", "GO_API_BASE_URL",
        "BOT_API_TOKEN", "BOT_API_SECRET", "BACKEND_TIMEOUT_SECONDS",
        "SESSION_TIMEOUT_MINUTES", "SESSION_SWEEP_INTERVAL_SECONDS",
        "WEBHOOK_URL", "WEBHOOK_SECRET", "PORT", "LOG_LEVEL", "LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
