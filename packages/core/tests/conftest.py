"""Pytest configuration and shared fixtures."""
import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from fixtures.test_data import (
    LETTER_STATES,
    ORDER_STATES,
    FixedClock,
    MockObservabilityManager,
    Order,
    Widget,
)
from stateguard.domain.components.state_machine import StateMachineBuilder
from stateguard.infrastructure.config.settings import reset_settings
from stateguard.infrastructure.observability.logger import set_observability_manager
from stateguard.infrastructure.state_store.memory_store import InMemoryEntityStore

# Load .env file from packages/core before running tests
core_env_path = Path(__file__).parent.parent / ".env"
if core_env_path.exists():
    load_dotenv(core_env_path)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Run every test against default settings, unaffected by the shell environment."""
    for key in list(os.environ):
        if key.startswith("STATEGUARD_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def observability() -> MockObservabilityManager:
    """Install a recording observability manager as the process-wide default."""
    manager = MockObservabilityManager()
    set_observability_manager(manager)
    yield manager
    set_observability_manager(None)


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def widget_machine(clock: FixedClock):
    """Letter graph A -> {B, C}, B -> C, C -> D without hooks."""
    return StateMachineBuilder(Widget).define_states(LETTER_STATES).clock(clock).build()


@pytest.fixture
def order_machine(clock: FixedClock):
    return StateMachineBuilder(Order).define_states(ORDER_STATES).clock(clock).build()
