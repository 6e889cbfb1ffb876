"""Pytest configuration and fixtures for all tests."""

import json
from typing import Any

import pytest

from hookgate.core.config import EngineSettings
from hookgate.core.hooks.coordinator import ExecutionCoordinator
from hookgate.core.hooks.events import HookResult
from hookgate.core.hooks.integration import AgentSession, HookDispatcher
from hookgate.core.hooks.parser import OutputInterpreter


def _make_result(
    exit_code: int = 0,
    stdout: Any = "",
    stderr: str = "",
    timed_out: bool = False,
    duration: int = 5,
) -> HookResult:
    """Build a HookResult; dict/list stdout is serialized as JSON."""
    if not isinstance(stdout, str):
        stdout = json.dumps(stdout)
    return HookResult(
        success=exit_code == 0 and not timed_out,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration=duration,
        timed_out=timed_out,
    )


@pytest.fixture
def make_result():
    """Factory for HookResult values."""
    return _make_result


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def interpreter(settings: EngineSettings) -> OutputInterpreter:
    return OutputInterpreter(settings)


@pytest.fixture
def coordinator(settings: EngineSettings) -> ExecutionCoordinator:
    return ExecutionCoordinator(settings)


@pytest.fixture
def session(settings: EngineSettings) -> AgentSession:
    """A fresh agent session with an empty transcript."""
    return AgentSession(dispatcher=HookDispatcher(settings), session_id="test-session", cwd="/tmp")
