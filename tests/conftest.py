"""
Pytest configuration and shared fixtures for pekclient tests.

This module provides:
- A fake server connection recording every request
- Partial result payload generators
- Client and task fixtures
"""

import json
import os
import pytest
from typing import Any, Callable, Dict, List, Optional, Tuple

from pekclient.config.settings_loader import Settings
from pekclient.schemas.data_models import ServerInfo
from pekclient.services.client import PekClient
from pekclient.utils.advanced_logging import configure_logging

# Set test environment variables
os.environ["LOG_LEVEL"] = "DEBUG"


@pytest.fixture(autouse=True, scope="session")
def _configure_logging():
    """Route structlog through stdlib logging so logs never reach stdout."""
    configure_logging("DEBUG")


# =============================================================================
# Fake Connection
# =============================================================================


class FakeConnection:
    """
    In-memory stand-in for the socket.io connection.

    Responses are looked up by event name in ``responses``; a callable is
    called with the payload. Unknown events are acknowledged without data.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None, sid: str = "client-sid-1"):
        self.responses = responses or {}
        self.sid = sid
        self.sent: List[Tuple[str, Any]] = []
        self.handlers: Dict[str, Callable[[Any], Any]] = {}
        self.connect_calls = 0
        self.closed = False

    @property
    def id(self) -> str:
        return self.sid

    async def connect(self) -> None:
        self.connect_calls += 1

    async def send(self, event: str, payload: Any = None) -> Any:
        self.sent.append((event, payload))
        response = self.responses.get(event, {"error": False})
        if callable(response):
            response = response(payload)
        return response

    def on(self, topic: str, handler: Callable[[Any], Any]) -> None:
        self.handlers[topic] = handler

    def push(self, topic: str, message: Any) -> None:
        """Deliver a server push to the subscribed handler."""
        self.handlers[topic](message)

    async def close(self) -> None:
        self.closed = True

    def events(self) -> List[str]:
        return [event for event, _ in self.sent]


# =============================================================================
# Payload Generators
# =============================================================================


def make_partial_result(task_id: str, iteration: int = 1, completed: bool = False, **extra: Any) -> Dict[str, Any]:
    """Build a partial result message as the server sends it."""
    message = {
        "info": {
            "id": iteration,
            "iteration": iteration,
            "seed": 0,
            "last": completed,
            "completed": completed,
            "cost": 12.5,
            "bestRun": 1,
            "inertia": 340.2,
        },
        "metrics": {
            "labelsValidationMetrics": {"silhouette": 0.41},
            "labelsComparisonMetrics": None,
            "labelsProgressionMetrics": None,
            "partitionsValidationMetrics": None,
            "partitionsComparisonMetrics": None,
            "partitionsProgressionMetrics": None,
        },
        "centroids": [[0.1, 0.2], [0.8, 0.9], [0.5, 0.4]],
        "labels": [0, 1, 2, 1],
        "runsStatus": {
            "runIteration": [iteration, iteration],
            "runCompleted": [completed, completed],
            "runsKilled": [],
        },
        "taskId": task_id,
    }
    message.update(extra)
    return message


@pytest.fixture
def partial_result_message():
    """Factory returning partial result messages as mappings."""
    return make_partial_result


@pytest.fixture
def partial_result_factory():
    """Factory returning partial result messages as JSON text."""

    def factory(task_id: str, iteration: int = 1, completed: bool = False, **extra: Any) -> str:
        return json.dumps(make_partial_result(task_id, iteration, completed, **extra))

    return factory


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def server_info() -> Dict[str, Any]:
    """Data of the ``info`` acknowledgement."""
    return {"serverVersion": "0.3.1", "datasets": ["Wine", "Iris"]}


@pytest.fixture
def fake_connection(server_info):
    """Fake connection acknowledging every request."""
    return FakeConnection(responses={"info": {"error": False, "data": server_info}})


@pytest.fixture
def test_settings():
    """Settings without retries delays."""
    settings = Settings()
    settings.connection.retry.initial_delay = 0.0
    return settings


@pytest.fixture
def client(fake_connection, server_info):
    """Client wired to the fake connection."""
    return PekClient(
        "http://testserver:3347",
        fake_connection,
        ServerInfo.model_validate(server_info),
    )


@pytest.fixture
def task(client):
    """Pending task created through the client."""
    return client.create_task()
