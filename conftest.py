import asyncio

import pytest

from member_search.config import SearchSettings
from member_search.executor import Environment, RemoteExecutor, ToolOutput

pytest_plugins = ["pytest_asyncio"]


class FakeExecutor(RemoteExecutor):
    """
    Scripted executor. Responses are keyed by the resource path at the end of
    the command line; a response may be a ToolOutput or an exception to raise.
    """

    def __init__(self, responses=None, delays=None, default=None):
        self.responses = responses or {}
        self.delays = delays or {}
        self.default = default or ToolOutput(exit_code=1)
        self.commands = []
        self.environments = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = asyncio.Event()
        self.cancelled = []

    async def send(self, command: str, environment: Environment = Environment.pase) -> ToolOutput:
        resource_path = command.rsplit(" ", 1)[-1]
        self.commands.append(command)
        self.environments.append(environment)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            await asyncio.sleep(self.delays.get(resource_path, 0))
        except asyncio.CancelledError:
            self.cancelled.append(resource_path)
            raise
        finally:
            self.in_flight -= 1

        response = self.responses.get(resource_path, self.default)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def settings():
    return SearchSettings(max_parallel_searches=2, pfgrep_path="/QOpenSys/pkgs/bin/pfgrep")


@pytest.fixture
def fake_executor_factory():
    return FakeExecutor
