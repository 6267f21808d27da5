"""Shared fixtures for back-agent-mcp tests."""

import sys

import pytest

from back_agent_mcp.config import reset_settings
from fakes import FakeExecutor

# Stand-in for the agent CLI. Behaviour is selected by the task text, which
# always arrives as the last argument after -p.
FAKE_AGENT = '''#!{python}
import os
import sys
import time

args = sys.argv[1:]
if len(args) < 2 or args[-2] != "-p":
    print("bad invocation: " + repr(args), file=sys.stderr)
    sys.exit(64)
task = args[-1]

if task.startswith("sleep:"):
    print("started", flush=True)
    time.sleep(float(task.split(":", 1)[1]))
    print("finished", flush=True)
elif task.startswith("exit:"):
    print("failing", file=sys.stderr, flush=True)
    sys.exit(int(task.split(":", 1)[1]))
elif task == "args":
    print("\\n".join(args[:-2]))
elif task == "cwd":
    print(os.getcwd())
else:
    print("done: " + task)
'''


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Isolate every test from the developer's environment."""
    for name in (
        "LOG_LEVEL",
        "AGENT_COMMAND",
        "MAX_CONCURRENT_TASKS",
        "DEFAULT_TIMEOUT_SECONDS",
        "MAX_TIMEOUT_SECONDS",
        "MCP_TRANSPORT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_agent(tmp_path) -> str:
    """Path to an executable fake agent CLI."""
    path = tmp_path / "fake-agent"
    path.write_text(FAKE_AGENT.format(python=sys.executable))
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
