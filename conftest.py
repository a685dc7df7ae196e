"""Shared pytest fixtures.

Integration tests drive a fake resnap-rs: a small Python script written
into tmp_path with a shebang pointing at the running interpreter.
"""

import sys
import textwrap
from pathlib import Path

import pytest


# Behaves like resnap-rs: writes <address>.png into --directory and prints its path
FAKE_RESNAP = """
import os
import sys

args = sys.argv[1:]
address = args[args.index("--ip-address") + 1]
directory = args[args.index("--directory") + 1]
os.makedirs(directory, exist_ok=True)
path = os.path.join(directory, address.replace(".", "_") + ".png")
with open(path, "wb") as f:
    f.write(b"\\x89PNG\\r\\n")
print(path)
"""

FAILING_RESNAP = """
import sys

sys.stdout.write("connecting\\n")
sys.stderr.write("Error: connection refused\\n")
sys.exit(2)
"""

SLOW_RESNAP = """
import time
time.sleep(0.5)
""" + FAKE_RESNAP


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the user's settings, trace file and tablet address."""
    monkeypatch.delenv("REMARKABLE_IP", raising=False)
    monkeypatch.delenv("RMSHOT_SETTINGS_PATH", raising=False)
    monkeypatch.setenv("RMSHOT_TRACE_LOG", str(tmp_path / "trace.log"))


@pytest.fixture
def make_tool(tmp_path):
    """Factory writing an executable Python script; returns its path."""
    def _make(body: str, name: str = "resnap-rs") -> str:
        path = tmp_path / "bin" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return str(path)
    return _make


@pytest.fixture
def fake_resnap(make_tool):
    return make_tool(FAKE_RESNAP)


@pytest.fixture
def failing_resnap(make_tool):
    return make_tool(FAILING_RESNAP, name="resnap-fail")


@pytest.fixture
def slow_resnap(make_tool):
    return make_tool(SLOW_RESNAP, name="resnap-slow")


@pytest.fixture
def vault(tmp_path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path
