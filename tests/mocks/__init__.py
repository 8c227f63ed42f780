"""Test mocks for vcs-bridge.

Provides:
- stub_server.py: scripted backend run as a real subprocess
- STUB_SERVER_PATH: its location, for building ServerConfig entries
"""

from pathlib import Path

STUB_SERVER_PATH = Path(__file__).parent / "stub_server.py"

__all__ = ["STUB_SERVER_PATH"]
