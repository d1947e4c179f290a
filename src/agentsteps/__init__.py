"""agentsteps: chat, tool-calling, ReAct and parallel-agent tutorials."""

from importlib import metadata

try:
    __version__ = metadata.version("agentsteps")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for dev
    __version__ = "0.0.0"

__all__ = ["__version__"]
