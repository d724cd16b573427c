"""repoaudit - point-in-time protection posture audit for a hosted git repository."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("repoaudit")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
