"""Watcher implementations used by the lb-ipam agent."""

from .file import FilePoolWatcher  # noqa: F401

__all__ = ["FilePoolWatcher"]
