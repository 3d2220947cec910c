"""Error types raised by kubectl-config-cleanup."""

from __future__ import annotations


class CleanupError(RuntimeError):
    """Base class for errors reported by the CLI."""


class LoadError(CleanupError):
    """The kubeconfig file is missing, unreadable, or malformed."""


class SelectionError(CleanupError):
    """The interactive selection failed (not a user abort)."""


class WriteError(CleanupError):
    """The kubeconfig could not be serialized or written back."""
