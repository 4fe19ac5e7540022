from __future__ import annotations


class GPOScopeError(Exception):
    """Base error for gposcope."""


class SnapshotError(GPOScopeError):
    """The snapshot directory or its inventory cannot be used."""


class DirectoryError(GPOScopeError):
    """A per-policy lookup against the directory source failed."""
