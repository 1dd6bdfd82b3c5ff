"""
momentum.errors — Error Taxonomy
=================================

Every failure the streak/achievement core reports to a caller is one of
four kinds.  Automatic pipelines treat :class:`ConflictError` as a no-op
and log everything else; admin commands turn each kind into an explicit
ephemeral reply.
"""

from __future__ import annotations


class MomentumError(Exception):
    """Base class for all domain errors raised by Momentum services."""


class NotFoundError(MomentumError, LookupError):
    """A referenced achievement, streak record or role mapping does not exist."""


class ConflictError(MomentumError):
    """Duplicate award, duplicate custom achievement id, or similar clash."""


class PermissionDeniedError(MomentumError):
    """Seasonal window closed, or the bot lacks a platform permission."""


class TransientStorageError(MomentumError):
    """The datastore is unavailable.  Safe to drop the event and move on."""
