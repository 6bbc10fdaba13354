"""Data models for directory authentication."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["Credentials"]


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username and password for one authentication attempt.

    These are never stored beyond the synchronization that uses them. The
    password is excluded from the representation so that it cannot leak into
    logs through an accidental ``repr``.
    """

    username: str
    """Username of the user, substituted into DN and filter templates."""

    password: str = field(repr=False)
    """Password used for the simple bind."""
