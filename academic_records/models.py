from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """Verified {id, role} attached to a request after authentication."""

    id: int
    role: str
