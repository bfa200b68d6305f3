from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated recruiter identity extracted from JWT."""

    user_id: str
    email: str | None = None
    roles: list[str] = field(default_factory=list)
