from __future__ import annotations

import getpass
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

"""Explicitly scoped shared-secret handling.

The secret is never persisted and never held in a module global. A push
operation receives an AppSecret as a parameter; interactive use keeps one in a
SecretSession whose lifetime is a `with` block.
"""

__all__ = [
    "SECRET_HEADER",
    "AppSecret",
    "SecretSession",
    "prompt_for_secret",
]

SECRET_HEADER = "x-app-secret"

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


@dataclass(frozen=True)
class AppSecret:
    """Shared secret sent in the x-app-secret header."""
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", (self.value or "").strip())

    def __bool__(self) -> bool:
        return bool(self.value)

    def __repr__(self) -> str:
        return "AppSecret(****)" if self.value else "AppSecret(<empty>)"

    def header(self) -> dict[str, str]:
        return {SECRET_HEADER: self.value}


def prompt_for_secret(prompt: Prompt = getpass.getpass) -> str | None:
    """Ask for the secret once. None means the user cancelled or gave nothing."""
    try:
        answer = prompt("APP_SECRET for this session (not stored): ")
    except (EOFError, KeyboardInterrupt):
        return None
    answer = (answer or "").strip()
    if not answer:
        logger.warning("APP_SECRET is required to push.")
        return None
    return answer


class SecretSession:
    """Caches the secret for one interactive session and clears it on exit."""

    def __init__(self, prompt: Prompt | None = None, initial: str | None = None) -> None:
        self._prompt = prompt or getpass.getpass
        self._secret: AppSecret | None = None
        if initial:
            self.set(initial)

    def set(self, value: str | None) -> None:
        secret = AppSecret(value or "")
        self._secret = secret if secret else None

    def get(self) -> AppSecret | None:
        """Return the cached secret, prompting once if none is held yet."""
        if self._secret is not None:
            return self._secret
        answer = prompt_for_secret(self._prompt)
        if answer is None:
            return None
        self.set(answer)
        return self._secret

    def peek(self) -> AppSecret | None:
        """Cached secret without prompting (non-interactive triggers)."""
        return self._secret

    def clear(self) -> None:
        self._secret = None

    def __enter__(self) -> SecretSession:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.clear()
