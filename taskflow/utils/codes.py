"""Random join codes for invites and public project links."""
from __future__ import annotations

import secrets
import string
from typing import Callable, Iterable, Type

from sqlalchemy import event
from sqlalchemy.orm import Mapper

from taskflow.errors import InviteCodeGenerationError

CODE_ALPHABET = string.ascii_letters + string.digits
PUBLIC_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length: int, alphabet: str = CODE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_unique_code(
    existing: Iterable[str],
    length: int,
    max_attempts: int,
    code_factory: Callable[[int], str] = generate_code,
) -> str:
    """Sample codes until one is not in ``existing``.

    Gives up with :class:`InviteCodeGenerationError` after ``max_attempts``
    draws instead of looping forever.
    """
    taken = set(existing)
    for _ in range(max_attempts):
        code = code_factory(length)
        if code not in taken:
            return code
    raise InviteCodeGenerationError(
        f"Could not generate a unique invite code after {max_attempts} attempts"
    )


def register_public_code_listener(model: Type[object], length: int) -> None:
    """Give ``model`` a public invite code whenever it is flushed as public.

    Mirrors a pre-save hook: if ``is_public`` is set and ``public_invite_code``
    is empty, a fresh code is assigned before the INSERT/UPDATE. Uniqueness is
    left to the unique index on the column.
    """

    table = getattr(model, "__table__", None)
    if table is None or "public_invite_code" not in table.c:
        raise ValueError(f"Model {model!r} does not expose a 'public_invite_code' column")

    def _assign_public_code(_: Mapper, connection, target) -> None:
        if target.is_public and not target.public_invite_code:
            target.public_invite_code = generate_code(length, PUBLIC_CODE_ALPHABET)

    event.listen(model, "before_insert", _assign_public_code, propagate=True)
    event.listen(model, "before_update", _assign_public_code, propagate=True)
