"""Checkout principal resolution for authenticated users and guests."""

import re
from dataclasses import dataclass
from uuid import uuid4

from src.schemas.auth import UserContext

DEFAULT_GUEST_PREFIX = "guest_"

_DISALLOWED_GUEST_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class CheckoutPrincipal:
    """Identity on whose behalf an order is created, confirmed or listed."""

    id: str
    is_guest: bool


def new_guest_id(prefix: str = DEFAULT_GUEST_PREFIX) -> str:
    """Synthesize a fresh guest id."""
    return f"{prefix}{uuid4()}"


def normalize_guest_id(token: object, prefix: str = DEFAULT_GUEST_PREFIX) -> str:
    """Normalize a client-supplied guest token into a guest principal id.

    Characters outside [A-Za-z0-9_-] are stripped. A missing or empty
    token yields a fresh id, and the prefix is prepended when absent so a
    guest id can never equal an authenticated subject.

    Args:
        token: Raw token from the request body, possibly None or not a string.
        prefix: Guest id prefix.

    Returns:
        str: Guest id that always starts with ``prefix``.
    """
    if not isinstance(token, str):
        return new_guest_id(prefix)

    cleaned = _DISALLOWED_GUEST_CHARS.sub("", token.strip())
    if not cleaned:
        return new_guest_id(prefix)

    return cleaned if cleaned.startswith(prefix) else f"{prefix}{cleaned}"


def resolve_principal(
    user: UserContext | None,
    guest_token: object = None,
    prefix: str = DEFAULT_GUEST_PREFIX,
) -> CheckoutPrincipal:
    """Resolve the checkout principal for a request.

    A verified user wins; the guest token is ignored for them. Otherwise
    the guest token is normalized. Never fails.

    Args:
        user: Verified user context, or None when no valid credentials were sent.
        guest_token: Client-supplied guest token.
        prefix: Guest id prefix.

    Returns:
        CheckoutPrincipal: The resolved principal.
    """
    if user is not None:
        subject = user.user_id.strip()
        if subject:
            return CheckoutPrincipal(id=subject, is_guest=False)

    return CheckoutPrincipal(id=normalize_guest_id(guest_token, prefix), is_guest=True)
