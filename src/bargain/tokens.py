"""Session identifiers and discount tokens."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime
from decimal import Decimal


def new_session_id() -> str:
    """Return an unguessable session identifier (128 random bits, hex)."""
    return secrets.token_hex(16)


def mint_discount_token(
    session_id: str,
    final_price: Decimal,
    issued_at: datetime,
    length: int = 32,
) -> str:
    """Derive the one-time discount token for an accepted session.

    The token is a SHA-256 digest of the session id, the agreed price and the
    issue time in epoch milliseconds, truncated to *length* hex characters.

    Args:
        session_id: The accepted session.
        final_price: The agreed price.
        issued_at: When the token is minted.
        length: Hex characters to keep (16 to 64).

    Returns:
        The token string.
    """
    if not 16 <= length <= 64:
        raise ValueError(f"token length must be between 16 and 64, got {length}")
    issued_ms = int(issued_at.timestamp() * 1000)
    payload = f"{session_id}:{final_price}:{issued_ms}"
    return hashlib.sha256(payload.encode()).hexdigest()[:length]
