"""Opaque public share tokens."""

import secrets


SHARE_TOKEN_BYTES = 32


def generate_share_token(nbytes: int = SHARE_TOKEN_BYTES) -> str:
    """Return a URL-safe, unpadded token drawn from the OS CSPRNG.

    32 bytes encode to 43 characters of base64url.
    """
    if nbytes < 16:
        raise ValueError("Share tokens need at least 16 random bytes.")
    return secrets.token_urlsafe(nbytes)
