"""
JWT utilities for issuing and verifying access tokens.

The tutor does not manage users itself: whoever issued the ``token`` cookie
is the auth collaborator, and the subject (`sub`) claim is trusted as the
owning identity of every conversation touched through that token.

Functions
---------
create_access_token(data: dict) -> str
    Creates a signed JWT access token with an expiration (`exp`) claim.
verify_token(token: str | None) -> str | None
    Verify a JWT's signature & expiration and return the subject (`sub`) if valid.

Environment contract (from `settings`)
--------------------------------------
SECRET_KEY : str
    HMAC signing key for JWTs.
ALGORITHM : str
    JWT signing algorithm (e.g., "HS256").
ACCESS_TOKEN_EXPIRE_MINUTES : int
    Token lifetime window in minutes.
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from jose import jwt, JWTError
from tutorbot.database.config.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict) -> str:
    """
    Create a signed JWT access token.

    Parameters
    ----------
    data : dict
        Claims to embed in the token; `sub` should hold the owner identity.

    Returns
    -------
    str
        Encoded JWT string.

    Notes
    -----
    - Adds an `exp` (expiration) claim calculated from ACCESS_TOKEN_EXPIRE_MINUTES.
    - Uses `settings.SECRET_KEY` and `settings.ALGORITHM` for signing.
    """
    encoding = data.copy()
    # exp is a NumericDate (seconds since epoch)
    expires = int(datetime.now(timezone.utc).timestamp()) + int(settings.ACCESS_TOKEN_EXPIRE_MINUTES) * 60
    encoding.update({"exp": expires})
    return jwt.encode(encoding, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: Optional[str]) -> Optional[str]:
    """
    Verify a JWT and return its subject.

    Parameters
    ----------
    token : str | None
        Encoded JWT string from the client (cookie).

    Returns
    -------
    str | None
        The `sub` claim if the token is valid, otherwise None (missing,
        malformed, badly signed or expired tokens alike).
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
