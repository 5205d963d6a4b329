"""
Security utilities.

Bearer token issuing/verification and PII masking for logs.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Set

import jwt

logger = logging.getLogger("security")


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "recipient_email", "recipientemail",
    "student_id", "studentid",
    "full_name", "fullname", "name",
    "phone", "address",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data]
    else:
        return data


def create_access_token(
    user_id: int,
    role: str,
    secret_key: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = "HS256",
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Reviewer id, stored as ``sub``
        role: ``admin`` or ``member``
        secret_key: Signing key
        email: Optional email claim
        expires_delta: Lifetime (default 60 minutes)
        algorithm: JWT algorithm

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(minutes=60)),
        "jti": uuid.uuid4().hex,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def verify_jwt_token(token: str, secret_key: str, algorithm: str = "HS256") -> dict[str, Any]:
    """
    Decode and verify a token.

    Raises:
        jwt.ExpiredSignatureError: Token expired
        jwt.InvalidTokenError: Bad signature, malformed token or wrong type
    """
    payload = jwt.decode(
        token,
        secret_key,
        algorithms=[algorithm],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    return payload
