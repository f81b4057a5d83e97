"""Security helpers for bearer tokens, password policy, and record digests."""
import hashlib
import json
from typing import Any, Dict

from flask import current_app, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

_TOKEN_SALT = "fire-noc-access-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_access_token(user) -> str:
    return _serializer().dumps({"uid": str(user.id)})


def resolve_token_subject(token: str) -> str | None:
    """Return the user id a bearer token was issued for, or None when invalid or expired."""
    if not token:
        return None
    max_age = int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS", 12 * 60 * 60))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Expired access token presented")
        return None
    except BadSignature:
        current_app.logger.warning("Invalid access token presented")
        return None
    if not isinstance(data, dict):
        return None
    subject = data.get("uid")
    return str(subject) if subject else None


def bearer_token_from_header(header_value: str | None) -> str | None:
    scheme, _, token = (header_value or "").strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def password_meets_policy(password: str) -> tuple[bool, str | None]:
    """Enforce a sane password baseline for production."""
    if len(password) < 12:
        return False, "Password must be at least 12 characters long."
    if password.lower() == password or password.upper() == password:
        return False, "Use a mix of upper and lower case characters."
    if not any(c.isdigit() for c in password):
        return False, "Include at least one digit."
    if not any(c in "!@#$%^&*()-_=+[]{}|;:,.<>?/" for c in password):
        return False, "Include at least one symbol."
    return True, None


def hash_record(payload: Dict[str, Any]) -> str:
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers suitable for a JSON and PDF API."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Cache-Control", "no-store")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response
