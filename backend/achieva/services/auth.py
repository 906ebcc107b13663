"""Authentication helpers: password hashing, JWT issue/verify, current user dependency.

Lightweight implementation avoiding external heavy deps: uses PyJWT.
Enhanced with password policies and failed-login throttling.
"""
from __future__ import annotations
import os, time, hashlib, hmac, base64, re
from typing import Optional, Dict
import jwt  # type: ignore
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from loguru import logger
from sqlmodel import select
from ..models import User, Profile, get_session, new_id
from ..settings import settings
from .errors import Conflict, InvalidInput, TooManyAttempts

# Track failed login attempts for rate limiting
failed_attempts: Dict[str, list] = {}
MAX_FAILED_ATTEMPTS = 5
FAILED_ATTEMPT_WINDOW = 3600

security = HTTPBearer(auto_error=False)


def validate_password_strength(password: str) -> bool:
    """Validate password meets minimum security requirements."""
    if len(password) < 8:
        return False
    if not re.search(r'[A-Z]', password):  # uppercase
        return False
    if not re.search(r'[a-z]', password):  # lowercase
        return False
    if not re.search(r'\d', password):     # digit
        return False
    return True


def check_rate_limit(identifier: str) -> bool:
    """Check if identifier (email/IP) is rate limited. Returns True if allowed."""
    now = time.time()
    # Clean old attempts (older than 1 hour)
    failed_attempts[identifier] = [
        attempt_time for attempt_time in failed_attempts.get(identifier, [])
        if now - attempt_time < FAILED_ATTEMPT_WINDOW
    ]
    return len(failed_attempts[identifier]) < MAX_FAILED_ATTEMPTS


def record_failed_attempt(identifier: str):
    """Record a failed login attempt."""
    failed_attempts.setdefault(identifier, []).append(time.time())


def clear_failed_attempts(identifier: str):
    """Clear failed attempts on successful login."""
    failed_attempts.pop(identifier, None)


def _hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or base64.urlsafe_b64encode(os.urandom(12)).decode("utf-8")
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 39000)
    return f"pbkdf2$sha256$39000${salt}${base64.urlsafe_b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _algo, _hash_name, _iter, salt, _digest = stored.split("$")
    except ValueError:
        return False
    test = _hash_password(password, salt)
    return hmac.compare_digest(test, stored)


def create_token(user: User) -> str:
    now = int(time.time())
    payload = {"sub": user.id, "iat": now, "exp": now + settings.JWT_TTL_SECONDS}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> User:
    """Return the user named by the Bearer JWT."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Missing auth header")
    data = decode_token(credentials.credentials)
    with get_session() as session:
        user = session.get(User, str(data.get("sub") or ""))
        if not user:
            raise HTTPException(status_code=401, detail="User not found")
        return user


def _unique_username(session, base: str) -> str:
    username = base
    counter = 0
    while session.exec(select(Profile).where(Profile.username == username)).first():
        counter += 1
        username = f"{base}{counter}"
    return username


def register_user(email: str, password: str) -> tuple[User, Profile]:
    """Create a user plus its default profile."""
    if not validate_password_strength(password):
        raise InvalidInput("Password must be at least 8 characters with upper, lower case letters and a digit")
    with get_session() as session:
        if session.exec(select(User).where(User.email == email)).first():
            raise Conflict("Email already registered")
        user = User(id=new_id(), email=email, password_hash=_hash_password(password))
        session.add(user)
        session.flush()
        base = user.id.replace("-", "")[:8]
        profile = Profile(id=user.id, username=_unique_username(session, base), first_name="User", last_name="")
        session.add(profile)
        session.commit()
        logger.info({"type": "user_registered", "user_id": user.id})
        return user, profile


def authenticate(email: str, password: str) -> Optional[User]:
    if not check_rate_limit(email):
        raise TooManyAttempts("Too many failed login attempts, try again later")
    with get_session() as session:
        user = session.exec(select(User).where(User.email == email)).first()
    if not user or not verify_password(password, user.password_hash):
        record_failed_attempt(email)
        return None
    clear_failed_attempts(email)
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InvalidInput("Current password is incorrect")
    if not validate_password_strength(new_password):
        raise InvalidInput("Password must be at least 8 characters with upper, lower case letters and a digit")
    with get_session() as session:
        row = session.get(User, user.id)
        row.password_hash = _hash_password(new_password)
        session.add(row)
        session.commit()


__all__ = [
    "_hash_password", "verify_password", "create_token", "decode_token", "current_user",
    "validate_password_strength", "check_rate_limit", "record_failed_attempt", "clear_failed_attempts",
    "register_user", "authenticate", "change_password",
]
