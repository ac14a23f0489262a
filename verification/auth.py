import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config import settings, EMAIL_REGEX, MIN_PASSWORD_LENGTH, USER_ROLES
from .errors import InvalidInput, Unauthorized

logger = logging.getLogger(__name__)

email_regex = re.compile(EMAIL_REGEX)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Missing authorization")
    token = authorization.replace("Bearer ", "").strip()
    if not token:
        raise Unauthorized("Missing authorization")
    return token


def authenticate(client, authorization: Optional[str]) -> AuthUser:
    """Resolve the caller's bearer token to a Supabase user"""
    token = bearer_token(authorization)
    try:
        response = client.auth.get_user(token)
    except Exception as e:
        logger.error("Authentication failed: %s", e)
        raise Unauthorized()

    user = getattr(response, "user", None)
    if user is None:
        logger.error("Authentication failed: no user for token")
        raise Unauthorized()
    return AuthUser(id=str(user.id), email=getattr(user, "email", None))


def is_admin(client, user_id: str) -> bool:
    result = (
        client.table(settings.ROLES_TABLE)
        .select("role")
        .eq("user_id", user_id)
        .eq("role", "admin")
        .limit(1)
        .execute()
    )
    return bool(result.data)


def landing_path(admin: bool) -> str:
    return "/admin" if admin else "/app"


def validate_credentials(email: str, password: str) -> None:
    if not email or not email_regex.fullmatch(email.strip()):
        raise InvalidInput("Invalid email address")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _session_tokens(session) -> Dict[str, Optional[str]]:
    if session is None:
        return {"access_token": None, "refresh_token": None}
    return {
        "access_token": getattr(session, "access_token", None),
        "refresh_token": getattr(session, "refresh_token", None),
    }


def sign_up(auth_client, service_client, email: str, password: str, role: str = "user") -> Dict[str, Any]:
    """
    Register a new account.

    The requested role goes into the user metadata; a database trigger turns
    it into a user_roles row. No session is returned while the address awaits
    confirmation.
    """
    validate_credentials(email, password)
    if role not in USER_ROLES:
        raise InvalidInput(f"Role must be one of: {', '.join(USER_ROLES)}")

    try:
        response = auth_client.auth.sign_up({
            "email": email.strip(),
            "password": password,
            "options": {"data": {"role": role}},
        })
    except Exception as e:
        logger.error("Sign up failed: %s", e)
        raise InvalidInput("Sign up failed", details=str(e))

    user = getattr(response, "user", None)
    if user is None:
        raise InvalidInput("Sign up failed")

    admin = is_admin(service_client, str(user.id))
    logger.info("User signed up: %s", user.id)
    return {
        "user_id": str(user.id),
        "role": "admin" if admin else "user",
        "redirect_to": landing_path(admin),
        **_session_tokens(getattr(response, "session", None)),
    }


def sign_in(auth_client, service_client, email: str, password: str) -> Dict[str, Any]:
    validate_credentials(email, password)
    try:
        response = auth_client.auth.sign_in_with_password({
            "email": email.strip(),
            "password": password,
        })
    except Exception as e:
        logger.info("Login failed for %s: %s", email, e)
        raise Unauthorized("Invalid login credentials")

    user = getattr(response, "user", None)
    if user is None:
        raise Unauthorized("Invalid login credentials")

    admin = is_admin(service_client, str(user.id))
    return {
        "user_id": str(user.id),
        "role": "admin" if admin else "user",
        "redirect_to": landing_path(admin),
        **_session_tokens(getattr(response, "session", None)),
    }


def session_info(client, user: AuthUser) -> Dict[str, Any]:
    admin = is_admin(client, user.id)
    return {
        "user_id": user.id,
        "email": user.email,
        "role": "admin" if admin else "user",
        "redirect_to": landing_path(admin),
    }
