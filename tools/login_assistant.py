"""
Login and sign-up helpers
Rule-based hints shown next to the auth forms, plus login attempt logging
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import TypeAdapter

from models.schemas import AssistanceResponse, EmailValidation, PasswordStrength
from tools.backend import BackendClient, eq
from tools.errors import BackendError

logger = logging.getLogger(__name__)

LOGIN_ATTEMPTS_TABLE = "spendme_login_attempts"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHAR_RE = re.compile(r'[!@#$%^&*(),.?":{}|<>]')
COMMON_PASSWORDS = ["password", "123456", "qwerty", "admin", "letmein"]
STRONG_SCORE = 4
STALE_LOGIN = timedelta(hours=24)
TIMESTAMP = TypeAdapter(datetime)

ERROR_SUGGESTIONS = {
    "invalid_credentials": [
        "Check your password, paying attention to upper and lower case",
        "Make sure Caps Lock is off",
        "If you forgot your password, use 'Forgot password'",
    ],
    "user_not_found": [
        "No account is registered with this email address",
        "Use 'Sign up' to create a new account",
        "Check the email address you entered",
    ],
    "too_many_requests": [
        "Too many failed login attempts",
        "Wait a few minutes and try again",
        "Consider resetting your password",
    ],
}


def classify_auth_error(message: str) -> Optional[str]:
    """Map a backend auth error message onto a known error type"""
    text = (message or "").lower()
    if "invalid login credentials" in text or ("invalid" in text and "password" in text):
        return "invalid_credentials"
    if "user not found" in text or "not registered" in text:
        return "user_not_found"
    if "too many" in text or "rate limit" in text:
        return "too_many_requests"
    return None


def fetch_login_history(client: BackendClient, email: str, limit: int = 5) -> list[dict]:
    """Most recent login attempts for an email, newest first"""
    return client.select(
        LOGIN_ATTEMPTS_TABLE,
        filters=[eq("email", email)],
        order="created_at",
        ascending=False,
        limit=limit
    )


def get_login_assistance(
    email: str,
    error_type: Optional[str] = None,
    history: Optional[list[dict]] = None,
    now: Optional[datetime] = None
) -> AssistanceResponse:
    """Suggestions for a failed login"""
    suggestions = list(ERROR_SUGGESTIONS.get(error_type or "", []))

    if history:
        last = history[0].get("created_at")
        if last:
            last_at = TIMESTAMP.validate_python(last)
            if last_at.tzinfo is None:
                last_at = last_at.replace(tzinfo=timezone.utc)
            now = now or datetime.now(timezone.utc)
            if now - last_at > STALE_LOGIN:
                suggestions.append(
                    "More than 24 hours have passed since your last login. "
                    "Consider updating your password to keep your account secure"
                )

    return AssistanceResponse(
        success=True,
        message="Login help is ready",
        suggestions=suggestions
    )


def get_signup_suggestions(email: str) -> AssistanceResponse:
    domain = email.split("@")[1].lower() if "@" in email else ""

    if domain == "gmail.com":
        suggestions = [
            "You can sign in quickly with your Gmail address",
            "Choose a strong password (at least 8 characters)",
        ]
    elif domain in ("outlook.com", "hotmail.com"):
        suggestions = [
            "You can sign in quickly with your Outlook address",
            "We recommend enabling two-factor authentication",
        ]
    else:
        suggestions = [
            "You can sign in securely with your work email",
            "Pick a password that follows your company's security policy",
        ]

    suggestions += [
        "Use upper and lower case letters, digits and special characters in your password",
        "Do not use personal information as your password",
        "Complete your profile after creating your account",
    ]
    return AssistanceResponse(
        success=True,
        message="Sign-up suggestions are ready",
        suggestions=suggestions
    )


def log_login_attempt(
    client: BackendClient,
    email: str,
    success: bool,
    error_type: Optional[str] = None,
    user_agent: str = "spendme-streamlit"
) -> None:
    """Record a login attempt; a failure to record is only logged"""
    try:
        client.insert(LOGIN_ATTEMPTS_TABLE, {
            "email": email,
            "success": success,
            "error_type": error_type,
            "user_agent": user_agent,
        })
    except BackendError as e:
        logger.warning("Login attempt logging failed: %s", e)


def check_password_strength(password: str) -> PasswordStrength:
    """
    Score a password from 0 to 5.

    One point each for length >= 8, an upper case letter, a lower case
    letter, a digit and a special character. Common passwords lose 2 points.
    """
    feedback = []
    score = 0

    if len(password) >= 8:
        score += 1
    else:
        feedback.append("Password must be at least 8 characters")

    if re.search(r"[A-Z]", password):
        score += 1
    else:
        feedback.append("Use at least one upper case letter")

    if re.search(r"[a-z]", password):
        score += 1
    else:
        feedback.append("Use at least one lower case letter")

    if re.search(r"\d", password):
        score += 1
    else:
        feedback.append("Use at least one digit")

    if SPECIAL_CHAR_RE.search(password):
        score += 1
    else:
        feedback.append("Use at least one special character")

    if password.lower() in COMMON_PASSWORDS:
        score -= 2
        feedback.append("Avoid common passwords")

    score = max(score, 0)
    return PasswordStrength(score=score, feedback=feedback, is_strong=score >= STRONG_SCORE)


def validate_email(email: str) -> EmailValidation:
    suggestions = []
    is_valid = bool(EMAIL_RE.match(email))

    if not is_valid:
        suggestions.append("Enter a valid email address")
        suggestions.append("Example: user@domain.com")

    parts = email.split("@")
    if len(parts) > 1 and parts[1] and len(parts[1]) < 3:
        suggestions.append("The email domain looks too short")

    return EmailValidation(is_valid=is_valid, suggestions=suggestions)
