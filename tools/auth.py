"""
Authentication session and user profile
The session object is what the UI keeps for the signed-in user
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from models.schemas import AuthUser, UserProfile
from tools.backend import BackendClient, eq
from tools.errors import AuthError, BackendError, BackendTimeout, NotFoundError

logger = logging.getLogger(__name__)

PROFILE_TABLE = "spendme_user_profiles"
PROFILE_TIMEOUT = 10.0
MAX_PHOTO_BYTES = 5 * 1024 * 1024
AVATAR_BUCKETS = ("avatars", "profile-photos", "user-avatars")


@dataclass
class AuthSession:
    """Signed-in user, tokens and loaded profile"""
    client: BackendClient
    user: Optional[AuthUser] = None
    profile: Optional[UserProfile] = None
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.access_token is not None

    def require_user(self) -> AuthUser:
        if not self.is_authenticated:
            raise AuthError("User not authenticated")
        return self.user

    @property
    def display_name(self) -> str:
        if self.profile and (self.profile.first_name or self.profile.last_name):
            return f"{self.profile.first_name} {self.profile.last_name}".strip()
        if self.user and self.user.email:
            return self.user.email.split("@")[0]
        return "Guest"


def _session_from_payload(
    client: BackendClient,
    data: dict,
    profile_timeout: float
) -> AuthSession:
    user_data = data.get("user") or (data if data.get("id") else None)
    session = AuthSession(
        client=client,
        user=AuthUser.model_validate(user_data) if user_data else None,
        access_token=data.get("access_token"),
        refresh_token=data.get("refresh_token"),
    )
    if session.is_authenticated:
        session.profile = load_user_profile(client, session.user.id, timeout=profile_timeout)
    return session


def sign_in(
    client: BackendClient,
    email: str,
    password: str,
    profile_timeout: float = PROFILE_TIMEOUT
) -> AuthSession:
    data = client.sign_in(email, password)
    logger.info("User %s signed in", email)
    return _session_from_payload(client, data, profile_timeout)


def sign_up(
    client: BackendClient,
    email: str,
    password: str,
    profile_timeout: float = PROFILE_TIMEOUT
) -> AuthSession:
    """Register; the session is unauthenticated until the email is confirmed"""
    data = client.sign_up(email, password)
    logger.info("User %s signed up", email)
    return _session_from_payload(client, data, profile_timeout)


def sign_out(session: AuthSession) -> None:
    session.client.sign_out()
    session.user = None
    session.profile = None
    session.access_token = None
    session.refresh_token = None


def load_user_profile(
    client: BackendClient,
    user_id: str,
    timeout: float = PROFILE_TIMEOUT
) -> Optional[UserProfile]:
    """
    Fetch the user's profile, giving up after `timeout` seconds.

    A missing profile, a timeout or any backend error gives None so a slow
    or misconfigured profile table never blocks sign-in.
    """
    try:
        row = client.select(
            PROFILE_TABLE,
            filters=[eq("user_id", user_id)],
            single=True,
            timeout=timeout
        )
    except NotFoundError:
        return None
    except BackendTimeout:
        logger.warning("Profile load for %s timed out after %.1fs", user_id, timeout)
        return None
    except BackendError as e:
        logger.warning("Profile load for %s failed: %s", user_id, e)
        return None

    return UserProfile.model_validate(row) if row else None


def update_user_profile(session: AuthSession, changes: dict) -> Optional[UserProfile]:
    """Update the profile row, creating it on first save"""
    user = session.require_user()
    client = session.client

    try:
        client.select(PROFILE_TABLE, columns="id", filters=[eq("user_id", user.id)], single=True)
        exists = True
    except NotFoundError:
        exists = False

    if exists:
        client.update(PROFILE_TABLE, changes, [eq("user_id", user.id)])
    else:
        client.insert(PROFILE_TABLE, {"user_id": user.id, **changes})

    session.profile = load_user_profile(client, user.id)
    return session.profile


def create_default_profile(client: BackendClient, user_id: str) -> None:
    """Insert an empty profile with default notification settings if none exists"""
    try:
        client.select(PROFILE_TABLE, columns="id", filters=[eq("user_id", user_id)], single=True)
        return
    except NotFoundError:
        pass

    profile = UserProfile(user_id=user_id, monthly_reports=False)
    try:
        client.insert(PROFILE_TABLE, profile.model_dump(mode="json", exclude={"id", "avatar_url"}))
    except BackendError as e:
        # Setup still succeeds without a profile row
        logger.warning("Could not create default profile for %s: %s", user_id, e)


def upload_profile_photo(
    session: AuthSession,
    filename: str,
    content: bytes,
    content_type: str
) -> str:
    """
    Upload an avatar and store its public URL on the profile.

    Buckets are tried in order; one rejected by row-level security or
    missing is skipped.
    """
    user = session.require_user()

    if len(content) > MAX_PHOTO_BYTES:
        raise ValueError("File size too large. Please select an image smaller than 5MB.")
    if not (content_type or "").startswith("image/"):
        raise ValueError("Please select a valid image file.")

    extension = filename.rsplit(".", 1)[-1] if "." in filename else "png"
    object_name = f"{user.id}-{int(time.time() * 1000)}.{extension}"

    for bucket in AVATAR_BUCKETS:
        try:
            session.client.upload(bucket, object_name, content, content_type)
        except BackendError as e:
            if e.is_rls_violation or isinstance(e, (NotFoundError, AuthError)) or "not found" in e.message.lower():
                logger.info("Avatar bucket %s unavailable (%s), trying next", bucket, e.message)
                continue
            raise

        url = session.client.public_url(bucket, object_name)
        update_user_profile(session, {"avatar_url": url})
        logger.info("Uploaded avatar for %s to %s", user.id, bucket)
        return url

    raise BackendError("All storage buckets failed. Please check bucket permissions and RLS policies.")
