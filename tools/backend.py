"""
Backend-as-a-Service client
Auth, table CRUD and file storage over the hosted REST endpoints
(PostgREST under /rest/v1, auth under /auth/v1, storage under /storage/v1)
"""
import logging
from typing import Any, Iterable, Optional

import httpx
from pydantic_core import to_jsonable_python

from tools.errors import AuthError, BackendError, BackendTimeout, NotFoundError

logger = logging.getLogger(__name__)

Filter = tuple[str, str]


# Filter helpers produce (column, "op.value") pairs for query params
def eq(column: str, value: Any) -> Filter:
    return (column, f"eq.{_literal(value)}")


def neq(column: str, value: Any) -> Filter:
    return (column, f"neq.{_literal(value)}")


def gte(column: str, value: Any) -> Filter:
    return (column, f"gte.{_literal(value)}")


def lte(column: str, value: Any) -> Filter:
    return (column, f"lte.{_literal(value)}")


def is_(column: str, value: Optional[bool]) -> Filter:
    return (column, f"is.{_literal(value)}")


def not_null(column: str) -> Filter:
    return (column, "not.is.null")


def in_(column: str, values: Iterable[Any]) -> Filter:
    quoted = ",".join(f'"{_literal(v)}"' for v in values)
    return (column, f"in.({quoted})")


def ilike(column: str, pattern: str) -> Filter:
    return (column, f"ilike.{pattern}")


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class BackendClient:
    """
    Thin client for the hosted backend.

    One instance per signed-in user: the access token set by sign_in()
    is sent with every later request so row-level security applies.
    """

    REST_PATH = "/rest/v1"
    AUTH_PATH = "/auth/v1"
    STORAGE_PATH = "/storage/v1"

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        if not url or not anon_key:
            raise ValueError("Backend URL and anon key are required")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.client = httpx.Client(
            base_url=self.url,
            timeout=timeout,
            transport=transport
        )

    # --- plumbing ---

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        auth_endpoint: bool = False,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
        **kwargs
    ) -> httpx.Response:
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = self.client.request(
                method, path, headers=self._headers(headers), **kwargs
            )
        except httpx.TimeoutException as e:
            raise BackendTimeout(f"Backend request timed out: {method} {path}", code="timeout") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Backend request failed: {e}") from e

        self._raise_for_status(response, auth_endpoint=auth_endpoint)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, auth_endpoint: bool = False) -> None:
        if response.is_success:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("message")
            or body.get("error_description")
            or body.get("msg")
            or body.get("error")
            or response.text
            or f"HTTP {response.status_code}"
        )
        code = body.get("code") or body.get("error_code")
        code = str(code) if code is not None else None
        status = response.status_code

        if status in (401, 403) or (auth_endpoint and status == 400):
            raise AuthError(message, status_code=status, code=code)
        if code == "PGRST116" or status == 404:
            raise NotFoundError(message, status_code=status, code=code)
        raise BackendError(message, status_code=status, code=code)

    # --- auth ---

    def _store_session(self, data: dict) -> None:
        if data.get("access_token"):
            self.access_token = data["access_token"]
            self.refresh_token = data.get("refresh_token")

    def set_session(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token

    def sign_in(self, email: str, password: str) -> dict:
        """Password sign-in; returns the session payload (tokens + user)"""
        response = self._request(
            "POST", f"{self.AUTH_PATH}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            auth_endpoint=True
        )
        data = response.json()
        self._store_session(data)
        return data

    def sign_up(self, email: str, password: str) -> dict:
        """Register; the payload has a session only when confirmation is off"""
        response = self._request(
            "POST", f"{self.AUTH_PATH}/signup",
            json={"email": email, "password": password},
            auth_endpoint=True
        )
        data = response.json()
        self._store_session(data)
        return data

    def refresh(self, refresh_token: Optional[str] = None) -> dict:
        token = refresh_token or self.refresh_token
        if not token:
            raise AuthError("No refresh token available")
        response = self._request(
            "POST", f"{self.AUTH_PATH}/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": token},
            auth_endpoint=True
        )
        data = response.json()
        self._store_session(data)
        return data

    def get_user(self) -> dict:
        if not self.access_token:
            raise AuthError("Not signed in")
        response = self._request("GET", f"{self.AUTH_PATH}/user", auth_endpoint=True)
        return response.json()

    def sign_out(self) -> None:
        if self.access_token:
            try:
                self._request("POST", f"{self.AUTH_PATH}/logout", auth_endpoint=True)
            except AuthError:
                # Token already expired server-side
                logger.info("Sign-out with expired token")
        self.access_token = None
        self.refresh_token = None

    # --- tables ---

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Iterable[Filter] = (),
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        single: bool = False,
        timeout: Optional[float] = None
    ) -> Any:
        """
        Query a table.

        Returns a list of row dicts, or one dict when single=True
        (NotFoundError if nothing matched).
        """
        params: list[tuple[str, str]] = [("select", columns), *filters]
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        response = self._request(
            "GET", f"{self.REST_PATH}/{table}",
            params=params, headers=headers, timeout=timeout
        )
        data = response.json()
        if single:
            return data
        return data or []

    def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        """Insert one or many rows and return them as stored"""
        response = self._request(
            "POST", f"{self.REST_PATH}/{table}",
            json=to_jsonable_python(rows),
            headers={"Prefer": "return=representation"}
        )
        data = response.json()
        return data if isinstance(data, list) else [data]

    def update(self, table: str, values: dict, filters: Iterable[Filter]) -> list[dict]:
        filters = list(filters)
        if not filters:
            raise ValueError("update() needs at least one filter")
        response = self._request(
            "PATCH", f"{self.REST_PATH}/{table}",
            params=filters,
            # Dates and enums in ad-hoc update dicts
            json=to_jsonable_python(values),
            headers={"Prefer": "return=representation"}
        )
        return response.json() or []

    def delete(self, table: str, filters: Iterable[Filter]) -> None:
        filters = list(filters)
        if not filters:
            raise ValueError("delete() needs at least one filter")
        self._request("DELETE", f"{self.REST_PATH}/{table}", params=filters)

    # --- storage ---

    def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str,
        upsert: bool = True
    ) -> str:
        """Upload a file; returns the object key"""
        response = self._request(
            "POST", f"{self.STORAGE_PATH}/object/{bucket}/{path}",
            content=content,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "3600",
                "x-upsert": "true" if upsert else "false",
            }
        )
        return response.json().get("Key", f"{bucket}/{path}")

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}{self.STORAGE_PATH}/object/public/{bucket}/{path}"

    def close(self):
        """Close HTTP client"""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
