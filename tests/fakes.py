"""
In-memory stand-in for the hosted backend, served through httpx.MockTransport
Understands the subset of the REST, auth and storage APIs the services use
"""
import json
import re
import sys
import uuid
from collections import defaultdict
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from tools.backend import BackendClient

BASE_URL = "https://backend.test"
NOT_FOUND = {"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"}


def _text(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _matches(row: dict, column: str, expr: str) -> bool:
    value = row.get(column)
    if expr == "not.is.null":
        return value is not None
    op, _, operand = expr.partition(".")
    if op == "eq":
        return _text(value) == operand
    if op == "neq":
        return _text(value) != operand
    if op == "gte":
        return value is not None and _text(value) >= operand
    if op == "lte":
        return value is not None and _text(value) <= operand
    if op == "is":
        return _text(value) == operand
    if op == "in":
        options = [o.strip().strip('"') for o in operand.strip("()").split(",") if o]
        return _text(value) in options
    if op == "ilike":
        pattern = re.escape(operand).replace("%", ".*")
        return re.fullmatch(pattern, _text(value), re.IGNORECASE) is not None
    raise ValueError(f"Unsupported filter {expr}")


class FakeBackend:
    """Tables are plain lists of row dicts; every request is recorded"""

    def __init__(self, password: str = "Secret123!"):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.requests: list[httpx.Request] = []
        self.password = password
        self.user = {"id": "user-1", "email": "ayse@example.com"}
        self.bucket_errors: dict[str, tuple[int, dict]] = {}
        self.uploads: list[str] = []
        self.timeout_tables: set[str] = set()
        self.signup_confirms_email = False

    def client(self) -> BackendClient:
        return BackendClient(BASE_URL, "anon-key", transport=httpx.MockTransport(self.handler))

    def seed(self, table: str, *rows: dict) -> list[dict]:
        stored = []
        for row in rows:
            row = {"id": str(uuid.uuid4()), **row}
            self.tables[table].append(row)
            stored.append(row)
        return stored

    def requests_to(self, method: str, path_part: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and path_part in r.url.path]

    # --- routing ---

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):])
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        if path.startswith("/storage/v1/object/"):
            return self._storage(request, path[len("/storage/v1/object/"):])
        return httpx.Response(404, json={"message": "no route"})

    def _filtered(self, table: str, params: list[tuple[str, str]]) -> list[dict]:
        rows = self.tables[table]
        for column, expr in params:
            if column in ("select", "order", "limit"):
                continue
            rows = [r for r in rows if _matches(r, column, expr)]
        return rows

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        if table in self.timeout_tables:
            raise httpx.ReadTimeout("timed out", request=request)

        params = list(request.url.params.multi_items())

        if request.method == "GET":
            rows = list(self._filtered(table, params))
            for column, expr in params:
                if column == "order":
                    field, _, direction = expr.rpartition(".")
                    rows.sort(key=lambda r: _text(r.get(field)), reverse=direction == "desc")
                elif column == "limit":
                    rows = rows[:int(expr)]
            if request.headers.get("Accept") == "application/vnd.pgrst.object+json":
                if len(rows) != 1:
                    return httpx.Response(406, json=NOT_FOUND)
                return httpx.Response(200, json=rows[0])
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            payload = json.loads(request.content)
            payload = payload if isinstance(payload, list) else [payload]
            stored = []
            for row in payload:
                row = {"id": str(uuid.uuid4()), "created_at": "2026-10-01T12:00:00+00:00", **row}
                self.tables[table].append(row)
                stored.append(row)
            return httpx.Response(201, json=stored)

        if request.method == "PATCH":
            values = json.loads(request.content)
            rows = self._filtered(table, params)
            for row in rows:
                row.update(values)
            return httpx.Response(200, json=rows)

        if request.method == "DELETE":
            doomed = {id(r) for r in self._filtered(table, params)}
            self.tables[table] = [r for r in self.tables[table] if id(r) not in doomed]
            return httpx.Response(204)

        return httpx.Response(405, json={"message": "method not allowed"})

    def _session(self) -> dict:
        return {"access_token": "access-1", "refresh_token": "refresh-1", "user": self.user}

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        if endpoint == "token":
            body = json.loads(request.content)
            if request.url.params.get("grant_type") == "refresh_token":
                return httpx.Response(200, json=self._session())
            if body.get("password") != self.password:
                return httpx.Response(400, json={
                    "error": "invalid_grant",
                    "error_description": "Invalid login credentials"
                })
            return httpx.Response(200, json=self._session())
        if endpoint == "signup":
            if self.signup_confirms_email:
                return httpx.Response(200, json=self.user)
            return httpx.Response(200, json=self._session())
        if endpoint == "logout":
            return httpx.Response(204)
        if endpoint == "user":
            return httpx.Response(200, json=self.user)
        return httpx.Response(404, json={"message": "no route"})

    def _storage(self, request: httpx.Request, rest: str) -> httpx.Response:
        bucket, _, path = rest.partition("/")
        if bucket in self.bucket_errors:
            status, body = self.bucket_errors[bucket]
            return httpx.Response(status, json=body)
        self.uploads.append(f"{bucket}/{path}")
        return httpx.Response(200, json={"Key": f"{bucket}/{path}"})
