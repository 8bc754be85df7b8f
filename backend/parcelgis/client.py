"""HTTP client for the ParcelGIS API.

Authenticated calls that come back 401 trigger exactly one refresh and one
retry. Threads sharing a client that hit 401 with the same refresh token
share a single refresh request: the first caller performs it, the others
wait for its outcome. A refresh token is single-use on the server, so two
independent refreshes with the same token would log the user out.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

# 401 codes that no refresh can fix
NON_REFRESHABLE_CODES = frozenset({"malformed_token", "missing_token"})


class ApiError(Exception):
    def __init__(self, status: int, message: str, code: str | None = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code
        self.payload = payload

    def __repr__(self):
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    message = f"Request failed ({response.status_code})"
    code = None
    if isinstance(payload, dict):
        if isinstance(payload.get("detail"), str):
            message = payload["detail"]
        code = payload.get("code")
        errors = payload.get("errors")
        if isinstance(errors, list):
            details = [e["msg"] for e in errors if isinstance(e, dict) and isinstance(e.get("msg"), str)]
            if details:
                message = f"{message}: {'; '.join(details)}"
    return ApiError(response.status_code, message, code=code, payload=payload)


class ParcelGISClient:
    def __init__(
        self,
        base_url: str = "http://localhost:4000/api",
        *,
        tokens: SessionTokens | None = None,
        on_tokens_updated: Callable[[SessionTokens], None] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self._tokens = tokens
        self._on_tokens_updated = on_tokens_updated
        self._lock = threading.Lock()
        self._refresh_in_flight: dict[str, Future] = {}

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def tokens(self) -> SessionTokens | None:
        with self._lock:
            return self._tokens

    def _set_tokens(self, tokens: SessionTokens | None) -> None:
        with self._lock:
            self._tokens = tokens
        if tokens is not None and self._on_tokens_updated is not None:
            self._on_tokens_updated(tokens)

    # --- transport ---

    def _send(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        json: Any = None,
        params: dict | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            return self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.RequestError as exc:
            logger.error("ParcelGIS API unreachable at %s: %s", self._http.base_url, exc)
            raise

    @staticmethod
    def _result(response: httpx.Response) -> Any:
        if response.is_error:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- refresh rotation ---

    def _refresh(self, refresh_token: str) -> SessionTokens:
        response = self._send("POST", "/auth/refresh", json={"refreshToken": refresh_token})
        payload = self._result(response)
        if not isinstance(payload, dict) or not all(
            isinstance(payload.get(k), str) for k in ("accessToken", "refreshToken")
        ):
            raise ApiError(response.status_code, "Invalid refresh response from API", payload=payload)
        return SessionTokens(access_token=payload["accessToken"], refresh_token=payload["refreshToken"])

    def refresh(self, refresh_token: str) -> SessionTokens:
        """Rotate ``refresh_token``, sharing the request with concurrent callers."""
        with self._lock:
            current = self._tokens
            if current is not None and current.refresh_token != refresh_token:
                # Someone already rotated past this token.
                return current
            future = self._refresh_in_flight.get(refresh_token)
            leader = future is None
            if leader:
                future = Future()
                self._refresh_in_flight[refresh_token] = future

        if not leader:
            return future.result()

        try:
            tokens = self._refresh(refresh_token)
        except Exception as exc:
            with self._lock:
                self._refresh_in_flight.pop(refresh_token, None)
                if isinstance(exc, ApiError) and exc.status == 401:
                    self._tokens = None
            future.set_exception(exc)
            raise

        with self._lock:
            self._tokens = tokens
            self._refresh_in_flight.pop(refresh_token, None)
        future.set_result(tokens)
        if self._on_tokens_updated is not None:
            self._on_tokens_updated(tokens)
        return tokens

    def request(self, method: str, path: str, *, json: Any = None, params: dict | None = None) -> Any:
        """Authenticated call with one refresh-and-retry on 401."""
        tokens = self.tokens
        if tokens is None:
            raise ApiError(401, "Not authenticated", code="missing_token")

        response = self._send(method, path, access_token=tokens.access_token, json=json, params=params)
        if response.status_code != 401:
            return self._result(response)

        error = _error_from_response(response)
        if error.code in NON_REFRESHABLE_CODES:
            raise error

        refreshed = self.refresh(tokens.refresh_token)
        response = self._send(method, path, access_token=refreshed.access_token, json=json, params=params)
        return self._result(response)

    # --- auth ---

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        phone_number: str,
        company_name: str,
        disclaimer_accepted: bool = True,
    ) -> dict:
        body = {
            "username": username,
            "email": email,
            "password": password,
            "phoneNumber": phone_number,
            "companyName": company_name,
            "disclaimerAccepted": disclaimer_accepted,
        }
        return self._result(self._send("POST", "/auth/register", json=body))["user"]

    def login(self, username: str, password: str, device_fingerprint: str | None = None) -> dict:
        body = {"username": username, "password": password}
        if device_fingerprint:
            body["deviceFingerprint"] = device_fingerprint
        payload = self._result(self._send("POST", "/auth/login", json=body))
        self._set_tokens(SessionTokens(payload["accessToken"], payload["refreshToken"]))
        return payload

    def logout(self) -> None:
        try:
            self.request("POST", "/auth/logout")
        finally:
            with self._lock:
                self._tokens = None

    def logout_all(self) -> None:
        try:
            self.request("POST", "/auth/logout-all")
        finally:
            with self._lock:
                self._tokens = None

    def me(self) -> dict:
        return self.request("GET", "/auth/me")["user"]

    # --- properties ---

    def search_properties(self, q: str, limit: int | None = None) -> dict:
        return self.request("GET", "/properties/search", params={"q": q, "limit": limit})

    def property_at(self, longitude: float, latitude: float) -> dict:
        return self.request(
            "GET", "/properties/by-coordinates", params={"longitude": longitude, "latitude": latitude}
        )

    def property_by_parcel_key(self, parcel_key: str) -> dict:
        return self.request("GET", f"/properties/by-parcel-key/{quote(parcel_key, safe='')}")

    def parcels_in_bounds(
        self, west: float, south: float, east: float, north: float, limit: int | None = None
    ) -> dict:
        params = {"west": west, "south": south, "east": east, "north": north, "limit": limit}
        return self.request("GET", "/properties/bounds", params=params)

    def property_stats(self) -> dict:
        return self.request("GET", "/properties/stats")

    def layers(self) -> dict:
        return self.request("GET", "/layers")

    # --- admin ---

    def admin_users(self, *, limit: int | None = None, offset: int | None = None, search: str | None = None) -> dict:
        return self.request("GET", "/admin/users", params={"limit": limit, "offset": offset, "search": search})

    def admin_activity(
        self,
        *,
        limit: int | None = None,
        offset: int | None = None,
        user_id: int | None = None,
        event_type: str | None = None,
    ) -> dict:
        params = {"limit": limit, "offset": offset, "userId": user_id, "eventType": event_type}
        return self.request("GET", "/admin/activity", params=params)
