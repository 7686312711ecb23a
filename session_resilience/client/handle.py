"""
Authenticated backend client.

A ClientHandle wraps one ``httpx.AsyncClient`` configured for the hosted
backend and persists its session blob in the PersistentKeyValueStore. Handles
are created only by the ClientRegistry.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import httpx

from ..config.constants import CLIENT_INFO
from ..config.settings import ClientConfig
from ..errors import AuthApiError, BackendError, SessionDecodeError
from ..models.session import Session
from ..observability.logging import ComponentLogger
from ..storage.store import PersistentKeyValueStore

TOKEN_PATH = "/auth/v1/token"
LOGOUT_PATH = "/auth/v1/logout"
USER_PATH = "/auth/v1/user"


class ClientHandle:
    """The single live authenticated client."""

    def __init__(
        self,
        config: ClientConfig,
        storage: PersistentKeyValueStore,
        instance_number: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self.storage = storage
        self.instance_number = instance_number
        self.created_at = datetime.now(timezone.utc)
        self._log = ComponentLogger("client")

        headers = {
            "X-Client-Info": CLIENT_INFO,
            "Accept": "application/json",
            "Cache-Control": "no-cache",
        }
        if config.api_key:
            headers["apikey"] = config.api_key

        self._http = httpx.AsyncClient(
            base_url=config.endpoint,
            headers=headers,
            transport=transport
        )

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        error_cls: Type[BackendError] = BackendError
    ) -> Any:
        """
        Send a request to the backend with the timeout for its operation type.

        Args:
            method: HTTP method
            path: Path relative to the configured endpoint
            json_body: Optional JSON body
            params: Optional query parameters
            headers: Optional extra headers
            error_cls: Error type raised for non-2xx responses

        Returns:
            Decoded JSON body, raw text, or None for an empty body

        Raises:
            BackendError: For non-2xx responses (status and body preserved)
            httpx.TransportError: For network failures and timeouts
        """
        timeout = self.config.timeouts.for_path(path)
        try:
            response = await self._http.request(
                method,
                path,
                json=json_body,
                params=params,
                headers=headers,
                timeout=timeout
            )
        except httpx.TimeoutException:
            self._log.warning("Request timed out", path=path, timeout_s=timeout)
            raise

        if response.status_code >= 400:
            raise error_cls.from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # Session material

    def load_session(self) -> Optional[Session]:
        """
        Read the stored session.

        Returns:
            The session, or None when nothing is stored

        Raises:
            SessionDecodeError: If the stored blob is corrupted
        """
        key = self.config.storage_key
        raw = self.storage.get(key)
        if raw is None:
            return None
        try:
            return Session(**json.loads(raw))
        except (ValueError, TypeError) as e:
            raise SessionDecodeError(key) from e

    def store_session(self, session: Session) -> bool:
        return self.storage.set(self.config.storage_key, session.model_dump_json())

    async def _token_request(self, grant_type: str, body: Dict[str, Any]) -> Session:
        payload = await self.request(
            "POST",
            TOKEN_PATH,
            json_body=body,
            params={"grant_type": grant_type},
            error_cls=AuthApiError
        )
        if not isinstance(payload, dict):
            raise AuthApiError("Malformed token response", error_type="malformed_response")
        session = Session.from_payload(payload)
        self.store_session(session)
        return session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        session = await self._token_request("password", {"email": email, "password": password})
        self._log.info("Signed in", instance=self.instance_number)
        return session

    async def refresh_session(self, refresh_token: Optional[str] = None) -> Session:
        """Exchange a refresh token (the stored one by default) for a new session."""
        if refresh_token is None:
            stored = self.load_session()
            refresh_token = stored.refresh_token if stored else None
        if not refresh_token:
            raise AuthApiError(
                "Invalid Refresh Token: Refresh Token Not Found",
                status=400,
                error_type="refresh_token_not_found"
            )
        with self._log.track_operation("refresh_session"):
            return await self._token_request("refresh_token", {"refresh_token": refresh_token})

    async def get_session(self) -> Optional[Session]:
        """
        Return the current session, refreshing it when close to expiry.

        Returns:
            The session, or None when signed out

        Raises:
            SessionDecodeError: If the stored session is corrupted
            AuthApiError: If the refresh is rejected (e.g. invalid refresh token)
        """
        session = self.load_session()
        if session is None:
            return None

        remaining = session.seconds_to_expiry()
        if remaining is not None and remaining <= self.config.refresh_margin:
            return await self.refresh_session(session.refresh_token or "")
        return session

    async def get_user(self) -> Optional[Dict[str, Any]]:
        session = await self.get_session()
        if session is None:
            return None
        return await self.request(
            "GET",
            USER_PATH,
            headers={"Authorization": f"Bearer {session.access_token}"},
            error_cls=AuthApiError
        )

    async def sign_out(self, session: Optional[Session] = None) -> None:
        """
        Revoke the session on the backend and drop it locally.

        Args:
            session: Session to revoke; the stored one when omitted

        The local session is removed even when the backend call fails; the
        failure is still raised.
        """
        key = self.config.storage_key
        try:
            if session is None:
                try:
                    session = self.load_session()
                except SessionDecodeError:
                    session = None
            if session is not None:
                await self.request(
                    "POST",
                    LOGOUT_PATH,
                    headers={"Authorization": f"Bearer {session.access_token}"},
                    error_cls=AuthApiError
                )
        finally:
            self.storage.remove(key)

    async def aclose(self) -> None:
        await self._http.aclose()

    def __repr__(self) -> str:
        return (
            f"ClientHandle(instance={self.instance_number}, endpoint={self.config.endpoint!r}, "
            f"created_at={self.created_at.isoformat()})"
        )
