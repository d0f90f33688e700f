"""Async HTTP client for the session ledger endpoints."""

from __future__ import annotations

from typing import Optional

import httpx

from ..config import settings


class SessionLedgerClient:
    """Thin wrapper over `POST /sessions/start`, `POST /sessions/stop` and `GET /sessions`.

    Non-2xx responses raise `httpx.HTTPStatusError`; transport failures
    raise the underlying `httpx.HTTPError`. Nothing is retried.
    """

    def __init__(self, base_url: Optional[str] = None, *, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url or settings.API_BASE_URL)

    async def start_session(
        self,
        subject_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        kind: str = "pomodoro",
    ) -> dict:
        resp = await self._client.post(
            "/sessions/start",
            json={"subject_id": subject_id, "topic_id": topic_id, "type": kind},
        )
        resp.raise_for_status()
        return resp.json()

    async def stop_session(self, session_id: int) -> dict:
        resp = await self._client.post("/sessions/stop", json={"session_id": session_id})
        resp.raise_for_status()
        return resp.json()

    async def list_sessions(
        self,
        subject_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        from_: Optional[str] = None,
        to: Optional[str] = None,
    ) -> list[dict]:
        params = {"subject_id": subject_id, "topic_id": topic_id, "from": from_, "to": to}
        resp = await self._client.get("/sessions", params={k: v for k, v in params.items() if v is not None})
        resp.raise_for_status()
        return resp.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SessionLedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
