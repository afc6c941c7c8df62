# portal/client/api_client.py

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from portal.client.auth_store import AuthStore
from portal.services.file_listing import DEFAULT_QUERY, FileQuery, filter_files

DEFAULT_BASE_URL = "http://localhost:8000"
CARDS_CACHE_NAME = "departmentCards.json"

# What the admin dashboard shows when one of its calls fails
DASHBOARD_FALLBACKS = {
    "analytics": {
        "totalCards": 0,
        "cardsByDepartment": {},
        "totalSubmissions": 0,
        "totalFiles": 0,
        "totalBytes": 0,
        "recentCards": [],
    },
    "completion_rates": [],
    "storage": [],
    "recent_activities": [],
    "realtime": {"activeTeachers": 0, "uploadsToday": 0},
}


class PortalAPIError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def error_message(response: httpx.Response) -> str:
    """error, detail or message from a JSON body, else the reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, list) and value:
                first = value[0]
                return first.get("msg", str(first)) if isinstance(first, dict) else str(first)
            if value:
                return str(value)
    return response.reason_phrase or f"HTTP {response.status_code}"


class PortalClient:
    """Async client for the portal backend, mirroring what the browser app calls."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        store: Optional[AuthStore] = None,
        cache_dir: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.store = store or AuthStore()
        self.cache_dir = Path(cache_dir) if cache_dir else self.store.state_dir
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------
    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {**self.store.headers(), **kwargs.pop("headers", {})}
        response = await self._http.request(method, path, headers=headers, **kwargs)

        if response.is_error:
            raise PortalAPIError(response.status_code, error_message(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------
    async def login(self, email: str, password: str, remember_me: bool = False) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/auth/login",
            json={"email": email, "password": password, "rememberMe": remember_me},
        )
        self.store.save(data["token"], data["user"], remember_me=remember_me)
        logger.info(f"Signed in as {data['user'].get('email')}")
        return data

    async def verify_token(self) -> Optional[Dict[str, Any]]:
        """Checks the stored token; a rejected token is dropped from the store."""
        if not self.store.is_authenticated:
            return None
        try:
            data = await self._request("GET", "/auth/verify-token")
        except PortalAPIError as e:
            if e.status_code == 401:
                self.store.clear()
                return None
            raise
        self.store.update_user(data["user"])
        return data["user"]

    async def current_user(self) -> Dict[str, Any]:
        data = await self._request("GET", "/auth/me")
        return data["user"]

    def logout(self) -> None:
        self.store.clear()

    # ------------------------------------------------------------
    # Cards (with departmentCards cache)
    # ------------------------------------------------------------
    @property
    def cards_cache_file(self) -> Path:
        return self.cache_dir / CARDS_CACHE_NAME

    def cached_cards(self) -> Optional[List[Dict[str, Any]]]:
        if not self.cards_cache_file.exists():
            return None
        try:
            return json.loads(self.cards_cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Card cache unreadable: {e}")
            return None

    def _write_cards_cache(self, cards: List[Dict[str, Any]]) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.cards_cache_file.write_text(json.dumps(cards), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not write card cache: {e}")

    async def list_cards(
        self,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
        sort: str = "recent",
    ) -> List[Dict[str, Any]]:
        """
        Fresh list on success (and the cache is overwritten); the last cached
        list when the request fails. With no cache the error propagates.
        """
        params: Dict[str, Any] = {"sort": sort}
        if department_id is not None:
            params["departmentId"] = department_id
        if search:
            params["search"] = search

        try:
            cards = await self._request("GET", "/cards", params=params)
        except (PortalAPIError, httpx.HTTPError) as e:
            cached = self.cached_cards()
            if cached is None:
                raise
            logger.warning(f"Using cached cards after failed fetch: {e}")
            return cached

        self._write_cards_cache(cards)
        return cards

    async def create_card(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/cards", json=payload)

    async def card_files(
        self,
        card_id: int,
        criteria: FileQuery = DEFAULT_QUERY,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        params = {
            "q": criteria.query,
            "type": criteria.type_filter,
            "sort": criteria.sort_by,
            "direction": criteria.direction,
            "mine": str(criteria.mine_only).lower(),
            "page": page,
            "page_size": page_size,
        }
        return await self._request("GET", f"/cards/{card_id}/files", params=params)

    def filter_local(self, files: List[Dict[str, Any]], criteria: FileQuery) -> List[Dict[str, Any]]:
        """Same filtering the server applies, over an already fetched list."""
        return filter_files(files, criteria, self.store.user)

    # ------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------
    async def upload_file(
        self,
        card_id: int,
        filename: str,
        content: bytes,
        title: Optional[str] = None,
        description: Optional[str] = None,
        file_type: Optional[str] = None,
        department_id: Optional[int] = None,
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        form = {
            "title": title or filename,
            "description": description or "",
            "type": file_type or "Document",
        }
        if department_id is not None:
            form["departmentId"] = str(department_id)

        return await self._request(
            "POST", f"/submissions/{card_id}",
            data=form,
            files={"file": (filename, content, content_type)},
        )

    # ------------------------------------------------------------
    # Admin dashboard
    # ------------------------------------------------------------
    async def dashboard(self) -> Dict[str, Any]:
        """
        Fires the dashboard calls concurrently. A failed call is logged and
        replaced by its fallback; the others still render.
        """
        calls = {
            "analytics": self._request("GET", "/cards/analytics"),
            "completion_rates": self._request("GET", "/departments/completion-rates"),
            "storage": self._request("GET", "/departments/storage"),
            "recent_activities": self._request("GET", "/activities/recent", params={"limit": 8}),
            "realtime": self._request("GET", "/activities/stats/realtime"),
        }
        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        data = {}
        for key, result in zip(calls, results):
            if isinstance(result, Exception):
                logger.warning(f"Dashboard call '{key}' failed: {result}")
                data[key] = copy.deepcopy(DASHBOARD_FALLBACKS[key])
            else:
                data[key] = result
        return data
