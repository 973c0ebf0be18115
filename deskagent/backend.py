"""
deskagent - HTTP client for the local desktop backend.

Implements the DesktopBackend protocol against the backend's ``/api/v1`` REST
API. Every non-2xx response raises DeskAgentError with the status code and the
parsed body.
"""

import logging
from typing import Any, Optional

import httpx

from .config import RuntimeConfig
from .exceptions import DeskAgentError

logger = logging.getLogger("deskagent.backend")


def _params(**values: Any) -> dict[str, Any]:
    """Drop unset query parameters; booleans become ``true``/``false``."""
    params: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        params[key] = ("true" if value else "false") if isinstance(value, bool) else value
    return params


class BackendClient:
    """
    Asynchronous client for the desktop backend.

    Example:
        ```python
        async with BackendClient("http://localhost:3001") as backend:
            listing = await backend.list_directory("/home/me/projects")
            services = ServiceBundle(backend=backend)
        ```
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "BackendClient":
        return cls(base_url=config.backend_url, timeout=config.timeout_s)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/api/v1{endpoint}"

    def _handle_response(self, response: httpx.Response, action: str) -> Any:
        """Handle HTTP response and raise DeskAgentError on failure."""
        if response.status_code >= 400:
            body: Optional[dict[str, Any]] = None
            message = f"Failed to {action}: {response.status_code} {response.reason_phrase}".rstrip()
            try:
                parsed = response.json() if response.content else None
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                body = parsed
                detail = parsed.get("error") or parsed.get("message")
                if isinstance(detail, str) and detail:
                    message = f"Failed to {action}: {detail}"
            logger.warning(message)
            raise DeskAgentError(message, status_code=response.status_code, response=body)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _get(self, endpoint: str, action: str, **params: Any) -> Any:
        response = await self._client.get(self._url(endpoint), params=_params(**params))
        return self._handle_response(response, action)

    async def _post(
        self, endpoint: str, action: str, body: Optional[dict[str, Any]] = None
    ) -> Any:
        response = await self._client.post(self._url(endpoint), json=body)
        return self._handle_response(response, action)

    # ==================== Shell ====================

    async def execute_shell(
        self, command: str, workdir: Optional[str] = None, timeout_ms: Optional[int] = None
    ) -> dict[str, Any]:
        return await self._post(
            "/shell/execute",
            "execute shell command",
            {"command": command, "workdir": workdir or ".", "timeout_ms": timeout_ms or 30000},
        )

    # ==================== Files ====================

    async def read_file(
        self, path: str, start_line: Optional[int] = None, end_line: Optional[int] = None
    ) -> str:
        data = await self._get(
            "/files/read", "read file", path=path, start_line=start_line, end_line=end_line
        )
        if isinstance(data, dict):
            return data.get("content") or ""
        return str(data)

    async def write_file(self, path: str, content: str, append: bool = False) -> None:
        await self._post(
            "/files/write", "write file", {"path": path, "content": content, "append": append}
        )

    async def list_directory(
        self, path: str, depth: Optional[int] = None, include_hidden: bool = False
    ) -> Any:
        return await self._get(
            "/files/list",
            "list directory",
            path=path,
            depth=depth,
            include_hidden=include_hidden or None,
        )

    async def open_file_location(self, path: str) -> dict[str, Any]:
        return await self._post("/files/open", "open file location", {"path": path})

    # ==================== Search ====================

    async def search_files(
        self,
        query: str,
        search_path: Optional[str] = None,
        max_results: Optional[int] = None,
        file_types: Optional[str] = None,
    ) -> Any:
        return await self._get(
            "/search/files",
            "search files",
            q=query,
            search_path=search_path,
            max_results=max_results,
            file_types=file_types,
        )

    async def web_search(
        self,
        query: str,
        num_results: Optional[int] = None,
        search_type: Optional[str] = None,
        depth: Optional[int] = None,
    ) -> dict[str, Any]:
        return await self._get(
            "/search/web",
            "search the web",
            q=query,
            num_results=num_results or 5,
            search_type=search_type or "general",
            depth=depth,
        )

    async def browse(self, url: str, render: bool = False) -> dict[str, Any]:
        return await self._post("/browse", "browse", {"url": url, "render": render})

    async def start_indexing(self) -> None:
        await self._post("/index/start", "start indexing")

    # ==================== Disk ====================

    async def disk_info(self) -> Any:
        return await self._get("/disk/info", "get disk info")

    async def analyze_disk(
        self,
        path: Optional[str] = None,
        max_depth: Optional[int] = None,
        top_n: Optional[int] = None,
    ) -> Any:
        return await self._get(
            "/disk/analyze", "analyze disk", path=path, max_depth=max_depth, top_n=top_n
        )

    async def cleanup_suggestions(self) -> Any:
        return await self._get("/disk/cleanup-suggestions", "get cleanup suggestions")

    async def storage_categories(self, path: Optional[str] = None) -> Any:
        return await self._get("/disk/categories", "get storage categories", path=path)

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
