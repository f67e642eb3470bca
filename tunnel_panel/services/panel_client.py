"""
Panel Client - 面板后端通信客户端

所有接口均为 POST + JSON，响应统一为 {code, msg, data} 信封：
- code == 0 表示成功
- code != 0 或 HTTP >= 400 视为失败，抛出 PanelResponseError

提供一致的错误处理、重试机制和超时配置。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.settings import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT, Settings

logger = logging.getLogger(__name__)

RETRY_DELAY = 0.1
DEFAULT_ERROR_MESSAGE = "网络请求失败"


# ==================== 异常定义 ====================

class PanelError(Exception):
    """面板通信异常基类"""
    def __init__(self, message: str, status_code: int = 0, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class PanelConnectionError(PanelError):
    """连接错误"""
    pass


class PanelTimeoutError(PanelError):
    """请求超时"""
    pass


class PanelResponseError(PanelError):
    """服务端返回失败 (HTTP 错误或 code != 0)"""
    pass


# ==================== 错误处理工具 ====================

def _parse_json_response(response: httpx.Response) -> Dict[str, Any]:
    """安全解析 JSON 响应"""
    try:
        data = response.json()
    except ValueError:
        return {"code": -1, "msg": response.text.strip()}
    if isinstance(data, dict):
        return data
    return {"code": -1, "msg": str(data)}


def _server_message(payload: Dict[str, Any]) -> str:
    return str(payload.get("msg") or payload.get("message") or "").strip()


def _should_retry_error(error: str) -> bool:
    """判断错误是否应该重试"""
    s = (error or "").lower()
    retry_keywords = (
        "timeout", "timed out", "temporar",
        "connection aborted", "connection reset",
        "broken pipe", "network unreachable",
    )
    return any(kw in s for kw in retry_keywords)


def extract_error_message(error: BaseException, fallback: str = DEFAULT_ERROR_MESSAGE) -> str:
    """Pick the best user-facing message for a failed request.

    Server-provided messages win; transport failures fall back to ``fallback``.
    """
    if isinstance(error, PanelResponseError):
        return error.detail or error.message or fallback
    if isinstance(error, PanelError):
        return fallback
    text = str(error or "").strip()
    return text or fallback


def _normalize_base_url(base_url: str) -> str:
    url = str(base_url or "").strip().rstrip("/")
    if not url:
        return ""
    if "://" not in url:
        url = f"http://{url}"
    return url


# ==================== 客户端 ====================

class PanelClient:
    """Async client for the panel REST endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = _normalize_base_url(base_url)
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "PanelClient":
        return cls(
            settings.api_base,
            settings.token,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            **kwargs,
        )

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = self.token
        return headers

    async def post(self, path: str, data: Any = None, timeout: Optional[float] = None) -> Dict[str, Any]:
        """POST and return the full envelope; raises PanelError on failure."""
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(
            timeout=(timeout or self.timeout),
            transport=self._transport,
        ) as client:
            for attempt in range(self.max_retries):
                try:
                    r = await client.post(url, headers=self._get_headers(), json=data if data is not None else {})
                except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(RETRY_DELAY)
                        continue
                    logger.warning("panel request timeout path=%s err=%s", path, e)
                    raise PanelTimeoutError(f"请求超时: {e}")
                except httpx.RequestError as e:
                    if attempt < self.max_retries - 1 and _should_retry_error(str(e)):
                        await asyncio.sleep(RETRY_DELAY)
                        continue
                    logger.warning("panel request failed path=%s err=%s", path, e)
                    raise PanelConnectionError(f"连接失败: {e}")

                payload = _parse_json_response(r)
                msg = _server_message(payload)
                if r.status_code >= 400:
                    raise PanelResponseError(
                        f"请求失败（{r.status_code}）",
                        status_code=r.status_code,
                        detail=msg,
                    )
                try:
                    code = int(payload.get("code", 0) or 0)
                except (TypeError, ValueError):
                    code = -1
                if code != 0:
                    raise PanelResponseError(msg or "操作失败", status_code=r.status_code, detail=msg)
                return payload
        raise PanelConnectionError("连接失败")

    async def call(self, path: str, data: Any = None, timeout: Optional[float] = None) -> Any:
        """POST and return only the envelope ``data``."""
        payload = await self.post(path, data, timeout)
        return payload.get("data")

    # ==================== 隧道 / 转发 / 节点 ====================

    async def list_tunnels(self) -> List[Dict[str, Any]]:
        return list(await self.call("/tunnel/list") or [])

    async def list_forwards(self) -> List[Dict[str, Any]]:
        return list(await self.call("/forward/list") or [])

    async def list_nodes(self) -> List[Dict[str, Any]]:
        return list(await self.call("/node/list") or [])

    async def create_tunnel(self, payload: Dict[str, Any]) -> Any:
        return await self.call("/tunnel/create", payload)

    async def update_tunnel(self, payload: Dict[str, Any]) -> Any:
        return await self.call("/tunnel/update", payload)

    async def _diagnose(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.call(path, body)
        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning("diagnosis response malformed path=%s type=%s", path, type(data).__name__)
            raise PanelResponseError("诊断响应格式错误", detail="诊断响应格式错误")
        return data

    async def diagnose_tunnel(self, tunnel_id: int) -> Dict[str, Any]:
        return await self._diagnose("/tunnel/diagnose", {"tunnelId": int(tunnel_id)})

    async def diagnose_forward(self, forward_id: int) -> Dict[str, Any]:
        return await self._diagnose("/forward/diagnose", {"forwardId": int(forward_id)})

    async def update_order(self, path: str, collection_key: str, items: List[Dict[str, int]]) -> Any:
        """Persist ranks; ``items`` is ``[{id, inx}]`` with zero-based ``inx``."""
        return await self.call(path, {collection_key: items})

    # ==================== 批量操作 ====================

    async def batch_delete_forwards(self, ids: List[int]) -> Any:
        return await self.call("/forward/batch-delete", {"ids": list(ids)})

    async def batch_pause_forwards(self, ids: List[int]) -> Any:
        return await self.call("/forward/batch-pause", {"ids": list(ids)})

    async def batch_resume_forwards(self, ids: List[int]) -> Any:
        return await self.call("/forward/batch-resume", {"ids": list(ids)})

    async def batch_redeploy_forwards(self, ids: List[int]) -> Any:
        return await self.call("/forward/batch-redeploy", {"ids": list(ids)})

    async def batch_change_tunnel(self, ids: List[int], target_tunnel_id: int) -> Any:
        return await self.call(
            "/forward/batch-change-tunnel",
            {"forwardIds": list(ids), "targetTunnelId": int(target_tunnel_id)},
        )

    async def batch_delete_tunnels(self, ids: List[int]) -> Any:
        return await self.call("/tunnel/batch-delete", {"ids": list(ids)})

    async def batch_redeploy_tunnels(self, ids: List[int]) -> Any:
        return await self.call("/tunnel/batch-redeploy", {"ids": list(ids)})

    async def batch_delete_nodes(self, ids: List[int]) -> Any:
        return await self.call("/node/batch-delete", {"ids": list(ids)})
