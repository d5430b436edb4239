from __future__ import annotations

"""
HTTP JSON-RPC client (async).

- JSON-RPC 2.0 over `httpx.AsyncClient`.
- Retries transient transport failures and HTTP 429/502/503/504 with jittered
  exponential backoff; JSON-RPC error objects are never retried.
- Friendly to unit tests: pass an `httpx.MockTransport` as `transport`.

Example:
    from ledgerkit.rpc.http import AsyncRpcClient

    async with AsyncRpcClient("http://127.0.0.1:8899") as rpc:
        slot = await rpc.request("getSlot")
"""

import json
import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import (Any, Dict, Iterator, List, Mapping, Optional, Sequence,
                    Tuple, Union)

import httpx

from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error
from ..utils.retry import RetryError, aretry_call
from ..version import __version__ as SDK_VERSION

__all__ = ["AsyncRpcClient", "JSON", "Params"]

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_retriable_http(status: int) -> bool:
    # Typical transient HTTP statuses: 429/502/503/504
    return status in (429, 502, 503, 504)


class _TransientHttpStatus(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


_RETRIABLE = (httpx.TimeoutException, httpx.NetworkError, _TransientHttpStatus)


@dataclass
class AsyncRpcClient:
    """Asynchronous JSON-RPC 2.0 client over HTTP."""

    url: str
    timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.15
    backoff_max: float = 3.0
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    _id_counter: Iterator[int] = field(default_factory=lambda: count(start=_now_ms()))
    _client: Optional[httpx.AsyncClient] = field(init=False, default=None)

    def __post_init__(self) -> None:
        merged_headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"ledgerkit-py/{SDK_VERSION}",
        }
        if self.headers:
            merged_headers.update(dict(self.headers))
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=merged_headers,
            transport=self.transport,
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "AsyncRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # --- public API ------------------------------------------------------

    async def request(self, method: str, params: Params = None, *, id: Optional[Union[int, str]] = None) -> JSON:
        """Perform a single JSON-RPC request and return `result` or raise RpcError."""
        payload = self._make_payload(method, params, id)
        resp = await self._send_with_retries(payload, method=method)
        return self._handle_single(resp, method=method, request_id=payload["id"])

    async def batch(self, calls: Sequence[Tuple[str, Params]]) -> List[JSON]:
        """Perform a JSON-RPC batch; returns results in the same order as `calls`."""
        if not calls:
            return []
        batch_payload: List[Dict[str, Any]] = []
        id_list: List[int] = []
        for method, params in calls:
            p = self._make_payload(method, params)
            batch_payload.append(p)
            id_list.append(p["id"])
        resp = await self._send_with_retries(batch_payload, method="batch")
        # Response is an array of objects with id/result or id/error (order not guaranteed)
        if not isinstance(resp, list):
            raise RpcError(method="batch", code=JsonRpcCode.INTERNAL_ERROR, message="Invalid batch response (not a list)", data=resp)

        methods = {p["id"]: p["method"] for p in batch_payload}
        by_id: Dict[int, JSON] = {}
        for item in resp:
            if not isinstance(item, dict) or "id" not in item:
                raise RpcError(method="batch", code=JsonRpcCode.INTERNAL_ERROR, message="Malformed item in batch response", data=item)
            rid = item["id"]
            if item.get("error") is not None:
                raise from_jsonrpc_error(item["error"], method=methods.get(rid), request_id=rid)
            by_id[rid] = item.get("result")

        ordered: List[JSON] = []
        for rid in id_list:
            if rid not in by_id:
                raise RpcError(method="batch", code=JsonRpcCode.INTERNAL_ERROR, message=f"Missing result for id {rid}", data=resp)
            ordered.append(by_id[rid])
        return ordered

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params, id: Optional[Union[int, str]] = None) -> Dict[str, Any]:
        if id is None:
            id = next(self._id_counter)
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            # Coerce single param into positional list
            params = [params]  # type: ignore[list-item]
        return {"jsonrpc": "2.0", "id": id, "method": method, "params": params}

    async def _send_with_retries(self, payload: Union[Dict[str, Any], List[Dict[str, Any]]], *, method: str) -> JSON:
        try:
            return await aretry_call(
                self._send_once,
                payload,
                retries=self.max_retries,
                base=self.backoff_base,
                max_delay=self.backoff_max,
                exceptions=_RETRIABLE,
            )
        except RetryError as e:
            last = e.last_exception
            status = last.status if isinstance(last, _TransientHttpStatus) else None
            log.debug("rpc %s gave up after %d attempts: %r", method, e.attempts, last)
            raise RpcError(
                method=method,
                code=JsonRpcCode.TRANSPORT_FAILED,
                message="RPC transport failed",
                data=str(last),
                http_status=status,
            ) from last

    async def _send_once(self, payload: Union[Dict[str, Any], List[Dict[str, Any]]]) -> JSON:
        assert self._client is not None
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        r = await self._client.post(self.url, content=body)
        if _is_retriable_http(r.status_code):
            raise _TransientHttpStatus(r.status_code)
        # Avoid raise_for_status() to keep error body visible below
        try:
            return r.json()
        except ValueError as e:
            raise RpcError(
                method=payload["method"] if isinstance(payload, dict) else "batch",
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Non-JSON response from RPC",
                data=f"HTTP {r.status_code}: {r.text[:256]}",
                http_status=r.status_code,
            ) from e

    @staticmethod
    def _handle_single(resp: JSON, *, method: str, request_id: Any) -> JSON:
        if not isinstance(resp, dict):
            raise RpcError(method=method, code=JsonRpcCode.INTERNAL_ERROR, message="Invalid JSON-RPC response type", data=type(resp).__name__)
        if resp.get("error") is not None:
            raise from_jsonrpc_error(resp["error"], method=method, request_id=request_id)
        if "result" not in resp:
            raise RpcError(method=method, code=JsonRpcCode.INTERNAL_ERROR, message="Malformed JSON-RPC response", data=resp)
        return resp["result"]
