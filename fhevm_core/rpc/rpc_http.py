# fhevm_core/rpc/rpc_http.py
from __future__ import annotations
import asyncio
import itertools
from typing import Any, List, Optional

import requests

from fhevm_core.config import rpc_timeout_from_env
from fhevm_core.logger import get_logger
from fhevm_core.rpc.rpc_base import BaseRpcProvider, RpcError, RpcTransportError

log = get_logger("FHEVM.RPC.HTTP")

_ids = itertools.count(1)


class RpcClient(BaseRpcProvider):
    """
    JSON-RPC 2.0 over HTTP POST.

    requests is blocking, so each call runs in a worker thread and the
    event loop stays free.
    """

    name = "http"

    def __init__(self, url: str, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.url = url
        if timeout is None:
            timeout = rpc_timeout_from_env()
        self.timeout = timeout
        self._session = session or requests.Session()

    def _post(self, method: str, params: List[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(_ids), "method": method, "params": params}
        log.debug(f"[RPC] → {self.url} | method={method}")
        try:
            res = self._session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            log.error(f"[RPC] {method} transport error: {e}")
            raise RpcTransportError(f"{method}: {e}") from e

        if not res.ok:
            log.error(f"[RPC] {method} HTTP {res.status_code}: {res.text}")
            raise RpcTransportError(f"{method}: HTTP {res.status_code}")

        try:
            payload = res.json()
        except ValueError as e:
            raise RpcTransportError(f"{method}: response is not JSON") from e

        if not isinstance(payload, dict):
            raise RpcTransportError(f"{method}: malformed JSON-RPC response")

        if payload.get("error") is not None:
            err = payload["error"]
            if isinstance(err, dict):
                raise RpcError(f"{method}: {err.get('message', 'error')}", code=err.get("code"), data=err.get("data"))
            raise RpcError(f"{method}: {err}")

        return payload.get("result")

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        return await asyncio.to_thread(self._post, method, list(params or []))

    def close(self) -> None:
        self._session.close()
