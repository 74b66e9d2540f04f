from __future__ import annotations

import json
import os
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from packages.shared.schemas.order_v1 import RemoteOrderRequestV1, RemoteOrderStatusV1
from pydantic import ValidationError as SchemaError
from services.api.app.services.sync_base import (
    SyncHTTPError,
    SyncNetworkError,
    SyncResponseError,
    SyncTimeoutError,
)


@dataclass(frozen=True, slots=True)
class _HttpConfig:
    base_url: str
    timeout_s: float
    api_token: str | None


class HttpRemoteOrderClient:
    """Order service client over plain HTTP/JSON.

    Env vars:
    - TUWAS_REMOTE_CLIENT=http
    - TUWAS_API_BASE_URL (required), e.g. https://shop.example.com/api/v1
    - TUWAS_REMOTE_TIMEOUT_S (default: 30)
    - TUWAS_API_TOKEN (optional bearer token)
    """

    name = "REMOTE_HTTP"

    def __init__(self, cfg: _HttpConfig) -> None:
        self._cfg = cfg

    @classmethod
    def from_env(cls) -> "HttpRemoteOrderClient":
        base_url = os.getenv("TUWAS_API_BASE_URL", "").strip().rstrip("/")
        if not base_url:
            raise ValueError("TUWAS_API_BASE_URL is required when TUWAS_REMOTE_CLIENT=http")

        timeout_s = float(os.getenv("TUWAS_REMOTE_TIMEOUT_S", "30"))
        if timeout_s <= 0:
            raise ValueError(f"TUWAS_REMOTE_TIMEOUT_S must be positive, got {timeout_s}")

        api_token = os.getenv("TUWAS_API_TOKEN", "").strip() or None
        return cls(_HttpConfig(base_url=base_url, timeout_s=timeout_s, api_token=api_token))

    def create_order(self, payload: RemoteOrderRequestV1) -> str:
        body = self._request("POST", "/orders", payload.model_dump(mode="json"))
        remote_id = _extract_id(body)
        if remote_id is None:
            raise SyncResponseError(f"Order service response has no order id: {body!r}")
        return remote_id

    def fetch_status(self, remote_id: str) -> RemoteOrderStatusV1:
        body = self._request("GET", f"/orders/{quote(remote_id, safe='')}/status")
        data = body.get("data", body) if isinstance(body, dict) else body
        if isinstance(data, dict):
            data = {**data, "id": remote_id}
        try:
            return RemoteOrderStatusV1.model_validate(data)
        except SchemaError as e:
            raise SyncResponseError(f"Unexpected status response shape: {body!r}") from e

    def cancel_order(self, remote_id: str) -> None:
        self._request("POST", f"/orders/{quote(remote_id, safe='')}/cancel", {})

    def _request(self, method: str, path: str, body: dict | None = None) -> Any:
        req = urllib.request.Request(self._cfg.base_url + path, method=method)
        req.add_header("Accept", "application/json")
        if self._cfg.api_token:
            req.add_header("Authorization", f"Bearer {self._cfg.api_token}")

        data = None
        if body is not None:
            req.add_header("Content-Type", "application/json")
            data = json.dumps(body).encode("utf-8")

        try:
            with urllib.request.urlopen(req, data=data, timeout=self._cfg.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raise SyncHTTPError(e.code, e.read().decode("utf-8", errors="replace")) from e
        except (socket.timeout, TimeoutError) as e:
            raise SyncTimeoutError(self._cfg.timeout_s) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise SyncTimeoutError(self._cfg.timeout_s) from e
            raise SyncNetworkError(f"Could not reach order service: {e.reason}") from e
        except OSError as e:
            raise SyncNetworkError(f"Could not reach order service: {e}") from e

        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise SyncResponseError(f"Order service returned non-JSON body: {raw[:200]!r}") from e


def _extract_id(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    for source in (data, body):
        if isinstance(source, dict) and source.get("id") is not None:
            return str(source["id"])
    return None
