from __future__ import annotations

import os

from services.api.app.services.sync_base import RemoteOrderClient
from services.api.app.services.sync_mock import MockRemoteOrderClient


def get_remote_client() -> RemoteOrderClient:
    """Select the order service client based on env vars.

    Defaults to the mock client so tests and local dev never reach a real backend unless
    explicitly configured to.
    """

    mode = os.getenv("TUWAS_REMOTE_CLIENT", "mock").strip().lower()

    if mode == "mock":
        return MockRemoteOrderClient()

    if mode == "http":
        from services.api.app.services.sync_http import HttpRemoteOrderClient

        return HttpRemoteOrderClient.from_env()

    raise ValueError(f"Unknown TUWAS_REMOTE_CLIENT={mode!r}. Expected mock or http.")
