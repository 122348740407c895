from __future__ import annotations

from typing import Dict, Optional

import httpx


def build_httpx_client(
    *,
    base_url: str,
    headers: Dict[str, str],
    request_timeout_sec: float,
    connect_timeout_sec: float = 10.0,
    max_connections: int = 10,
    max_keepalive_connections: int = 5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    connect = min(connect_timeout_sec, request_timeout_sec)
    timeout = httpx.Timeout(
        connect=connect,
        read=request_timeout_sec,
        write=request_timeout_sec,
        pool=5.0,
    )
    limits = httpx.Limits(
        max_connections=max(1, int(max_connections)),
        max_keepalive_connections=max(1, int(max_keepalive_connections)),
    )
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=timeout,
        limits=limits,
        transport=transport,
    )
