from __future__ import annotations

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter


def default_timeout(read_s: float = 30.0) -> httpx.Timeout:
    return httpx.Timeout(connect=10.0, read=read_s, write=10.0, pool=10.0)


def default_limits() -> httpx.Limits:
    return httpx.Limits(max_connections=50, max_keepalive_connections=10)


class HttpClientFactory:
    """Creates shared httpx clients with sane defaults.

    Keep one client per graph request; do not create per-query.
    """

    @staticmethod
    def client(
        base_url: str | None = None,
        headers: dict | None = None,
        *,
        read_timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url or "",
            headers=headers,
            timeout=default_timeout(read_timeout_s),
            limits=default_limits(),
            follow_redirects=True,
            transport=transport,
        )


TransientHttpError = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


def transient_retry(attempts: int = 3):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=0.2, max=2.0),
        retry=retry_if_exception_type(TransientHttpError),
    )
