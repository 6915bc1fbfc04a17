"""HTTP adapters for SIFEN integrations."""

from __future__ import annotations

from typing import Callable, Mapping, Optional

import requests

from .exceptions import TransportError

HttpRawRequest = Callable[[str, str, Mapping[str, str], Optional[bytes]], tuple[int, str]]


def build_requests_http_request(
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
) -> HttpRawRequest:
    """Return an HttpRawRequest callable backed by requests.

    Non-2xx responses are returned as-is; only network-level failures
    (connection errors, timeouts, TLS problems) raise ``TransportError``.
    """

    sess = session or requests.Session()
    default_timeout = timeout

    def http_request(
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> tuple[int, str]:
        try:
            response = sess.request(
                method=method,
                url=url,
                data=body,
                headers=dict(headers),
                timeout=default_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Error de red al contactar SIFEN ({url}): {exc}") from exc
        return response.status_code, response.text

    return http_request


__all__ = ["HttpRawRequest", "build_requests_http_request"]
