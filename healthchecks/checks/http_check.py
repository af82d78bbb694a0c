from __future__ import annotations

import asyncio
import socket
import threading
import time
from concurrent.futures import Executor
from typing import Mapping, Optional
from urllib.parse import urljoin

import requests

from healthchecks.checks.resolver import Resolver, within_same_domain
from healthchecks.checks.results import HttpResponse

# HTTP status codes which we follow as redirects.
REDIRECT_STATUSES = frozenset({301, 302, 303, 307})

# The maximum amount of redirects we will follow.
MAX_REDIRECT_COUNT = 10

CHUNK_SIZE = 4096


class ProbeError(RuntimeError):
    pass


class TransportError(ProbeError):
    pass


class ProbeTimeoutError(ProbeError):
    pass


class RedirectLoopError(ProbeError):
    pass


class MissingLocationError(ProbeError):
    pass


class Exchange:
    """
    One in-flight GET, shared by the worker thread and the timer side.

    abort() may be called from any thread. It shuts down the response
    socket so a worker blocked in a read wakes up, and makes a worker
    that has not received headers yet give up as soon as it does.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self.aborted = False

    def attach(self, response: requests.Response) -> None:
        with self._lock:
            self._response = response
            aborted = self.aborted
        if aborted:
            _shutdown(response)
            raise ProbeTimeoutError("request aborted")

    def abort(self) -> None:
        with self._lock:
            self.aborted = True
            response = self._response
        if response is not None:
            _shutdown(response)


def _shutdown(response: requests.Response) -> None:
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # Already closed by the worker.
        return


def _get(url: str, headers: Mapping[str, str], timeout_s: float, exchange: Exchange) -> HttpResponse:
    deadline = time.monotonic() + timeout_s
    session = requests.Session()
    # Loopback probes never go through proxies from the environment.
    session.trust_env = False
    r = None
    try:
        r = session.get(
            url,
            headers=dict(headers),
            timeout=timeout_s,
            allow_redirects=False,
            verify=False,
            stream=True,
        )
        exchange.attach(r)
        # The read timeout only bounds a single read; a body that keeps
        # trickling in is cut off by the overall deadline.
        chunks = []
        for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise ProbeTimeoutError(f"{url} timed out after {timeout_s}s")
        body = b"".join(chunks).decode(r.encoding or "utf-8", errors="replace")
    except requests.Timeout as exc:
        raise ProbeTimeoutError(f"{url} timed out after {timeout_s}s") from exc
    except requests.RequestException as exc:
        raise TransportError(f"{exc.__class__.__name__}: {exc}") from exc
    finally:
        if r is not None:
            r.close()
        session.close()
    return HttpResponse(status_code=r.status_code, headers=r.headers, body=body)


async def run_http(
    url: str,
    *,
    headers: Mapping[str, str],
    resolver: Resolver,
    timeout_s: float,
    executor: Optional[Executor] = None,
    redirects: int = 0,
) -> HttpResponse:
    """
    GET a check URL through the resolver, following same-domain redirects.

    Every hop races against its own timeout. When the timer wins, the
    in-flight request is torn down and ProbeTimeoutError is raised.
    The executor should have a free worker per concurrent check, since
    the timer starts as soon as the request is submitted.
    """
    request = resolver(url)
    loop = asyncio.get_running_loop()
    exchange = Exchange()
    pending = loop.run_in_executor(
        executor, _get, request.url, request.merged_headers(headers), timeout_s, exchange
    )
    try:
        response = await asyncio.wait_for(pending, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        exchange.abort()
        raise ProbeTimeoutError(f"{request.url} timed out after {timeout_s}s") from exc
    except asyncio.CancelledError:
        exchange.abort()
        raise

    if response.status_code not in REDIRECT_STATUSES:
        return response

    if redirects >= MAX_REDIRECT_COUNT:
        raise RedirectLoopError("too many redirects")

    location = response.headers.get("Location")
    if not location:
        raise MissingLocationError(f"{response.status_code} redirect without Location header")

    redirect_url = urljoin(request.logical_url, location)
    if not within_same_domain(resolver(redirect_url).hostname, request.hostname):
        return response

    return await run_http(
        redirect_url,
        headers=headers,
        resolver=resolver,
        timeout_s=timeout_s,
        executor=executor,
        redirects=redirects + 1,
    )
