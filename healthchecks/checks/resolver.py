from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping
from urllib.parse import urljoin, urlsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class LoopbackTarget:
    """The server's own listening address, as seen by the inbound request."""

    protocol: str
    address: str
    port: int

    @property
    def netloc(self) -> str:
        host = f"[{self.address}]" if ":" in self.address else self.address
        return f"{host}:{self.port}"


@dataclass(frozen=True)
class ResolvedRequest:
    url: str
    logical_url: str
    hostname: str
    protocol: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)

    def merged_headers(self, base: Mapping[str, str]) -> Dict[str, str]:
        return {**base, **self.headers}


Resolver = Callable[[str], ResolvedRequest]


def within_same_domain(from_host: str, to_host: str) -> bool:
    # Symmetric: either host may be a subdomain of the other.
    return (
        from_host == to_host
        or from_host.endswith(f".{to_host}")
        or to_host.endswith(f".{from_host}")
    )


def loopback_resolver(target: LoopbackTarget) -> Resolver:
    """
    Build a resolver that points check URLs at the local server.

    Relative URLs resolve against "{protocol}://localhost/", so "/health"
    keeps "localhost" as its logical host. Absolute URLs keep their own
    host for the Host header, but the connection still goes to the
    target's address and port.
    """
    base = f"{target.protocol}://localhost/"

    def resolve(url: str) -> ResolvedRequest:
        absolute = urljoin(base, url)
        parts = urlsplit(absolute)
        hostname = parts.hostname or "localhost"
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        protocol = parts.scheme or target.protocol
        return ResolvedRequest(
            url=f"{target.protocol}://{target.netloc}{path}",
            logical_url=absolute,
            hostname=hostname,
            protocol=protocol,
            path=path,
            headers={"Host": hostname, "X-Forwarded-Proto": protocol},
        )

    return resolve
