"""Public IP discovery and the process-wide last-known IP."""

from __future__ import annotations

import ipaddress
import json
import logging
import random
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

import requests

from .errors import ParseError, TransportError

logger = logging.getLogger(__name__)

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class ExternalIP:
    """An observed public address and the source that reported it."""

    ip: str
    source: str


@dataclass(frozen=True)
class IPSource:
    """An IP-echo service returning a JSON object with the address under ``field``."""

    name: str
    url: str
    field: str

    def parse(self, body: str) -> str:
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ParseError(f"{self.name}: response is not JSON: {e}") from e

        value = data.get(self.field) if isinstance(data, dict) else None
        if not isinstance(value, str):
            raise ParseError(f"{self.name}: response has no '{self.field}' string")

        value = value.strip()
        try:
            ipaddress.IPv4Address(value)
        except ValueError as e:
            raise ParseError(f"{self.name}: '{value}' is not an IPv4 address") from e
        return value


IP_SOURCES = (
    IPSource(name="IpifyOrg", url="https://api.ipify.org?format=json", field="ip"),
    IPSource(name="IpApi", url="http://ip-api.com/json/", field="query"),
    IPSource(name="IpinfoIo", url="https://ipinfo.io/json", field="ip"),
    IPSource(name="IdentMe", url="https://ident.me/.json", field="address"),
)

# =============================================================================
# Source Selection
# =============================================================================


class IPSourceSelector:
    """Fetch the public IP from one source chosen uniformly at random per call.

    A failing source is not retried against another one; the next call makes
    an independent choice.
    """

    def __init__(
        self,
        sources: Sequence[IPSource] = IP_SOURCES,
        *,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ):
        if not sources:
            raise ValueError("At least one IP source is required")
        self._sources = tuple(sources)
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._rng = rng or random.Random()

    @property
    def sources(self) -> Sequence[IPSource]:
        return self._sources

    def discover(self) -> ExternalIP:
        source = self._rng.choice(self._sources)
        logger.debug(f"Querying {source.name} ({source.url})")
        try:
            response = self._session.get(source.url, timeout=self._timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{source.name}: {e}") from e

        return ExternalIP(ip=source.parse(response.text), source=source.name)


# =============================================================================
# External IP State
# =============================================================================


class ExternalIPState:
    """Holds the last observed public IP. Replaced whole, never mutated."""

    def __init__(self, initial: Optional[ExternalIP] = None):
        self._value = initial
        self._lock = threading.Lock()

    def get(self) -> Optional[ExternalIP]:
        with self._lock:
            return self._value

    def set(self, value: ExternalIP) -> None:
        with self._lock:
            self._value = value
