"""DNS provider interface and the Cloudflare implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from .errors import ProviderError, ZoneNotFound
from .records import DNSRecord

logger = logging.getLogger(__name__)

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"

# =============================================================================
# DNS Provider Interface
# =============================================================================


class DNSProvider(ABC):
    """Abstract base class for authoritative DNS providers.

    Implementations raise ``ProviderError`` for any failure, whatever the
    underlying cause, and ``ZoneNotFound`` when a zone name has no match.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name for logging."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection and credentials."""
        pass

    @abstractmethod
    def resolve_zone(self, zone_name: str) -> str:
        """Return the provider's identifier for a zone name."""
        pass

    @abstractmethod
    def list_records(self, zone_id: str) -> List[DNSRecord]:
        """List the zone's A records in ascending name order."""
        pass

    @abstractmethod
    def create_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        """Create a record, returning the provider's canonical version."""
        pass

    @abstractmethod
    def update_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        """Update the record identified by ``record.id``."""
        pass

    @abstractmethod
    def delete_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        """Delete the record identified by ``record.id``."""
        pass


# =============================================================================
# Cloudflare
# =============================================================================


class CloudflareDNSProvider(DNSProvider):
    """Cloudflare v4 API, authenticated by API token or by email + global key."""

    PER_PAGE = 100

    def __init__(
        self,
        *,
        api_url: str = CLOUDFLARE_API_URL,
        api_token: str = "",
        email: str = "",
        api_key: str = "",
        timeout_seconds: float = 10.0,
    ):
        self._url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._uses_token = bool(api_token)
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"
        else:
            self._session.headers["X-Auth-Email"] = email
            self._session.headers["X-Auth-Key"] = api_key

    @property
    def name(self) -> str:
        return "Cloudflare"

    def test_connection(self) -> bool:
        path = "/user/tokens/verify" if self._uses_token else "/user"
        try:
            self._request("GET", path)
        except ProviderError as e:
            logger.error(f"Failed to connect to {self.name}: {e}")
            return False
        logger.info(f"{self.name} connection successful")
        return True

    def resolve_zone(self, zone_name: str) -> str:
        zones = self._request("GET", "/zones", params={"name": zone_name}).get("result")
        if not isinstance(zones, list) or not zones:
            raise ZoneNotFound(f"Zone '{zone_name}' not found at {self.name}")
        # Multiple matches are not disambiguated; first result wins.
        try:
            return str(zones[0]["id"])
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed zone in provider response: {zones[0]!r}") from e

    def list_records(self, zone_id: str) -> List[DNSRecord]:
        records: List[DNSRecord] = []
        page = 1
        while True:
            body = self._request(
                "GET",
                f"/zones/{zone_id}/dns_records",
                params={
                    "type": "A",
                    "order": "name",
                    "direction": "asc",
                    "page": page,
                    "per_page": self.PER_PAGE,
                },
            )
            items = body.get("result") or []
            if not isinstance(items, list):
                raise ProviderError(f"Malformed record list in provider response: {items!r}")
            for item in items:
                if not isinstance(item, dict) or item.get("type", "A") != "A":
                    logger.debug(f"Skipping non-A record entry: {item}")
                    continue
                records.append(self._to_record(item))

            try:
                total_pages = int((body.get("result_info") or {}).get("total_pages") or 1)
            except (AttributeError, TypeError, ValueError) as e:
                raise ProviderError(f"Malformed pagination info: {body.get('result_info')!r}") from e
            if page >= total_pages:
                return records
            page += 1

    def create_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        body = self._request(
            "POST", f"/zones/{zone_id}/dns_records", json_body=self._to_payload(record)
        )
        return self._to_record(body.get("result") or {})

    def update_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        if not record.id:
            raise ProviderError(f"Cannot update '{record.name}' without a record id")
        body = self._request(
            "PUT",
            f"/zones/{zone_id}/dns_records/{record.id}",
            json_body=self._to_payload(record),
        )
        return self._to_record(body.get("result") or {})

    def delete_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        if not record.id:
            raise ProviderError(f"Cannot delete '{record.name}' without a record id")
        self._request("DELETE", f"/zones/{zone_id}/dns_records/{record.id}")
        return record

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform an API call and unwrap the Cloudflare response envelope."""
        try:
            response = self._session.request(
                method,
                f"{self._url}{path}",
                params=params,
                json=json_body,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if response.ok:
                raise ProviderError(f"{method} {path}: unexpected response body")
            raise ProviderError(f"HTTP {response.status_code}: {response.reason}")

        if not response.ok or not body.get("success", False):
            raise ProviderError(self._describe_errors(response.status_code, body))
        return body

    @staticmethod
    def _describe_errors(status: int, body: Dict[str, Any]) -> str:
        messages = []
        for err in body.get("errors") or []:
            if isinstance(err, dict):
                messages.append(f"{err.get('code')}: {err.get('message')}")
            else:
                messages.append(str(err))
        detail = "; ".join(messages) if messages else "API request failed"
        return f"HTTP {status}: {detail}"

    @staticmethod
    def _to_payload(record: DNSRecord) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "A", "name": record.name, "content": record.content}
        if record.ttl is not None:
            payload["ttl"] = record.ttl
        if record.proxied is not None:
            payload["proxied"] = record.proxied
        return payload

    @staticmethod
    def _to_record(item: Dict[str, Any]) -> DNSRecord:
        try:
            return DNSRecord(
                id=str(item["id"]),
                name=str(item["name"]),
                content=str(item["content"]),
                ttl=item.get("ttl"),
                proxied=item.get("proxied"),
            )
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed record in provider response: {item!r}") from e
