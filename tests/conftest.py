"""Shared fixtures: an in-memory DNS provider with call tracking."""

from dataclasses import replace
from typing import Dict, List, Set

import pytest

from cloudflare_ddns.errors import ProviderError, ZoneNotFound
from cloudflare_ddns.provider import DNSProvider
from cloudflare_ddns.records import DNSRecord, RecordStore, ZoneCache


class MockDNSProvider(DNSProvider):
    """Mock DNS provider with in-memory zones/records and call tracking."""

    def __init__(self, zones: Dict[str, str] | None = None):
        self.zones: Dict[str, str] = dict(zones or {"example.com": "zone-1"})
        self.records: Dict[str, Dict[str, DNSRecord]] = {zid: {} for zid in self.zones.values()}
        self.failing_names: Set[str] = set()
        self.resolve_calls: List[str] = []
        self.list_calls: List[str] = []
        self.create_calls: List[tuple[str, DNSRecord]] = []
        self.update_calls: List[tuple[str, DNSRecord]] = []
        self.delete_calls: List[tuple[str, DNSRecord]] = []
        self._next_id = 1

    @property
    def name(self) -> str:
        return "MockDNS"

    def test_connection(self) -> bool:
        return True

    def add_remote(self, zone_id: str, name: str, content: str) -> DNSRecord:
        """Place a record at the provider without going through the store."""
        record = DNSRecord(id=self._new_id(), name=name, content=content, ttl=1, proxied=False)
        self.records[zone_id][record.id] = record
        return record

    def resolve_zone(self, zone_name: str) -> str:
        self.resolve_calls.append(zone_name)
        if zone_name not in self.zones:
            raise ZoneNotFound(f"Zone '{zone_name}' not found")
        return self.zones[zone_name]

    def list_records(self, zone_id: str) -> List[DNSRecord]:
        self.list_calls.append(zone_id)
        return sorted(self.records.get(zone_id, {}).values(), key=lambda r: r.name)

    def create_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        self.create_calls.append((zone_id, record))
        self._maybe_fail(record)
        if any(r.name == record.name for r in self.records[zone_id].values()):
            raise ProviderError("HTTP 400: 81058: An identical record already exists.")
        created = replace(
            record,
            id=self._new_id(),
            ttl=record.ttl if record.ttl is not None else 1,
            proxied=record.proxied if record.proxied is not None else False,
        )
        self.records[zone_id][created.id] = created
        return created

    def update_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        self.update_calls.append((zone_id, record))
        self._maybe_fail(record)
        if record.id not in self.records[zone_id]:
            raise ProviderError("HTTP 404: 81044: Record does not exist.")
        updated = replace(
            record,
            ttl=record.ttl if record.ttl is not None else 1,
            proxied=record.proxied if record.proxied is not None else False,
        )
        self.records[zone_id][record.id] = updated
        return updated

    def delete_record(self, zone_id: str, record: DNSRecord) -> DNSRecord:
        self.delete_calls.append((zone_id, record))
        self._maybe_fail(record)
        if self.records[zone_id].pop(record.id, None) is None:
            raise ProviderError("HTTP 404: 81044: Record does not exist.")
        return record

    @property
    def mutation_count(self) -> int:
        return len(self.create_calls) + len(self.update_calls) + len(self.delete_calls)

    def _maybe_fail(self, record: DNSRecord) -> None:
        if record.name in self.failing_names:
            raise ProviderError(f"HTTP 500: 10000: forced failure for {record.name}")

    def _new_id(self) -> str:
        record_id = f"rec-{self._next_id}"
        self._next_id += 1
        return record_id


@pytest.fixture
def dns_provider() -> MockDNSProvider:
    return MockDNSProvider({"example.com": "zone-1", "example.org": "zone-2"})


@pytest.fixture
def zone_cache(dns_provider: MockDNSProvider) -> ZoneCache:
    return ZoneCache(dns_provider)


@pytest.fixture
def record_store(dns_provider: MockDNSProvider, zone_cache: ZoneCache) -> RecordStore:
    return RecordStore(dns_provider, zone_cache)
