"""Local record model: DNS records, the zone-ID cache and the record store.

The record store is the process' view of every managed A record, keyed by zone
name. Mutations go through the provider first; the local collection is only
changed once the provider has accepted the change, so a failed call never
leaves a half-applied write behind.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional

from .errors import ConfigError, RecordNotFound, ZoneNotFound

if TYPE_CHECKING:
    from .provider import DNSProvider

logger = logging.getLogger(__name__)


def qualify_name(zone_name: str, name: str) -> str:
    """Return ``name`` as a fully qualified name inside ``zone_name``.

    Cloudflare answers with fully qualified names, so short names such as
    ``home`` are stored as ``home.example.com``.
    """
    if not name or name == zone_name or name.endswith(f".{zone_name}"):
        return name
    return f"{name}.{zone_name}"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class DNSRecord:
    """A single name -> IPv4 binding inside a zone."""

    name: Optional[str] = None
    content: Optional[str] = None
    id: Optional[str] = None
    ttl: Optional[int] = None
    proxied: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, leaving out fields that are not set."""
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Locking
# =============================================================================


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Writers are preferred: once a writer is waiting, new readers queue behind
    it so a steady stream of reads cannot starve a mutation.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# =============================================================================
# Zone Resolution Cache
# =============================================================================


class ZoneCache:
    """Read-through cache of zone name -> provider zone identifier.

    Entries never expire. Two concurrent misses for the same name may both hit
    the provider; the second write stores the same value.
    """

    def __init__(self, provider: "DNSProvider"):
        self._provider = provider
        self._zones: Dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, zone_name: str) -> str:
        with self._lock:
            zone_id = self._zones.get(zone_name)
        if zone_id is not None:
            return zone_id

        zone_id = self._provider.resolve_zone(zone_name)
        logger.debug(f"Resolved zone '{zone_name}' -> {zone_id}")
        with self._lock:
            self._zones[zone_name] = zone_id
        return zone_id

    def __contains__(self, zone_name: str) -> bool:
        with self._lock:
            return zone_name in self._zones


# =============================================================================
# Record Store
# =============================================================================


class RecordStore:
    """Managed records per zone, kept converged with the provider.

    Zones with no records are removed, so a known zone always has at least one
    record. Names are qualified against the zone on the way in and then
    matched exactly (case-sensitive).
    """

    def __init__(self, provider: "DNSProvider", zone_cache: ZoneCache):
        self._provider = provider
        self._zone_cache = zone_cache
        self._zones: Dict[str, List[DNSRecord]] = {}
        self._lock = ReadWriteLock()

    def seed(self, records_by_zone: Mapping[str, List[DNSRecord]]) -> None:
        """Replace local state with declared records, without provider calls."""
        zones: Dict[str, List[DNSRecord]] = {}
        for zone_name, records in records_by_zone.items():
            by_name: Dict[str, DNSRecord] = {}
            for record in records:
                if not record.name:
                    raise ConfigError(f"Record without a name in zone '{zone_name}'")
                name = qualify_name(zone_name, record.name)
                by_name[name] = replace(record, name=name)
            if by_name:
                zones[zone_name] = list(by_name.values())

        with self._lock.write():
            self._zones = zones
        logger.info(
            f"Seeded {sum(len(r) for r in zones.values())} record(s) across {len(zones)} zone(s)"
        )

    def snapshot(self) -> Dict[str, List[DNSRecord]]:
        """Point-in-time copy of every zone's records."""
        with self._lock.read():
            return {zone: list(records) for zone, records in self._zones.items()}

    def zones(self) -> List[str]:
        with self._lock.read():
            return list(self._zones)

    def list(self, zone_name: str) -> List[DNSRecord]:
        with self._lock.read():
            records = self._zones.get(zone_name)
            if records is None:
                raise ZoneNotFound(f"Zone '{zone_name}' has no managed records")
            return list(records)

    def get(self, zone_name: str, record_name: str) -> DNSRecord:
        record_name = qualify_name(zone_name, record_name)
        with self._lock.read():
            record = self._find(zone_name, record_name)
        if record is None:
            raise RecordNotFound(f"Record '{record_name}' not found in zone '{zone_name}'")
        return record

    def upsert(self, zone_name: str, record: DNSRecord) -> DNSRecord:
        """Create or update ``record`` at the provider, then commit it locally.

        Returns the provider's canonical version of the record.
        """
        if not record.name:
            raise ConfigError("Record name is missing")
        if not record.content:
            raise ConfigError(f"Record '{record.name}' has no content")
        record = replace(record, name=qualify_name(zone_name, record.name))

        zone_id = self._zone_cache.resolve(zone_name)

        with self._lock.read():
            existing = self._find(zone_name, record.name)

        if existing is not None:
            record_id = existing.id or self._remote_id(zone_id, existing.name)
            desired = replace(
                record,
                id=record_id,
                ttl=record.ttl if record.ttl is not None else existing.ttl,
                proxied=record.proxied if record.proxied is not None else existing.proxied,
            )
        else:
            record_id = None
            desired = replace(record, id=None)

        if record_id:
            canonical = self._provider.update_record(zone_id, desired)
            logger.info(f"Updated {zone_name}/{record.name} -> {canonical.content}")
        else:
            canonical = self._provider.create_record(zone_id, desired)
            logger.info(f"Created {zone_name}/{record.name} -> {canonical.content}")

        with self._lock.write():
            records = self._zones.setdefault(zone_name, [])
            names = {record.name, canonical.name}
            for index, current in enumerate(records):
                if current.name in names:
                    records[index] = canonical
                    break
            else:
                records.append(canonical)
        return canonical

    def delete(self, zone_name: str, record_name: str) -> DNSRecord:
        """Delete a record at the provider and drop it locally.

        Returns the record's last known value.
        """
        record_name = qualify_name(zone_name, record_name)
        zone_id = self._zone_cache.resolve(zone_name)

        with self._lock.read():
            existing = self._find(zone_name, record_name)
        if existing is None:
            raise RecordNotFound(f"Record '{record_name}' not found in zone '{zone_name}'")

        record_id = existing.id or self._remote_id(zone_id, record_name)
        if record_id:
            existing = replace(existing, id=record_id)
            self._provider.delete_record(zone_id, existing)
            logger.info(f"Deleted {zone_name}/{record_name}")
        else:
            logger.warning(
                f"Record {zone_name}/{record_name} does not exist at the provider; "
                f"removing it locally only"
            )

        with self._lock.write():
            records = self._zones.get(zone_name, [])
            records[:] = [r for r in records if r.name != record_name]
            if not records:
                self._zones.pop(zone_name, None)
                logger.debug(f"Pruned empty zone '{zone_name}'")
        return existing

    def refresh(self, zone_name: str) -> List[DNSRecord]:
        """Replace a zone's local records with what the provider currently holds."""
        zone_id = self._zone_cache.resolve(zone_name)
        records = [r for r in self._provider.list_records(zone_id) if r.name]

        with self._lock.write():
            if records:
                self._zones[zone_name] = list(records)
            else:
                self._zones.pop(zone_name, None)
        logger.info(f"Imported {len(records)} record(s) for zone '{zone_name}'")
        return records

    def _find(self, zone_name: str, record_name: str) -> Optional[DNSRecord]:
        # Caller holds the lock.
        for record in self._zones.get(zone_name, []):
            if record.name == record_name:
                return record
        return None

    def _remote_id(self, zone_id: str, record_name: Optional[str]) -> Optional[str]:
        """Look up the provider identity of a record declared without one."""
        for remote in self._provider.list_records(zone_id):
            if remote.name == record_name:
                return remote.id
        return None
