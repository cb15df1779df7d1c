"""Loading of declared records from YAML and small value parsers."""

from __future__ import annotations

import ipaddress
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ConfigError
from .records import DNSRecord

logger = logging.getLogger(__name__)

# =============================================================================
# Config Files
# =============================================================================


def find_config_files(config_path: str) -> List[str]:
    """Find all .yaml config files in directory or return single file.

    Args:
        config_path: Path to config file or directory

    Returns:
        List of config file paths (excluding .template files)
    """
    path = Path(config_path)

    if path.is_file():
        return [str(path)]

    if path.is_dir():
        yaml_files = sorted(path.glob("*.yaml"))
        return [str(f) for f in yaml_files if not f.name.endswith(".template")]

    return []


def load_records_config(config_path: str) -> Dict[str, List[DNSRecord]]:
    """Load declared records, merged across every file under ``config_path``.

    Expected layout::

        records:
          example.com:
            - name: home.example.com
              ttl: 120
              proxied: false

    A record repeated within a zone replaces the earlier declaration.
    """
    config_files = find_config_files(config_path)
    if not config_files:
        raise ConfigError(f"No records config found at {config_path}")

    merged: Dict[str, Dict[str, DNSRecord]] = {}
    for config_file in config_files:
        try:
            with open(config_file, "r") as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read {config_file}: {e}") from e

        if not isinstance(config_data, dict) or not isinstance(config_data.get("records"), dict):
            raise ConfigError(f"Config file {config_file} missing 'records' mapping")

        for zone_name, items in config_data["records"].items():
            zone = merged.setdefault(str(zone_name), {})
            for item in items or []:
                record = _parse_record(item, f"{config_file}: zone '{zone_name}'")
                zone[record.name] = record

    records = {zone: list(by_name.values()) for zone, by_name in merged.items() if by_name}
    logger.info(
        f"Loaded {sum(len(r) for r in records.values())} record(s) in {len(records)} zone(s) "
        f"from {len(config_files)} config file(s)"
    )
    return records


def _parse_record(item: Any, where: str) -> DNSRecord:
    if not isinstance(item, dict):
        raise ConfigError(f"{where}: record entries must be mappings, got {item!r}")

    name = str(item.get("name") or "").strip()
    if not name:
        raise ConfigError(f"{where}: record without a name")

    content = item.get("content")
    if content is not None:
        content = str(content).strip()
        try:
            ipaddress.IPv4Address(content)
        except ValueError as e:
            raise ConfigError(f"{where}: '{name}' content is not an IPv4 address") from e

    ttl = item.get("ttl")
    if ttl is not None:
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise ConfigError(f"{where}: '{name}' ttl must be a positive integer")

    proxied = item.get("proxied")
    if proxied is not None:
        proxied = _parse_bool(proxied, default=False)

    return DNSRecord(name=name, content=content, ttl=ttl, proxied=proxied)


# =============================================================================
# Utility Functions
# =============================================================================


def _parse_bool(value: Any, *, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_list(value: str) -> List[str]:
    """Split a comma-separated env value, dropping blanks and duplicates."""
    items: List[str] = []
    for raw_item in (value or "").split(","):
        item = raw_item.strip()
        if item and item not in items:
            items.append(item)
    return items
