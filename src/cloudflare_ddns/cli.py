#!/usr/bin/env python3
"""cloudflare-ddns - Dynamic DNS for Cloudflare

Watches the host's public IPv4 address and, whenever it changes, pushes it to
every managed A record. A small HTTP API lists, upserts and deletes the
managed records on demand.

Environment variables:

    Cloudflare credentials (one method required):
        CF_API_TOKEN           Scoped API token (recommended)
        CF_EMAIL               Account email for the global API key (legacy)
        CF_API_KEY             Global API key (legacy)
        CF_API_URL             API base URL
                               (default: https://api.cloudflare.com/client/v4)

    Managed records:
        RECORDS_CONFIG_PATH    YAML file, or directory of *.yaml files, declaring
                               the records to manage (default: unset, start empty)
                               Example config file:
                                 records:
                                   example.com:
                                     - name: "home.example.com"
                                       ttl: 120
                                       proxied: false
                                     - name: "vpn.example.com"
        IMPORT_ZONES           Comma-separated zones whose A records are imported
                               from Cloudflare at startup, e.g. "example.com,example.org"

    Runtime:
        POLL_INTERVAL_SECONDS  Seconds between IP checks (default: 300, minimum 5)
        HTTP_TIMEOUT_SECONDS   Timeout for every outbound request (default: 10)
        BIND_HOST              HTTP API listen address (default: 127.0.0.1)
        BIND_PORT              HTTP API listen port (default: 3000)
        LOG_LEVEL              DEBUG, INFO, WARNING, ERROR (default: INFO)

HTTP API:
    GET    /                 Current external IP
    GET    /{zone}           Managed records of a zone
    GET    /{zone}/{record}  One managed record
    POST   /{zone}/{record}  Upsert the record with the current IP;
                             optional JSON body {"ttl": 120, "proxied": false}
    DELETE /{zone}/{record}  Delete the record
"""

from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional

import uvicorn

from .config import _parse_list, load_records_config
from .errors import DDNSError
from .ip import ExternalIPState, IPSourceSelector
from .provider import CLOUDFLARE_API_URL, CloudflareDNSProvider, DNSProvider
from .records import RecordStore, ZoneCache
from .syncer import MIN_POLL_INTERVAL_SECONDS, DDNSSyncer
from .web import create_app


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# Configuration
# =============================================================================

# Cloudflare configuration
CF_API_TOKEN = os.getenv("CF_API_TOKEN", "").strip()
CF_EMAIL = os.getenv("CF_EMAIL", "").strip()
CF_API_KEY = os.getenv("CF_API_KEY", "").strip()
CF_API_URL = os.getenv("CF_API_URL", CLOUDFLARE_API_URL).strip()

# Managed records
RECORDS_CONFIG_PATH = os.getenv("RECORDS_CONFIG_PATH", "").strip()
IMPORT_ZONES = _parse_list(os.getenv("IMPORT_ZONES", ""))

# Runtime configuration
POLL_INTERVAL_SECONDS = _parse_int(os.getenv("POLL_INTERVAL_SECONDS", "300"))
HTTP_TIMEOUT_SECONDS = _parse_float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
BIND_HOST = os.getenv("BIND_HOST", "127.0.0.1")
BIND_PORT = _parse_int(os.getenv("BIND_PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# =============================================================================
# Logging Setup
# =============================================================================

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# =============================================================================
# Provider Registry
# =============================================================================


def create_dns_provider() -> DNSProvider:
    """Factory function to create the Cloudflare provider from the environment."""
    return CloudflareDNSProvider(
        api_url=CF_API_URL,
        api_token=CF_API_TOKEN,
        email=CF_EMAIL,
        api_key=CF_API_KEY,
        timeout_seconds=HTTP_TIMEOUT_SECONDS or 10.0,
    )


# =============================================================================
# Main
# =============================================================================


def validate_config() -> bool:
    """Validate configuration."""
    errors: List[str] = []

    if not CF_API_TOKEN:
        if not CF_EMAIL or not CF_API_KEY:
            errors.append("Set CF_API_TOKEN, or both CF_EMAIL and CF_API_KEY")
    elif CF_EMAIL or CF_API_KEY:
        logger.warning("CF_API_TOKEN is set; ignoring CF_EMAIL/CF_API_KEY")

    if POLL_INTERVAL_SECONDS is None or POLL_INTERVAL_SECONDS <= 0:
        errors.append("POLL_INTERVAL_SECONDS must be a positive integer")
    elif POLL_INTERVAL_SECONDS < MIN_POLL_INTERVAL_SECONDS:
        logger.warning(
            f"POLL_INTERVAL_SECONDS={POLL_INTERVAL_SECONDS} raised to {MIN_POLL_INTERVAL_SECONDS}"
        )

    if HTTP_TIMEOUT_SECONDS is None or HTTP_TIMEOUT_SECONDS <= 0:
        errors.append("HTTP_TIMEOUT_SECONDS must be a positive number")

    if BIND_PORT is None or not 0 < BIND_PORT < 65536:
        errors.append("BIND_PORT must be an integer between 1 and 65535")

    if errors:
        for error in errors:
            logger.error(error)
        return False

    return True


def main():
    """Main entry point."""
    logger.info("cloudflare-ddns starting")

    if not validate_config():
        logger.error("Configuration validation failed")
        sys.exit(1)

    dns_provider = create_dns_provider()
    logger.info(f"DNS Provider: {dns_provider.name}")
    if not dns_provider.test_connection():
        logger.error(f"Cannot connect to {dns_provider.name}. Exiting.")
        sys.exit(1)

    record_store = RecordStore(dns_provider, ZoneCache(dns_provider))

    if RECORDS_CONFIG_PATH:
        try:
            record_store.seed(load_records_config(RECORDS_CONFIG_PATH))
        except DDNSError as e:
            logger.error(f"Invalid records config: {e}")
            sys.exit(1)
    else:
        logger.info("No RECORDS_CONFIG_PATH set; starting with an empty record set")

    for zone_name in IMPORT_ZONES:
        try:
            record_store.refresh(zone_name)
        except DDNSError as e:
            logger.error(f"Failed to import zone '{zone_name}': {e}")

    ip_state = ExternalIPState()
    syncer = DDNSSyncer(
        ip_selector=IPSourceSelector(timeout_seconds=HTTP_TIMEOUT_SECONDS),
        ip_state=ip_state,
        record_store=record_store,
        poll_interval_seconds=POLL_INTERVAL_SECONDS,
    )
    logger.info(f"Managed zones: {', '.join(record_store.zones()) or '(none)'}")
    logger.info(f"Poll interval: {syncer.poll_interval_seconds}s")
    logger.info(f"HTTP API: http://{BIND_HOST}:{BIND_PORT}")

    app = create_app(record_store, ip_state, syncer)
    try:
        uvicorn.run(app, host=BIND_HOST, port=BIND_PORT, log_level=LOG_LEVEL.lower())
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
