"""
Lookup Directory Module - Side tables used to decorate events

Handles:
- Device table from the configuration service (MAC / IP -> friendly label)
- Organization table from a local ASN prefix file (CIDR -> name)
- Atomic swapping of immutable table snapshots
- Request error handling without ever blocking the event pipeline
"""
import ipaddress
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import requests

from SNITAP.util import normalize_mac


Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass(frozen=True)
class LookupTable:
    """Immutable snapshot of every side table"""
    devices: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    networks: Tuple[Tuple[Network, str], ...] = ()
    version: int = 0

    def device_label(self, identifier: str) -> Optional[str]:
        """Label for a MAC or IP identifier, if known"""
        if not identifier:
            return None
        label = self.devices.get(identifier) or self.devices.get(normalize_mac(identifier))
        return label or None

    def org_for(self, ip: str) -> Optional[str]:
        """Organization owning the longest matching prefix"""
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            return None

        # networks are stored most specific first
        for network, name in self.networks:
            if address.version == network.version and address in network:
                return name
        return None


def build_device_map(devices: List[Dict[str, Any]]) -> Dict[str, str]:
    """
    Map normalized MAC and IP of each device to alias or vendor

    Raises:
        ValueError: If the list or one of its entries is malformed
    """
    if not isinstance(devices, list):
        raise ValueError(f"expected a device list, got {type(devices).__name__}")

    device_map = {}
    for device in devices:
        if not isinstance(device, dict):
            raise ValueError(f"malformed device entry: {device!r}")
        label = device.get('alias') or device.get('vendor') or ""
        if not label:
            continue
        if device.get('mac'):
            device_map[normalize_mac(str(device['mac']))] = str(label)
        if device.get('ip'):
            device_map[str(device['ip'])] = str(label)
    return device_map


def parse_asn_entries(data: Any) -> Tuple[Tuple[Network, str], ...]:
    """
    Flatten ASN records into (network, name) pairs, most specific first

    Accepts {"asns": [...]} or a bare list of
    {"asn": "13335", "name": "Cloudflare", "prefixes": ["104.16.0.0/13"]}.
    Unparseable prefix strings are skipped.

    Raises:
        ValueError: If the document does not have that shape
    """
    records = data.get('asns', []) if isinstance(data, dict) else data
    if records is None:
        records = []
    if not isinstance(records, list):
        raise ValueError(f"expected a list of ASN records, got {type(records).__name__}")

    networks = []
    for record in records:
        if not isinstance(record, dict):
            raise ValueError(f"malformed ASN record: {record!r}")
        prefixes = record.get('prefixes') or []
        if not isinstance(prefixes, list):
            raise ValueError(f"prefixes of ASN record must be a list: {record!r}")
        name = record.get('name') or (f"AS{record['asn']}" if record.get('asn') else "")
        for prefix in prefixes:
            try:
                networks.append((ipaddress.ip_network(prefix, strict=False), name))
            except (TypeError, ValueError):
                continue

    networks.sort(key=lambda item: item[0].prefixlen, reverse=True)
    return tuple(networks)


class LookupDirectory:
    """Owner of the current LookupTable, refreshed out-of-band"""

    def __init__(self, api_url: str, timeout: float = 10.0, asn_file: Optional[Path] = None):
        """
        Initialize the directory

        Args:
            api_url: Base URL of the configuration service
            timeout: HTTP timeout in seconds
            asn_file: Optional JSON file with ASN prefixes
        """
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.asn_file = Path(asn_file) if asn_file else None
        self.headers = {"accept": "application/json"}
        self.logger = logging.getLogger(__name__)

        self.devices_enabled = False
        self._table = LookupTable()
        self._lock = threading.Lock()

    @property
    def table(self) -> LookupTable:
        """Current snapshot; callers must use one snapshot per pass"""
        return self._table

    @property
    def version(self) -> int:
        return self._table.version

    def _swap(self, devices: Optional[Dict[str, str]] = None,
              networks: Optional[Tuple[Tuple[Network, str], ...]] = None) -> LookupTable:
        """Replace part of the table, keeping the rest of the current snapshot"""
        with self._lock:
            current = self._table
            new_devices = dict(devices) if devices is not None else dict(current.devices)
            new_networks = networks if networks is not None else current.networks

            # Unchanged content keeps the version so enrichment stays memoized
            if new_devices == dict(current.devices) and new_networks == current.networks:
                return current

            self._table = LookupTable(
                devices=MappingProxyType(new_devices),
                networks=new_networks,
                version=current.version + 1,
            )
            return self._table

    def _make_request(self, path: str) -> dict:
        """GET a JSON document from the configuration service"""
        url = f"{self.api_url}{path}"
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                return {"error": f"Unexpected response from {path}"}
            return data

        except requests.exceptions.Timeout:
            self.logger.error(f"Request timeout for {url}")
            return {"error": "Request timeout"}

        except requests.exceptions.ConnectionError as e:
            self.logger.error(f"Connection error: {e}")
            return {"error": f"Connection error: {e}"}

        except requests.RequestException as e:
            self.logger.error(f"Request error: {e}")
            return {"error": f"Error during request: {e}"}

        except ValueError as e:
            self.logger.error(f"Invalid JSON from {url}: {e}")
            return {"error": f"Invalid JSON: {e}"}

    def refresh_devices(self) -> dict:
        """
        Reload the device table from the configuration service

        Returns:
            {"enabled": bool, "devices": count} or {"error": message};
            on error the previous table stays in place
        """
        config = self._make_request("/api/config")
        if "error" in config:
            return config

        queue = config.get('queue') or {}
        devices_config = (queue.get('devices') or {}) if isinstance(queue, dict) else None
        if not isinstance(devices_config, dict):
            self.logger.error(f"Unexpected queue settings in /api/config: {queue!r}")
            return {"error": "Unexpected response from /api/config"}

        self.devices_enabled = bool(devices_config.get('enabled', False))
        if not self.devices_enabled:
            self._swap(devices={})
            return {"enabled": False, "devices": 0}

        data = self._make_request("/api/devices")
        if "error" in data:
            return data

        try:
            device_map = build_device_map(data.get('devices') or [])
        except ValueError as e:
            self.logger.error(f"Invalid device list from /api/devices: {e}")
            return {"error": f"Invalid device list: {e}"}

        self._swap(devices=device_map)
        self.logger.info(f"Device table refreshed: {len(device_map)} entries")
        return {"enabled": True, "devices": len(device_map)}

    def load_asn_file(self) -> dict:
        """
        Load organization prefixes from the ASN file

        Returns:
            {"networks": count} or {"error": message}
        """
        if not self.asn_file:
            return {"networks": 0}

        try:
            with open(self.asn_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"networks": 0}
        except (OSError, ValueError) as e:
            self.logger.error(f"Could not load ASN file {self.asn_file}: {e}")
            return {"error": f"Could not load ASN file: {e}"}

        try:
            networks = parse_asn_entries(data)
        except ValueError as e:
            self.logger.error(f"Invalid ASN file {self.asn_file}: {e}")
            return {"error": f"Invalid ASN file: {e}"}

        self._swap(networks=networks)
        self.logger.info(f"Loaded {len(networks)} ASN prefixes from {self.asn_file}")
        return {"networks": len(networks)}
