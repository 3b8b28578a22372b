from __future__ import annotations

from typing import Iterable, List


def normalise_ips(ips: Iterable) -> List[str]:
    """Strip, drop empty entries and de-duplicate keeping first occurrence."""

    cleaned = (str(ip).strip() for ip in ips if ip is not None)
    return list(dict.fromkeys(ip for ip in cleaned if ip))


def extract_ips(payload) -> List[str]:
    """Return the pool IPs from a parsed pool file.

    Accepts either a bare list or a mapping with an ``ips`` key.
    """

    if isinstance(payload, list):
        return normalise_ips(payload)
    if isinstance(payload, dict):
        ips = payload.get("ips")
        if ips is None:
            raise ValueError("pool file missing 'ips' key")
        if not isinstance(ips, list):
            raise ValueError("pool file 'ips' must be a list")
        return normalise_ips(ips)
    raise ValueError("pool file must contain a list or a mapping")
