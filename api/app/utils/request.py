import ipaddress
from typing import Optional

from fastapi import Request

# Checked in order; the first public address wins
CLIENT_IP_HEADERS = ("x-client-ip", "x-forwarded-for")


def _public_address(value: str) -> Optional[str]:
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    return str(address) if address.is_global else None


def get_client_ip(request: Request) -> str:
    """Best guess of the caller's address for the audit log.

    Proxy headers are only trusted when they carry a public address.
    Otherwise the socket peer is used, or "unknown" when there is none.
    """
    for header in CLIENT_IP_HEADERS:
        for candidate in request.headers.get(header, "").split(","):
            address = _public_address(candidate)
            if address:
                return address

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
