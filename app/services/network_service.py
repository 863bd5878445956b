"""
Network Trust Service - allowed-network membership and proxy/VPN heuristics
"""
import ipaddress
import math
from typing import List, Optional, Sequence, Tuple

import geoip2.database
import geoip2.errors
from atams.logging import get_logger
from user_agents import parse as parse_user_agent

from app.core.config import settings
from app.schemas.network import ClientFingerprint, GeoLocation, RequestMeta, TrustAssessment

logger = get_logger(__name__)

Octets = Tuple[int, int, int, int]
IpRange = Tuple[Octets, Octets]


class GeoLocator:
    """
    IP geolocation collaborator

    This base locator resolves nothing. It is only used when no GeoIP
    database is configured, which disables the timezone factor.
    """

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        return None


class MaxMindGeoLocator(GeoLocator):
    """Resolves client IPs against a MaxMind GeoLite2/GeoIP2 City database"""

    def __init__(self, db_path: Optional[str] = None, reader=None) -> None:
        self.reader = reader if reader is not None else geoip2.database.Reader(db_path)

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        try:
            response = self.reader.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError):
            # Private, reserved or malformed addresses have no location
            return None

        location = response.location
        if location.latitude is None or location.longitude is None:
            return None

        return GeoLocation(
            lat=location.latitude,
            lon=location.longitude,
            country=response.country.iso_code,
            city=response.city.name,
            timezone=location.time_zone,
        )


def default_geo_locator() -> GeoLocator:
    """MaxMind locator when GEOIP_DB_PATH is set, otherwise the null locator"""
    if not settings.GEOIP_DB_PATH:
        logger.info("GEOIP_DB_PATH not set, IP geolocation disabled")
        return GeoLocator()
    return MaxMindGeoLocator(settings.GEOIP_DB_PATH)


def device_type(user_agent) -> str:
    if user_agent.is_bot:
        return "bot"
    if user_agent.is_tablet:
        return "tablet"
    if user_agent.is_mobile:
        return "mobile"
    if user_agent.is_pc:
        return "desktop"
    return "other"


def parse_fingerprint(user_agent: Optional[str], device_name: Optional[str] = None) -> ClientFingerprint:
    """
    Describe the client from its User-Agent for the audit trail

    An explicit device name (X-Device-Name) wins over the parsed device family.
    """
    device_name = (device_name or "").strip() or None
    if not user_agent:
        return ClientFingerprint(device_name=device_name)

    parsed = parse_user_agent(user_agent)
    device = parsed.device.family if parsed.device.family != "Other" else None
    return ClientFingerprint(
        user_agent=user_agent[:255],
        browser=parsed.browser.family,
        browser_version=parsed.browser.version_string or None,
        os=parsed.os.family,
        os_version=parsed.os.version_string or None,
        device=device,
        device_type=device_type(parsed),
        device_name=device_name or device,
    )


def parse_ip_range(value: str) -> IpRange:
    """
    Parse an inclusive "a.b.c.d-e.f.g.h" range

    Raises:
        ValueError: If the range is malformed
    """
    try:
        start, end = (part.strip() for part in value.split("-"))
    except ValueError:
        raise ValueError(f"Invalid IP range: {value!r}")
    return _octets(ipaddress.IPv4Address(start)), _octets(ipaddress.IPv4Address(end))


def _octets(address: ipaddress.IPv4Address) -> Octets:
    return tuple(address.packed)


def client_octets(ip: Optional[str]) -> Optional[Octets]:
    """IPv4 octets of a client address; IPv4-mapped IPv6 is unwrapped, anything else is None"""
    if not ip:
        return None
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return None
    if address.version == 6:
        if address.ipv4_mapped is None:
            return None
        address = address.ipv4_mapped
    return _octets(address)


def is_ip_in_ranges(ip: Optional[str], ranges: Sequence[IpRange]) -> bool:
    """Every octet must lie within the corresponding bounds of at least one range"""
    octets = client_octets(ip)
    if octets is None or not ranges:
        return False
    return any(
        all(start[i] <= octets[i] <= end[i] for i in range(4))
        for start, end in ranges
    )


def expected_timezone(lon: float) -> str:
    """Rough UTC offset from longitude, e.g. 'UTC+5:00'. Heuristic only."""
    offset = math.floor(lon / 15 + 0.5)
    return f"UTC{'+' if offset >= 0 else ''}{offset}:00"


class NetworkTrustAssessor:
    def __init__(
        self,
        allowed_ranges: Optional[List[str]] = None,
        proxy_ports: Optional[List[int]] = None,
        proxy_headers: Optional[List[str]] = None,
        vpn_markers: Optional[List[str]] = None,
        geo_locator: Optional[GeoLocator] = None,
    ) -> None:
        raw_ranges = allowed_ranges if allowed_ranges is not None else settings.allowed_ip_ranges_list
        self.allowed_ranges = [parse_ip_range(value) for value in raw_ranges]
        self.proxy_ports = set(proxy_ports if proxy_ports is not None else settings.proxy_ports_list)
        self.proxy_headers = [
            header.lower()
            for header in (proxy_headers if proxy_headers is not None else settings.proxy_headers_list)
        ]
        self.vpn_markers = [
            marker.lower()
            for marker in (vpn_markers if vpn_markers is not None else settings.vpn_hostname_markers_list)
        ]
        self.geo_locator = geo_locator if geo_locator is not None else default_geo_locator()

    def is_allowed_network(self, ip: Optional[str]) -> bool:
        return is_ip_in_ranges(ip, self.allowed_ranges)

    def assess(self, meta: RequestMeta) -> TrustAssessment:
        """
        Inspect request metadata and produce a trust verdict

        Every triggered factor is kept in order for the audit trail; the
        caller decides whether to reject.
        """
        headers = {key.lower(): value for key, value in meta.headers.items()}
        geo = self.geo_locator.lookup(meta.client_ip) if meta.client_ip else None

        factors: List[str] = []

        if meta.remote_port is not None and meta.remote_port in self.proxy_ports:
            factors.append("Common proxy port detected")

        client_timezone = headers.get("x-timezone")
        if geo and client_timezone:
            if expected_timezone(geo.lon) != client_timezone.strip():
                factors.append("Timezone mismatch")

        for header in self.proxy_headers:
            if headers.get(header):
                factors.append(f"Proxy header detected: {header}")

        hostname = (meta.hostname or "").lower()
        if hostname and any(marker in hostname for marker in self.vpn_markers):
            factors.append("VPN hostname detected")

        user_agent = headers.get("user-agent")
        return TrustAssessment(
            client_ip=meta.client_ip,
            is_allowed_network=self.is_allowed_network(meta.client_ip),
            is_proxy_suspected=len(factors) > 0,
            factors=factors,
            geo=geo,
            client_fingerprint=parse_fingerprint(user_agent, headers.get("x-device-name")),
        )
