"""
Network trust schemas - request metadata in, trust verdict out
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from starlette.requests import Request


class GeoLocation(BaseModel):
    """Resolved geolocation of a client IP"""
    lat: float
    lon: float
    country: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None  # IANA name, e.g. "Asia/Jakarta"


class ClientFingerprint(BaseModel):
    """Audit-only client description parsed from the User-Agent, never a hard signal"""
    user_agent: Optional[str] = None
    browser: Optional[str] = None
    browser_version: Optional[str] = None
    os: Optional[str] = None
    os_version: Optional[str] = None
    device: Optional[str] = None
    device_type: Optional[str] = None  # mobile, tablet, desktop, bot, other
    device_name: Optional[str] = None


class RequestMeta(BaseModel):
    client_ip: Optional[str] = None
    remote_port: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)  # lower-cased names
    hostname: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        """
        Build request metadata from an incoming HTTP request

        Client IP prefers the first X-Forwarded-For entry, then X-Real-IP,
        then the socket peer address.
        """
        headers = {key.lower(): value for key, value in request.headers.items()}

        client_ip = None
        forwarded_for = headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip() or None
        if not client_ip and headers.get("x-real-ip"):
            client_ip = headers["x-real-ip"].strip()
        if not client_ip and request.client:
            client_ip = request.client.host

        hostname = headers.get("host")
        if hostname:
            hostname = hostname.split(":")[0]

        return cls(
            client_ip=client_ip,
            remote_port=request.client.port if request.client else None,
            headers=headers,
            hostname=hostname,
        )


class TrustAssessment(BaseModel):
    client_ip: Optional[str] = None
    is_allowed_network: bool
    is_proxy_suspected: bool
    factors: List[str] = Field(default_factory=list)
    geo: Optional[GeoLocation] = None
    client_fingerprint: ClientFingerprint = Field(default_factory=ClientFingerprint)

    @property
    def is_trusted(self) -> bool:
        return self.is_allowed_network and not self.is_proxy_suspected
