from typing import List

from atams import AtamsBaseSettings


DEFAULT_ALLOWED_IP_RANGES = [
    "10.0.0.0-10.255.255.255",      # Class A private
    "172.16.0.0-172.31.255.255",    # Class B private
    "192.168.0.0-192.168.255.255",  # Class C private
    "127.0.0.0-127.255.255.255",    # Loopback
]


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(AtamsBaseSettings):
    """
    Application Settings

    Inherits from AtamsBaseSettings which includes:
    - DATABASE_URL (required)
    - ATLAS_SSO_URL, ATLAS_APP_CODE, ATLAS_ENCRYPTION_KEY, ATLAS_ENCRYPTION_IV
    - ENCRYPTION_ENABLED, ENCRYPTION_KEY, ENCRYPTION_IV (response encryption)
    - LOGGING_ENABLED, LOG_LEVEL, LOG_TO_FILE, LOG_FILE_PATH
    - CORS_ORIGINS, CORS_ALLOW_CREDENTIALS, CORS_ALLOW_METHODS, CORS_ALLOW_HEADERS
    - RATE_LIMIT_ENABLED, RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW
    - DEBUG

    All settings can be overridden via .env file or by redefining them here.
    """
    APP_NAME: str = "Campus Attendance"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # QR check-in token settings
    QR_JWT_SECRET: str
    QR_JWT_ALG: str = "HS256"
    QR_TOKEN_ISSUER: str = "campus-attendance"

    # Network trust (comma separated). Empty ALLOWED_IP_RANGES means private ranges + loopback
    ALLOWED_IP_RANGES: str = ""
    PROXY_PORTS: str = "80,443,1080,3128,8080,8888,9999"
    PROXY_HEADERS: str = "via,x-forwarded-for,forwarded,x-real-ip,proxy-connection"
    VPN_HOSTNAME_MARKERS: str = "nordvpn,expressvpn,privatevpn,protonvpn,cyberghost"

    # MaxMind GeoLite2/GeoIP2 City database (.mmdb). Empty disables IP geolocation
    GEOIP_DB_PATH: str = ""

    # Attendance decision thresholds
    DUPLICATE_WINDOW_MINUTES: int = 5
    GEOFENCE_RADIUS_M: int = 100
    LOW_CONFIDENCE_THRESHOLD: float = 0.0  # 0 disables the advisory flag

    # Integrity flag sinks: "log", "db"
    FLAG_SINKS: str = "log,db"

    @property
    def allowed_ip_ranges_list(self) -> List[str]:
        ranges = _split_csv(self.ALLOWED_IP_RANGES)
        return ranges or list(DEFAULT_ALLOWED_IP_RANGES)

    @property
    def proxy_ports_list(self) -> List[int]:
        return [int(port) for port in _split_csv(self.PROXY_PORTS)]

    @property
    def proxy_headers_list(self) -> List[str]:
        return [header.lower() for header in _split_csv(self.PROXY_HEADERS)]

    @property
    def vpn_hostname_markers_list(self) -> List[str]:
        return [marker.lower() for marker in _split_csv(self.VPN_HOSTNAME_MARKERS)]

    @property
    def flag_sinks_list(self) -> List[str]:
        return [sink.lower() for sink in _split_csv(self.FLAG_SINKS)]


settings = Settings()
