"""
Hostname validation and reserved-name guard.

Pure functions; nothing here touches the database or DNS.
"""
import re
from typing import Iterable, Optional

from app.config import settings
from app.services.domain_errors import InvalidHostname, ReservedHostname

_SCHEME_RE = re.compile(r"^https?://")
_NON_ASCII_RE = re.compile(r"[^\x00-\x7F]")
_WHITESPACE_RE = re.compile(r"\s+")

# labels of [a-z0-9] with interior hyphens, then an alphabetic TLD of 2+ chars
_HOSTNAME_RE = re.compile(r"^([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$")

# free subdomain label: 3-30 chars, no leading / trailing hyphen
_SUBDOMAIN_LABEL_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,28}[a-z0-9]$")

_NUMERIC_SUFFIX_RE = re.compile(r"^(.+?)(\d+)$")

MIN_HOSTNAME_LENGTH = 4
MAX_HOSTNAME_LENGTH = 253
MAX_LABEL_LENGTH = 63

DEFAULT_RESERVED_SUBDOMAINS = (
    # Infrastructure & DNS
    "www", "ns", "dns", "mx", "mail", "smtp", "imap", "pop", "pop3",
    "webmail", "email", "ftp", "sftp", "ssh", "vpn", "proxy",
    # Admin & backend
    "admin", "administrator", "api", "app", "backend", "server",
    "cpanel", "whm", "panel", "plesk", "control", "manage", "manager",
    # Authentication & security
    "auth", "oauth", "login", "signup", "register", "logout", "sso", "saml",
    "account", "accounts", "user", "users", "profile", "profiles", "me",
    "password", "reset", "verify", "confirm", "secure", "security", "ssl",
    # Content & media
    "cdn", "static", "assets", "media", "images", "img",
    "files", "uploads", "download", "downloads", "video", "videos", "audio",
    # Business & payments
    "billing", "pay", "payment", "payments", "checkout", "stripe", "paypal",
    "invoice", "invoices", "subscription", "subscribe", "pricing", "price",
    # Brand
    "hub", "link", "links", "page", "pages", "smart", "smartlink",
    "smartlinks", "bio", "linktree", "about", "info", "contact",
    # Environments
    "test", "testing", "demo", "staging", "stage", "dev", "development",
    "prod", "production", "beta", "alpha", "preview", "sandbox", "local", "localhost",
    # Support & communication
    "help", "support", "docs", "documentation", "faq", "feedback", "tickets",
    "blog", "news", "updates", "changelog", "status", "uptime",
    # Common
    "home", "dashboard", "settings", "config", "configuration", "root", "system",
    "internal", "private", "public", "autodiscover", "autoconfig", "wpad",
    # Generic content words
    "music", "artist", "artists", "track", "tracks", "album", "albums", "spotify",
)


class ReservedNames:
    """Ordered set of reserved subdomain labels plus the numeric-suffix rule.

    A label is reserved when it matches a name exactly, or when stripping a
    trailing run of digits yields a reserved name (``admin1``, ``mail02``).
    """

    def __init__(self, names: Iterable[str], numeric_suffix_pattern: re.Pattern = _NUMERIC_SUFFIX_RE):
        self._names: dict[str, None] = {}
        self._numeric_suffix = numeric_suffix_pattern
        self.extend(names)

    def extend(self, names: Iterable[str]) -> "ReservedNames":
        for name in names:
            name = name.strip().lower()
            if name:
                self._names[name] = None
        return self

    def is_reserved(self, label: str) -> bool:
        label = label.strip().lower()
        if label in self._names:
            return True
        match = self._numeric_suffix.match(label)
        return bool(match and match.group(1) in self._names)

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and self.is_reserved(label)

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)


def default_reserved_names() -> ReservedNames:
    """Built-in list + platform brand name + RESERVED_SUBDOMAINS_EXTRA."""
    return ReservedNames(DEFAULT_RESERVED_SUBDOMAINS).extend(
        [settings.PLATFORM_NAME, *settings.reserved_subdomains_extra]
    )


def _is_platform_hostname(hostname: str, platform_domain: str) -> bool:
    return hostname == platform_domain or hostname.endswith(f".{platform_domain}")


def normalize_hostname(raw: str, platform_domain: Optional[str] = None) -> str:
    """Normalize a user-supplied domain and validate it.

    Lower-cases, trims, strips ``http(s)://`` and a trailing ``/``, drops
    non-ASCII characters (homoglyphs) and whitespace.

    Raises:
        InvalidHostname: bad length / label / pattern, or the platform's own
            domain (or one of its subdomains).
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidHostname("Domain is required")

    platform_domain = (platform_domain or settings.PLATFORM_DOMAIN).lower()

    hostname = raw.lower().strip()
    hostname = _SCHEME_RE.sub("", hostname)
    hostname = hostname.rstrip("/")
    hostname = _NON_ASCII_RE.sub("", hostname)
    hostname = _WHITESPACE_RE.sub("", hostname)

    if not MIN_HOSTNAME_LENGTH <= len(hostname) <= MAX_HOSTNAME_LENGTH:
        raise InvalidHostname(
            f"Domain must be between {MIN_HOSTNAME_LENGTH} and {MAX_HOSTNAME_LENGTH} characters"
        )
    # the TXT challenge lives at <prefix>.<hostname>, which must fit too
    max_length = MAX_HOSTNAME_LENGTH - len(settings.verification_txt_prefix) - 1
    if len(hostname) > max_length:
        raise InvalidHostname(f"Domain must be {max_length} characters or less")
    if any(len(label) > MAX_LABEL_LENGTH for label in hostname.split(".")):
        raise InvalidHostname(
            f"Each part of the domain must be {MAX_LABEL_LENGTH} characters or less"
        )
    if not _HOSTNAME_RE.match(hostname):
        raise InvalidHostname("Invalid domain format. Example: mysite.com")
    if _is_platform_hostname(hostname, platform_domain):
        raise InvalidHostname(f"Cannot use {platform_domain} domains as custom domains")

    return hostname


def normalize_subdomain_label(raw: str, reserved: Optional[ReservedNames] = None) -> str:
    """Validate a free-subdomain label (the ``alice`` in ``alice.<platform>``)."""
    if not isinstance(raw, str):
        raise InvalidHostname("Subdomain is required")
    label = raw.lower().strip()
    if not _SUBDOMAIN_LABEL_RE.match(label):
        raise InvalidHostname(
            "Subdomain must be 3-30 characters, alphanumeric with hyphens (not at start/end)"
        )
    reserved = reserved if reserved is not None else default_reserved_names()
    if reserved.is_reserved(label):
        raise ReservedHostname("This subdomain is reserved and cannot be claimed")
    return label


def platform_subdomain(label: str, platform_domain: Optional[str] = None) -> str:
    return f"{label}.{(platform_domain or settings.PLATFORM_DOMAIN).lower()}"


def is_root_domain(hostname: str) -> bool:
    """Two labels (``example.com``) → A record routing; otherwise CNAME."""
    return len(hostname.split(".")) == 2


def normalize_request_host(host: Optional[str]) -> str:
    """Host header → bare lower-case hostname (no port, no trailing dot)."""
    if not host:
        return ""
    host = host.strip().lower()
    if host.startswith("["):
        # IPv6 literal; never a tenant hostname
        return host
    return host.split(":", 1)[0].rstrip(".")
