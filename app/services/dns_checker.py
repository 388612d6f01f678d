"""
DNS challenge checker.

Proves control of a hostname with two lookups:
  1. TXT  _<platform>-verify.<hostname>  == verification token   (ownership)
  2. A    <hostname> contains PLATFORM_EDGE_IP        (root domain, 2 labels)
     CNAME <hostname> == PLATFORM_CNAME_TARGET        (any other hostname)

Routing is only looked at after the TXT record matched. The checker is a
read-only query; it never writes to the database.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

import dns.exception
import dns.resolver
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings
from app.middleware.metrics import DNS_LOOKUPS
from app.services.hostname import is_root_domain

logger = logging.getLogger("hubisck.dns")


class RecordNotFound(Exception):
    """NXDOMAIN / no answer: the record simply is not there (yet)."""


class TransientLookupError(Exception):
    """Timeout, SERVFAIL or no reachable nameserver; worth retrying."""


class DNSBackend(Protocol):
    def txt(self, name: str) -> List[str]: ...

    def a(self, name: str) -> List[str]: ...

    def cname(self, name: str) -> List[str]: ...


class DNSPythonBackend:
    """dnspython resolver with a bounded lifetime per query."""

    def __init__(self, timeout: Optional[float] = None, nameservers: Optional[List[str]] = None):
        nameservers = nameservers if nameservers is not None else settings.dns_nameservers
        # explicit nameservers skip reading /etc/resolv.conf
        self.resolver = dns.resolver.Resolver(configure=not nameservers)
        if nameservers:
            self.resolver.nameservers = nameservers
        self.resolver.lifetime = timeout if timeout is not None else settings.DNS_LOOKUP_TIMEOUT
        self.resolver.timeout = self.resolver.lifetime

    @retry(
        retry=retry_if_exception_type(TransientLookupError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        reraise=True,
    )
    def _resolve(self, name: str, rdtype: str):
        try:
            return self.resolver.resolve(name, rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer) as e:
            raise RecordNotFound(f"{rdtype} {name}: {type(e).__name__}") from e
        except dns.resolver.NoNameservers as e:
            raise TransientLookupError(f"{rdtype} {name}: SERVFAIL / no nameservers") from e
        except dns.exception.Timeout as e:
            raise TransientLookupError(f"{rdtype} {name}: timed out") from e
        except dns.exception.DNSException as e:
            # NameTooLong, EmptyLabel, ...: no such record can exist
            raise RecordNotFound(f"{rdtype} {name}: {type(e).__name__}") from e

    def txt(self, name: str) -> List[str]:
        values = []
        for rdata in self._resolve(name, "TXT"):
            # one TXT record may be split into several character-strings
            values.append(
                "".join(
                    s.decode("utf-8", errors="replace") if isinstance(s, (bytes, bytearray)) else str(s)
                    for s in rdata.strings
                )
            )
        return values

    def a(self, name: str) -> List[str]:
        return [rdata.address for rdata in self._resolve(name, "A")]

    def cname(self, name: str) -> List[str]:
        return [rdata.target.to_text() for rdata in self._resolve(name, "CNAME")]


@dataclass
class DNSCheckResult:
    hostname: str
    txt_verified: bool
    points_to_platform: bool
    routing_checked: bool = False
    transient_error: Optional[str] = None

    @property
    def is_verified(self) -> bool:
        return self.txt_verified and self.points_to_platform


@dataclass
class DNSRecordInstruction:
    type: str
    host: str
    value: str
    purpose: str


def txt_record_name(hostname: str) -> str:
    return f"{settings.verification_txt_prefix}.{hostname}"


def txt_instruction(hostname: str, token: str) -> DNSRecordInstruction:
    return DNSRecordInstruction(
        type="TXT",
        host=txt_record_name(hostname),
        value=token,
        purpose="Required for domain verification",
    )


def routing_instruction(hostname: str) -> DNSRecordInstruction:
    if is_root_domain(hostname):
        return DNSRecordInstruction(
            type="A",
            host="@",
            value=settings.PLATFORM_EDGE_IP,
            purpose="Points your root domain to the platform",
        )
    return DNSRecordInstruction(
        type="CNAME",
        host=hostname,
        value=settings.PLATFORM_CNAME_TARGET,
        purpose="Points your domain to the platform",
    )


def build_dns_instructions(hostname: str, token: str) -> List[DNSRecordInstruction]:
    """Records the user has to publish, TXT first."""
    return [txt_instruction(hostname, token), routing_instruction(hostname)]


def setup_instructions_text(hostname: str) -> str:
    if is_root_domain(hostname):
        return "Add the TXT record for verification, then add the A record to point your domain to the platform."
    return "Add the TXT record for verification, then add the CNAME record to point your domain to the platform."


class DNSChallengeChecker:
    def __init__(
        self,
        backend: Optional[DNSBackend] = None,
        *,
        cname_target: Optional[str] = None,
        edge_ip: Optional[str] = None,
        allow_cname_subdomains: Optional[bool] = None,
    ):
        self.backend = backend or DNSPythonBackend()
        self.cname_target = (cname_target or settings.PLATFORM_CNAME_TARGET).lower().rstrip(".")
        self.edge_ip = edge_ip or settings.PLATFORM_EDGE_IP
        self.allow_cname_subdomains = (
            settings.DNS_CNAME_ALLOW_SUBDOMAINS if allow_cname_subdomains is None else allow_cname_subdomains
        )

    def _lookup(self, record: str, name: str) -> List[str]:
        try:
            values = getattr(self.backend, record.lower())(name)
        except RecordNotFound:
            DNS_LOOKUPS.labels(record=record, result="not_found").inc()
            logger.debug("%s lookup for %s: no record", record, name)
            return []
        except TransientLookupError:
            DNS_LOOKUPS.labels(record=record, result="transient_error").inc()
            raise
        DNS_LOOKUPS.labels(record=record, result="answer").inc()
        return values

    def check_txt(self, hostname: str, token: str) -> bool:
        if not token:
            return False
        values = self._lookup("TXT", txt_record_name(hostname))
        # exact, case-sensitive; resolvers may hand back surrounding quotes
        return any(v.strip().strip('"') == token for v in values)

    def _cname_matches(self, target: str) -> bool:
        target = target.lower().rstrip(".")
        if target == self.cname_target:
            return True
        return self.allow_cname_subdomains and target.endswith(f".{self.cname_target}")

    def check_routing(self, hostname: str) -> bool:
        if is_root_domain(hostname):
            return self.edge_ip in self._lookup("A", hostname)
        return any(self._cname_matches(t) for t in self._lookup("CNAME", hostname))

    def check(self, hostname: str, token: str) -> DNSCheckResult:
        """Run the TXT check and, if it passed, the routing check.

        Transient resolver failures are reported in ``transient_error`` rather
        than raised, so the caller can keep the domain retryable.
        """
        try:
            txt_ok = self.check_txt(hostname, token)
        except TransientLookupError as e:
            logger.warning("Transient DNS failure checking TXT for %s: %s", hostname, e)
            return DNSCheckResult(hostname, False, False, transient_error=str(e))

        if not txt_ok:
            return DNSCheckResult(hostname, False, False)

        try:
            routed = self.check_routing(hostname)
        except TransientLookupError as e:
            logger.warning("Transient DNS failure checking routing for %s: %s", hostname, e)
            return DNSCheckResult(hostname, True, False, routing_checked=False, transient_error=str(e))

        return DNSCheckResult(hostname, True, routed, routing_checked=True)
