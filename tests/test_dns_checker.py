"""Unit tests for the DNS challenge checker."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import dns.exception
import dns.name
import dns.resolver
import pytest

from app.services.dns_checker import (
    DNSChallengeChecker,
    DNSPythonBackend,
    RecordNotFound,
    TransientLookupError,
    build_dns_instructions,
    routing_instruction,
    txt_record_name,
)

TOKEN = "hubisck-verify-00112233445566778899aabbccddeeff"


def test_txt_record_name():
    assert txt_record_name("mysite.com") == "_hubisck-verify.mysite.com"


def test_instructions_root_domain_uses_a_record():
    txt, routing = build_dns_instructions("mysite.com", TOKEN)
    assert (txt.type, txt.host, txt.value) == ("TXT", "_hubisck-verify.mysite.com", TOKEN)
    assert (routing.type, routing.host, routing.value) == ("A", "@", "76.76.21.21")


def test_instructions_subdomain_uses_cname():
    routing = routing_instruction("links.mysite.com")
    assert (routing.type, routing.host, routing.value) == ("CNAME", "links.mysite.com", "hubisck.com")


def test_txt_match_is_exact(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = ["v=spf1 -all", TOKEN]
    assert checker.check_txt("mysite.com", TOKEN) is True
    assert checker.check_txt("mysite.com", TOKEN.upper()) is False
    assert checker.check_txt("mysite.com", TOKEN[:-1]) is False


def test_txt_surrounding_quotes_stripped(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = [f'"{TOKEN}"']
    assert checker.check_txt("mysite.com", TOKEN) is True


def test_empty_token_never_matches(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = [""]
    assert checker.check_txt("mysite.com", "") is False


def test_root_domain_checks_a_record(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = [TOKEN]
    fake_dns.a_records["mysite.com"] = ["10.0.0.1", "76.76.21.21"]
    result = checker.check("mysite.com", TOKEN)
    assert result.is_verified
    assert ("A", "mysite.com") in fake_dns.queries
    assert not any(rdtype == "CNAME" for rdtype, _ in fake_dns.queries)


def test_root_domain_wrong_a_record(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = [TOKEN]
    fake_dns.a_records["mysite.com"] = ["10.0.0.1"]
    result = checker.check("mysite.com", TOKEN)
    assert result.txt_verified is True
    assert result.points_to_platform is False
    assert result.routing_checked is True


def test_subdomain_checks_cname(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.links.mysite.com"] = [TOKEN]
    fake_dns.cname_records["links.mysite.com"] = ["Hubisck.com."]
    assert checker.check("links.mysite.com", TOKEN).is_verified


def test_cname_subdomain_of_target_rejected_by_default(fake_dns, checker):
    fake_dns.cname_records["links.mysite.com"] = ["edge.hubisck.com."]
    assert checker.check_routing("links.mysite.com") is False


def test_cname_subdomain_of_target_allowed_when_enabled(fake_dns):
    checker = DNSChallengeChecker(fake_dns, allow_cname_subdomains=True)
    fake_dns.cname_records["links.mysite.com"] = ["edge.hubisck.com."]
    assert checker.check_routing("links.mysite.com") is True
    fake_dns.cname_records["links.mysite.com"] = ["evilhubisck.com."]
    assert checker.check_routing("links.mysite.com") is False


def test_routing_not_queried_when_txt_missing(fake_dns, checker):
    fake_dns.a_records["mysite.com"] = ["76.76.21.21"]
    result = checker.check("mysite.com", TOKEN)
    assert result.txt_verified is False
    assert result.points_to_platform is False
    assert result.routing_checked is False
    assert fake_dns.queries == [("TXT", "_hubisck-verify.mysite.com")]


def test_transient_txt_failure_reported(fake_dns, checker):
    fake_dns.transient.add("_hubisck-verify.mysite.com")
    result = checker.check("mysite.com", TOKEN)
    assert result.transient_error
    assert result.txt_verified is False


def test_transient_routing_failure_reported(fake_dns, checker):
    fake_dns.txt_records["_hubisck-verify.mysite.com"] = [TOKEN]
    fake_dns.transient.add("mysite.com")
    result = checker.check("mysite.com", TOKEN)
    assert result.txt_verified is True
    assert result.points_to_platform is False
    assert result.transient_error


# --- dnspython backend ---

@pytest.fixture
def backend():
    b = DNSPythonBackend(timeout=1.0, nameservers=["192.0.2.53"])
    b.resolver = MagicMock()
    return b


def test_backend_joins_txt_strings(backend):
    backend.resolver.resolve.return_value = [
        SimpleNamespace(strings=(b"hubisck-verify-", b"abc")),
        SimpleNamespace(strings=(b"other",)),
    ]
    assert backend.txt("_hubisck-verify.mysite.com") == ["hubisck-verify-abc", "other"]


def test_backend_nxdomain_is_not_found(backend):
    backend.resolver.resolve.side_effect = dns.resolver.NXDOMAIN()
    with pytest.raises(RecordNotFound):
        backend.a("mysite.com")


def test_backend_no_answer_is_not_found(backend):
    backend.resolver.resolve.side_effect = dns.resolver.NoAnswer()
    with pytest.raises(RecordNotFound):
        backend.cname("links.mysite.com")


def test_backend_timeout_is_transient_and_retried(backend):
    backend.resolver.resolve.side_effect = dns.exception.Timeout()
    with pytest.raises(TransientLookupError):
        backend.a("mysite.com")
    assert backend.resolver.resolve.call_count == 2


def test_backend_lookup_lifetime():
    b = DNSPythonBackend(timeout=2.0, nameservers=["192.0.2.53"])
    assert b.resolver.timeout == 2.0
    assert b.resolver.lifetime == 2.0


def test_backend_name_too_long_is_not_found(backend):
    backend.resolver.resolve.side_effect = dns.name.NameTooLong()
    with pytest.raises(RecordNotFound):
        backend.txt("_hubisck-verify." + "a" * 250 + ".com")
    assert backend.resolver.resolve.call_count == 1


def test_overlong_challenge_name_is_unverified_not_an_error():
    b = DNSPythonBackend(timeout=1.0, nameservers=["192.0.2.53"])
    hostname = ".".join(["a" * 63, "b" * 63, "c" * 63, "d" * 52]) + ".com"
    result = DNSChallengeChecker(b).check(hostname, TOKEN)
    assert not result.txt_verified
    assert not result.is_verified
    assert result.transient_error is None
