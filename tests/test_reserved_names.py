"""Unit tests for the reserved subdomain guard."""
import pytest

from app.config import settings
from app.services.domain_errors import InvalidHostname, ReservedHostname
from app.services.hostname import ReservedNames, default_reserved_names, normalize_subdomain_label


@pytest.fixture
def reserved():
    return ReservedNames(["admin", "mail", "www"])


@pytest.mark.parametrize("label", ["admin", "ADMIN", " Admin ", "admin1", "admin42", "mail02"])
def test_reserved_and_numeric_suffix(reserved, label):
    assert reserved.is_reserved(label)
    assert label in reserved


@pytest.mark.parametrize("label", ["alice", "admins", "1admin", "mailbox", "www-alice"])
def test_not_reserved(reserved, label):
    assert not reserved.is_reserved(label)


def test_extend_keeps_order_and_dedupes(reserved):
    reserved.extend(["Shop", "admin", ""])
    assert list(reserved) == ["admin", "mail", "www", "shop"]
    assert len(reserved) == 4
    assert reserved.is_reserved("shop7")


def test_default_list_includes_brand_and_extra(monkeypatch):
    monkeypatch.setattr(settings, "RESERVED_SUBDOMAINS_EXTRA", "Acme, launch ")
    names = default_reserved_names()
    assert names.is_reserved(settings.PLATFORM_NAME)
    assert names.is_reserved("acme")
    assert names.is_reserved("launch2")
    assert names.is_reserved("api")


def test_normalize_subdomain_label(reserved):
    assert normalize_subdomain_label("Alice", reserved) == "alice"
    assert normalize_subdomain_label("my-band-2024", reserved) == "my-band-2024"


@pytest.mark.parametrize("label", ["ab", "-alice", "alice-", "al_ice", "a" * 31, "alice.bob"])
def test_subdomain_label_format(reserved, label):
    with pytest.raises(InvalidHostname):
        normalize_subdomain_label(label, reserved)


@pytest.mark.parametrize("label", ["admin", "admin1", "MAIL02"])
def test_subdomain_label_reserved(reserved, label):
    with pytest.raises(ReservedHostname):
        normalize_subdomain_label(label, reserved)
