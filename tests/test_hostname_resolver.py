"""Hostname → tenant resolution and the Host-header middleware."""
import pytest
from fastapi import FastAPI, Request
from httpx import AsyncClient, ASGITransport

from app.crud import crud_domain
from app.middleware import custom_domain as custom_domain_mw
from app.middleware.custom_domain import CustomDomainMiddleware, invalidate_domain_cache
from app.models.custom_domain import DomainType, VerificationStatus
from app.services.hostname_resolver import HostnameResolver, NotConnected, TenantContent

TOKEN = "hubisck-verify-00112233445566778899aabbccddeeff"


def _verify(db, record):
    return crud_domain.mark_status(db, record.id, VerificationStatus.VERIFIED, expected_token=record.verification_token)


def test_unverified_account_domain_not_connected(db, make_user):
    user = make_user()
    record = crud_domain.upsert_account_domain(db, user_id=user.id, hostname="mysite.com", token=TOKEN)
    for status in (VerificationStatus.PENDING, VerificationStatus.VERIFYING, VerificationStatus.FAILED):
        crud_domain.mark_status(db, record.id, status, expected_token=TOKEN)
        result = HostnameResolver(db).resolve("mysite.com")
        assert isinstance(result, NotConnected)
        assert result.hostname == "mysite.com"


def test_verified_account_domain_resolves(db, make_user):
    user = make_user()
    record = crud_domain.upsert_account_domain(db, user_id=user.id, hostname="mysite.com", token=TOKEN)
    _verify(db, record)

    result = HostnameResolver(db).resolve("MySite.com:443")
    assert isinstance(result, TenantContent)
    assert result.user_id == user.id
    assert result.link_page_id is None
    assert result.is_account_level


def test_subdomain_resolves_to_page(db, make_user, make_page):
    user = make_user()
    page = make_page(user, "alice-music")
    crud_domain.create_page_domain(
        db, link_page=page, domain_type=DomainType.SUBDOMAIN, hostname="alice.hubisck.com", token=None
    )
    result = HostnameResolver(db).resolve("alice.hubisck.com")
    assert result.link_page_id == page.id
    assert result.domain_type == DomainType.SUBDOMAIN.value
    assert not result.is_account_level


@pytest.mark.parametrize("host", ["unknown.com", "hubisck.com", "", None])
def test_unknown_hosts_not_connected(db, host):
    assert isinstance(HostnameResolver(db).resolve(host), NotConnected)


def _whoami_app():
    whoami_app = FastAPI()
    whoami_app.add_middleware(CustomDomainMiddleware)

    @whoami_app.get("/whoami")
    def whoami(request: Request):
        tenant = request.state.resolved_tenant
        return {"user_id": str(tenant.user_id) if tenant else None}

    return whoami_app


async def _whoami(host: str) -> dict:
    transport = ASGITransport(app=_whoami_app())
    async with AsyncClient(transport=transport, base_url=f"http://{host}") as ac:
        return (await ac.get("/whoami")).json()


async def test_middleware_sets_tenant_for_verified_host(db, make_user):
    user = make_user()
    record = crud_domain.upsert_account_domain(db, user_id=user.id, hostname="mysite.com", token=TOKEN)
    assert (await _whoami("mysite.com"))["user_id"] is None

    _verify(db, record)
    assert (await _whoami("mysite.com"))["user_id"] == str(user.id)
    assert "mysite.com" in custom_domain_mw._DOMAIN_CACHE


async def test_middleware_skips_platform_host(db):
    assert (await _whoami("hubisck.com"))["user_id"] is None
    assert custom_domain_mw._DOMAIN_CACHE == {}


async def test_cache_invalidated_on_removal(db, make_user):
    user = make_user()
    record = crud_domain.upsert_account_domain(db, user_id=user.id, hostname="mysite.com", token=TOKEN)
    _verify(db, record)
    assert (await _whoami("mysite.com"))["user_id"] == str(user.id)

    crud_domain.remove_account_domain(db, user.id)
    invalidate_domain_cache("mysite.com")
    assert (await _whoami("mysite.com"))["user_id"] is None
