"""
Per-page domain API
Free platform subdomains, page custom domains and ownership checks.
"""
import uuid

import pytest
from httpx import AsyncClient

from tests.helpers import auth_headers

BASE = "/api/v1/domains"
LOOKUP = "/api/v1/public/domain-lookup"


@pytest.fixture
def alice(make_user, make_page):
    user = make_user("alice@example.com")
    page = make_page(user, "alice-music", "Alice Music")
    return {"user": user, "page_id": str(page.id), "headers": auth_headers(user.id)}


@pytest.fixture
def bob(make_user, make_page):
    user = make_user("bob@example.com")
    page = make_page(user, "bob-music", "Bob Music")
    return {"user": user, "page_id": str(page.id), "headers": auth_headers(user.id)}


async def test_claim_subdomain_is_live_immediately(client: AsyncClient, alice, recheck_task):
    resp = await client.post(
        f"{BASE}/subdomain", headers=alice["headers"], json={"page_id": alice["page_id"], "subdomain": "Alice"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["hostname"] == "alice.hubisck.com"
    assert data["domain_type"] == "subdomain"
    assert data["verification_status"] == "verified"
    assert data["verified_at"] is not None
    recheck_task.apply_async.assert_not_called()

    resp = await client.get(LOOKUP, params={"hostname": "alice.hubisck.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["link_page_id"] == alice["page_id"]
    assert body["page"]["slug"] == "alice-music"


@pytest.mark.parametrize("label", ["admin", "ADMIN", "admin1", "mail02", "hubisck", "www"])
async def test_reserved_subdomain_rejected(client: AsyncClient, alice, label):
    resp = await client.post(
        f"{BASE}/subdomain", headers=alice["headers"], json={"page_id": alice["page_id"], "subdomain": label}
    )
    assert resp.status_code == 400
    assert "reserved" in resp.json()["detail"]


@pytest.mark.parametrize("label", ["ab", "-alice", "alice_", "a" * 31])
async def test_malformed_subdomain_rejected(client: AsyncClient, alice, label):
    resp = await client.post(
        f"{BASE}/subdomain", headers=alice["headers"], json={"page_id": alice["page_id"], "subdomain": label}
    )
    assert resp.status_code == 400


async def test_subdomain_taken_by_other_tenant(client: AsyncClient, alice, bob):
    await client.post(
        f"{BASE}/subdomain", headers=alice["headers"], json={"page_id": alice["page_id"], "subdomain": "stage-name"}
    )
    resp = await client.post(
        f"{BASE}/subdomain", headers=bob["headers"], json={"page_id": bob["page_id"], "subdomain": "stage-name"}
    )
    assert resp.status_code == 409

    avail = (await client.get(f"{BASE}/check/stage-name.hubisck.com", headers=bob["headers"])).json()
    assert (avail["hostname"], avail["available"]) == ("stage-name.hubisck.com", False)
    assert "taken" in avail["reason"]
    avail = (await client.get(f"{BASE}/check/free-name.hubisck.com", headers=bob["headers"])).json()
    assert avail["available"] is True


async def test_cannot_manage_someone_elses_page(client: AsyncClient, alice, bob):
    resp = await client.post(
        f"{BASE}/subdomain", headers=bob["headers"], json={"page_id": alice["page_id"], "subdomain": "bobby"}
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"{BASE}/custom", headers=bob["headers"], json={"page_id": alice["page_id"], "hostname": "bob.com"}
    )
    assert resp.status_code == 403

    resp = await client.get(f"{BASE}/pages/{alice['page_id']}", headers=bob["headers"])
    assert resp.status_code == 403


async def test_unknown_page(client: AsyncClient, alice):
    resp = await client.get(f"{BASE}/pages/{uuid.uuid4()}", headers=alice["headers"])
    assert resp.status_code == 404


async def test_custom_domain_for_page(client: AsyncClient, alice, fake_dns, recheck_task):
    resp = await client.post(
        f"{BASE}/custom",
        headers=alice["headers"],
        json={"page_id": alice["page_id"], "hostname": "links.alicemusic.com"},
    )
    assert resp.status_code == 200
    data = resp.json()
    domain = data["domain"]
    assert domain["verification_status"] == "pending"
    txt, routing = data["dns_records"]
    assert txt["host"] == "_hubisck-verify.links.alicemusic.com"
    assert txt["value"] == domain["verification_token"]
    assert (routing["type"], routing["value"]) == ("CNAME", "hubisck.com")
    recheck_task.apply_async.assert_called_once()

    assert (await client.get(LOOKUP, params={"hostname": "links.alicemusic.com"})).status_code == 404

    fake_dns.txt_records[txt["host"]] = [txt["value"]]
    fake_dns.cname_records["links.alicemusic.com"] = ["hubisck.com."]
    resp = await client.post(f"{BASE}/{domain['id']}/verify", headers=alice["headers"])
    assert resp.status_code == 200
    assert resp.json()["verified"] is True

    resp = await client.get(LOOKUP, params={"hostname": "links.alicemusic.com"})
    assert resp.status_code == 200
    assert resp.json()["page"]["title"] == "Alice Music"

    listed = (await client.get(f"{BASE}/pages/{alice['page_id']}", headers=alice["headers"])).json()
    assert [d["hostname"] for d in listed] == ["links.alicemusic.com"]


async def test_custom_domain_conflicts_with_account_domain(client: AsyncClient, alice, bob):
    resp = await client.post("/api/v1/account/domains/connect", headers=bob["headers"], json={"domain": "shared.com"})
    assert resp.status_code == 200
    resp = await client.post(
        f"{BASE}/custom", headers=alice["headers"], json={"page_id": alice["page_id"], "hostname": "Shared.com"}
    )
    assert resp.status_code == 409


async def test_custom_domain_rejects_platform_domain(client: AsyncClient, alice):
    resp = await client.post(
        f"{BASE}/custom", headers=alice["headers"], json={"page_id": alice["page_id"], "hostname": "x.hubisck.com"}
    )
    assert resp.status_code == 400


async def test_delete_page_domain(client: AsyncClient, alice, bob):
    created = (
        await client.post(
            f"{BASE}/subdomain", headers=alice["headers"], json={"page_id": alice["page_id"], "subdomain": "alice"}
        )
    ).json()

    assert (await client.delete(f"{BASE}/{created['id']}", headers=bob["headers"])).status_code == 403

    resp = await client.delete(f"{BASE}/{created['id']}", headers=alice["headers"])
    assert resp.status_code == 200
    assert (await client.get(LOOKUP, params={"hostname": "alice.hubisck.com"})).status_code == 404
    assert (await client.delete(f"{BASE}/{created['id']}", headers=alice["headers"])).status_code == 404

    # the label can now be claimed by someone else
    resp = await client.post(
        f"{BASE}/subdomain", headers=bob["headers"], json={"page_id": bob["page_id"], "subdomain": "alice"}
    )
    assert resp.status_code == 200


async def test_resubmitting_custom_domain_keeps_one_polling_chain(client: AsyncClient, alice, recheck_task):
    body = {"page_id": alice["page_id"], "hostname": "links.alicemusic.com"}
    responses = [await client.post(f"{BASE}/custom", headers=alice["headers"], json=body) for _ in range(3)]

    assert {r.status_code for r in responses} == {200}
    domains = [r.json()["domain"] for r in responses]
    assert len({d["id"] for d in domains}) == 1
    assert len({d["verification_token"] for d in domains}) == 1
    recheck_task.apply_async.assert_called_once()


@pytest.mark.parametrize(
    "hostname, reason",
    [
        ("hubisck.com", "hubisck.com"),
        ("admin.hubisck.com", "reserved"),
        ("mail02.hubisck.com", "reserved"),
        ("a.b.hubisck.com", "Subdomain must be"),
        ("not_a_domain", "Invalid domain format"),
    ],
)
async def test_check_reports_why_hostname_cannot_be_claimed(client: AsyncClient, alice, hostname, reason):
    resp = await client.get(f"{BASE}/check/{hostname}", headers=alice["headers"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["available"] is False
    assert reason in body["reason"]


async def test_check_normalizes_custom_domain(client: AsyncClient, alice):
    body = (await client.get(f"{BASE}/check/MySite.com", headers=alice["headers"])).json()
    assert body == {"hostname": "mysite.com", "available": True, "reason": None}
