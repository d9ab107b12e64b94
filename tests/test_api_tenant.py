"""Tenant-scoped routes: resolution, membership gates, settings and invites over HTTP."""

import pytest

from tenantgate.models import TenantRole

from conftest import API, bearer, login


@pytest.fixture
def acme(make_tenant):
    return make_tenant("acme")


@pytest.fixture
def admin(make_user, make_membership, acme):
    user = make_user("admin@example.com")
    make_membership(acme, user, role=TenantRole.TENANT_ADMIN)
    return user


@pytest.fixture
def admin_headers(client, admin):
    access, _ = login(client, "admin@example.com")
    return bearer(access)


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")


@pytest.fixture
def bob_headers(client, bob):
    access, _ = login(client, "bob@example.com")
    return bearer(access)


# ============================================================================
# RESOLUTION
# ============================================================================

def test_unknown_and_archived_tenants_are_indistinguishable(client, admin_headers, make_tenant):
    archived = make_tenant("dormant", is_archived=True)

    by_slug = [
        client.get(f"{API}/t/no-such-tenant/me", headers=admin_headers),
        client.get(f"{API}/t/dormant/me", headers=admin_headers),
    ]
    by_id = [
        client.get(f"{API}/tenants/00000000-0000-0000-0000-000000000000/me", headers=admin_headers),
        client.get(f"{API}/tenants/{archived.id}/me", headers=admin_headers),
    ]

    for response in by_slug + by_id:
        assert response.status_code == 404
    assert len({r.content for r in by_slug + by_id}) == 1
    assert by_slug[0].json() == {"detail": "Tenant not found", "type": "tenant_not_found"}


def test_authentication_runs_before_resolution(client, acme):
    missing = client.get(f"{API}/t/no-such-tenant/me")
    existing = client.get(f"{API}/t/acme/me")

    assert missing.status_code == existing.status_code == 401
    assert missing.content == existing.content


def test_non_member_is_forbidden(client, acme, bob_headers):
    response = client.get(f"{API}/t/acme/me", headers=bob_headers)
    assert response.status_code == 403
    assert response.json()["type"] == "forbidden"


def test_tenant_context_on_both_route_families(client, acme, admin_headers):
    by_slug = client.get(f"{API}/t/ACME/me", headers=admin_headers)
    by_id = client.get(f"{API}/tenants/{acme.id}/me", headers=admin_headers)

    expected = {"tenant_id": acme.id, "tenant_slug": "acme", "role": "tenantAdmin"}
    assert by_slug.json() == expected
    assert by_id.json() == expected


def test_membership_in_one_tenant_does_not_open_another(client, admin_headers, make_tenant):
    make_tenant("globex")
    assert client.get(f"{API}/t/globex/members", headers=admin_headers).status_code == 403


# ============================================================================
# MEMBERS
# ============================================================================

def test_list_members_includes_profiles(client, acme, admin, admin_headers):
    response = client.get(f"{API}/t/acme/members", headers=admin_headers)

    assert response.status_code == 200
    (item,) = response.json()["items"]
    assert item["user_id"] == admin.id
    assert item["user"]["email"] == "admin@example.com"


def test_members_route_needs_tenant_admin(client, acme, bob, make_membership, bob_headers):
    make_membership(acme, bob)
    assert client.get(f"{API}/t/acme/members", headers=bob_headers).status_code == 403


def test_role_changes_apply_to_the_next_request(client, acme, bob, make_membership, admin_headers, bob_headers):
    make_membership(acme, bob)

    promote = client.patch(f"{API}/t/acme/members/{bob.id}", json={"role": "tenantAdmin"}, headers=admin_headers)
    assert promote.status_code == 200
    assert promote.json()["role"] == "tenantAdmin"
    assert client.get(f"{API}/t/acme/members", headers=bob_headers).status_code == 200

    demote = client.patch(f"{API}/t/acme/members/{bob.id}", json={"role": "member"}, headers=admin_headers)
    assert demote.status_code == 200
    # Same access token, fresh role check
    assert client.get(f"{API}/t/acme/members", headers=bob_headers).status_code == 403


def test_removed_member_loses_access(client, acme, bob, make_membership, admin_headers, bob_headers):
    make_membership(acme, bob)

    assert client.delete(f"{API}/t/acme/members/{bob.id}", headers=admin_headers).status_code == 200
    assert client.get(f"{API}/t/acme/me", headers=bob_headers).status_code == 403

    listed = client.get(f"{API}/t/acme/members?include_removed=true", headers=admin_headers).json()["items"]
    assert {m["status"] for m in listed} == {"active", "removed"}


def test_last_admin_cannot_be_demoted_or_removed(client, acme, admin, admin_headers):
    demote = client.patch(f"{API}/t/acme/members/{admin.id}", json={"role": "member"}, headers=admin_headers)
    remove = client.delete(f"{API}/t/acme/members/{admin.id}", headers=admin_headers)

    for response in (demote, remove):
        assert response.status_code == 409
        assert response.json()["type"] == "last_tenant_admin"
    assert client.get(f"{API}/t/acme/me", headers=admin_headers).json()["role"] == "tenantAdmin"


def test_change_role_of_unknown_member(client, acme, bob, admin_headers):
    response = client.patch(f"{API}/t/acme/members/{bob.id}", json={"role": "member"}, headers=admin_headers)
    assert response.status_code == 404


def test_invalid_role_is_rejected(client, acme, admin, admin_headers):
    response = client.patch(f"{API}/t/acme/members/{admin.id}", json={"role": "owner"}, headers=admin_headers)
    assert response.status_code == 422


# ============================================================================
# SETTINGS
# ============================================================================

def test_settings_readable_by_members_on_both_route_families(client, acme, bob, make_membership, bob_headers):
    make_membership(acme, bob)

    by_slug = client.get(f"{API}/t/acme/settings", headers=bob_headers)
    by_id = client.get(f"{API}/tenants/{acme.id}/settings", headers=bob_headers)

    assert by_slug.status_code == 200
    assert by_slug.json() == by_id.json()
    assert by_slug.json() == {
        "id": acme.id,
        "name": "Acme",
        "slug": "acme",
        "logo_url": None,
        "is_archived": False,
    }


def test_settings_need_membership(client, acme, bob_headers):
    assert client.get(f"{API}/t/acme/settings", headers=bob_headers).status_code == 403
    assert client.get(f"{API}/t/acme/settings").status_code == 401


def test_tenant_admin_updates_settings(client, acme, admin_headers, audit_sink):
    response = client.patch(
        f"{API}/t/acme/settings",
        json={"name": "Acme Corp", "logo_url": "https://cdn.example.com/acme.png"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Acme Corp"
    assert response.json()["logo_url"] == "https://cdn.example.com/acme.png"
    assert response.json()["slug"] == "acme"
    assert client.get(f"{API}/tenants/{acme.id}/settings", headers=admin_headers).json()["name"] == "Acme Corp"
    assert "tenant.settings_updated" in audit_sink.actions()


def test_settings_update_needs_tenant_admin(client, acme, bob, make_membership, bob_headers):
    make_membership(acme, bob)
    response = client.patch(f"{API}/t/acme/settings", json={"name": "Mine now"}, headers=bob_headers)
    assert response.status_code == 403


def test_settings_update_rejects_bad_logo_url(client, acme, admin_headers):
    response = client.patch(f"{API}/t/acme/settings", json={"logo_url": "javascript:alert(1)"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["type"] == "invalid_request"


def test_archiving_through_settings_closes_the_tenant(client, acme, admin_headers):
    response = client.patch(f"{API}/t/acme/settings", json={"is_archived": True}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["is_archived"] is True
    assert client.get(f"{API}/t/acme/settings", headers=admin_headers).status_code == 404


# ============================================================================
# INVITES
# ============================================================================

def test_invite_flow(client, acme, bob, admin_headers, bob_headers):
    created = client.post(f"{API}/t/acme/invites", json={"email": "Bob@Example.com"}, headers=admin_headers)
    assert created.status_code == 201
    body = created.json()
    token = body["token"]
    assert body["invite"]["email"] == "bob@example.com"
    assert body["invite"]["status"] == "pending"
    assert body["invite"]["role"] == "member"

    duplicate = client.post(f"{API}/t/acme/invites", json={"email": "bob@example.com"}, headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["type"] == "duplicate_invite"

    accepted = client.post(f"{API}/t/acme/invites/accept", json={"token": token}, headers=bob_headers)
    assert accepted.status_code == 200
    assert accepted.json()["created"] is True
    assert accepted.json()["membership"]["role"] == "member"
    assert client.get(f"{API}/t/acme/me", headers=bob_headers).json()["role"] == "member"

    again = client.post(f"{API}/t/acme/invites/accept", json={"token": token}, headers=bob_headers)
    assert again.status_code == 400
    assert again.json()["type"] == "invalid_invite"


def test_invite_list_never_contains_tokens(client, acme, admin_headers):
    token = client.post(
        f"{API}/t/acme/invites", json={"email": "bob@example.com"}, headers=admin_headers
    ).json()["token"]

    response = client.get(f"{API}/t/acme/invites?status=pending", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert token not in response.text
    assert "token" not in response.json()["items"][0]


def test_invite_accept_on_id_route(client, acme, bob, admin_headers, bob_headers):
    token = client.post(
        f"{API}/tenants/{acme.id}/invites",
        json={"email": "bob@example.com", "role": "tenantAdmin"},
        headers=admin_headers,
    ).json()["token"]

    accepted = client.post(f"{API}/tenants/{acme.id}/invites/accept", json={"token": token}, headers=bob_headers)

    assert accepted.status_code == 200
    assert accepted.json()["membership"]["role"] == "tenantAdmin"


def test_invite_for_someone_else_is_invalid(client, acme, admin_headers, bob_headers):
    token = client.post(
        f"{API}/t/acme/invites", json={"email": "carol@example.com"}, headers=admin_headers
    ).json()["token"]

    response = client.post(f"{API}/t/acme/invites/accept", json={"token": token}, headers=bob_headers)
    assert response.status_code == 400


def test_invites_need_tenant_admin(client, acme, bob, make_membership, bob_headers):
    make_membership(acme, bob)
    response = client.post(f"{API}/t/acme/invites", json={"email": "x@example.com"}, headers=bob_headers)
    assert response.status_code == 403


def test_revoke_invite(client, acme, admin_headers):
    invite_id = client.post(
        f"{API}/t/acme/invites", json={"email": "bob@example.com"}, headers=admin_headers
    ).json()["invite"]["id"]

    assert client.delete(f"{API}/t/acme/invites/{invite_id}", headers=admin_headers).status_code == 200

    for target in (invite_id, "does-not-exist"):
        response = client.delete(f"{API}/t/acme/invites/{target}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {"detail": "Invite not found", "type": "invite_not_found"}


def test_accept_in_archived_tenant_is_not_found(client, make_tenant, bob_headers):
    make_tenant("dormant", is_archived=True)
    response = client.post(f"{API}/t/dormant/invites/accept", json={"token": "x"}, headers=bob_headers)
    assert response.status_code == 404
