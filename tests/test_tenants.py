"""Platform tenant administration and the purge dependency check."""

import pytest

from tenantgate.core.exceptions import ConfigurationError, Conflict, InvalidRequest, NotFound, TenantNotFound
from tenantgate.models import Project, Tenant, TenantRole
from tenantgate.models.tenant import slugify
from tenantgate.services.tenant_resolver import TenantResolver
from tenantgate.services.tenants import DependencyCounter, SqlDependencyCounter, TenantAdministration


class FixedCounter(DependencyCounter):
    def __init__(self, projects=0, memberships=0):
        self.projects = projects
        self.memberships = memberships

    def count_projects(self, tenant_id):
        return self.projects

    def count_memberships(self, tenant_id):
        return self.memberships


@pytest.fixture
def platform_admin(make_user):
    return make_user("root@example.com")


@pytest.fixture
def tenants(db, memberships, audit):
    return TenantAdministration(db, memberships, audit, counter=SqlDependencyCounter(db))


@pytest.mark.parametrize("raw,expected", [
    ("Acme Corp", "acme-corp"),
    ("  --Hello,  World!--  ", "hello-world"),
    ("ÜBER 2024", "ber-2024"),
    ("!!!", ""),
])
def test_slugify(raw, expected):
    assert slugify(raw) == expected


def test_create_slugifies_name(tenants, platform_admin, audit_sink):
    tenant = tenants.create("Acme Corp", actor_user_id=platform_admin.id)
    assert tenant.slug == "acme-corp"
    assert tenant.is_live
    assert "tenant.created" in audit_sink.actions()


def test_create_rejects_taken_slug_even_when_archived(tenants, platform_admin, make_tenant):
    make_tenant("acme", is_archived=True)
    with pytest.raises(Conflict):
        tenants.create("Another Acme", actor_user_id=platform_admin.id, slug="ACME")


def test_create_rejects_empty_slug(tenants, platform_admin):
    with pytest.raises(Conflict):
        tenants.create("!!!", actor_user_id=platform_admin.id)


def test_list_filters(tenants, make_tenant, platform_admin):
    make_tenant("acme", name="Acme Corp")
    make_tenant("globex", name="Globex")
    make_tenant("initech", name="Initech", is_archived=True)

    assert {t.slug for t in tenants.list()} == {"acme", "globex"}
    assert {t.slug for t in tenants.list(include_archived=True)} == {"acme", "globex", "initech"}
    assert [t.slug for t in tenants.list(q="ACME")] == ["acme"]


def test_include_deleted_returns_soft_deleted_tenants(tenants, make_tenant, platform_admin):
    make_tenant("acme")
    make_tenant("initech", is_archived=True)
    gone = make_tenant("globex")
    tenants.soft_delete(gone.id, actor_user_id=platform_admin.id)

    assert {t.slug for t in tenants.list()} == {"acme"}
    # Soft delete archives too, yet include_deleted alone still surfaces the row
    assert {t.slug for t in tenants.list(include_deleted=True)} == {"acme", "globex"}
    assert {t.slug for t in tenants.list(include_archived=True)} == {"acme", "initech"}
    assert {t.slug for t in tenants.list(include_archived=True, include_deleted=True)} == {"acme", "initech", "globex"}


def test_archive_hides_tenant_from_resolver_and_unarchive_restores(tenants, make_tenant, platform_admin, db, audit_sink):
    tenant = make_tenant("acme")
    resolver = TenantResolver(db)

    archived = tenants.set_archived(tenant.id, True, actor_user_id=platform_admin.id)
    assert archived.archived_at is not None
    assert archived.archived_by_user_id == platform_admin.id
    with pytest.raises(TenantNotFound):
        resolver.resolve_slug("acme")

    tenants.set_archived(tenant.id, False, actor_user_id=platform_admin.id)
    assert resolver.resolve_slug("acme").id == tenant.id
    assert audit_sink.actions().count("tenant.archived") == 1
    assert "tenant.unarchived" in audit_sink.actions()


def test_soft_delete_archives_and_hides(tenants, make_tenant, platform_admin, db):
    tenant = make_tenant("acme")

    deleted = tenants.soft_delete(tenant.id, actor_user_id=platform_admin.id)

    assert deleted.deleted_at is not None
    assert deleted.is_archived
    with pytest.raises(TenantNotFound):
        TenantResolver(db).resolve_id(tenant.id)
    # A deleted tenant cannot be deleted or archived again
    with pytest.raises(TenantNotFound):
        tenants.soft_delete(tenant.id, actor_user_id=platform_admin.id)


def test_purge_refused_while_memberships_exist(tenants, make_tenant, make_membership, platform_admin, db):
    tenant = make_tenant("acme")
    make_membership(tenant, platform_admin, role=TenantRole.TENANT_ADMIN)

    with pytest.raises(Conflict):
        tenants.purge(tenant.id, actor_user_id=platform_admin.id)
    assert db.get(Tenant, tenant.id) is not None


def test_purge_refused_while_projects_exist(tenants, make_tenant, platform_admin, db):
    tenant = make_tenant("acme")
    db.add(Project(tenant_id=tenant.id, name="Roadmap", is_deleted=True))
    db.commit()

    with pytest.raises(Conflict) as exc_info:
        tenants.purge(tenant.id, actor_user_id=platform_admin.id)
    assert "projects" in exc_info.value.detail


def test_purge_removes_tenant_without_dependents(tenants, make_tenant, platform_admin, db, audit_sink):
    tenant = make_tenant("acme")
    tenants.soft_delete(tenant.id, actor_user_id=platform_admin.id)

    tenants.purge(tenant.id, actor_user_id=platform_admin.id)

    assert db.query(Tenant).filter(Tenant.id == tenant.id).count() == 0
    assert "tenant.purged" in audit_sink.actions()


def test_purge_uses_the_configured_counter(db, memberships, audit, make_tenant, platform_admin):
    tenant = make_tenant("acme")
    service = TenantAdministration(db, memberships, audit, counter=FixedCounter(projects=1))

    with pytest.raises(Conflict):
        service.purge(tenant.id, actor_user_id=platform_admin.id)


def test_purge_without_counter_is_a_configuration_error(db, memberships, audit, make_tenant, platform_admin):
    tenant = make_tenant("acme")
    service = TenantAdministration(db, memberships, audit)

    with pytest.raises(ConfigurationError):
        service.purge(tenant.id, actor_user_id=platform_admin.id)


def test_purge_unknown_tenant(tenants, platform_admin):
    with pytest.raises(TenantNotFound):
        tenants.purge("missing", actor_user_id=platform_admin.id)


def test_assign_tenant_admin_by_email(tenants, memberships, make_tenant, make_user, platform_admin):
    tenant = make_tenant("acme")
    alice = make_user("alice@example.com")

    membership = tenants.assign_tenant_admin(tenant.id, "ALICE@example.com", actor_user_id=platform_admin.id)

    assert membership.user_id == alice.id
    assert membership.role == TenantRole.TENANT_ADMIN
    assert memberships.count_active_admins(tenant.id) == 1


def test_assign_tenant_admin_unknown_user(tenants, make_tenant, platform_admin):
    tenant = make_tenant("acme")
    with pytest.raises(NotFound):
        tenants.assign_tenant_admin(tenant.id, "nobody@example.com", actor_user_id=platform_admin.id)


# ============================================================================
# TENANT SETTINGS
# ============================================================================

def test_update_settings_changes_name_and_logo(tenants, make_tenant, platform_admin, db, audit_sink):
    tenant = make_tenant("acme", name="Acme")

    updated = tenants.update_settings(
        tenant.id,
        actor_user_id=platform_admin.id,
        name="  Acme Corp ",
        logo_url="https://cdn.example.com/acme.png",
    )

    assert updated.name == "Acme Corp"
    assert updated.logo_url == "https://cdn.example.com/acme.png"
    assert updated.slug == "acme"
    assert db.query(Tenant).filter(Tenant.id == tenant.id).populate_existing().one().name == "Acme Corp"
    (event,) = [e for e in audit_sink.events if e.action == "tenant.settings_updated"]
    assert event.tenant_id == tenant.id
    assert event.meta["fields"] == ["name", "logo_url"]


def test_update_settings_empty_logo_clears_it(tenants, make_tenant, platform_admin):
    tenant = make_tenant("acme")
    tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, logo_url="https://cdn.example.com/a.png")

    cleared = tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, logo_url="")

    assert cleared.logo_url is None


def test_update_settings_without_changes_emits_nothing(tenants, make_tenant, platform_admin, audit_sink):
    tenant = make_tenant("acme", name="Acme")

    tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, name="Acme")

    assert "tenant.settings_updated" not in audit_sink.actions()


@pytest.mark.parametrize("changes", [
    {"name": "   "},
    {"logo_url": "javascript:alert(1)"},
    {"name": "Renamed", "logo_url": "ftp://example.com/logo.png"},
])
def test_update_settings_rejects_bad_values(tenants, make_tenant, platform_admin, db, changes):
    tenant = make_tenant("acme", name="Acme")

    with pytest.raises(InvalidRequest):
        tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, **changes)

    stored = db.query(Tenant).filter(Tenant.id == tenant.id).populate_existing().one()
    assert stored.name == "Acme"
    assert stored.logo_url is None


def test_update_settings_can_archive(tenants, make_tenant, platform_admin, db, audit_sink):
    tenant = make_tenant("acme")

    archived = tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, is_archived=True)

    assert archived.is_archived
    assert archived.archived_by_user_id == platform_admin.id
    assert "tenant.archived" in audit_sink.actions()
    with pytest.raises(TenantNotFound):
        TenantResolver(db).resolve_slug("acme")


def test_settings_of_deleted_tenant_are_not_found(tenants, make_tenant, platform_admin):
    tenant = make_tenant("acme")
    tenants.soft_delete(tenant.id, actor_user_id=platform_admin.id)

    with pytest.raises(TenantNotFound):
        tenants.get_settings(tenant.id)
    with pytest.raises(TenantNotFound):
        tenants.update_settings(tenant.id, actor_user_id=platform_admin.id, name="Back")
