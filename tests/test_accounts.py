"""
Tests for the account registry and account endpoints.
"""
from datetime import datetime, timedelta, timezone

import pytest

from crosspost.auth import SUPER_ADMIN, ADMIN, CONTENT_MANAGER, VIEWER
from crosspost.exceptions import Forbidden, NotFound, ValidationError
from crosspost.models.connection import Connection, ORG
from crosspost.publishing.accounts import AccountRegistry, resolve_permissions


class TestResolvePermissions:

    @pytest.mark.parametrize("role,org,personal", [
        (SUPER_ADMIN, True, True),
        (ADMIN, False, True),
        (CONTENT_MANAGER, False, True),
        (VIEWER, False, False),
        ("unknown", False, False),
    ])
    def test_permissions_by_role(self, role, org, personal):
        permissions = resolve_permissions(role)
        assert permissions.can_connect_org is org
        assert permissions.can_connect_personal is personal


class TestAccountRegistry:

    def test_list_accessible_org_first_then_newest(self, db, ctx, test_user, other_user, admin_user, make_connection):
        now = datetime.now(timezone.utc)
        old = make_connection(test_user, "x", connected_at=now - timedelta(days=3))
        new = make_connection(test_user, "linkedin", connected_at=now)
        org = make_connection(admin_user, "facebook", ownership=ORG, connected_at=now - timedelta(days=10))
        make_connection(other_user, "tiktok")
        make_connection(test_user, "threads", active=False)

        accounts = AccountRegistry(db).list_accessible(ctx)
        assert [a.id for a in accounts] == [org.id, new.id, old.id]

    def test_owner_disconnects_personal(self, db, ctx, test_user, make_connection):
        connection = make_connection(test_user, "x")
        AccountRegistry(db).disconnect(connection.id, ctx)

        db.refresh(connection)
        assert connection.active is False
        # soft delete only
        assert db.query(Connection).count() == 1

    def test_cannot_disconnect_someone_elses_personal(self, db, context_for, other_user, test_user, make_connection):
        connection = make_connection(test_user, "x")
        with pytest.raises(Forbidden):
            AccountRegistry(db).disconnect(connection.id, context_for(other_user))

    def test_only_super_admin_disconnects_org(self, db, ctx, context_for, admin_user, make_connection):
        connection = make_connection(admin_user, "facebook", ownership=ORG)
        registry = AccountRegistry(db)

        with pytest.raises(Forbidden):
            registry.disconnect(connection.id, ctx)
        registry.disconnect(connection.id, context_for(admin_user))
        db.refresh(connection)
        assert connection.active is False

    def test_disconnect_unknown(self, db, ctx):
        with pytest.raises(NotFound):
            AccountRegistry(db).disconnect(404, ctx)

    def test_connect_upserts(self, db, ctx):
        registry = AccountRegistry(db)
        first, created = registry.connect(ctx, "Medium", platform_username="jane")
        assert created is True
        assert first.platform == "medium"
        assert first.external_username == f"personal_{ctx.user_id}"

        second, created = registry.connect(ctx, "medium", platform_username="jane.doe")
        assert created is False
        assert second.id == first.id
        assert second.platform_username == "jane.doe"
        assert db.query(Connection).count() == 1

    def test_connect_stores_canonical_platform(self, db, ctx):
        connection, _ = AccountRegistry(db).connect(ctx, " Twitter ")
        assert connection.platform == "x"
        _, created = AccountRegistry(db).connect(ctx, "x")
        assert created is False

    def test_viewer_cannot_connect(self, db, context_for, viewer_user):
        with pytest.raises(Forbidden):
            AccountRegistry(db).connect(context_for(viewer_user), "medium")

    def test_org_connect_requires_super_admin(self, db, ctx, context_for, admin_user):
        with pytest.raises(Forbidden):
            AccountRegistry(db).connect(ctx, "medium", ownership=ORG)
        connection, _ = AccountRegistry(db).connect(context_for(admin_user), "medium", ownership=ORG)
        assert connection.ownership == ORG

    def test_invalid_ownership(self, db, ctx):
        with pytest.raises(ValidationError):
            AccountRegistry(db).connect(ctx, "medium", ownership="team")


class TestAccountEndpoints:

    def test_list_accounts_with_permissions(self, client, auth_headers, x_and_linkedin):
        response = client.get("/api/social/accounts", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["accounts"]) == 2
        assert data["role"] == CONTENT_MANAGER
        assert data["permissions"] == {"can_connect_org": False, "can_connect_personal": True}

    def test_list_accounts_unauthenticated(self, client):
        response = client.get("/api/social/accounts")
        assert response.status_code == 401

    def test_connect_created_then_updated(self, client, auth_headers):
        body = {"platform": "medium", "platform_username": "jane"}
        first = client.post("/api/social/accounts", headers=auth_headers, json=body)
        assert first.status_code == 201
        second = client.post("/api/social/accounts", headers=auth_headers, json=body)
        assert second.status_code == 200
        assert first.json()["data"]["id"] == second.json()["data"]["id"]

    def test_connect_org_forbidden(self, client, auth_headers):
        response = client.post(
            "/api/social/accounts",
            headers=auth_headers,
            json={"platform": "medium", "ownership": ORG},
        )
        assert response.status_code == 403

    def test_disconnect(self, client, auth_headers, x_and_linkedin):
        x, _ = x_and_linkedin
        response = client.post("/api/social/accounts/disconnect", headers=auth_headers, json={"connection_id": x.id})
        assert response.status_code == 200
        assert response.json()["data"]["active"] is False

        listed = client.get("/api/social/accounts", headers=auth_headers).json()["data"]["accounts"]
        assert [a["platform"] for a in listed] == ["linkedin"]

    def test_disconnect_requires_id(self, client, auth_headers):
        response = client.post("/api/social/accounts/disconnect", headers=auth_headers, json={})
        assert response.status_code == 400

    def test_disconnect_missing(self, client, auth_headers):
        response = client.post("/api/social/accounts/disconnect", headers=auth_headers, json={"connection_id": 99})
        assert response.status_code == 404

    def test_disconnect_not_owner(self, client, headers_for, other_user, x_and_linkedin):
        x, _ = x_and_linkedin
        response = client.post(
            "/api/social/accounts/disconnect",
            headers=headers_for(other_user),
            json={"connection_id": x.id},
        )
        assert response.status_code == 403
