"""
Tests for the sync engine, sync endpoints and the connect flow.
"""
from unittest.mock import MagicMock

import pytest

from crosspost.exceptions import ConfigurationError, Forbidden, UpstreamError, ValidationError
from crosspost.models.connection import Connection, ORG, PERSONAL, PENDING_PLATFORM
from crosspost.publishing.sync import SyncEngine
from crosspost.publishing.upload_post import UploadPostClient


@pytest.fixture
def fake_client():
    return MagicMock(spec=UploadPostClient)


def profile(**social_accounts):
    return {"success": True, "profile": {"social_accounts": social_accounts}}


class TestSyncUsernames:

    def test_regular_user_syncs_personal_only(self, db, ctx, fake_client):
        assert SyncEngine(db, fake_client).usernames(ctx) == [(PERSONAL, f"personal_{ctx.user_id}")]

    def test_super_admin_syncs_both(self, db, context_for, admin_user, fake_client):
        pairs = SyncEngine(db, fake_client).usernames(context_for(admin_user))
        assert pairs == [(PERSONAL, f"personal_{admin_user.id}"), (ORG, f"org_{admin_user.id}")]

    def test_filter_narrows_to_one(self, db, context_for, admin_user, fake_client):
        pairs = SyncEngine(db, fake_client).usernames(context_for(admin_user), ORG)
        assert pairs == [(ORG, f"org_{admin_user.id}")]

    def test_org_filter_requires_super_admin(self, db, ctx, fake_client):
        with pytest.raises(Forbidden):
            SyncEngine(db, fake_client).usernames(ctx, ORG)

    def test_unknown_ownership(self, db, ctx, fake_client):
        with pytest.raises(ValidationError):
            SyncEngine(db, fake_client).usernames(ctx, "team")


class TestSync:

    def test_missing_profiles_are_notices_not_errors(self, db, context_for, admin_user, fake_client):
        fake_client.get_user.return_value = None

        report = SyncEngine(db, fake_client).sync(context_for(admin_user))

        assert report.synced == []
        assert report.errors == []
        assert len(report.notices) == 2
        assert db.query(Connection).count() == 0

    def test_creates_then_updates_connections(self, db, ctx, fake_client):
        fake_client.get_user.return_value = profile(
            twitter={"username": "123456", "display_name": "Jane on X"},
            linkedin={"username": "urn-1", "name": "Jane Doe"},
            instagram=None,
        )
        engine = SyncEngine(db, fake_client)

        first = engine.sync(ctx)
        assert sorted((s.platform, s.action) for s in first.synced) == [("linkedin", "created"), ("x", "created")]

        second = engine.sync(ctx)
        assert sorted((s.platform, s.action) for s in second.synced) == [("linkedin", "updated"), ("x", "updated")]
        assert db.query(Connection).count() == 2

        x = db.query(Connection).filter(Connection.platform == "x").one()
        assert x.platform_username == "Jane on X"
        assert x.platform_user_id == "123456"
        assert x.external_username == f"personal_{ctx.user_id}"
        assert x.ownership == PERSONAL
        assert x.active is True

    def test_sync_reactivates_disconnected_connection(self, db, ctx, test_user, make_connection, fake_client):
        connection = make_connection(test_user, "linkedin", active=False, last_error_message="expired")
        fake_client.get_user.return_value = profile(linkedin={"display_name": "Jane"})

        SyncEngine(db, fake_client).sync(ctx)

        db.refresh(connection)
        assert connection.active is True
        assert connection.last_error_message is None

    def test_removes_pending_placeholder_after_fetch(self, db, ctx, test_user, make_connection, fake_client):
        make_connection(test_user, PENDING_PLATFORM, active=False)
        fake_client.get_user.return_value = profile(tiktok={"display_name": "Jane"})

        SyncEngine(db, fake_client).sync(ctx)

        platforms = [c.platform for c in db.query(Connection).all()]
        assert platforms == ["tiktok"]

    def test_pending_placeholder_kept_when_profile_missing(self, db, ctx, test_user, make_connection, fake_client):
        make_connection(test_user, PENDING_PLATFORM, active=False)
        fake_client.get_user.return_value = None

        SyncEngine(db, fake_client).sync(ctx)

        assert db.query(Connection).filter(Connection.platform == PENDING_PLATFORM).count() == 1

    def test_upstream_failure_is_reported_and_sync_continues(self, db, context_for, admin_user, fake_client):
        fake_client.get_user.side_effect = [
            UpstreamError("Upload-Post API error: 500"),
            profile(facebook={"display_name": "The Org"}),
        ]

        report = SyncEngine(db, fake_client).sync(context_for(admin_user))

        assert len(report.errors) == 1
        assert "500" in report.errors[0]
        assert [(s.platform, s.ownership) for s in report.synced] == [("facebook", ORG)]

    def test_requires_credentials(self, db, ctx):
        with pytest.raises(ConfigurationError):
            SyncEngine(db, None).sync(ctx)


class TestSyncStatus:

    def test_reports_each_ownership(self, db, ctx, fake_client):
        fake_client.get_user.side_effect = [
            profile(linkedin={"display_name": "Jane"}),
            None,
        ]
        status = SyncEngine(db, fake_client).status(ctx)

        assert status[PERSONAL]["exists"] is True
        assert status[PERSONAL]["platforms"][0]["platform"] == "linkedin"
        assert status[ORG] == {"exists": False, "platforms": []}
        assert db.query(Connection).count() == 0


class TestConnectStart:

    def test_start_connect_records_pending(self, db, ctx, fake_client):
        fake_client.generate_connect_url.return_value = "https://connect.upload-post.test/abc"

        result = SyncEngine(db, fake_client).start_connect(ctx, PERSONAL, ["x"], "https://app.example/")

        assert result["connect_url"] == "https://connect.upload-post.test/abc"
        assert result["external_username"] == f"personal_{ctx.user_id}"
        fake_client.create_user.assert_called_once_with(f"personal_{ctx.user_id}")
        kwargs = fake_client.generate_connect_url.call_args[1]
        assert kwargs["redirect_url"] == "https://app.example/social/connections?connected=true&ownership=personal"
        assert kwargs["platforms"] == ["x"]

        pending = db.query(Connection).filter(Connection.platform == PENDING_PLATFORM).one()
        assert pending.active is False
        assert pending.profile_data["requested_platforms"] == ["x"]

    def test_create_user_failure_does_not_stop_flow(self, db, ctx, fake_client):
        fake_client.create_user.side_effect = UpstreamError("already there")
        fake_client.generate_connect_url.return_value = "https://connect.upload-post.test/abc"

        result = SyncEngine(db, fake_client).start_connect(ctx)
        assert result["connect_url"]

    def test_viewer_cannot_start(self, db, context_for, viewer_user, fake_client):
        with pytest.raises(Forbidden):
            SyncEngine(db, fake_client).start_connect(context_for(viewer_user))
        fake_client.generate_connect_url.assert_not_called()

    def test_org_requires_super_admin(self, db, ctx, fake_client):
        with pytest.raises(Forbidden):
            SyncEngine(db, fake_client).start_connect(ctx, ORG)


class TestSyncEndpoints:

    def test_sync_endpoint(self, client, auth_headers, upload_client):
        upload_client.get_user.return_value = profile(twitter="janedoe")

        response = client.post("/api/social/sync-accounts", headers=auth_headers, json={})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["synced"][0]["platform"] == "x"
        assert data["errors"] == []

    def test_sync_endpoint_without_body(self, client, auth_headers, upload_client):
        upload_client.get_user.return_value = None
        response = client.post("/api/social/sync-accounts", headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()["data"]["notices"]) == 1

    def test_sync_org_forbidden(self, client, auth_headers, upload_client):
        response = client.post("/api/social/sync-accounts", headers=auth_headers, json={"ownership": "org"})
        assert response.status_code == 403

    def test_sync_invalid_ownership(self, client, auth_headers, upload_client):
        response = client.post("/api/social/sync-accounts", headers=auth_headers, json={"ownership": "team"})
        assert response.status_code == 400

    def test_sync_without_api_key(self, client, auth_headers, unconfigured_upload_client):
        response = client.post("/api/social/sync-accounts", headers=auth_headers, json={})
        assert response.status_code == 500

    def test_sync_status_endpoint(self, client, auth_headers, upload_client):
        upload_client.get_user.return_value = None
        response = client.get("/api/social/sync-accounts", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["personal"]["exists"] is False

    def test_connect_start_endpoint(self, client, auth_headers, upload_client):
        upload_client.generate_connect_url.return_value = "https://connect.upload-post.test/xyz"
        response = client.post("/api/social/connect-start", headers=auth_headers, json={"ownership": "personal"})
        assert response.status_code == 200
        assert response.json()["data"]["connect_url"] == "https://connect.upload-post.test/xyz"

    def test_connect_start_upstream_failure(self, client, auth_headers, upload_client):
        upload_client.generate_connect_url.side_effect = UpstreamError("Upload-Post did not return a connect URL")
        response = client.post("/api/social/connect-start", headers=auth_headers, json={})
        assert response.status_code == 502
