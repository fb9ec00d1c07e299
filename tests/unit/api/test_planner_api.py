"""End-to-end API tests against the in-memory backends in bypass auth mode."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from api.auth import DEBUG_USER_HEADER, extract_bearer_token
from api.dependencies import get_backends
from api.settings import Settings, get_settings
from camp_planner.identity import AuthSession, IdentityRef, InMemoryIdentityProvider, OAuth2Credentials
from camp_planner.store import Subscription

OWNER = {DEBUG_USER_HEADER: "owner-1"}
FRIEND = {DEBUG_USER_HEADER: "friend-1"}
STRANGER = {DEBUG_USER_HEADER: "stranger-1"}


def onboard(client, headers, kids):
    response = client.post("/api/account/onboard", json={"kids": kids}, headers=headers)
    assert response.status_code == 201
    return response.json()


def create_schedule(client, headers, kid):
    response = client.post("/api/schedules", json={"kidName": kid}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "camp-planner-api"}

    def test_auth_config(self, api_client):
        assert api_client.get("/api/config").json() == {"auth_mode": "bypass"}


class TestAccounts:
    def test_new_user_needs_onboarding(self, api_client):
        response = api_client.get("/api/account", headers=OWNER)
        assert response.status_code == 404
        assert response.json()["detail"] == "needs_onboarding"

    def test_onboard_normalizes_roster(self, api_client):
        account = onboard(api_client, OWNER, [" cy", "Ava", "", "Ava"])

        assert account["id"] == "owner-1"
        assert account["kids"] == ["Ava", "cy"]
        assert account["schedules"] == []

    def test_onboarding_twice_conflicts(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        response = api_client.post("/api/account/onboard", json={"kids": []}, headers=OWNER)
        assert response.status_code == 409

    def test_add_and_remove_kid(self, api_client):
        onboard(api_client, OWNER, ["Ava"])

        added = api_client.post("/api/account/kids", json={"name": "Bo"}, headers=OWNER).json()
        removed = api_client.delete("/api/account/kids/Ava", headers=OWNER).json()

        assert added["kids"] == ["Ava", "Bo"]
        assert removed["kids"] == ["Bo"]

    def test_dev_user_is_default_identity(self, api_client):
        account = onboard(api_client, {}, ["Ava"])
        assert account["id"] == "dev-user"


class TestSchedules:
    def test_create_and_dashboard(self, api_client):
        onboard(api_client, OWNER, ["Bo", "Ava"])

        doc = create_schedule(api_client, OWNER, "Ava")
        dashboard = api_client.get("/api/schedules", headers=OWNER).json()

        assert doc["kidName"] == "Ava"
        assert doc["allKids"] == ["Ava"]
        assert doc["startDate"] == "2025-06-23"
        assert doc["weekCount"] == 8
        assert dashboard["schedules"] == [{"id": doc["id"], "kidName": "Ava", "ownerId": "owner-1"}]
        assert dashboard["unscheduledKids"] == ["Bo"]

    def test_create_for_unknown_kid(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        response = api_client.post("/api/schedules", json={"kidName": "Zed"}, headers=OWNER)
        assert response.status_code == 422
        assert response.json()["error"] == "KidNotInRosterError"

    def test_duplicate_schedule(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        create_schedule(api_client, OWNER, "Ava")
        response = api_client.post("/api/schedules", json={"kidName": "Ava"}, headers=OWNER)
        assert response.status_code == 409

    def test_dashboard_before_onboarding(self, api_client):
        response = api_client.get("/api/schedules", headers=OWNER)
        assert response.status_code == 404
        assert response.json()["detail"] == "needs_onboarding"

    def test_missing_and_forbidden(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        doc = create_schedule(api_client, OWNER, "Ava")

        assert api_client.get("/api/schedules/NOPE00", headers=OWNER).status_code == 404
        assert api_client.get("/api/schedules/nope00", headers=OWNER).status_code == 404
        assert api_client.get(f"/api/schedules/{doc['id']}", headers=STRANGER).status_code == 403

    def test_delete(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        doc = create_schedule(api_client, OWNER, "Ava")

        assert api_client.delete(f"/api/schedules/{doc['id']}", headers=OWNER).status_code == 204
        assert api_client.get(f"/api/schedules/{doc['id']}", headers=OWNER).status_code == 404
        assert api_client.get("/api/account", headers=OWNER).json()["schedules"] == []


class TestEditing:
    @pytest.fixture
    def schedule(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        doc = create_schedule(api_client, OWNER, "Ava")
        response = api_client.put(
            f"/api/schedules/{doc['id']}/camps", json={"items": ["Soccer", "Art"]}, headers=OWNER
        )
        assert response.status_code == 200
        return response.json()

    def test_camps_are_sorted(self, schedule):
        assert schedule["camps"] == ["Art", "Soccer"]

    def test_cell_edit_with_current_version(self, api_client, schedule):
        response = api_client.put(
            f"/api/schedules/{schedule['id']}/cells/1/0",
            json={"kids": ["Ava"], "expectedVersion": schedule["version"]},
            headers=OWNER,
        )

        assert response.status_code == 200
        assert response.json()["schedule"] == {"1-0": ["Ava"]}
        assert response.json()["version"] == schedule["version"] + 1

    def test_stale_version_conflicts(self, api_client, schedule):
        url = f"/api/schedules/{schedule['id']}/cells"
        api_client.put(f"{url}/0/0", json={"kids": ["Ava"], "expectedVersion": schedule["version"]}, headers=OWNER)

        response = api_client.put(
            f"{url}/1/0", json={"kids": ["Ava"], "expectedVersion": schedule["version"]}, headers=OWNER
        )

        assert response.status_code == 409
        assert response.json()["current_version"] == schedule["version"] + 1
        current = api_client.get(f"/api/schedules/{schedule['id']}", headers=OWNER).json()
        assert current["schedule"] == {"0-0": ["Ava"]}

    def test_cell_outside_grid(self, api_client, schedule):
        response = api_client.put(f"/api/schedules/{schedule['id']}/cells/2/0", json={"kids": []}, headers=OWNER)
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidCellError"

    def test_unknown_attendee(self, api_client, schedule):
        response = api_client.put(
            f"/api/schedules/{schedule['id']}/cells/0/0", json={"kids": ["Zed"]}, headers=OWNER
        )
        assert response.status_code == 422
        assert response.json()["error"] == "UnknownKidError"

    def test_toggle_checks_and_unchecks_a_kid(self, api_client, schedule):
        url = f"/api/schedules/{schedule['id']}/cells/0/1/toggle"

        checked = api_client.post(url, json={"kid": "Ava"}, headers=OWNER)
        unchecked = api_client.post(url, json={"kid": "Ava"}, headers=OWNER)

        assert checked.status_code == 200
        assert checked.json()["schedule"] == {"0-1": ["Ava"]}
        assert unchecked.json()["schedule"] == {"0-1": []}

    def test_kids_update_prunes_cells(self, api_client, schedule):
        url = f"/api/schedules/{schedule['id']}"
        api_client.put(f"{url}/kids", json={"items": ["Ava", "Bo"]}, headers=OWNER)
        api_client.put(f"{url}/cells/0/0", json={"kids": ["Ava", "Bo"]}, headers=OWNER)

        response = api_client.put(f"{url}/kids", json={"items": ["Ava"]}, headers=OWNER)

        assert response.json()["schedule"] == {"0-0": ["Ava"]}

    def test_grid_and_summary(self, api_client, schedule):
        url = f"/api/schedules/{schedule['id']}"
        api_client.put(f"{url}/cells/1/2", json={"kids": ["Ava"]}, headers=OWNER)

        grid = api_client.get(f"{url}/grid", headers=OWNER).json()
        summary = api_client.get(f"{url}/summary/Ava", headers=OWNER).json()

        assert grid["weekHeaders"][0] == "Jun 23"
        assert [row["camp"] for row in grid["rows"]] == ["Art", "Soccer"]
        assert grid["rows"][1]["cells"][2][0]["name"] == "Ava"
        assert summary["scheduleId"] == schedule["id"]
        assert summary["weeks"][2]["camp"] == "Soccer"
        assert summary["weeks"][0]["camp"] is None

    def test_summary_for_unknown_kid(self, api_client, schedule):
        response = api_client.get(f"/api/schedules/{schedule['id']}/summary/Zed", headers=OWNER)
        assert response.status_code == 422


class TestSharing:
    def test_collaborator_can_edit(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        onboard(api_client, FRIEND, [])
        doc = create_schedule(api_client, OWNER, "Ava")
        url = f"/api/schedules/{doc['id']}"

        shared = api_client.post(f"{url}/collaborators", json={"uid": "friend-1"}, headers=OWNER)
        edited = api_client.put(f"{url}/camps", json={"items": ["Art"]}, headers=FRIEND)

        assert shared.json()["collaborators"] == ["friend-1"]
        assert edited.status_code == 200
        assert api_client.get("/api/account", headers=FRIEND).json()["schedules"] == [doc["id"]]

    def test_only_owner_manages_collaborators(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        onboard(api_client, FRIEND, [])
        doc = create_schedule(api_client, OWNER, "Ava")
        url = f"/api/schedules/{doc['id']}"
        api_client.post(f"{url}/collaborators", json={"uid": "friend-1"}, headers=OWNER)

        response = api_client.delete(f"{url}/collaborators/owner-1", headers=FRIEND)

        assert response.status_code == 403

    def test_removed_collaborator_loses_access(self, api_client):
        onboard(api_client, OWNER, ["Ava"])
        onboard(api_client, FRIEND, [])
        doc = create_schedule(api_client, OWNER, "Ava")
        url = f"/api/schedules/{doc['id']}"
        api_client.post(f"{url}/collaborators", json={"uid": "friend-1"}, headers=OWNER)

        api_client.delete(f"{url}/collaborators/friend-1", headers=OWNER)

        assert api_client.get(url, headers=FRIEND).status_code == 403


class TestAuthRoutes:
    def test_sign_up_then_sign_in(self, api_client):
        credentials = {"email": "parent@example.com", "password": "hunter22"}

        signed_up = api_client.post("/api/auth/sign-up", json=credentials)
        signed_in = api_client.post("/api/auth/sign-in", json=credentials)

        assert signed_up.status_code == 201
        assert signed_in.status_code == 200
        assert signed_in.json()["uid"] == signed_up.json()["uid"]

    def test_wrong_password(self, api_client):
        api_client.post("/api/auth/sign-up", json={"email": "parent@example.com", "password": "hunter22"})

        response = api_client.post("/api/auth/sign-in", json={"email": "parent@example.com", "password": "nope12"})

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credential"
        assert response.json()["detail"] == "Invalid email or password."

    @pytest.mark.parametrize(
        "credentials,code",
        [
            ({"email": "", "password": ""}, "missing_fields"),
            ({"email": "not-an-email", "password": "hunter22"}, "invalid_email"),
            ({"email": "parent@example.com", "password": "123"}, "weak_password"),
        ],
    )
    def test_form_errors(self, api_client, credentials, code):
        response = api_client.post("/api/auth/sign-up", json=credentials)
        assert response.status_code == 400
        assert response.json()["code"] == code

    def test_sign_out_closes_open_streams(self, api_client):
        credentials = {"email": "parent@example.com", "password": "hunter22"}
        session = api_client.post("/api/auth/sign-up", json=credentials).json()
        stream = get_backends().streams.track(session["uid"], Subscription())

        response = api_client.post("/api/auth/sign-out", headers={"Authorization": f"Bearer {session['token']}"})

        assert response.status_code == 204
        assert stream.closed
        assert get_backends().streams.open_count(session["uid"]) == 0

    def test_closed_oauth2_window(self, api_client):
        response = api_client.post("/api/auth/oauth2", json={"provider": "google", "error": "access_denied"})

        assert response.status_code == 400
        assert response.json()["code"] == "popup_closed"
        assert response.json()["detail"] == "Sign-in popup was closed before completion."

    def test_oauth2_code_exchange(self, api_client):
        session = AuthSession(identity=IdentityRef(uid="u7", email="ava@gmail.com"), token="tok-g")
        exchange = AsyncMock(return_value=session)
        redirect = {"provider": "google", "code": "4/0Ab", "codeVerifier": "v-1", "redirectUrl": "http://localhost/cb"}

        with patch.object(InMemoryIdentityProvider, "sign_in_with_oauth2", exchange):
            response = api_client.post("/api/auth/oauth2", json=redirect)

        assert response.status_code == 200
        assert response.json() == {"uid": "u7", "email": "ava@gmail.com", "token": "tok-g"}
        assert exchange.call_args.args[0] == OAuth2Credentials(
            provider="google", code="4/0Ab", code_verifier="v-1", redirect_url="http://localhost/cb"
        )

    def test_email_in_use(self, api_client):
        credentials = {"email": "parent@example.com", "password": "hunter22"}
        api_client.post("/api/auth/sign-up", json=credentials)

        response = api_client.post("/api/auth/sign-up", json=credentials)

        assert response.status_code == 400
        assert response.json()["code"] == "email_in_use"


class TestProductionAuth:
    @pytest.fixture
    def production_client(self, api_client):
        with patch("api.settings._is_docker_environment", return_value=False):
            production = Settings(_env_file=None, auth_mode="production", store_backend="memory")
        api_client.app.dependency_overrides[get_settings] = lambda: production
        yield api_client
        api_client.app.dependency_overrides.clear()

    def test_missing_token(self, production_client):
        response = production_client.get("/api/account")
        assert response.status_code == 401

    def test_debug_header_is_ignored(self, production_client):
        assert production_client.get("/api/account", headers=OWNER).status_code == 401

    def test_invalid_token(self, production_client):
        response = production_client.get("/api/account", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credential"

    def test_token_identifies_user(self, production_client):
        session = production_client.post(
            "/api/auth/sign-up", json={"email": "parent@example.com", "password": "hunter22"}
        ).json()
        headers = {"Authorization": f"Bearer {session['token']}"}

        account = production_client.post("/api/account/onboard", json={"kids": ["Ava"]}, headers=headers).json()

        assert account["id"] == session["uid"]
        assert account["email"] == "parent@example.com"

    def test_signed_out_token_is_rejected(self, production_client):
        session = production_client.post(
            "/api/auth/sign-up", json={"email": "parent@example.com", "password": "hunter22"}
        ).json()
        headers = {"Authorization": f"Bearer {session['token']}"}

        assert production_client.post("/api/auth/sign-out", headers=headers).status_code == 204
        assert production_client.get("/api/account", headers=headers).status_code == 401


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer  abc ", "abc"),
            ("Basic abc", None),
            ("Bearer ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected
