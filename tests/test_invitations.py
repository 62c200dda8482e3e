"""API tests for team invitations, the public accept flow and the team listing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from juno.models import Invitation, UserAccount


def _invite(client, headers, email: str, role_id: int):
    return client.post("/api/invitations", headers=headers, json={"email": email, "role_id": role_id})


class TestCreateInvitation:
    def test_pending_invitation_created_even_without_email(self, client, db, make_tenant, make_user, auth, roles) -> None:
        admin = make_user(make_tenant())
        r = _invite(client, auth(admin), "New.Agent@Example.com", roles["agent"].id)
        assert r.status_code == 200
        body = r.json()
        assert body["invitation"]["email"] == "new.agent@example.com"
        assert body["invitation"]["status"] == "pending"
        assert body["email_sent"] is False
        assert body["email_error"] == "Email provider not configured"

    def test_email_contains_accept_link(self, client, db, make_tenant, make_user, auth, roles) -> None:
        admin = make_user(make_tenant())
        with patch("juno.api.invitations.send_invitation_email", return_value=(True, "")) as send:
            r = _invite(client, auth(admin), "rep@example.com", roles["manager"].id)
        assert r.json()["email_sent"] is True
        args = send.call_args.args
        assert args[0] == "rep@example.com"
        assert args[1] == "Acme Corp"
        assert args[3] == "manager"
        token = db.query(Invitation).one().token
        assert args[4] == token

    def test_duplicate_pending_rejected(self, client, make_tenant, make_user, auth, roles) -> None:
        headers = auth(make_user(make_tenant()))
        _invite(client, headers, "dup@example.com", roles["agent"].id)
        r = _invite(client, headers, "DUP@example.com", roles["agent"].id)
        assert r.status_code == 400

    def test_existing_member_rejected(self, client, make_tenant, make_user, auth, roles) -> None:
        tenant = make_tenant()
        admin = make_user(tenant)
        member = make_user(tenant, role="agent", email="member@example.com")
        r = _invite(client, auth(admin), member.email, roles["agent"].id)
        assert r.status_code == 400

    def test_super_admin_role_not_invitable(self, client, make_tenant, make_user, auth, roles) -> None:
        r = _invite(client, auth(make_user(make_tenant())), "boss@example.com", roles["super_admin"].id)
        assert r.status_code == 404

    def test_agent_cannot_invite(self, client, make_tenant, make_user, auth, roles) -> None:
        agent = make_user(make_tenant(), role="agent")
        assert _invite(client, auth(agent), "x@example.com", roles["agent"].id).status_code == 403

    def test_cancel(self, client, db, make_tenant, make_user, auth, roles) -> None:
        headers = auth(make_user(make_tenant()))
        invitation_id = _invite(client, headers, "bye@example.com", roles["agent"].id).json()["invitation"]["id"]
        assert client.delete(f"/api/invitations/{invitation_id}", headers=headers).status_code == 200
        assert client.delete(f"/api/invitations/{invitation_id}", headers=headers).status_code == 400


class TestAcceptInvitation:
    def _pending(self, client, make_tenant, make_user, auth, roles, email="joiner@example.com", role="agent"):
        tenant = make_tenant()
        admin = make_user(tenant)
        body = _invite(client, auth(admin), email, roles[role].id).json()
        return tenant, body["invitation"]["id"]

    def _token(self, db, invitation_id: int) -> str:
        return db.get(Invitation, invitation_id).token

    def test_verify_describes_invitation(self, client, db, make_tenant, make_user, auth, roles) -> None:
        tenant, inv_id = self._pending(client, make_tenant, make_user, auth, roles)
        r = client.get("/api/invitations/accept", params={"token": self._token(db, inv_id)})
        assert r.status_code == 200
        assert r.json()["organization_name"] == tenant.name
        assert r.json()["role_name"] == "agent"

    def test_unknown_token(self, client) -> None:
        assert client.get("/api/invitations/accept", params={"token": "nope"}).status_code == 404

    def test_expired_token(self, client, db, make_tenant, make_user, auth, roles) -> None:
        _, inv_id = self._pending(client, make_tenant, make_user, auth, roles)
        invitation = db.get(Invitation, inv_id)
        invitation.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()
        r = client.get("/api/invitations/accept", params={"token": invitation.token})
        assert r.status_code == 400

    def test_new_account_gets_key_and_joins(self, client, db, make_tenant, make_user, auth, roles) -> None:
        tenant, inv_id = self._pending(client, make_tenant, make_user, auth, roles)
        token = self._token(db, inv_id)
        r = client.post("/api/invitations/accept", json={"token": token, "first_name": "Jo"})
        assert r.status_code == 200
        body = r.json()
        assert body["organization_id"] == tenant.id
        assert len(body["api_key"]) == 64

        team = client.get("/api/team", headers={"X-API-Key": body["api_key"]})
        assert team.status_code == 403  # agents cannot read the team
        db.expire_all()
        joined = db.get(UserAccount, body["user_id"])
        assert joined.role_name == "agent"
        assert joined.first_name == "Jo"
        assert db.get(Invitation, inv_id).status == "accepted"

        # Single use
        assert client.post("/api/invitations/accept", json={"token": token}).status_code == 404

    def test_detached_account_keeps_its_key(self, client, db, make_tenant, make_user, auth, roles) -> None:
        loner = make_user(None, role="agent", email="joiner@example.com")
        tenant, inv_id = self._pending(client, make_tenant, make_user, auth, roles)
        r = client.post("/api/invitations/accept", json={"token": self._token(db, inv_id)})
        assert r.status_code == 200
        assert r.json()["api_key"] is None
        assert r.json()["user_id"] == loner.id
        assert client.get("/api/organization", headers=auth(loner)).json()["id"] == tenant.id

    def test_member_of_another_org_rejected(self, client, db, make_tenant, make_user, auth, roles) -> None:
        make_user(make_tenant("Elsewhere"), role="agent", email="joiner@example.com")
        _, inv_id = self._pending(client, make_tenant, make_user, auth, roles)
        r = client.post("/api/invitations/accept", json={"token": self._token(db, inv_id)})
        assert r.status_code == 400
        assert db.get(Invitation, inv_id).status == "pending"


class TestTeam:
    def test_lists_members_and_roles(self, client, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        admin = make_user(tenant, first_name="Ada")
        make_user(tenant, role="agent", first_name="Bo")
        make_user(make_tenant("Other Co"), first_name="Outsider")

        members = client.get("/api/team", headers=auth(admin)).json()
        assert sorted(m["first_name"] for m in members) == ["Ada", "Bo"]
        assert {m["role_name"] for m in members} == {"admin", "agent"}

        roles = client.get("/api/roles").json()
        assert [r["role_name"] for r in roles] == ["admin", "manager", "agent"]
