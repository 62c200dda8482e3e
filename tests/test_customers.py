"""API tests for tenant-scoped customers."""

from __future__ import annotations

from juno.models import Customer


class TestCustomers:
    def test_create_and_fetch(self, client, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        agent = make_user(tenant, role="agent")
        r = client.post("/api/customers", headers=auth(agent), json={
            "first_name": "Dana",
            "email": "dana@client.test",
            "custom_fields": {"source": "webinar"},
            "assigned_to": agent.id,
        })
        assert r.status_code == 201
        created = r.json()
        assert created["status"] == "new"
        assert created["custom_fields"] == {"source": "webinar"}

        fetched = client.get(f"/api/customers/{created['id']}", headers=auth(agent)).json()
        assert fetched["email"] == "dana@client.test"

    def test_assignee_must_belong_to_tenant(self, client, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        outsider = make_user(make_tenant("Other Co"))
        r = client.post("/api/customers", headers=auth(make_user(tenant)), json={
            "first_name": "Eli", "assigned_to": outsider.id,
        })
        assert r.status_code == 400

    def test_invalid_status_rejected(self, client, make_tenant, make_user, auth) -> None:
        r = client.post("/api/customers", headers=auth(make_user(make_tenant())), json={
            "first_name": "Eli", "status": "vip",
        })
        assert r.status_code == 422

    def test_other_tenants_customers_not_found(self, client, db, make_tenant, make_user, auth) -> None:
        other = make_tenant("Other Co")
        hidden = Customer(tenant_id=other.id, first_name="Hidden")
        db.add(hidden)
        db.commit()
        headers = auth(make_user(make_tenant()))
        assert client.get(f"/api/customers/{hidden.id}", headers=headers).status_code == 404
        assert client.patch(f"/api/customers/{hidden.id}", headers=headers, json={"status": "churned"}).status_code == 404
        assert client.delete(f"/api/customers/{hidden.id}", headers=headers).status_code == 404

    def test_list_pages_and_filters(self, client, db, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        for i in range(12):
            db.add(Customer(tenant_id=tenant.id, first_name=f"Lead{i}", status="new"))
        db.add(Customer(tenant_id=tenant.id, first_name="Morgan", email="morgan@big.test", status="qualified"))
        db.commit()
        headers = auth(make_user(tenant))

        first = client.get("/api/customers", headers=headers).json()
        assert first["total"] == 13
        assert len(first["customers"]) == 10
        second = client.get("/api/customers", headers=headers, params={"page": 2}).json()
        assert len(second["customers"]) == 3

        found = client.get("/api/customers", headers=headers, params={"search": "big.test"}).json()
        assert [c["first_name"] for c in found["customers"]] == ["Morgan"]
        qualified = client.get("/api/customers", headers=headers, params={"status": "qualified"}).json()
        assert qualified["total"] == 1

    def test_update_and_delete(self, client, db, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        admin = make_user(tenant)
        customer = Customer(tenant_id=tenant.id, first_name="Sam")
        db.add(customer)
        db.commit()

        r = client.patch(f"/api/customers/{customer.id}", headers=auth(admin), json={"status": "contacted"})
        assert r.json()["status"] == "contacted"
        assert client.delete(f"/api/customers/{customer.id}", headers=auth(admin)).status_code == 200
        assert db.query(Customer).filter(Customer.tenant_id == tenant.id).count() == 0

    def test_required_fields_cannot_be_cleared(self, client, db, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        admin = make_user(tenant)
        customer = Customer(tenant_id=tenant.id, first_name="Sam", last_name="Lee")
        db.add(customer)
        db.commit()

        r = client.patch(f"/api/customers/{customer.id}", headers=auth(admin), json={"first_name": None})
        assert r.status_code == 400
        assert r.json()["detail"] == "first_name cannot be null"
        db.refresh(customer)
        assert customer.first_name == "Sam"

        # Optional columns may still be cleared
        r = client.patch(f"/api/customers/{customer.id}", headers=auth(admin), json={"last_name": None})
        assert r.status_code == 200
        assert r.json()["last_name"] is None

    def test_agent_cannot_delete(self, client, db, make_tenant, make_user, auth) -> None:
        tenant = make_tenant()
        customer = Customer(tenant_id=tenant.id, first_name="Sam")
        db.add(customer)
        db.commit()
        r = client.delete(f"/api/customers/{customer.id}", headers=auth(make_user(tenant, role="agent")))
        assert r.status_code == 403
