"""Integration tests for dispatch and delivery verification endpoints."""

import re

import pytest
from marketplace.notifications.channel import get_channel
from marketplace.notifications.fanout import get_fanout


@pytest.fixture()
def agent_id(client, headers):
    admin = headers("admin-001", "admin")
    agent = client.post("/dispatch/agents", json={"name": "Ravi", "phone": "+919900000001"}, headers=admin).json()
    client.post(f"/dispatch/agents/{agent['agent_id']}/verify", headers=admin)
    client.put(
        f"/dispatch/agents/{agent['agent_id']}/availability",
        json={"is_online": True, "latitude": 12.9716, "longitude": 77.5946},
        headers=headers(agent["agent_id"], "deliveryAssociate"),
    )
    return agent["agent_id"]


@pytest.fixture()
def agent_headers(headers, agent_id):
    return headers(agent_id, "deliveryAssociate")


def _otp_sent_to(phone):
    assert get_fanout().flush()
    bodies = [m["body"] for m in get_channel("sms").messages_to(phone) if "delivery code" in m["body"]]
    return re.search(r"is (\d+)\.", bodies[-1]).group(1)


class TestAgentEndpoints:
    def test_agent_registered_verified_online(self, client, headers, agent_id):
        response = client.get(f"/dispatch/agents/{agent_id}", headers=headers("admin-001", "admin"))

        body = response.json()
        assert response.status_code == 200
        assert body["is_verified"] and body["is_online"]
        assert body["latitude"] == 12.9716

    def test_agent_cannot_change_someone_elses_availability(self, client, headers, agent_id):
        response = client.put(
            f"/dispatch/agents/{agent_id}/availability",
            json={"is_online": False},
            headers=headers("agent-999", "deliveryAssociate"),
        )
        assert response.status_code == 403

    def test_nearby_agents_for_supplier(self, client, headers, agent_id):
        response = client.get(
            "/dispatch/nearby-agents",
            params={"latitude": 12.9756, "longitude": 77.6050},
            headers=headers("sup-a", "supplier"),
        )

        assert response.status_code == 200
        (match,) = response.json()
        assert match["agent"]["agent_id"] == agent_id
        assert match["distance_meters"] > 0

    def test_nearby_orders_for_agent(self, client, agent_headers, pending_order):
        response = client.get(
            "/dispatch/nearby-orders",
            params={"latitude": 12.9716, "longitude": 77.5946, "max_distance": 5000},
            headers=agent_headers,
        )

        assert [o["order_id"] for o in response.json()] == [str(pending_order.id)]

    def test_available_orders_for_agent(self, client, agent_headers, pending_order):
        response = client.get("/dispatch/available-orders", headers=agent_headers)

        assert response.status_code == 200
        (order,) = response.json()
        assert order["order_id"] == str(pending_order.id)
        assert order["delivery"] is None

    def test_customers_cannot_list_available_orders(self, client, headers):
        response = client.get("/dispatch/available-orders", headers=headers("cust-001", "customer"))
        assert response.status_code == 403

    def test_customers_cannot_search_agents(self, client, headers):
        response = client.get(
            "/dispatch/nearby-agents", params={"latitude": 0, "longitude": 0}, headers=headers("cust-001", "customer")
        )
        assert response.status_code == 403


class TestClaimToDelivery:
    def test_full_delivery_flow(self, client, headers, agent_headers, pending_order, delivery_address):
        order_id = str(pending_order.id)

        claimed = client.post(f"/orders/{order_id}/claim", headers=agent_headers)
        assert claimed.status_code == 200
        assert claimed.json()["status"] == "packaging"

        moving = client.patch(f"/orders/{order_id}/delivery", json={"status": "out_for_delivery"}, headers=agent_headers)
        assert moving.json()["status"] == "out_for_delivery"

        pinged = client.post(f"/orders/{order_id}/location", json={"latitude": 12.974, "longitude": 77.60}, headers=agent_headers)
        assert pinged.json()["delivery"]["current_latitude"] == 12.974

        challenge = client.post(f"/orders/{order_id}/delivery-challenge", headers=agent_headers)
        assert challenge.status_code == 201
        assert set(challenge.json()) == {"order_id", "expires_at"}

        otp = _otp_sent_to(delivery_address["phone"])
        delivered = client.post(f"/orders/{order_id}/delivery-verification", json={"otp": otp}, headers=agent_headers)

        body = delivered.json()
        assert delivered.status_code == 200
        assert body["status"] == "delivered"
        assert body["payment_status"] == "paid"
        assert body["delivery"]["sub_status"] == "delivered"
        assert body["invoice_ref"] is not None

    def test_second_claim_conflicts(self, client, headers, agent_headers, pending_order):
        client.post(f"/orders/{pending_order.id}/claim", headers=agent_headers)
        other = client.post("/dispatch/agents", json={"name": "Meena", "phone": "+919900000002"}, headers=headers("admin-001", "admin"))

        response = client.post(
            f"/orders/{pending_order.id}/claim", headers=headers(other.json()["agent_id"], "deliveryAssociate")
        )

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "already_assigned"

    def test_skipping_delivery_steps(self, client, headers, agent_id, agent_headers, pending_order):
        order_id = str(pending_order.id)
        admin = headers("admin-001", "admin")
        client.patch(f"/orders/{order_id}/status", json={"status": "processing"}, headers=admin)
        client.post(f"/orders/{order_id}/assignment", json={"agent_id": agent_id}, headers=admin)

        response = client.patch(f"/orders/{order_id}/delivery", json={"status": "failed"}, headers=agent_headers)

        assert response.status_code == 409
        assert response.json()["error"]["kind"] == "invalid_delivery_transition"


class TestVerificationErrors:
    @pytest.fixture()
    def order_id(self, client, agent_headers, pending_order):
        order_id = str(pending_order.id)
        client.post(f"/orders/{order_id}/claim", headers=agent_headers)
        client.patch(f"/orders/{order_id}/delivery", json={"status": "out_for_delivery"}, headers=agent_headers)
        client.post(f"/orders/{order_id}/delivery-challenge", headers=agent_headers)
        return order_id

    def test_wrong_code_then_lockout(self, client, agent_headers, order_id, delivery_address):
        otp = _otp_sent_to(delivery_address["phone"])
        wrong = "000000" if otp != "000000" else "111111"

        for remaining in (2, 1, 0):
            response = client.post(f"/orders/{order_id}/delivery-verification", json={"otp": wrong}, headers=agent_headers)
            assert response.status_code == 400
            assert response.json()["error"]["kind"] == "invalid_code"
            assert response.json()["error"]["details"]["attempts_remaining"] == remaining

        response = client.post(f"/orders/{order_id}/delivery-verification", json={"otp": otp}, headers=agent_headers)
        assert response.status_code == 429

    def test_qr_token_delivers(self, client, agent_headers, order_id, delivery_address):
        assert get_fanout().flush()
        (message,) = get_channel("whatsapp").messages_to(delivery_address["phone"])
        token = message["body"].splitlines()[-1]

        response = client.post("/delivery-verification/qr", json={"token": token}, headers=agent_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "delivered"

    def test_garbage_qr_token(self, client, agent_headers, order_id):
        response = client.post("/delivery-verification/qr", json={"token": "abc.def"}, headers=agent_headers)
        assert response.status_code == 400

    def test_customer_cannot_verify(self, client, headers, order_id):
        response = client.post(
            f"/orders/{order_id}/delivery-verification", json={"otp": "123456"}, headers=headers("cust-001", "customer")
        )
        assert response.status_code == 403
