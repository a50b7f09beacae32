REQUEST = {
    "type": "repair",
    "location": "7 Market Lane",
    "requested_date": "2030-03-14",
    "details": {"description": "Leaking pipe", "contact_phone": "+2348011111111"},
}


class TestServiceRequests:
    def test_create(self, client, customer):
        response = client.post("/api/services/request", json=REQUEST, headers=customer["headers"])

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "requested"
        assert body["requested_date"] == "2030-03-14"
        assert body["details"]["description"] == "Leaking pipe"
        assert body["user_id"] == str(customer["_id"])

    def test_location_required(self, client, customer):
        response = client.post(
            "/api/services/request", json={**REQUEST, "location": ""}, headers=customer["headers"]
        )
        assert response.status_code == 400

    def test_list_own_requests(self, client, customer, make_user):
        other = make_user(email="other@example.com")
        client.post("/api/services/request", json=REQUEST, headers=customer["headers"])
        client.post("/api/services/request", json=REQUEST, headers=other["headers"])

        mine = client.get("/api/services/requests", headers=customer["headers"]).json()
        filtered = client.get("/api/services/requests?status=quoted", headers=customer["headers"]).json()

        assert mine["total"] == 1
        assert filtered["requests"] == []

    def test_detail_is_owner_scoped(self, client, customer, make_user):
        request_id = client.post("/api/services/request", json=REQUEST, headers=customer["headers"]).json()["id"]
        other = make_user(email="other@example.com")

        assert client.get(f"/api/services/requests/{request_id}", headers=customer["headers"]).status_code == 200
        assert client.get(f"/api/services/requests/{request_id}", headers=other["headers"]).status_code == 404
