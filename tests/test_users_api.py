from fastapi.testclient import TestClient

from defect_tracker.main import app


SAMPLE_USER = {"name": "Bar", "imageUrl": "http://example.com/bar", "userType": "DEVELOPER"}


def _create_user(client: TestClient, payload: dict | None = None) -> str:
    response = client.post("/user/", json=payload or SAMPLE_USER)
    assert response.status_code == 201, response.text
    return response.headers["Location"]


def _create_defect(client: TestClient, user_url: str, **extra) -> str:
    payload = {
        "summary": "Unfortunately, Notes has Stopped...",
        "created": "2015-10-03 12:30:00",
        "createdBy": user_url,
        "assignedTo": user_url,
        "severity": "TRIVIAL",
        "status": "CREATED",
    }
    payload.update(extra)
    response = client.post("/defect/", json=payload)
    assert response.status_code == 201, response.text
    return response.headers["Location"]


def test_root_links_to_collections():
    client = TestClient(app)
    response = client.get("/")
    assert response.status_code == 200
    links = response.json()["_links"]
    assert links["user"]["href"].endswith("/user")
    assert links["defect"]["href"].endswith("/defect")


def test_health():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok"}


class TestUserCrud:
    def test_create_returns_location_and_resource(self):
        client = TestClient(app)
        response = client.post("/user", json=SAMPLE_USER)
        assert response.status_code == 201
        body = response.json()
        assert response.headers["Location"] == body["_links"]["self"]["href"]
        assert body["name"] == "Bar"
        assert body["imageUrl"] == "http://example.com/bar"
        assert body["userType"] == "DEVELOPER"
        assert body["_links"]["self"]["href"].endswith(f"/user/{body['id']}")

    def test_read_all_users(self):
        client = TestClient(app)
        _create_user(client)
        response = client.get("/user")
        assert response.status_code == 200
        users = response.json()["_embedded"]["user"]
        assert len(users) == 1
        assert users[0]["name"] == "Bar"
        assert users[0]["userType"] == "DEVELOPER"
        assert "self" in users[0]["_links"]

    def test_empty_collection_is_embedded_list(self):
        client = TestClient(app)
        response = client.get("/user")
        assert response.status_code == 200
        assert response.json()["_embedded"] == {"user": []}

    def test_read_single_user(self):
        client = TestClient(app)
        url = _create_user(client)
        response = client.get(url)
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Bar"
        assert body["imageUrl"] == "http://example.com/bar"

    def test_optional_image_url_is_omitted_when_absent(self):
        client = TestClient(app)
        url = _create_user(client, {"name": "Test", "userType": "DEVELOPER"})
        assert "imageUrl" not in client.get(url).json()

    def test_update_user(self):
        client = TestClient(app)
        url = _create_user(client)
        response = client.put(url, json={"name": "Test", "userType": "CUSTOMER"})
        assert response.status_code == 204
        body = client.get(url).json()
        assert body["name"] == "Test"
        assert body["userType"] == "CUSTOMER"
        assert body["imageUrl"] == "http://example.com/bar"

    def test_patch_user(self):
        client = TestClient(app)
        url = _create_user(client)
        assert client.patch(url, json={"imageUrl": None}).status_code == 204
        assert "imageUrl" not in client.get(url).json()

    def test_delete_user(self):
        client = TestClient(app)
        url = _create_user(client)
        assert client.delete(url).status_code == 204
        response = client.get(url)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_delete_referenced_user_conflicts(self):
        client = TestClient(app)
        url = _create_user(client)
        _create_defect(client, url)
        response = client.delete(url)
        assert response.status_code == 409
        assert response.json()["error"]["details"]["referencing_defects"] == 1

    def test_unknown_user_is_404(self):
        client = TestClient(app)
        assert client.get("/user/not-a-valid-uuid").status_code == 404
        assert client.put("/user/00000000-0000-0000-0000-000000000000", json=SAMPLE_USER).status_code == 404
        assert client.delete("/user/00000000-0000-0000-0000-000000000000").status_code == 404


class TestUserRules:
    def test_duplicate_name_conflicts(self):
        client = TestClient(app)
        _create_user(client)
        response = client.post("/user/", json=SAMPLE_USER)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_every_user_type_is_accepted_and_bad_value_rejected(self):
        client = TestClient(app)
        url = _create_user(client)
        for user_type in ["CUSTOMER", "MANAGER", "DEVELOPER", "TESTER"]:
            response = client.put(url, json={**SAMPLE_USER, "userType": user_type})
            assert response.status_code == 204
        response = client.put(url, json={**SAMPLE_USER, "userType": "BADVALUE"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ENUM_VALUE"
        assert client.get(url).json()["userType"] == "TESTER"

    def test_missing_required_field_is_400(self):
        client = TestClient(app)
        response = client.post("/user", json={"name": "NoType"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_REQUIRED_FIELD"
        assert response.json()["error"]["details"] == {"field": "userType"}

    def test_non_object_body_is_400(self):
        client = TestClient(app)
        response = client.post("/user", json=["Bar", "DEVELOPER"])
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MALFORMED_PAYLOAD"

    def test_missing_query_parameter_names_the_parameter(self):
        client = TestClient(app)
        response = client.get("/user/search/findByName")
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REQUEST"
        assert "query.name" in error["message"]
        assert error["details"]["errors"][0]["loc"] == "query.name"


class TestUserQueries:
    def test_find_by_name(self):
        client = TestClient(app)
        _create_user(client)
        _create_user(client, {"name": "Foo", "userType": "CUSTOMER"})
        response = client.get("/user/search/findByName", params={"name": "Bar"})
        assert response.status_code == 200
        users = response.json()["_embedded"]["user"]
        assert [user["name"] for user in users] == ["Bar"]
        assert users[0]["imageUrl"] == "http://example.com/bar"

    def test_created_and_assigned_defects(self):
        client = TestClient(app)
        url = _create_user(client)
        _create_defect(client, url)

        created = client.get(f"{url}/created")
        assert created.status_code == 200
        defects = created.json()["_embedded"]["defect"]
        assert defects[0]["summary"] == "Unfortunately, Notes has Stopped..."
        assert defects[0]["status"] == "CREATED"

        assigned = client.get(f"{url}/assigned")
        assert assigned.status_code == 200
        assert len(assigned.json()["_embedded"]["defect"]) == 1

    def test_referencing_lists_for_unknown_user_are_404(self):
        client = TestClient(app)
        assert client.get("/user/00000000-0000-0000-0000-000000000000/created").status_code == 404
