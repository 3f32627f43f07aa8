# =============================================================================
# tests/test_artworks.py - Artwork CRUD and filtering tests
# =============================================================================

from tests.conftest import ARTWORK_PAYLOAD, create_artwork


class TestCreateArtwork:
    def test_create_with_image_url(self, client, seller):
        resp = client.post(
            "/api/artworks/create", json=ARTWORK_PAYLOAD, headers=seller["headers"]
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Artwork created successfully"
        artwork = body["artwork"]
        assert artwork["status"] == "available"
        assert artwork["imageUrl"] == ARTWORK_PAYLOAD["imageUrl"]
        assert artwork["artistId"] == seller["user"]["id"]
        assert artwork["artist"] == {
            "id": seller["user"]["id"],
            "name": "Alice Artist",
            "email": "alice@example.com",
        }

    def test_requires_authentication(self, client):
        resp = client.post("/api/artworks/create", json=ARTWORK_PAYLOAD)

        assert resp.status_code == 401

    def test_missing_image_is_rejected(self, client, seller):
        payload = {k: v for k, v in ARTWORK_PAYLOAD.items() if k != "imageUrl"}

        resp = client.post("/api/artworks/create", json=payload, headers=seller["headers"])

        assert resp.status_code == 400
        assert resp.json()["error"] == "Image is required"
        assert client.get("/api/artworks").json() == []

    def test_enumerations_are_case_normalized(self, client, seller):
        artwork = create_artwork(
            client,
            seller["headers"],
            medium="canvas",
            size="LARGE",
            style="fine   art",
            technique="oil painting",
        )

        assert artwork["medium"] == "Canvas"
        assert artwork["size"] == "Large"
        assert artwork["style"] == "Fine Art"
        assert artwork["technique"] == "Oil Painting"

    def test_free_text_is_escaped(self, client, seller):
        artwork = create_artwork(client, seller["headers"], title="Salt & Pepper")

        assert artwork["title"] == "Salt &amp; Pepper"

    def test_status_cannot_be_set_on_create(self, client, seller):
        artwork = create_artwork(client, seller["headers"], status="sold")

        assert artwork["status"] == "available"

    def test_invalid_fields_are_reported(self, client, seller):
        payload = {
            **ARTWORK_PAYLOAD,
            "title": "",
            "description": "too short",
            "price": 0,
            "medium": "Papyrus",
        }

        resp = client.post("/api/artworks/create", json=payload, headers=seller["headers"])

        assert resp.status_code == 400
        details = {d["field"]: d["message"] for d in resp.json()["details"]}
        assert details == {
            "title": "Title must be between 1 and 100 characters",
            "description": "Description must be between 10 and 1000 characters",
            "price": "Price must be a positive number between 0.01 and 1,000,000",
            "medium": "Invalid medium selected",
        }

    def test_form_fields_are_accepted(self, client, seller):
        form = {k: str(v) for k, v in ARTWORK_PAYLOAD.items()}

        resp = client.post("/api/artworks/create", data=form, headers=seller["headers"])

        assert resp.status_code == 201
        assert resp.json()["artwork"]["price"] == 250


class TestListArtworks:
    def test_filter_by_medium_is_case_insensitive_exact(self, client, seller):
        create_artwork(client, seller["headers"], title="On Canvas", medium="Canvas")
        create_artwork(client, seller["headers"], title="On Paper", medium="Paper")

        resp = client.get("/api/artworks", params={"medium": "canvas"})

        assert resp.status_code == 200
        titles = [a["title"] for a in resp.json()]
        assert titles == ["On Canvas"]

    def test_filter_by_artist(self, client, seller, other_seller):
        create_artwork(client, seller["headers"], title="Alice Work")
        create_artwork(client, other_seller["headers"], title="Carol Work")

        resp = client.get("/api/artworks", params={"artist": other_seller["user"]["id"]})

        assert [a["title"] for a in resp.json()] == ["Carol Work"]

    def test_price_is_an_upper_bound(self, client, seller):
        create_artwork(client, seller["headers"], title="Cheap", price=50)
        create_artwork(client, seller["headers"], title="Exact", price=100)
        create_artwork(client, seller["headers"], title="Pricey", price=500)

        resp = client.get("/api/artworks", params={"price": 100})

        assert sorted(a["title"] for a in resp.json()) == ["Cheap", "Exact"]

    def test_newest_first(self, client, seller):
        create_artwork(client, seller["headers"], title="First")
        create_artwork(client, seller["headers"], title="Second")

        resp = client.get("/api/artworks")

        assert [a["title"] for a in resp.json()] == ["Second", "First"]

    def test_search_matches_title_substring(self, client, seller):
        create_artwork(client, seller["headers"], title="Blue Harbor")
        create_artwork(client, seller["headers"], title="Red Barn")

        resp = client.get("/api/artworks", params={"search": "harb"})

        assert [a["title"] for a in resp.json()] == ["Blue Harbor"]

    def test_search_wildcards_are_literal(self, client, seller):
        create_artwork(client, seller["headers"], title="Plain Title")

        resp = client.get("/api/artworks", params={"search": "%"})

        assert resp.json() == []

    def test_invalid_filters_are_rejected(self, client):
        resp = client.get(
            "/api/artworks", params={"medium": "Papyrus", "price": "-5", "artist": "abc"}
        )

        assert resp.status_code == 400
        details = {d["field"]: d["message"] for d in resp.json()["details"]}
        assert details == {
            "medium": "Invalid medium filter",
            "price": "Price filter must be a positive number",
            "artist": "Invalid artist ID",
        }

    def test_mine_lists_only_callers_artworks(self, client, seller, other_seller):
        create_artwork(client, seller["headers"], title="Alice Work")
        create_artwork(client, other_seller["headers"], title="Carol Work")

        resp = client.get("/api/artworks/mine", headers=other_seller["headers"])

        assert [a["title"] for a in resp.json()] == ["Carol Work"]


class TestGetArtwork:
    def test_get_by_id(self, client, artwork):
        resp = client.get(f"/api/artworks/{artwork['id']}")

        assert resp.status_code == 200
        assert resp.json()["title"] == artwork["title"]
        assert resp.json()["artist"]["name"] == "Alice Artist"

    def test_unknown_id_is_not_found(self, client):
        resp = client.get("/api/artworks/999")

        assert resp.status_code == 404
        assert resp.json()["message"] == "Artwork not found"

    def test_malformed_id_is_a_validation_error(self, client):
        resp = client.get("/api/artworks/not-a-number")

        assert resp.status_code == 400
        assert resp.json()["details"][0]["message"] == "Invalid ID format"


class TestUpdateArtwork:
    def test_owner_can_update(self, client, seller, artwork):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            json={"title": "Sunrise", "price": 300},
            headers=seller["headers"],
        )

        assert resp.status_code == 200
        updated = resp.json()["artwork"]
        assert resp.json()["message"] == "Artwork updated successfully"
        assert updated["title"] == "Sunrise"
        assert updated["price"] == 300
        assert updated["imageUrl"] == artwork["imageUrl"]

    def test_new_image_url_replaces_image(self, client, seller, artwork):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            json={"imageUrl": "https://images.example.com/new.jpg"},
            headers=seller["headers"],
        )

        assert resp.json()["artwork"]["imageUrl"] == "https://images.example.com/new.jpg"

    def test_status_is_not_writable(self, client, seller, artwork):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            json={"status": "sold"},
            headers=seller["headers"],
        )

        assert resp.status_code == 200
        assert resp.json()["artwork"]["status"] == "available"

    def test_non_owner_is_forbidden_and_record_unchanged(
        self, client, other_seller, artwork
    ):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            json={"title": "Stolen"},
            headers=other_seller["headers"],
        )

        assert resp.status_code == 403
        assert resp.json()["message"] == "Not authorized"
        assert client.get(f"/api/artworks/{artwork['id']}").json()["title"] == artwork["title"]

    def test_update_revalidates_fields(self, client, seller, artwork):
        resp = client.put(
            f"/api/artworks/{artwork['id']}",
            json={"price": 2_000_000},
            headers=seller["headers"],
        )

        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "price"

    def test_update_missing_artwork(self, client, seller):
        resp = client.put("/api/artworks/999", json={"title": "X"}, headers=seller["headers"])

        assert resp.status_code == 404


class TestDeleteArtwork:
    def test_owner_can_delete(self, client, seller, artwork):
        resp = client.delete(f"/api/artworks/{artwork['id']}", headers=seller["headers"])

        assert resp.status_code == 200
        assert resp.json() == {"message": "Artwork deleted successfully"}
        assert client.get(f"/api/artworks/{artwork['id']}").status_code == 404

    def test_non_owner_cannot_delete(self, client, other_seller, artwork):
        resp = client.delete(
            f"/api/artworks/{artwork['id']}", headers=other_seller["headers"]
        )

        assert resp.status_code == 403
        assert client.get(f"/api/artworks/{artwork['id']}").status_code == 200
