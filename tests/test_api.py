from infrastructure.cache import keys


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"status": "ok"}


def test_showroom_data_is_fresh_then_cached(client):
    first = client.get("/v1/inventory")
    second = client.get("/v1/inventory")

    assert first.status_code == 200
    body = first.json()
    assert body["fromCache"] is False
    assert body["error"] is None
    assert body["customMedia"] == []
    assert body["vehicles"][0]["stockNumber"] == "S100"
    assert body["vehicles"][0]["images"] == ["https://x/real.jpg"]
    assert second.json()["fromCache"] is True


def test_showroom_data_never_fails(client, feed):
    feed.fail_with = "Inventory feed request failed"

    response = client.get("/v1/inventory")

    assert response.status_code == 200
    assert response.json() == {
        "vehicles": [],
        "customMedia": [],
        "fromCache": True,
        "error": "Inventory feed request failed",
    }


def test_showroom_data_survives_unexpected_feed_error(client, feed):
    feed.crash_with = RuntimeError("feed parser bug")

    response = client.get("/v1/inventory")

    assert response.status_code == 200
    assert response.json() == {
        "vehicles": [],
        "customMedia": [],
        "fromCache": True,
        "error": "Inventory refresh failed",
    }


def test_refresh_and_status(client, feed):
    response = client.post("/v1/inventory/refresh")
    assert response.status_code == 200
    assert response.json()["changed"] is True
    assert response.json()["vehicleCount"] == 2

    assert client.post("/v1/inventory/refresh").json()["changed"] is False
    status = client.get("/v1/inventory/status").json()
    assert status["vehicleCount"] == 2
    assert status["stale"] is False

    feed.fail_with = "feed down"
    assert client.post("/v1/inventory/refresh").status_code == 502


def test_vehicle_endpoints(client):
    vehicles = client.get("/v1/vehicles")
    assert vehicles.status_code == 200
    assert [vehicle["id"] for vehicle in vehicles.json()] == ["v1", "v2"]

    by_stock = client.get("/v1/vehicles/S200")
    assert by_stock.status_code == 200
    assert by_stock.json()["id"] == "v2"

    assert client.get("/v1/vehicles/missing").status_code == 404
    assert client.get("/v1/vehicles/v1/media").json() == []
    assert client.get("/v1/vehicles/missing/media").status_code == 404


def test_vehicle_view_appends_manual_media(client):
    client.post("/v1/inventory/refresh")
    created = client.post("/v1/media/general", json={"url": "https://uploads/default-hero.jpg", "type": "IMAGE"})
    assert created.status_code == 201

    vehicle = client.get("/v1/vehicles/v1").json()

    assert vehicle["images"] == ["https://x/real.jpg", "https://uploads/default-hero.jpg"]
    assert vehicle["manualMedia"][0]["id"] == created.json()["id"]
    assert client.get("/v1/inventory").json()["customMedia"][0]["url"] == "https://uploads/default-hero.jpg"


def test_attach_media_to_vehicle_is_not_implemented(client):
    client.post("/v1/inventory/refresh")

    assert client.post("/v1/vehicles/v1/media", json={"type": "IMAGE"}).status_code == 400
    assert client.post("/v1/vehicles/missing/media",
                       json={"url": "https://x/a.jpg", "type": "IMAGE"}).status_code == 404
    assert client.post("/v1/vehicles/v1/media",
                       json={"url": "https://x/a.jpg", "type": "IMAGE"}).status_code == 501


def test_manual_media_lifecycle(client, media_repository):
    assert client.post("/v1/media/general", json={"url": "https://x/a.jpg"}).status_code == 400
    assert client.post("/v1/media/general", json={"url": "https://x/a.jpg", "type": "AUDIO"}).status_code == 400

    uploaded = client.post("/v1/media/upload", files={"file": ("lot.jpg", b"jpeg", "image/jpeg")})
    assert uploaded.status_code == 201
    media_id = uploaded.json()["id"]
    assert uploaded.json()["storageKey"].startswith("media/manual/")
    assert [item["id"] for item in client.get("/v1/media/general").json()] == [media_id]

    deleted = client.delete(f"/v1/media/{media_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "id": media_id, "blobDeleted": True}
    assert client.get("/v1/media/general").json() == []
    assert media_repository.list_all() == []

    assert client.delete(f"/v1/media/{media_id}").status_code == 404
    assert client.delete("/v1/media/not-an-id").status_code == 400


def test_media_upload_rejections(client):
    assert client.post("/v1/media/upload").status_code == 400
    assert client.post("/v1/media/upload",
                       files={"file": ("a.txt", b"text", "text/plain")}).status_code == 415
    assert client.post("/v1/media/upload",
                       files={"file": ("big.jpg", b"x" * 4096, "image/jpeg")}).status_code == 413


def test_reorder_always_answers_not_implemented(client, cache):
    client.post("/v1/media/general", json={"url": "https://x/a.jpg", "type": "IMAGE"})
    before = cache.keys()

    for payload in ([{"id": "x", "order": 1}], {"anything": True}, None):
        response = client.patch("/v1/media/reorder", json=payload)
        assert response.status_code == 501

    assert cache.keys() == before


def test_companion_upload_flow(client):
    registered = client.post("/v1/web-companion/uploads", data={"stockNumber": "S100"},
                             files={"file": ("IMG_1.jpg", b"jpeg", "image/jpeg")})
    assert registered.status_code == 200
    upload = registered.json()["upload"]
    assert upload["status"] == "pending"
    assert upload["stockNumber"] == "S100"

    pending = client.get("/v1/web-companion/uploads/pending").json()
    assert [item["id"] for item in pending["uploads"]] == [upload["id"]]

    completed = client.post("/v1/web-companion/uploads/complete", json={
        "uploadId": upload["id"], "status": "processed", "processedUrl": "https://cdn/u1.jpg",
    })
    assert completed.status_code == 200
    body = completed.json()
    assert body["success"] is True
    assert body["upload"]["status"] == "processed"
    assert body["upload"]["processedUrl"] == "https://cdn/u1.jpg"
    assert body["upload"]["processedAt"] is not None
    assert body["upload"]["error"] is None

    listed = client.get("/v1/web-companion/uploads", params={"stockNumber": "S100", "status": "processed"}).json()
    assert listed["total"] == 1
    assert client.get(f"/v1/web-companion/uploads/{upload['id']}").json()["upload"]["status"] == "processed"
    gallery = client.get("/v1/web-companion/gallery").json()
    assert [item["id"] for item in gallery["uploads"]] == [upload["id"]]


def test_companion_completion_errors(client, cache):
    assert client.post("/v1/web-companion/uploads/complete", json={"status": "processed"}).status_code == 400
    assert client.post("/v1/web-companion/uploads/complete",
                       json={"uploadId": "ghost", "status": "processed"}).status_code == 404
    assert client.post("/v1/web-companion/uploads/complete",
                       json={"uploadId": "ghost", "status": "pending"}).status_code == 400
    assert keys.upload_key("ghost") not in cache.keys()


def test_companion_processed_callback(client):
    upload = client.post("/v1/web-companion/uploads", data={"stockNumber": "S100"},
                         files={"file": ("IMG_1.jpg", b"jpeg", "image/jpeg")}).json()["upload"]

    response = client.post("/v1/web-companion/uploads/processed",
                           data={"uploadId": upload["id"], "stockNumber": "S100", "imageIndex": "4"},
                           files={"image": ("out.png", b"png", "image/png")})

    assert response.status_code == 200
    assert response.json()["upload"]["status"] == "processed"
    assert response.json()["upload"]["imageIndex"] == 4
    assert client.post("/v1/web-companion/uploads/processed",
                       data={"uploadId": "ghost", "stockNumber": "S100"},
                       files={"image": ("out.png", b"png", "image/png")}).status_code == 404


def test_companion_upload_rejections(client):
    image = {"file": ("IMG_1.jpg", b"jpeg", "image/jpeg")}
    assert client.post("/v1/web-companion/uploads", files=image).status_code == 400
    assert client.post("/v1/web-companion/uploads", data={"stockNumber": "S100"},
                       files={"file": ("clip.mp4", b"mp4", "video/mp4")}).status_code == 415
    assert client.get("/v1/web-companion/uploads").status_code == 400
    assert client.get("/v1/web-companion/uploads/ghost").status_code == 404


def test_vehicle_lookup_store_failure_is_a_server_error(failing_client, failing_cache):
    assert failing_client.post("/v1/inventory/refresh").status_code == 200
    failing_cache.fail_reads = True

    response = failing_client.get("/v1/vehicles/v1")

    assert response.status_code == 500
    assert response.json() == {"detail": "Cache store unavailable"}


def test_companion_completion_store_failure_leaves_upload_pending(failing_client, failing_cache):
    upload = failing_client.post("/v1/web-companion/uploads", data={"stockNumber": "S100"},
                                 files={"file": ("IMG_1.jpg", b"jpeg", "image/jpeg")}).json()["upload"]
    completion = {"uploadId": upload["id"], "status": "processed", "processedUrl": "https://cdn/u1.jpg"}

    for failing in ("fail_writes", "fail_reads"):
        setattr(failing_cache, failing, True)
        response = failing_client.post("/v1/web-companion/uploads/complete", json=completion)
        setattr(failing_cache, failing, False)

        assert response.status_code == 500
        assert response.json() == {"detail": "Cache store unavailable"}
        stored = failing_client.get(f"/v1/web-companion/uploads/{upload['id']}").json()["upload"]
        assert stored["status"] == "pending"
        assert stored["processedUrl"] is None
