"""Preview Job Routes: verifies submission, descriptors, visibility, and error envelopes.

Design Decisions:
    - Workers are not running in route tests; rows are completed by hand where needed
"""

from uuid import uuid4

from jewelpreview.models.preview_job import PreviewJob

from tests.services.fakes import OWNER_USER_ID

GUEST_HEADERS = {"X-Guest-Client-Id": "guest-route"}
OWNER_HEADERS = {"X-User-Id": OWNER_USER_ID}


async def test_submit_returns_pending_descriptor(client, seed_configuration):
    res = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
        headers=GUEST_HEADERS,
    )

    assert res.status_code == 202
    body = res.json()
    assert body["status"] == "pending"
    assert body["kind"] == "single_image"
    assert body["primary_url"] is None
    assert set(body) == {
        "id", "kind", "status", "primary_url", "frame_urls",
        "error_message", "created_at", "updated_at",
    }


async def test_get_returns_descriptor(client, seed_configuration):
    created = await client.post(
        "/api/v1/preview-jobs",
        json={
            "kind": "multi_frame", "configuration_id": str(seed_configuration.id),
            "frame_count": 8,
        },
        headers=OWNER_HEADERS,
    )
    job_id = created.json()["id"]

    res = await client.get(f"/api/v1/preview-jobs/{job_id}", headers=OWNER_HEADERS)

    assert res.status_code == 200
    assert res.json()["kind"] == "multi_frame"


async def test_user_job_hidden_from_others(client, seed_configuration):
    created = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
        headers=OWNER_HEADERS,
    )
    job_id = created.json()["id"]

    res = await client.get(f"/api/v1/preview-jobs/{job_id}", headers=GUEST_HEADERS)

    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_guest_job_visible_by_id(client, seed_configuration):
    created = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
        headers=GUEST_HEADERS,
    )
    job_id = created.json()["id"]

    res = await client.get(f"/api/v1/preview-jobs/{job_id}")

    assert res.status_code == 200


async def test_unknown_kind_is_400(client, seed_configuration):
    res = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "hologram", "configuration_id": str(seed_configuration.id)},
        headers=GUEST_HEADERS,
    )

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_missing_guest_header_is_400(client, seed_configuration):
    res = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
    )
    assert res.status_code == 400


async def test_malformed_user_header_is_400(client, seed_configuration):
    res = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
        headers={"X-User-Id": "not-a-uuid"},
    )
    assert res.status_code == 400


async def test_body_validation_is_400_with_details(client):
    res = await client.post(
        "/api/v1/preview-jobs", json={"kind": "single_image"}, headers=GUEST_HEADERS,
    )

    assert res.status_code == 400
    fields = [d["field"] for d in res.json()["error"]["details"]]
    assert "body.configuration_id" in fields


async def test_quota_exceeded_is_429(client, test_db, seed_configuration):
    for _ in range(5):
        test_db.add(PreviewJob(
            kind="single_image", status="completed", subject_id=seed_configuration.id,
            guest_client_id="guest-route", primary_url="https://x/img.png",
        ))
    await test_db.commit()

    res = await client.post(
        "/api/v1/preview-jobs",
        json={"kind": "single_image", "configuration_id": str(seed_configuration.id)},
        headers=GUEST_HEADERS,
    )

    assert res.status_code == 429
    assert res.json()["error"]["code"] == "QUOTA_EXCEEDED"


async def test_upgrade_job_not_visible_on_preview_route(client, test_db):
    job = PreviewJob(kind="upgrade_preview", status="pending", subject_id=uuid4())
    test_db.add(job)
    await test_db.commit()

    res = await client.get(f"/api/v1/preview-jobs/{job.id}")

    assert res.status_code == 404


async def test_health_liveness(client):
    res = await client.get("/api/v1/health/")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


async def test_health_readiness_with_database(client):
    res = await client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.json() == {"status": "ready", "checks": {"database": "healthy"}}


async def test_health_readiness_without_database(client, monkeypatch):
    monkeypatch.setattr("jewelpreview.infrastructure.database.db_manager", None)

    res = await client.get("/api/v1/health/ready")

    assert res.status_code == 503
    assert res.json()["reason"] == "database_unavailable"
