from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient

from starforge.v1.core.registries import JobRegistry
from starforge.v1.infra.jobs.store import JobStore
from starforge.v1.infra.jobs.worker import JobWorker


@pytest.mark.asyncio
async def test_enqueue_job(async_client: AsyncClient):
    """Test enqueueing returns a pending handle."""
    response = await async_client.post(
        "/v1/jobs",
        json={"type": "sheets_sync", "payload": {"guild_id": "g1"}, "priority": 100},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["ok"] is True
    assert data["data"]["status"] == "pending"
    assert data["data"]["job_id"]


@pytest.mark.asyncio
async def test_enqueue_rejects_blank_type(async_client: AsyncClient):
    response = await async_client.post("/v1/jobs", json={"type": "  ", "payload": {}})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_enqueue_rejects_non_mapping_payload(async_client: AsyncClient):
    response = await async_client.post("/v1/jobs", json={"type": "report", "payload": [1, 2]})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_job(async_client: AsyncClient, store: JobStore):
    job = await store.enqueue("report", {"n": 1}, priority=5)

    response = await async_client.get(f"/v1/jobs/{job.id}")

    assert response.status_code == 200
    body = response.json()["data"]
    assert body["id"] == str(job.id)
    assert body["type"] == "report"
    assert body["payload"] == {"n": 1}
    assert body["priority"] == 5
    assert body["attempts"] == 0
    assert body["max_attempts"] == 3


@pytest.mark.asyncio
async def test_get_missing_job(async_client: AsyncClient):
    response = await async_client.get(f"/v1/jobs/{uuid4()}")

    assert response.status_code == 404
    data = response.json()
    assert data["ok"] is False
    assert data["error"]["message"] == "Job not found"


@pytest.mark.asyncio
async def test_list_jobs_with_filters(async_client: AsyncClient, store: JobStore):
    await store.enqueue("report", {})
    await store.enqueue("report", {})
    await store.enqueue("sheets_sync", {"guild_id": "g1"})

    response = await async_client.get("/v1/jobs", params={"type": "report"})

    assert response.status_code == 200
    body = response.json()["data"]
    assert body["total"] == 2
    assert {job["type"] for job in body["jobs"]} == {"report"}

    response = await async_client.get("/v1/jobs", params={"status": "completed"})
    assert response.json()["data"]["total"] == 0


@pytest.mark.asyncio
async def test_list_jobs_rejects_unknown_status(async_client: AsyncClient):
    response = await async_client.get("/v1/jobs", params={"status": "exploded"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_job_stats(async_client: AsyncClient, store: JobStore):
    await store.enqueue("report", {})
    await store.enqueue("sheets_sync", {})
    claimed = await store.claim_next("w1")
    assert claimed is not None

    response = await async_client.get("/v1/jobs/stats/overview")

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total_jobs"] == 2
    assert stats["by_status"] == {"pending": 1, "processing": 1}
    assert stats["by_type"] == {"report": 1, "sheets_sync": 1}
    assert stats["queue_depth"] == 2


@pytest.mark.asyncio
async def test_retry_failed_job(async_client: AsyncClient, store: JobStore):
    """Test a failed job can be resubmitted with its attempts reset."""
    job = await store.enqueue("report", {"n": 1})
    await store.claim_next("w1")
    await store.mark_failed(job.id, "boom")

    response = await async_client.post(f"/v1/jobs/{job.id}/retry")

    assert response.status_code == 201
    handle = response.json()["data"]
    assert handle["status"] == "pending"
    assert handle["job_id"] != str(job.id)

    retry = await store.get(UUID(handle["job_id"]))
    assert retry.retry_of == job.id
    assert retry.attempts == 0


@pytest.mark.asyncio
async def test_retry_rejects_pending_job(async_client: AsyncClient, store: JobStore):
    job = await store.enqueue("report", {})

    response = await async_client.post(f"/v1/jobs/{job.id}/retry")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_request_id_header(async_client: AsyncClient):
    response = await async_client.get("/v1/jobs")

    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_validation_errors_use_envelope(async_client: AsyncClient):
    response = await async_client.post("/v1/jobs", json={"payload": {}})

    assert response.status_code == 422
    data = response.json()
    assert data["ok"] is False
    assert data["error"]["message"] == "Request validation failed"
    assert data["error"]["details"]["errors"]


@pytest.mark.asyncio
async def test_caller_request_id_is_propagated(async_client: AsyncClient):
    response = await async_client.get("/v1/jobs", headers={"X-Request-ID": "bot-req-17"})

    assert response.headers["X-Request-ID"] == "bot-req-17"


@pytest.mark.asyncio
async def test_job_with_rejected_result_is_inspectable(
    async_client: AsyncClient, store: JobStore, test_settings
):
    """Test a handler returning a non-mapping leaves a readable failed job."""

    class ReturnsList:
        async def handle(self, payload):
            return ["a", "b"]

    registry = JobRegistry()
    registry.register("report", ReturnsList())
    job = await store.enqueue("report", {})
    await JobWorker(store, registry, test_settings).run_once()

    response = await async_client.get(f"/v1/jobs/{job.id}")
    assert response.status_code == 200
    body = response.json()["data"]
    assert body["status"] == "failed"
    assert body["result"] is None
    assert "mapping" in body["last_error"]

    response = await async_client.get("/v1/jobs")
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 1
