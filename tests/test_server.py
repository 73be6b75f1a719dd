"""Tests for the HTTP API."""

from __future__ import annotations

import re
from unittest.mock import AsyncMock

import pytest
from aiohttp import test_utils

from domainverify.domains import (
    DomainVerificationService,
    MemoryDomainStore,
    StaticResolver,
    StoreUnavailableError,
)
from domainverify.server import create_app

VERIFY_BODY = {
    "domain": "acme.io",
    "customerId": "c1",
    "serviceHost": "svc.example.com",
    "txtRecordVerifyKey": "key123",
}


@pytest.fixture
def resolver():
    return StaticResolver()


@pytest.fixture
def service(resolver):
    return DomainVerificationService(MemoryDomainStore(), resolver)


def _client(service, **kwargs) -> test_utils.TestClient:
    return test_utils.TestClient(test_utils.TestServer(create_app(service, **kwargs)))


class TestHealth:
    """Tests for GET /."""

    @pytest.mark.asyncio
    async def test_health(self, service):
        async with _client(service) as client:
            resp = await client.get("/")
            data = await resp.json()

        assert resp.status == 200
        assert data["message"] == "Domain Verification Service is running"

    @pytest.mark.asyncio
    async def test_health_store_down(self, service):
        """Test a failing store probe yields 500."""
        service.store.ping = AsyncMock(side_effect=StoreUnavailableError("down"))

        async with _client(service) as client:
            resp = await client.get("/")
            data = await resp.json()

        assert resp.status == 500
        assert data == {"success": False, "error": "Failed to connect to the database"}


class TestPush:
    """Tests for POST /api/domains/push."""

    @pytest.mark.asyncio
    async def test_register(self, service):
        async with _client(service) as client:
            resp = await client.post(
                "/api/domains/push",
                json={"domain": "acme.io", "ip": "10.0.0.1", "customerId": "c1"},
            )
            data = await resp.json()

        assert resp.status == 200
        assert data["success"] is True
        assert data["message"] == "Domain registered successfully"
        assert data["domain"]["name"] == "acme.io"
        assert data["domain"]["ip"] == "10.0.0.1"
        assert data["domain"]["customerId"] == "c1"
        assert data["domain"]["isVerified"] is False
        assert data["domain"]["id"]

    @pytest.mark.asyncio
    async def test_register_without_customer(self, service):
        async with _client(service) as client:
            resp = await client.post("/api/domains/push", json={"domain": "acme.io", "ip": "10.0.0.1"})
            data = await resp.json()

        assert resp.status == 200
        assert data["domain"]["customerId"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{"ip": "10.0.0.1"}, {"domain": "acme.io"}, {"domain": "", "ip": "10.0.0.1"}],
    )
    async def test_missing_fields(self, service, body):
        async with _client(service) as client:
            resp = await client.post("/api/domains/push", json=body)
            data = await resp.json()

        assert resp.status == 400
        assert data == {"success": False, "error": '"domain" and "ip" address are required'}

    @pytest.mark.asyncio
    async def test_invalid_json(self, service):
        async with _client(service) as client:
            resp = await client.post(
                "/api/domains/push",
                data="{not json",
                headers={"Content-Type": "application/json"},
            )

        assert resp.status == 400


class TestVerify:
    """Tests for POST /api/domains/verify."""

    @pytest.mark.asyncio
    async def test_issue_token(self, service):
        await service.register_domain("acme.io", "10.0.0.1", "c1")

        async with _client(service) as client:
            resp = await client.post("/api/domains/verify", json=VERIFY_BODY)
            data = await resp.json()

        assert resp.status == 200
        assert data["success"] is True
        assert re.match(r"^[0-9a-f]{64}$", data["token"])
        assert data["instructions"]["step1"]["type"] == "TXT"
        assert data["instructions"]["step1"]["value"] == f"key123={data['token']}"
        assert data["instructions"]["step2"]["type"] == "CNAME"
        assert data["instructions"]["step2"]["value"] == "svc.example.com"

    @pytest.mark.asyncio
    async def test_missing_fields(self, service):
        body = {k: v for k, v in VERIFY_BODY.items() if k != "txtRecordVerifyKey"}

        async with _client(service) as client:
            resp = await client.post("/api/domains/verify", json=body)
            data = await resp.json()

        assert resp.status == 400
        assert "txtRecordVerifyKey" in data["error"]

    @pytest.mark.asyncio
    async def test_server_defaults_fill_missing_fields(self, service):
        """Test configured defaults stand in for serviceHost and txtRecordVerifyKey."""
        await service.register_domain("acme.io", "10.0.0.1", "c1")

        async with _client(
            service, service_host="svc.example.com", txt_record_verify_key="key123"
        ) as client:
            resp = await client.post(
                "/api/domains/verify", json={"domain": "acme.io", "customerId": "c1"}
            )
            data = await resp.json()

        assert resp.status == 200
        assert data["instructions"]["step1"]["value"].startswith("key123=")

    @pytest.mark.asyncio
    async def test_unknown_domain(self, service):
        async with _client(service) as client:
            resp = await client.post("/api/domains/verify", json=VERIFY_BODY)
            data = await resp.json()

        assert resp.status == 400
        assert data == {"success": False, "error": "Domain not found"}


class TestCheck:
    """Tests for POST /api/domains/check."""

    @pytest.mark.asyncio
    async def test_full_flow(self, service, resolver):
        async with _client(service) as client:
            await client.post(
                "/api/domains/push",
                json={"domain": "acme.io", "ip": "10.0.0.1", "customerId": "c1"},
            )
            token = (await (await client.post("/api/domains/verify", json=VERIFY_BODY)).json())[
                "token"
            ]
            resolver.txt["acme.io"] = [[f"v=verify key123={token}"]]
            resolver.cname["acme.io"] = ["svc.example.com"]

            resp = await client.post("/api/domains/check", json=VERIFY_BODY)
            data = await resp.json()

            status_resp = await client.get(
                "/api/domains/status", params={"domain": "acme.io", "customerId": "c1"}
            )
            status = (await status_resp.json())["status"]

        assert resp.status == 200
        assert data == {
            "success": True,
            "message": "Domain verified successfully",
            "domain": "acme.io",
        }
        assert status["isVerified"] is True
        assert status["hasActivePendingVerification"] is False

    @pytest.mark.asyncio
    async def test_txt_failure(self, service):
        await service.register_domain("acme.io", "10.0.0.1", "c1")
        await service.generate_verification_token("acme.io", "c1")

        async with _client(service) as client:
            resp = await client.post("/api/domains/check", json=VERIFY_BODY)
            data = await resp.json()

        assert resp.status == 400
        assert data == {"success": False, "error": "TXT record verification failed"}

    @pytest.mark.asyncio
    async def test_no_pending_verification(self, service):
        await service.register_domain("acme.io", "10.0.0.1", "c1")

        async with _client(service) as client:
            resp = await client.post("/api/domains/check", json=VERIFY_BODY)
            data = await resp.json()

        assert resp.status == 400
        assert data["error"] == "No pending verification for this domain"


class TestStatus:
    """Tests for GET /api/domains/status and /api/domains/logs."""

    @pytest.mark.asyncio
    async def test_status(self, service):
        await service.register_domain("acme.io", "10.0.0.1", "c1")

        async with _client(service) as client:
            resp = await client.get(
                "/api/domains/status", params={"domain": "acme.io", "customerId": "c1"}
            )
            data = await resp.json()

        assert resp.status == 200
        assert data["success"] is True
        assert data["status"]["domain"] == "acme.io"
        assert data["status"]["ip"] == "10.0.0.1"
        assert data["status"]["isVerified"] is False

    @pytest.mark.asyncio
    async def test_status_missing_params(self, service):
        async with _client(service) as client:
            resp = await client.get("/api/domains/status", params={"domain": "acme.io"})

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_status_not_found(self, service):
        async with _client(service) as client:
            resp = await client.get(
                "/api/domains/status", params={"domain": "acme.io", "customerId": "c1"}
            )
            data = await resp.json()

        assert resp.status == 404
        assert data == {"success": False, "error": "Domain not found"}

    @pytest.mark.asyncio
    async def test_logs(self, service):
        await service.register_domain("acme.io", "10.0.0.1", "c1")
        await service.generate_verification_token("acme.io", "c1")

        async with _client(service) as client:
            resp = await client.get(
                "/api/domains/logs", params={"domain": "acme.io", "customerId": "c1"}
            )
            data = await resp.json()

        assert resp.status == 200
        assert [entry["step"] for entry in data["logs"]] == ["token_generated"]
