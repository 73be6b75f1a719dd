"""HTTP API for domain verification.

Routes:
    GET  /                    - Health check (probes the store)
    POST /api/domains/push    - Register a domain or update its ip
    POST /api/domains/verify  - Issue a verification token and DNS instructions
    POST /api/domains/check   - Run the TXT + CNAME verification
    GET  /api/domains/status  - Verification state of a domain
    GET  /api/domains/logs    - Audit history of a domain

Request bodies use camelCase keys. Every error response has the shape
``{"success": false, "error": "<message>"}``.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domainverify.core.config import VerificationSettings
from domainverify.domains import (
    AiodnsResolver,
    DomainRecord,
    DomainVerificationError,
    DomainVerificationService,
    DuplicateDomainError,
    InvalidInputError,
    JsonDomainStore,
    StoreUnavailableError,
)

logger = structlog.get_logger()

VERIFICATION_FIELDS_REQUIRED = (
    '"domain", "customerId", "serviceHost", and "txtRecordVerifyKey" are required'
)


class RegisterDomainRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: str = Field(min_length=1)
    ip: str = Field(min_length=1)
    customer_id: str | None = Field(default=None, alias="customerId")


class VerificationRequest(BaseModel):
    """Body of /verify and /check. Host and key fall back to server defaults."""

    model_config = ConfigDict(populate_by_name=True)

    domain: str = Field(min_length=1)
    customer_id: str = Field(min_length=1, alias="customerId")
    service_host: str | None = Field(default=None, alias="serviceHost")
    txt_record_verify_key: str | None = Field(default=None, alias="txtRecordVerifyKey")


class DomainQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: str = Field(min_length=1)
    customer_id: str = Field(min_length=1, alias="customerId")


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


def _domain_summary(record: DomainRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "ip": record.ip,
        "customerId": record.customer_id,
        "isVerified": record.is_verified,
    }


class DomainApiHandler:
    """Maps HTTP requests onto DomainVerificationService operations."""

    def __init__(
        self,
        service: DomainVerificationService,
        service_host: str | None = None,
        txt_record_verify_key: str | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            service: The verification engine.
            service_host: Default CNAME target when a request omits serviceHost.
            txt_record_verify_key: Default TXT key when a request omits txtRecordVerifyKey.
        """
        self.service = service
        self.service_host = service_host
        self.txt_record_verify_key = txt_record_verify_key

    def register_routes(self, app: web.Application) -> None:
        """Register API routes on an aiohttp application."""
        app.router.add_get("/", self.handle_health)
        app.router.add_post("/api/domains/push", self.handle_push)
        app.router.add_post("/api/domains/verify", self.handle_verify)
        app.router.add_post("/api/domains/check", self.handle_check)
        app.router.add_get("/api/domains/status", self.handle_status)
        app.router.add_get("/api/domains/logs", self.handle_logs)

    async def _read_json(self, request: web.Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            raise InvalidInputError("Request body must be valid JSON") from e
        if not isinstance(body, dict):
            raise InvalidInputError("Request body must be a JSON object")
        return body

    async def _verification_request(
        self, request: web.Request
    ) -> tuple[VerificationRequest, str, str]:
        try:
            body = VerificationRequest.model_validate(await self._read_json(request))
        except ValidationError as e:
            raise InvalidInputError(VERIFICATION_FIELDS_REQUIRED) from e

        service_host = body.service_host or self.service_host
        txt_key = body.txt_record_verify_key or self.txt_record_verify_key
        if not service_host or not txt_key:
            raise InvalidInputError(VERIFICATION_FIELDS_REQUIRED)
        return body, service_host, txt_key

    def _domain_query(self, request: web.Request) -> DomainQuery:
        try:
            return DomainQuery.model_validate(dict(request.query))
        except ValidationError as e:
            raise InvalidInputError(
                '"domain" and "customerId" query parameters are required'
            ) from e

    async def handle_health(self, request: web.Request) -> web.Response:
        try:
            await self.service.check_store()
        except StoreUnavailableError:
            return _error("Failed to connect to the database", 500)

        return web.json_response(
            {
                "message": "Domain Verification Service is running",
                "apiInfo": {
                    "endpoints": {
                        "push": "POST /api/domains/push - requires: domain, ip",
                        "verify": "POST /api/domains/verify - requires: domain, customerId, "
                        "serviceHost, txtRecordVerifyKey",
                        "check": "POST /api/domains/check - requires: domain, customerId, "
                        "serviceHost, txtRecordVerifyKey",
                        "status": "GET /api/domains/status - requires: domain, customerId",
                    },
                },
            }
        )

    async def handle_push(self, request: web.Request) -> web.Response:
        try:
            body = RegisterDomainRequest.model_validate(await self._read_json(request))
        except ValidationError:
            return _error('"domain" and "ip" address are required', 400)
        except InvalidInputError as e:
            return _error(e.message, 400)

        try:
            record = await self.service.register_domain(body.domain, body.ip, body.customer_id)
        except (DomainVerificationError, DuplicateDomainError) as e:
            return _error(str(e), 400)

        return web.json_response(
            {
                "success": True,
                "message": "Domain registered successfully",
                "domain": _domain_summary(record),
            }
        )

    async def handle_verify(self, request: web.Request) -> web.Response:
        try:
            body, service_host, txt_key = await self._verification_request(request)
            token = await self.service.generate_verification_token(body.domain, body.customer_id)
            instructions = await self.service.get_verification_instructions(
                body.domain, service_host, body.customer_id, txt_key
            )
        except DomainVerificationError as e:
            return _error(e.message, 400)

        return web.json_response(
            {"success": True, "token": token, "instructions": instructions.to_dict()}
        )

    async def handle_check(self, request: web.Request) -> web.Response:
        try:
            body, service_host, txt_key = await self._verification_request(request)
            await self.service.complete_domain_verification(
                body.domain, service_host, body.customer_id, txt_key
            )
        except DomainVerificationError as e:
            logger.info("Domain check failed", error=e.message, kind=e.kind.value)
            return _error(e.message, 400)

        return web.json_response(
            {
                "success": True,
                "message": "Domain verified successfully",
                "domain": body.domain,
            }
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        try:
            query = self._domain_query(request)
        except InvalidInputError as e:
            return _error(e.message, 400)

        try:
            status = await self.service.get_domain_status(query.domain, query.customer_id)
        except DomainVerificationError as e:
            return _error(e.message, 404)

        return web.json_response({"success": True, "status": status.to_dict()})

    async def handle_logs(self, request: web.Request) -> web.Response:
        try:
            query = self._domain_query(request)
        except InvalidInputError as e:
            return _error(e.message, 400)

        try:
            logs = await self.service.list_verification_logs(query.domain, query.customer_id)
        except DomainVerificationError as e:
            return _error(e.message, 404)

        return web.json_response({"success": True, "logs": [entry.to_dict() for entry in logs]})


def build_service(settings: VerificationSettings) -> DomainVerificationService:
    """Create a service backed by the JSON store and live DNS."""
    return DomainVerificationService(
        JsonDomainStore(settings.storage_path),
        AiodnsResolver(nameservers=settings.dns_nameservers, timeout=settings.dns_timeout),
        token_ttl=settings.token_ttl,
    )


def create_app(
    service: DomainVerificationService,
    service_host: str | None = None,
    txt_record_verify_key: str | None = None,
) -> web.Application:
    """Create the aiohttp application serving the verification API."""
    app = web.Application()
    DomainApiHandler(service, service_host, txt_record_verify_key).register_routes(app)
    return app
