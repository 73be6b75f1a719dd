"""Async client for the domain verification HTTP API.

Usage:
    async with DomainVerificationClient("http://localhost:4000") as client:
        await client.register_domain(DomainRegistrationInput(domain="acme.io", ip="10.0.0.1"))
        result = await client.generate_verification_token(
            GenerateVerificationTokenInput(
                domain="acme.io",
                customer_id="c1",
                service_host="svc.example.com",
                txt_record_verify_key="verify-key",
            )
        )
"""

from __future__ import annotations

import os
from ipaddress import IPv4Address
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = os.environ.get("DOMAINVERIFY_API_URL", "http://localhost:4000")


class DomainVerificationClientError(Exception):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(message)


class _Input(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DomainRegistrationInput(_Input):
    domain: str = Field(min_length=1)
    ip: IPv4Address
    customer_id: str | None = Field(default=None, alias="customerId")


class GenerateVerificationTokenInput(_Input):
    domain: str = Field(min_length=1)
    customer_id: str = Field(min_length=1, alias="customerId")
    service_host: str = Field(min_length=1, alias="serviceHost")
    txt_record_verify_key: str = Field(min_length=1, alias="txtRecordVerifyKey")


class CheckDomainVerificationInput(GenerateVerificationTokenInput):
    pass


class GetDomainStatusInput(_Input):
    domain: str = Field(min_length=1)
    customer_id: str = Field(min_length=1, alias="customerId")


class DomainVerificationClient:
    """Thin async wrapper over the verification API.

    Inputs are validated locally before any request is sent; responses are
    returned as decoded JSON.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> DomainVerificationClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        data: BaseModel | None = None,
        params: BaseModel | None = None,
    ) -> dict[str, Any]:
        response = await self._client.request(
            method,
            path,
            json=data.model_dump(mode="json", by_alias=True, exclude_none=True) if data else None,
            params=params.model_dump(mode="json", by_alias=True) if params else None,
        )
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if not response.is_success:
            raise DomainVerificationClientError(
                payload.get("error") or "Something went wrong", response.status_code
            )
        return payload

    async def register_domain(self, data: DomainRegistrationInput) -> dict[str, Any]:
        return await self._request("POST", "/api/domains/push", data)

    async def generate_verification_token(
        self, data: GenerateVerificationTokenInput
    ) -> dict[str, Any]:
        return await self._request("POST", "/api/domains/verify", data)

    async def check_domain_verification(
        self, data: CheckDomainVerificationInput
    ) -> dict[str, Any]:
        return await self._request("POST", "/api/domains/check", data)

    async def get_domain_status(self, data: GetDomainStatusInput) -> dict[str, Any]:
        return await self._request("GET", "/api/domains/status", params=data)

    async def health_check(self) -> dict[str, Any]:
        return await self._request("GET", "/")
