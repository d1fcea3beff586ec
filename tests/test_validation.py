"""
Validation middleware: transformation, error bodies, slot handling.
"""

import json
from typing import List, Optional

import pytest
from pydantic import BaseModel, Field

from talon.controller.metadata import ParameterSlot
from talon.validation import get_type_adapter, slot_source, validation_middleware

from tests.conftest import make_request, run_stage


class ItemParams(BaseModel):
    id: int


class ItemQuery(BaseModel):
    page: int = 1
    tags: List[str] = []


class CreateItem(BaseModel):
    title: str = Field(min_length=1)
    price: Optional[float] = None


class Address(BaseModel):
    city: str


class Customer(BaseModel):
    name: str
    address: Address


class TenantHeaders(BaseModel):
    x_tenant: str


def body_of(response):
    return json.loads(response.body)


# ============================================================================
# Success path
# ============================================================================

class TestValidationSuccess:

    @pytest.mark.asyncio
    async def test_params_coerced(self):
        request = make_request(path="/items/5")
        request.params = {"id": "5"}
        response, called = await run_stage(validation_middleware(ItemParams, "params"), request)

        assert called
        assert not response.headers_sent
        assert request.validated_params == ItemParams(id=5)
        assert request.params == {"id": "5"}

    @pytest.mark.asyncio
    async def test_query_defaults_applied(self):
        request = make_request(query_string="tags=a&tags=b")
        _, called = await run_stage(validation_middleware(ItemQuery, ParameterSlot.QUERY), request)

        assert called
        assert request.validated_query.page == 1
        assert request.validated_query.tags == ["a", "b"]

    @pytest.mark.asyncio
    async def test_body_validated(self):
        request = make_request(method="POST", body=b'{"title": "x"}', headers=[("content-type", "application/json")])
        await request.load()
        _, called = await run_stage(validation_middleware(CreateItem, "body"), request)

        assert called
        assert request.validated_body.title == "x"
        assert request.is_validated(ParameterSlot.BODY)

    @pytest.mark.asyncio
    async def test_headers_accept_underscore_names(self):
        request = make_request(headers=[("X-Tenant", "acme")])
        _, called = await run_stage(validation_middleware(TenantHeaders, "headers"), request)

        assert called
        assert request.validated_headers.x_tenant == "acme"

    @pytest.mark.asyncio
    async def test_non_model_schema(self):
        request = make_request()
        request.params = {"id": "3"}
        _, called = await run_stage(validation_middleware(dict, "params"), request)
        assert called
        assert request.validated_params == {"id": "3"}


# ============================================================================
# Failure path
# ============================================================================

class TestValidationFailure:

    @pytest.mark.asyncio
    async def test_missing_field(self):
        request = make_request(method="POST", body=b"{}")
        await request.load()
        response, called = await run_stage(validation_middleware(CreateItem, "body"), request)

        assert not called
        assert response.status_code == 400
        data = body_of(response)
        assert data["ok"] is False
        assert data["message"] == "Validation error"
        assert data["errors"][0]["field"] == "title"
        assert data["errors"][0]["constraints"]

    @pytest.mark.asyncio
    async def test_invalid_params(self):
        request = make_request()
        request.params = {"id": "abc"}
        response, called = await run_stage(validation_middleware(ItemParams, "params"), request)

        assert not called
        assert response.status_code == 400
        assert [e["field"] for e in body_of(response)["errors"]] == ["id"]
        assert request.validated_params is None

    @pytest.mark.asyncio
    async def test_nested_field_path(self):
        request = make_request(method="POST", body=b'{"name": "a", "address": {}}')
        await request.load()
        response, _ = await run_stage(validation_middleware(Customer, "body"), request)

        assert body_of(response)["errors"] == [
            {"field": "address.city", "constraints": ["Field required"]},
        ]

    @pytest.mark.asyncio
    async def test_root_error_uses_slot_name(self):
        request = make_request(method="POST", body=b"[1, 2]")
        await request.load()
        response, _ = await run_stage(validation_middleware(CreateItem, "body"), request)

        assert response.status_code == 400
        assert body_of(response)["errors"][0]["field"] == "body"

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_coercion(self):
        request = make_request()
        request.params = {"id": "5"}
        response, called = await run_stage(validation_middleware(ItemParams, "params", strict=True), request)

        assert not called
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_adapter_crash_answers_400(self):
        request = make_request(method="POST", body=b"{not json")
        await request.load()
        response, called = await run_stage(validation_middleware(CreateItem, "body"), request)

        assert not called
        assert response.status_code == 400
        data = body_of(response)
        assert data["ok"] is False
        assert data["message"] == "Validation middleware failed"


# ============================================================================
# Helpers
# ============================================================================

class TestHelpers:

    def test_type_adapter_cached(self):
        assert get_type_adapter(ItemParams) is get_type_adapter(ItemParams)

    def test_slot_source_headers(self):
        request = make_request(headers=[("X-Request-Id", "r1")])
        source = slot_source(request, ParameterSlot.HEADERS)
        assert source["x-request-id"] == "r1"
        assert source["x_request_id"] == "r1"

    def test_cannot_validate_req_slot(self):
        with pytest.raises(ValueError):
            validation_middleware(ItemParams, "req")

    def test_stage_is_named_after_slot(self):
        stage = validation_middleware(ItemParams, "params")
        assert stage.__name__ == "validate_params"
        assert "ItemParams" in stage.__qualname__
