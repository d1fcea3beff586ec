"""
Middleware chain semantics and the stock global middleware.
"""

import json
import logging

import pytest

from talon.context import get_trace_id
from talon.faults import ConfigurationFault, Fault, FaultDomain, NotFoundFault
from talon.middleware import (
    CORSMiddleware,
    ContextMiddleware,
    ExceptionMiddleware,
    LoggingMiddleware,
    run_chain,
)
from talon.response import Response

from tests.conftest import make_request


# ============================================================================
# run_chain
# ============================================================================

class TestRunChain:

    @pytest.mark.asyncio
    async def test_runs_in_order(self):
        calls = []

        async def first(request, response, next):
            calls.append("first:before")
            await next()
            calls.append("first:after")

        async def second(request, response, next):
            calls.append("second")
            response.json({"ok": True})

        fell_through = await run_chain([first, second], make_request(), Response())
        assert calls == ["first:before", "second", "first:after"]
        assert fell_through is False

    @pytest.mark.asyncio
    async def test_fall_through(self):
        async def passthrough(request, response, next):
            await next()

        assert await run_chain([passthrough], make_request(), Response()) is True

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        reached = []

        async def stop(request, response, next):
            response.status(204).end()

        async def never(request, response, next):
            reached.append(True)

        await run_chain([stop, never], make_request(), Response())
        assert reached == []

    @pytest.mark.asyncio
    async def test_sync_middleware_without_await(self):
        calls = []

        def sync_mw(request, response, next):
            calls.append("sync")
            next()

        async def final(request, response, next):
            calls.append("final")
            response.json({})

        await run_chain([sync_mw, final], make_request(), Response())
        assert calls == ["sync", "final"]

    @pytest.mark.asyncio
    async def test_next_with_error_raises(self):
        async def failing(request, response, next):
            next(NotFoundFault("nope"))

        with pytest.raises(NotFoundFault):
            await run_chain([failing], make_request(), Response())

    @pytest.mark.asyncio
    async def test_double_next_runs_once(self, caplog):
        calls = []

        async def twice(request, response, next):
            await next()
            await next()

        async def counted(request, response, next):
            calls.append(True)
            response.json({})

        with caplog.at_level(logging.WARNING, logger="talon.middleware"):
            await run_chain([twice, counted], make_request(), Response())
        assert len(calls) == 1
        assert "more than once" in caplog.text


# ============================================================================
# ExceptionMiddleware
# ============================================================================

async def run_with_error(error, debug=False):
    async def failing(request, response, next):
        raise error

    response = Response()
    await run_chain([ExceptionMiddleware(debug=debug), failing], make_request(), response)
    return response


class TestExceptionMiddleware:

    @pytest.mark.asyncio
    async def test_http_fault(self):
        response = await run_with_error(NotFoundFault("Item 1 not found", error_id=1004))
        assert response.status_code == 404
        assert json.loads(response.body) == {"errorId": 1004, "message": "Item 1 not found"}

    @pytest.mark.asyncio
    async def test_public_fault(self):
        fault = Fault(code="ROUTE_X", message="missing", domain=FaultDomain.ROUTING, public=True)
        response = await run_with_error(fault)
        assert response.status_code == 404
        assert json.loads(response.body) == {"message": "missing", "code": "ROUTE_X"}

    @pytest.mark.asyncio
    async def test_private_fault_message_hidden(self):
        response = await run_with_error(ConfigurationFault("CFG", "secret detail"))
        assert response.status_code == 500
        assert json.loads(response.body) == {"message": "Internal server error", "code": "CFG"}

    @pytest.mark.asyncio
    async def test_unknown_error(self):
        response = await run_with_error(RuntimeError("boom"))
        assert response.status_code == 500
        assert json.loads(response.body) == {"message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_debug_includes_detail(self):
        response = await run_with_error(RuntimeError("boom"), debug=True)
        assert json.loads(response.body)["detail"] == "boom"

    @pytest.mark.asyncio
    async def test_error_after_send_only_logged(self, caplog):
        async def answer_then_fail(request, response, next):
            response.json({"ok": True})
            raise RuntimeError("late")

        response = Response()
        with caplog.at_level(logging.ERROR, logger="talon.exceptions"):
            await run_chain([ExceptionMiddleware(), answer_then_fail], make_request(), response)
        assert response.status_code == 200
        assert json.loads(response.body) == {"ok": True}
        assert "after response was sent" in caplog.text


# ============================================================================
# Context / logging / CORS
# ============================================================================

class TestContextMiddleware:

    @pytest.mark.asyncio
    async def test_generates_trace_id(self):
        seen = []

        async def handler(request, response, next):
            seen.append(get_trace_id())
            response.json({})

        request, response = make_request(), Response()
        await run_chain([ContextMiddleware(), handler], request, response)

        assert seen[0]
        assert response.get_header("x-trace-id") == seen[0]
        assert request.state["trace_id"] == seen[0]
        assert get_trace_id() is None

    @pytest.mark.asyncio
    async def test_reuses_incoming_trace_id(self):
        seen = []

        async def handler(request, response, next):
            seen.append(get_trace_id())
            response.json({})

        request = make_request(headers=[("X-Trace-Id", "abc")])
        await run_chain([ContextMiddleware(), handler], request, Response())
        assert seen == ["abc"]


class TestLoggingMiddleware:

    @pytest.mark.asyncio
    async def test_logs_request_line(self, caplog):
        async def handler(request, response, next):
            response.json({}, status=201)

        with caplog.at_level(logging.INFO, logger="talon.requests"):
            await run_chain([LoggingMiddleware(), handler], make_request(path="/items"), Response())
        assert "GET /items - 201" in caplog.text


class TestCORSMiddleware:

    @pytest.mark.asyncio
    async def test_allowed_origin_echoed(self):
        async def handler(request, response, next):
            response.json({})

        request = make_request(headers=[("origin", "https://app.example")])
        response = Response()
        await run_chain([CORSMiddleware(allow_origins=["https://app.example"]), handler], request, response)
        assert response.get_header("access-control-allow-origin") == "https://app.example"

    @pytest.mark.asyncio
    async def test_preflight(self):
        request = make_request(
            method="OPTIONS",
            headers=[("origin", "https://app.example"), ("access-control-request-method", "POST")],
        )
        response = Response()
        fell_through = await run_chain([CORSMiddleware()], request, response)
        assert fell_through is False
        assert response.status_code == 204
        assert "POST" in response.get_header("access-control-allow-methods")
