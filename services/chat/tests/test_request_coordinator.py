"""
Tests for the client-side request coordinator.
"""

import asyncio

import httpx
import pytest

from services.chat.client import CancellableRequest, ChatServiceClient


class GatedTransport(httpx.AsyncBaseTransport):
    """Holds each response until its gate for that query is opened."""

    def __init__(self):
        self.gates = {}
        self.seen = []

    def gate(self, query: str) -> asyncio.Event:
        return self.gates.setdefault(query, asyncio.Event())

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        query = request.url.params.get("q", "")
        self.seen.append(query)
        await self.gate(query).wait()
        if query == "fail":
            return httpx.Response(500, json={"error": "Internal server error"})
        return httpx.Response(200, json={"query": query})


class Recorder:
    def __init__(self):
        self.successes = []
        self.errors = []
        self.cancels = 0

    def on_success(self, data):
        self.successes.append(data)

    def on_error(self, error):
        self.errors.append(error)

    def on_cancel(self):
        self.cancels += 1


async def wait_for_requests(transport: GatedTransport, count: int) -> None:
    while len(transport.seen) < count:
        await asyncio.sleep(0)


class TestCancellableRequest:
    @pytest.mark.asyncio
    async def test_single_request_succeeds(self):
        transport = GatedTransport()
        transport.gate("py").set()
        async with httpx.AsyncClient(
            transport=transport, base_url="http://chat"
        ) as client:
            coordinator = CancellableRequest(client)
            recorder = Recorder()

            data = await coordinator.request(
                "GET", "/api/search", params={"q": "py"}, on_success=recorder.on_success
            )

        assert data == {"query": "py"}
        assert recorder.successes == [{"query": "py"}]
        assert coordinator.epoch == 1

    @pytest.mark.asyncio
    async def test_newer_request_supersedes_older(self):
        transport = GatedTransport()
        async with httpx.AsyncClient(
            transport=transport, base_url="http://chat"
        ) as client:
            coordinator = CancellableRequest(client)
            first, second = Recorder(), Recorder()

            first_task = asyncio.create_task(
                coordinator.request(
                    "GET",
                    "/api/search",
                    params={"q": "py"},
                    on_success=first.on_success,
                    on_cancel=first.on_cancel,
                )
            )
            await wait_for_requests(transport, 1)
            second_task = asyncio.create_task(
                coordinator.request(
                    "GET",
                    "/api/search",
                    params={"q": "pyt"},
                    on_success=second.on_success,
                    on_cancel=second.on_cancel,
                )
            )
            await wait_for_requests(transport, 2)

            # Releasing the older response after the newer one must not apply it
            transport.gate("pyt").set()
            transport.gate("py").set()
            assert await first_task is None
            assert await second_task == {"query": "pyt"}

        assert first.successes == []
        assert first.cancels == 1
        assert second.successes == [{"query": "pyt"}]
        assert second.cancels == 0

    @pytest.mark.asyncio
    async def test_cancel_current_request(self):
        transport = GatedTransport()
        async with httpx.AsyncClient(
            transport=transport, base_url="http://chat"
        ) as client:
            coordinator = CancellableRequest(client)
            recorder = Recorder()

            task = asyncio.create_task(
                coordinator.request(
                    "GET",
                    "/api/search",
                    params={"q": "slow"},
                    on_success=recorder.on_success,
                    on_cancel=recorder.on_cancel,
                )
            )
            await wait_for_requests(transport, 1)
            coordinator.cancel_current_request()

            assert await task is None

        assert recorder.cancels == 1
        assert recorder.successes == []

    @pytest.mark.asyncio
    async def test_error_reported_for_current_request(self):
        transport = GatedTransport()
        transport.gate("fail").set()
        async with httpx.AsyncClient(
            transport=transport, base_url="http://chat"
        ) as client:
            coordinator = CancellableRequest(client)
            recorder = Recorder()

            with pytest.raises(httpx.HTTPStatusError):
                await coordinator.request(
                    "GET",
                    "/api/search",
                    params={"q": "fail"},
                    on_success=recorder.on_success,
                    on_error=recorder.on_error,
                )

        assert len(recorder.errors) == 1
        assert recorder.successes == []

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        transport = GatedTransport()
        async with httpx.AsyncClient(
            transport=transport, base_url="http://chat"
        ) as client:
            coordinator = CancellableRequest(client)
            recorder = Recorder()

            task = asyncio.create_task(
                coordinator.request(
                    "GET",
                    "/api/search",
                    params={"q": "slow"},
                    on_cancel=recorder.on_cancel,
                )
            )
            await wait_for_requests(transport, 1)
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

        assert recorder.cancels == 0


class TestChatServiceClient:
    @pytest.mark.asyncio
    async def test_endpoints(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/chats":
                return httpx.Response(200, json={"chats": [], "total": 0})
            if request.url.path == "/api/chats/missing":
                return httpx.Response(404, json={"error": "Chat missing not found"})
            if request.url.path == "/api/autosuggest":
                return httpx.Response(200, content=request.content)
            if request.url.path == "/api/autosuggest/starter":
                return httpx.Response(200, json={"suggestions": []})
            return httpx.Response(200, json={"query": request.url.params["q"]})

        async with ChatServiceClient(
            "http://chat/", transport=httpx.MockTransport(handler)
        ) as client:
            assert (await client.list_chats())["total"] == 0
            assert await client.get_chat("missing") is None
            assert await client.search("python") == {"query": "python"}
            echoed = await client.autosuggest("how", max_suggestions=3)
            assert echoed == {
                "text": "how",
                "modelId": "chat-model",
                "maxSuggestions": 3,
            }
            assert await client.starter_suggestions() == {"suggestions": []}

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        client = ChatServiceClient("http://chat")
        with pytest.raises(RuntimeError):
            await client.list_chats()
