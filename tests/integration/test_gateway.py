"""Integration tests - full request flow through the chatgate aiohttp app.

Covers the HTTP surface in mock mode (no upstream credential):
1. CORS preflight and headers on every response
2. /health, /, /playground and the 404 fallback
3. /graphql decoding (POST JSON, POST graphql, GET) and execution
"""

import json
from urllib.parse import urlencode

import pytest
from aiohttp import web

from chatgate.completion import MOCK_TEMPLATES
from chatgate.server import CORS_HEADERS, create_app


@pytest.fixture
def config() -> dict:
    return {
        "server": {"host": "127.0.0.1", "port": 8787},
        "openai": {
            "api_key": "",
            "base_url": "http://127.0.0.1:1/v1",
            "model": "gpt-3.5-turbo",
            "max_tokens": 1000,
            "temperature": 0.7,
        },
        "service": {"environment": "test"},
        "cors": {"allowed_origins": "https://only.example"},
        "logging": {"level": "INFO"},
    }


@pytest.fixture
def app(config: dict) -> web.Application:
    return create_app(config, id_factory=lambda: "id-1")


def assert_cors(resp) -> None:
    for name, value in CORS_HEADERS.items():
        assert resp.headers[name] == value


class TestPreflight:
    @pytest.mark.parametrize("path", ["/graphql", "/health", "/", "/anything/else"])
    async def test_options_short_circuits(self, aiohttp_client, app, path: str) -> None:
        client = await aiohttp_client(app)
        resp = await client.options(path)
        assert resp.status == 200
        assert await resp.text() == ""
        assert_cors(resp)

    async def test_wildcard_origin_despite_allowed_origins(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.get("/health", headers={"Origin": "https://other.example"})
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestFixedRoutes:
    async def test_health(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.get("/health")
        assert resp.status == 200
        body = await resp.json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"
        assert body["timestamp"].endswith("Z")
        assert_cors(resp)

    async def test_health_head(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.head("/health")
        assert resp.status == 200

    @pytest.mark.parametrize("path", ["/", "/playground"])
    async def test_playground(self, aiohttp_client, app, path: str) -> None:
        client = await aiohttp_client(app)
        resp = await client.get(path)
        assert resp.status == 200
        assert resp.content_type == "text/html"
        text = await resp.text()
        assert "/graphql" in text
        assert "sendMessage" in text
        assert_cors(resp)

    @pytest.mark.parametrize("path", ["/unknown-path", "/graphql/", "/health/extra"])
    async def test_not_found(self, aiohttp_client, app, path: str) -> None:
        client = await aiohttp_client(app)
        resp = await client.get(path)
        assert resp.status == 404
        body = await resp.json()
        assert body["error"] == "Not Found"
        assert "/graphql" in body["message"]
        assert_cors(resp)


class TestGraphQLEndpoint:
    async def test_hello_post_json(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/graphql", json={"query": "{ hello }"})
        assert resp.status == 200
        assert await resp.json() == {"data": {"hello": "Hello from AI Chat Service!"}}
        assert_cors(resp)

    async def test_hello_post_graphql(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/graphql", data="{ hello }", headers={"Content-Type": "application/graphql"}
        )
        assert resp.status == 200
        assert await resp.json() == {"data": {"hello": "Hello from AI Chat Service!"}}

    async def test_get_with_variables(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        qs = urlencode(
            {
                "query": "query Echo($m: String!) { chat(message: $m) { id message model } }",
                "variables": json.dumps({"m": "hi"}),
                "operationName": "Echo",
            }
        )
        resp = await client.get(f"/graphql?{qs}")
        assert resp.status == 200
        body = await resp.json()
        assert body == {
            "data": {"chat": {"id": "id-1", "message": "Echo: hi", "model": "gpt-3.5-turbo"}}
        }

    @pytest.mark.parametrize("payload", [{}, {"query": ""}, {"query": None}, {"variables": {}}])
    async def test_missing_query_rejected(self, aiohttp_client, app, payload: dict) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/graphql", json=payload)
        assert resp.status == 400
        assert await resp.json() == {"error": "Invalid GraphQL request"}
        assert_cors(resp)

    async def test_malformed_json_rejected(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/graphql", data="{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status == 400

    async def test_get_bad_variables_rejected(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.get("/graphql", params={"query": "{ hello }", "variables": "[oops"})
        assert resp.status == 400

    async def test_get_without_query_rejected(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.get("/graphql")
        assert resp.status == 400

    async def test_syntax_error_in_errors_array(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/graphql", json={"query": "{ hello"})
        assert resp.status == 200
        body = await resp.json()
        assert body["errors"]

    async def test_send_message_mock_mode(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/graphql",
            json={
                "query": "mutation($input: MessageInput!) { sendMessage(input: $input) { id message timestamp model } }",
                "variables": {"input": {"message": "What is the weather like?"}},
            },
        )
        assert resp.status == 200
        result = (await resp.json())["data"]["sendMessage"]
        assert result["message"] in {
            t.format(message="What is the weather like?") for t in MOCK_TEMPLATES
        }
        assert result["model"] == "gpt-3.5-turbo"
        assert result["id"] == "id-1"

    async def test_execution_fault_returns_500(self, aiohttp_client, app) -> None:
        app["schema"] = object()
        client = await aiohttp_client(app)
        resp = await client.post("/graphql", json={"query": "{ hello }"})
        assert resp.status == 500
        body = await resp.json()
        assert body["error"] == "Internal server error"
        assert_cors(resp)

    async def test_undecodable_graphql_body_rejected(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/graphql",
            data=b"{ hello \xff }",
            headers={"Content-Type": "application/graphql"},
        )
        assert resp.status == 400
        assert await resp.json() == {"error": "Invalid GraphQL request"}
        assert_cors(resp)

    async def test_decoding_fault_returns_json_500(
        self, aiohttp_client, app, monkeypatch
    ) -> None:
        async def explode(request):
            raise RuntimeError("decoder exploded")

        monkeypatch.setattr("chatgate.server.parse_graphql_request", explode)
        client = await aiohttp_client(app)
        resp = await client.post("/graphql", json={"query": "{ hello }"})
        assert resp.status == 500
        assert await resp.json() == {
            "error": "Internal server error",
            "message": "decoder exploded",
        }
        assert_cors(resp)
