"""aiohttp application: /graphql, /health, / and /playground endpoints."""

from __future__ import annotations

import logging
from typing import Any, Callable

from aiohttp import web
from graphql import graphql

from chatgate.completion import CompletionClient
from chatgate.config import completion_config, parse_origins
from chatgate.request import parse_graphql_request
from chatgate.schema import iso_timestamp, schema

log = logging.getLogger(__name__)

VERSION = "1.0.0"

# allowed_origins is read from config but the origin is always the wildcard.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

PLAYGROUND_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>AI Chat Service - GraphQL Playground</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 40px; }
    .container { max-width: 800px; margin: 0 auto; }
    h1 { color: #333; }
    .endpoint { background: #f5f5f5; padding: 10px; border-radius: 4px; margin: 10px 0; }
    code { background: #e8e8e8; padding: 2px 4px; border-radius: 2px; }
    .example { background: #f9f9f9; padding: 15px; border-left: 4px solid #007acc; margin: 15px 0; }
  </style>
</head>
<body>
  <div class="container">
    <h1>AI Chat Service</h1>
    <p>Welcome to the AI Chat Service GraphQL API!</p>

    <h2>Endpoints</h2>
    <div class="endpoint"><strong>GraphQL:</strong> <code>/graphql</code></div>
    <div class="endpoint"><strong>Health Check:</strong> <code>/health</code></div>

    <h2>Example Queries</h2>
    <div class="example">
      <h3>Hello Query</h3>
      <pre>query {
  hello
}</pre>
    </div>

    <div class="example">
      <h3>Chat Query</h3>
      <pre>query {
  chat(message: "Hello, how are you?") {
    id
    message
    timestamp
    model
  }
}</pre>
    </div>

    <div class="example">
      <h3>Send Message Mutation</h3>
      <pre>mutation {
  sendMessage(input: {
    message: "What is the weather like?"
    model: "gpt-3.5-turbo"
  }) {
    id
    message
    timestamp
    model
  }
}</pre>
    </div>

    <p><strong>Note:</strong> This service is configured to use mock responses when no OpenAI API key is provided.</p>
  </div>
</body>
</html>
"""


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Short-circuit preflight and stamp CORS headers on every response."""
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    except Exception as exc:
        log.exception("Unhandled error serving %s %s", request.method, request.path)
        response = web.json_response(
            {"error": "Internal server error", "message": str(exc)}, status=500
        )
    response.headers.update(CORS_HEADERS)
    return response


async def health(request: web.Request) -> web.Response:
    return web.json_response(
        {"status": "healthy", "timestamp": iso_timestamp(), "version": VERSION}
    )


async def graphql_endpoint(request: web.Request) -> web.Response:
    gql_request = await parse_graphql_request(request)
    if gql_request is None:
        log.debug("Rejected malformed GraphQL request: %s %s", request.method, request.path_qs)
        return web.json_response({"error": "Invalid GraphQL request"}, status=400)

    # Faults raised here become a 500 in cors_middleware.
    result = await graphql(
        request.app["schema"],
        gql_request.query,
        variable_values=gql_request.variables,
        operation_name=gql_request.operation_name,
        context_value={
            "chat_service": request.app["chat_service"],
            "config": request.app["completion_config"],
            "request": request,
            "id_factory": request.app["id_factory"],
        },
    )
    return web.json_response(result.formatted)


async def playground(request: web.Request) -> web.Response:
    return web.Response(text=PLAYGROUND_HTML, content_type="text/html")


async def not_found(request: web.Request) -> web.Response:
    return web.json_response(
        {"error": "Not Found", "message": "Available endpoints: /, /graphql, /health"},
        status=404,
    )


def create_app(
    config: dict[str, Any],
    chat_service: CompletionClient | None = None,
    id_factory: Callable[[], str] | None = None,
) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app["config"] = config

    settings = completion_config(config)
    app["completion_config"] = settings
    app["chat_service"] = chat_service or CompletionClient(settings)
    app["schema"] = schema
    app["id_factory"] = id_factory

    log.info(
        "Configured environment=%s model=%s credential=%s allowed_origins=%s",
        config.get("service", {}).get("environment"),
        settings.model,
        "present" if app["chat_service"].has_credential else "absent (mock mode)",
        parse_origins(config.get("cors", {}).get("allowed_origins")) or "*",
    )

    app.router.add_route("*", "/health", health)
    app.router.add_route("*", "/graphql", graphql_endpoint)
    app.router.add_route("*", "/", playground)
    app.router.add_route("*", "/playground", playground)
    app.router.add_route("*", "/{tail:.*}", not_found)
    return app
