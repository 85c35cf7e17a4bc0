"""Decoding of inbound GraphQL requests (POST JSON, POST graphql, GET)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from aiohttp import web

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphQLRequest:
    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = None


def from_fields(
    query: Any, variables: Any = None, operation_name: Any = None
) -> GraphQLRequest | None:
    """Validate raw fields. Returns None when they do not form a request."""
    if not isinstance(query, str) or not query.strip():
        return None
    if variables is not None and not isinstance(variables, dict):
        return None
    if operation_name is not None and not isinstance(operation_name, str):
        return None
    return GraphQLRequest(
        query=query,
        variables=variables,
        operation_name=operation_name or None,
    )


def _from_query_params(params: Mapping[str, str]) -> GraphQLRequest | None:
    raw_variables = params.get("variables")
    variables = None
    if raw_variables:
        try:
            variables = json.loads(raw_variables)
        except (json.JSONDecodeError, ValueError):
            log.debug("Undecodable variables parameter")
            return None
    return from_fields(params.get("query"), variables, params.get("operationName"))


async def parse_graphql_request(request: web.Request) -> GraphQLRequest | None:
    """Decode the request, or return None for anything malformed."""
    content_type = request.headers.get("Content-Type", "")

    if request.method == "POST":
        if "application/json" in content_type:
            try:
                body = await request.json()
            except (json.JSONDecodeError, ValueError):
                log.debug("Undecodable JSON body")
                return None
            if not isinstance(body, dict):
                return None
            return from_fields(
                body.get("query"), body.get("variables"), body.get("operationName")
            )
        if "application/graphql" in content_type:
            try:
                query = await request.text()
            except UnicodeDecodeError:
                log.debug("Undecodable GraphQL body")
                return None
            return from_fields(query)
        return None

    if request.method == "GET":
        return _from_query_params(request.query)

    return None
