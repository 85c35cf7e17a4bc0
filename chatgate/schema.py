"""GraphQL schema: SDL contract plus resolvers.

Resolvers read their collaborators from the execution context:
    chat_service  CompletionClient used by the sendMessage mutation
    config        CompletionConfig (default model tag)
    id_factory    optional zero-arg callable replacing generate_id
"""

from __future__ import annotations

import random
import time
from datetime import datetime, timezone
from typing import Any, Callable

from graphql import GraphQLError, GraphQLResolveInfo, GraphQLSchema, build_schema

DEFAULT_MODEL = "gpt-3.5-turbo"
GREETING = "Hello from AI Chat Service!"

TYPE_DEFS = """
  type Query {
    hello: String
    chat(message: String!): ChatResponse
  }

  type Mutation {
    sendMessage(input: MessageInput!): ChatResponse
  }

  type ChatResponse {
    id: String!
    message: String!
    timestamp: String!
    model: String!
  }

  input MessageInput {
    message: String!
    conversationId: String
    model: String
  }
"""

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(rng: random.Random | None = None, now_ms: int | None = None) -> str:
    """Random base-36 fragment followed by the epoch milliseconds in base 36.

    Good enough to tell demo responses apart; not a uniqueness guarantee.
    """
    source = rng or random
    fragment = "".join(source.choice(_BASE36) for _ in range(11))
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return fragment + _to_base36(now_ms)


def iso_timestamp(moment: datetime | None = None) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _id_factory(info: GraphQLResolveInfo) -> Callable[[], str]:
    return _context(info).get("id_factory") or generate_id


def _default_model(info: GraphQLResolveInfo) -> str:
    config = _context(info).get("config")
    return getattr(config, "model", None) or DEFAULT_MODEL


def _context(info: GraphQLResolveInfo) -> dict[str, Any]:
    return info.context or {}


def resolve_hello(_obj: Any, _info: GraphQLResolveInfo) -> str:
    return GREETING


async def resolve_chat(_obj: Any, info: GraphQLResolveInfo, message: str) -> dict[str, str]:
    # Echo only; the upstream API is reached through sendMessage.
    return {
        "id": _id_factory(info)(),
        "message": f"Echo: {message}",
        "timestamp": iso_timestamp(),
        "model": _default_model(info),
    }


async def resolve_send_message(
    _obj: Any, info: GraphQLResolveInfo, input: dict[str, Any]
) -> dict[str, str]:
    chat_service = _context(info)["chat_service"]
    model = input.get("model") or _default_model(info)
    try:
        reply = await chat_service.send_message(
            input["message"],
            conversation_id=input.get("conversationId"),
            model=model,
        )
    except Exception as exc:
        raise GraphQLError(f"Chat service error: {exc}") from exc
    return {
        "id": _id_factory(info)(),
        "message": reply,
        "timestamp": iso_timestamp(),
        "model": model,
    }


def create_schema(type_defs: str = TYPE_DEFS) -> GraphQLSchema:
    schema = build_schema(type_defs)
    query = schema.query_type
    mutation = schema.mutation_type
    if query is None or mutation is None:
        raise TypeError("Schema must define both Query and Mutation types")
    query.fields["hello"].resolve = resolve_hello
    query.fields["chat"].resolve = resolve_chat
    mutation.fields["sendMessage"].resolve = resolve_send_message
    return schema


schema = create_schema()
