"""
chatgate demo: send one sendMessage mutation through the gateway.

Usage:
    python demo.py --message "Say hello in one sentence." [--model gpt-4o-mini]

Exit codes:
    0  success
    1  HTTP error, GraphQL error or other failure
"""

import argparse
import sys

import httpx


CHATGATE_BASE_URL = "http://localhost:8787"
PROMPT = "Say hello in one sentence."

SEND_MESSAGE = """
mutation Send($input: MessageInput!) {
  sendMessage(input: $input) {
    id
    message
    timestamp
    model
  }
}
"""


class DemoError(Exception):
    pass


def build_payload(message, model=None):
    variables = {"input": {"message": message}}
    if model:
        variables["input"]["model"] = model
    return {"query": SEND_MESSAGE, "variables": variables, "operationName": "Send"}


def send_message(client, message, model=None):
    """POST the mutation and return the sendMessage object."""
    resp = client.post("/graphql", json=build_payload(message, model))
    resp.raise_for_status()
    body = resp.json()
    if body.get("errors"):
        raise DemoError("; ".join(e.get("message", "") for e in body["errors"]))
    return body["data"]["sendMessage"]


def main() -> None:
    parser = argparse.ArgumentParser(description="chatgate demo")
    parser.add_argument("--url", default=CHATGATE_BASE_URL, help="Gateway base URL")
    parser.add_argument("--message", default=PROMPT, help="Message to send")
    parser.add_argument("--model", default=None, help="Model override")
    args = parser.parse_args()

    try:
        with httpx.Client(base_url=args.url) as client:
            reply = send_message(client, args.message, args.model)
        print(f"[{reply['model']}] {reply['message']}")
    except httpx.HTTPStatusError as exc:
        print(f"HTTP error {exc.response.status_code}: {exc.response.text}", file=sys.stderr)
        sys.exit(1)
    except DemoError as exc:
        print(f"GraphQL error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
