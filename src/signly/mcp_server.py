"""Signly MCP Server: document signing tools for AI agents.

Exposes the Signly document lifecycle as MCP tools so an agent can
register documents, collect signatures and manage its own documents
via tool calls.

Tools:
    create_document     — Register a document for multi-party signature
    get_document        — Fetch a document and its signature status
    list_documents      — List the documents an account registered
    sign_document       — Add an account's signature to a document
    cancel_document     — Cancel a document (creator only, irrevocable)
    delete_document     — Hard-delete a document (creator only)
    get_audit_trail     — Get the full audit history for a document

Every mutating tool takes an ``account`` argument: the identity the call
is made on behalf of.

Invocation:
    python -m signly.mcp_server
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import build_engine
from .engine import SigningEngine
from .errors import SignlyError
from .models import Document, Identity

logger = logging.getLogger("signly.mcp")

_engine: Optional[SigningEngine] = None

server = Server("signly")


def get_engine() -> SigningEngine:
    """Engine shared by all tool calls, wired from settings on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def set_engine(engine: Optional[SigningEngine]) -> None:
    global _engine
    _engine = engine


# ─────────────────────────────────────────────────────────────
# Response helpers
# ─────────────────────────────────────────────────────────────


def _json(data: Any) -> list[TextContent]:
    """Wrap data as a JSON TextContent response.

    Args:
        data: Any JSON-serialisable value.

    Returns:
        Single-item list containing the JSON text.
    """
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def _error(message: str, kind: Optional[str] = None) -> list[TextContent]:
    """Return an error payload as a JSON TextContent response.

    Args:
        message: Human-readable error description.
        kind: Error name, for typed rejections.

    Returns:
        Single-item list containing {"error": message, "kind": kind}.
    """
    payload: dict[str, Any] = {"error": message}
    if kind:
        payload["kind"] = kind
    return [TextContent(type="text", text=json.dumps(payload))]


def _document(doc: Document) -> dict[str, Any]:
    data = doc.model_dump(mode="json")
    data["status"] = doc.status(get_engine().clock()).value
    data["signed_by"] = doc.signed_by
    return data


def _caller(args: dict) -> Identity:
    return Identity(account=args["account"])


_ACCOUNT = {
    "type": "string",
    "description": "Account the call is made on behalf of.",
}
_DOCUMENT_ID = {
    "type": "string",
    "description": "ID of the document.",
}


# ─────────────────────────────────────────────────────────────
# Tool Definitions
# ─────────────────────────────────────────────────────────────


@server.list_tools()
async def list_tools() -> list[Tool]:
    """Register all Signly tools with the MCP server."""
    return [
        Tool(
            name="create_document",
            description=(
                "Register a document for multi-party signature. The document is "
                "identified by its content digest; the signers and the deadline "
                "are fixed at creation."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "account": _ACCOUNT,
                    "content_digest": {
                        "type": "string",
                        "description": "MD5/SHA digest of the document file.",
                    },
                    "title": {
                        "type": "string",
                        "description": "Human-readable document title.",
                    },
                    "deadline": {
                        "type": "string",
                        "description": (
                            "Signing deadline in UTC, ISO 8601 "
                            "(YYYY-MM-DDTHH:mm:ss.000Z) or 'YYYY-MM-DD HH:mm:ss'. "
                            "Must be less than 6 months away."
                        ),
                    },
                    "signers": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Accounts that must sign.",
                    },
                    "fee": {
                        "type": ["string", "number"],
                        "description": "Attached registration fee, if one is required.",
                    },
                },
                "required": ["account", "content_digest", "title", "deadline", "signers"],
            },
        ),
        Tool(
            name="get_document",
            description="Fetch a document with its signers, signatures and status.",
            inputSchema={
                "type": "object",
                "properties": {"document_id": _DOCUMENT_ID},
                "required": ["document_id"],
            },
        ),
        Tool(
            name="list_documents",
            description=(
                "List the documents registered by an account, in registration order. "
                "Defaults to the calling account."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "account": _ACCOUNT,
                    "creator": {
                        "type": "string",
                        "description": "Creator account to list (default: account).",
                    },
                },
                "required": [],
            },
        ),
        Tool(
            name="sign_document",
            description=(
                "Add the account's signature to a document. The account must be "
                "one of the document's signers and the deadline must not have passed."
            ),
            inputSchema={
                "type": "object",
                "properties": {"account": _ACCOUNT, "document_id": _DOCUMENT_ID},
                "required": ["account", "document_id"],
            },
        ),
        Tool(
            name="cancel_document",
            description=(
                "Cancel a document the account created. Irrevocable: no further "
                "signatures are accepted."
            ),
            inputSchema={
                "type": "object",
                "properties": {"account": _ACCOUNT, "document_id": _DOCUMENT_ID},
                "required": ["account", "document_id"],
            },
        ),
        Tool(
            name="delete_document",
            description=(
                "Permanently remove a document the account created. Intended for "
                "testing and operations; prefer cancel_document."
            ),
            inputSchema={
                "type": "object",
                "properties": {"account": _ACCOUNT, "document_id": _DOCUMENT_ID},
                "required": ["account", "document_id"],
            },
        ),
        Tool(
            name="get_audit_trail",
            description=(
                "Retrieve the chronological audit history for a document: "
                "creation, signatures, completion, cancellation, deletion."
            ),
            inputSchema={
                "type": "object",
                "properties": {"document_id": _DOCUMENT_ID},
                "required": ["document_id"],
            },
        ),
    ]


# ─────────────────────────────────────────────────────────────
# Tool Dispatch
# ─────────────────────────────────────────────────────────────


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Dispatch incoming tool calls to the appropriate handler.

    Args:
        name: Tool name as registered in list_tools.
        arguments: Tool input arguments from the MCP client.

    Returns:
        List of TextContent responses.
    """
    handlers = {
        "create_document": _handle_create_document,
        "get_document": _handle_get_document,
        "list_documents": _handle_list_documents,
        "sign_document": _handle_sign_document,
        "cancel_document": _handle_cancel_document,
        "delete_document": _handle_delete_document,
        "get_audit_trail": _handle_get_audit_trail,
    }
    handler = handlers.get(name)
    if handler is None:
        return _error(f"Unknown tool: {name}")
    try:
        return await handler(arguments)
    except SignlyError as exc:
        return _error(exc.message, exc.kind)
    except Exception as exc:
        logger.exception("Tool '%s' failed", name)
        return _error(f"{name} failed: {exc}")


# ─────────────────────────────────────────────────────────────
# Tool Handlers
# ─────────────────────────────────────────────────────────────


async def _handle_create_document(args: dict) -> list[TextContent]:
    """Register a document on behalf of ``account``.

    Args:
        args: account, content_digest, title, deadline, signers, fee.

    Returns:
        JSON of the stored document.
    """
    doc = get_engine().create_document(
        content_digest=args["content_digest"],
        title=args["title"],
        deadline=args["deadline"],
        signers=list(args.get("signers", [])),
        caller=_caller(args),
        fee_proof=args.get("fee"),
    )
    return _json(_document(doc))


async def _handle_get_document(args: dict) -> list[TextContent]:
    return _json(_document(get_engine().get_document(args["document_id"])))


async def _handle_list_documents(args: dict) -> list[TextContent]:
    """List documents by ``creator``, falling back to ``account``.

    Returns:
        JSON list of {document_id, title, status, signed, signers, deadline}.
    """
    engine = get_engine()
    creator = args.get("creator")
    account = args.get("account")
    docs = engine.get_documents(
        creator=Identity(account=creator) if creator else None,
        caller=Identity(account=account) if account else None,
    )
    now = engine.clock()
    return _json([
        {
            "document_id": d.document_id,
            "title": d.title,
            "status": d.status(now).value,
            "signed": len(d.signed_by),
            "signers": len(d.signers),
            "signing_deadline": d.signing_deadline.isoformat(),
        }
        for d in docs
    ])


async def _handle_sign_document(args: dict) -> list[TextContent]:
    doc = get_engine().add_sign(args["document_id"], _caller(args))
    return _json(_document(doc))


async def _handle_cancel_document(args: dict) -> list[TextContent]:
    doc = get_engine().cancel_document(args["document_id"], _caller(args))
    return _json(_document(doc))


async def _handle_delete_document(args: dict) -> list[TextContent]:
    doc = get_engine().delete_document(args["document_id"], _caller(args))
    return _json({"deleted": True, "document": doc.model_dump(mode="json")})


async def _handle_get_audit_trail(args: dict) -> list[TextContent]:
    """Return the audit trail as a JSON list of entries."""
    entries = get_engine().get_audit_trail(args["document_id"])
    return _json([e.model_dump(mode="json") for e in entries])


# ─────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────


def main() -> None:
    """Run the Signly MCP server on stdio transport."""
    logging.basicConfig(level=logging.WARNING, format="%(name)s: %(message)s")
    asyncio.run(_run_server())


async def _run_server() -> None:
    """Async entry point for the stdio MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream, write_stream, server.create_initialization_options()
        )


if __name__ == "__main__":
    main()
