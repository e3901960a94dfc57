"""Tests for the Signly MCP tool surface."""

import asyncio
import json
from datetime import timedelta
from decimal import Decimal

import pytest

from signly import mcp_server
from signly.engine import SigningEngine
from signly.fees import MinimumFeeCheck

from conftest import NOW, iso


DIGEST = "9e107d9d372bb6826bd81d3542a419d6"


@pytest.fixture(autouse=True)
def wired(engine):
    mcp_server.set_engine(engine)
    yield
    mcp_server.set_engine(None)


def call(name: str, **arguments) -> dict:
    result = asyncio.run(mcp_server.call_tool(name, arguments))
    return json.loads(result[0].text)


@pytest.fixture
def created():
    return call(
        "create_document",
        account="alice",
        content_digest=DIGEST,
        title="Lease",
        deadline=iso(NOW + timedelta(days=1)),
        signers=["alice", "bob"],
    )


class TestTools:
    def test_tool_names(self):
        tools = asyncio.run(mcp_server.list_tools())
        assert {t.name for t in tools} == {
            "create_document",
            "get_document",
            "list_documents",
            "sign_document",
            "cancel_document",
            "delete_document",
            "get_audit_trail",
        }

    def test_create_and_get(self, created):
        assert created["status"] == "pending"
        fetched = call("get_document", document_id=created["document_id"])
        assert fetched["title"] == "Lease"

    def test_sign_to_completion(self, created):
        doc = call("sign_document", account="alice", document_id=created["document_id"])
        assert doc["status"] == "partially_signed"
        doc = call("sign_document", account="bob", document_id=created["document_id"])
        assert doc["status"] == "completed"
        assert doc["signed_by"] == ["alice", "bob"]

    def test_typed_error(self, created):
        err = call("sign_document", account="mallory", document_id=created["document_id"])
        assert err["kind"] == "NotARequiredSigner"

    def test_list(self, created):
        docs = call("list_documents", account="alice")
        assert [d["document_id"] for d in docs] == [created["document_id"]]
        assert docs[0]["signed"] == 0

    def test_cancel_then_delete(self, created):
        doc_id = created["document_id"]
        assert call("cancel_document", account="bob", document_id=doc_id)["kind"] == "NotFound"
        assert call("cancel_document", account="alice", document_id=doc_id)["status"] == "cancelled"
        assert call("delete_document", account="alice", document_id=doc_id)["deleted"] is True
        assert call("get_document", document_id=doc_id)["kind"] == "NotFound"

    def test_audit(self, created):
        trail = call("get_audit_trail", document_id=created["document_id"])
        assert [e["action"] for e in trail] == ["created"]

    def test_unknown_tool(self):
        assert "Unknown tool" in call("nope")["error"]


def test_numeric_fee(clock):
    mcp_server.set_engine(
        SigningEngine.in_memory(clock=clock, fee_check=MinimumFeeCheck(Decimal("0.1")))
    )
    tools = {t.name: t for t in asyncio.run(mcp_server.list_tools())}
    assert "number" in tools["create_document"].inputSchema["properties"]["fee"]["type"]

    doc = call(
        "create_document",
        account="alice",
        content_digest=DIGEST,
        title="Paid",
        deadline=iso(NOW + timedelta(days=1)),
        signers=["bob"],
        fee=0.5,
    )
    assert doc["title"] == "Paid"
