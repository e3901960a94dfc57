"""Signly REST API: FastAPI server for multi-party document signing.

The caller's account comes from the ``X-Signly-Account`` header. Whatever
authenticates requests in front of this service is expected to set it.
Rejections are answered with the error's HTTP status, its message as
``detail`` and its name in the ``X-Signly-Error`` response header.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from . import __version__
from .config import SignlySettings, build_engine
from .engine import SigningEngine
from .errors import MissingCreator, SignlyError
from .models import AuditEntry, Document, Identity

logger = logging.getLogger("signly.api")

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateDocumentRequest(BaseModel):
    """Request body for registering a document for signature."""

    content_digest: str
    title: str
    deadline: str
    signers: list[str]
    fee: Optional[Union[Decimal, str]] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_engine(request: Request) -> SigningEngine:
    return request.app.state.engine


def _identity(account: Optional[str]) -> Optional[Identity]:
    if account is None:
        return None
    try:
        return Identity(account=account)
    except ValidationError:
        raise HTTPException(status_code=401, detail="Invalid account header")


def optional_caller(
    x_signly_account: Optional[str] = Header(None),
) -> Optional[Identity]:
    return _identity(x_signly_account)


def require_caller(
    caller: Optional[Identity] = Depends(optional_caller),
) -> Identity:
    """Reject the request with 401 when no caller identity was sent."""
    if caller is None:
        raise HTTPException(status_code=401, detail="Missing X-Signly-Account header")
    return caller


def _http_error(exc: SignlyError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail=exc.message,
        headers={"X-Signly-Error": exc.kind},
    )


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------

@router.post("/documents", response_model=Document, status_code=201)
async def create_document(
    req: CreateDocumentRequest,
    caller: Identity = Depends(require_caller),
    engine: SigningEngine = Depends(get_engine),
) -> Document:
    """Register a document for signature by the listed signers."""
    try:
        return engine.create_document(
            content_digest=req.content_digest,
            title=req.title,
            deadline=req.deadline,
            signers=req.signers,
            caller=caller,
            fee_proof=req.fee,
        )
    except SignlyError as exc:
        raise _http_error(exc)


@router.get("/documents", response_model=list[Document])
async def list_documents(
    creator: Optional[str] = Query(None, description="Creator account (default: caller)"),
    caller: Optional[Identity] = Depends(optional_caller),
    engine: SigningEngine = Depends(get_engine),
) -> list[Document]:
    """List the documents a creator registered, in registration order."""
    try:
        if creator is not None and not creator.strip():
            raise MissingCreator("The creator query parameter is blank")
        return engine.get_documents(creator=_identity(creator), caller=caller)
    except SignlyError as exc:
        raise _http_error(exc)


@router.get("/documents/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    engine: SigningEngine = Depends(get_engine),
) -> Document:
    """Get a document and its signature status."""
    try:
        return engine.get_document(document_id)
    except SignlyError as exc:
        raise _http_error(exc)


@router.post("/documents/{document_id}/sign", response_model=Document)
async def sign_document(
    document_id: str,
    caller: Identity = Depends(require_caller),
    engine: SigningEngine = Depends(get_engine),
) -> Document:
    """Add the caller's signature to a document."""
    try:
        return engine.add_sign(document_id, caller)
    except SignlyError as exc:
        raise _http_error(exc)


@router.post("/documents/{document_id}/cancel", response_model=Document)
async def cancel_document(
    document_id: str,
    caller: Identity = Depends(require_caller),
    engine: SigningEngine = Depends(get_engine),
) -> Document:
    """Cancel one of the caller's documents. Irrevocable."""
    try:
        return engine.cancel_document(document_id, caller)
    except SignlyError as exc:
        raise _http_error(exc)


@router.delete("/documents/{document_id}", response_model=Document)
async def delete_document(
    document_id: str,
    caller: Identity = Depends(require_caller),
    engine: SigningEngine = Depends(get_engine),
) -> Document:
    """Hard-delete one of the caller's documents and return it."""
    try:
        return engine.delete_document(document_id, caller)
    except SignlyError as exc:
        raise _http_error(exc)


@router.get("/documents/{document_id}/audit", response_model=list[AuditEntry])
async def get_audit_trail(
    document_id: str,
    engine: SigningEngine = Depends(get_engine),
) -> list[AuditEntry]:
    """Get the audit trail for a document."""
    return engine.get_audit_trail(document_id)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health")
async def health() -> dict:
    """Health check."""
    return {
        "status": "ok",
        "service": "signly",
        "version": __version__,
    }


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    engine: Optional[SigningEngine] = None,
    settings: Optional[SignlySettings] = None,
) -> FastAPI:
    """Build the FastAPI application around ``engine``.

    Without an engine one is wired from ``settings`` (or the environment).
    """
    app = FastAPI(
        title="Signly",
        description="Multi-party document signing with deadlines.",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine or build_engine(settings)
    app.include_router(router)
    logger.info("Signly API ready")
    return app
