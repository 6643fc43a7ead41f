"""FastAPI application for contact-link."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from contact_link import __version__
from contact_link.config import configure_logging
from contact_link.db import get_session, init_db
from contact_link.errors import InvariantViolation, StorageError, ValidationError
from contact_link.resolution import ClusterReader, IdentifyRequest, IdentifyResponse, IdentityResolver
from contact_link.resolution.schemas import ErrorResponse
from contact_link.storage import SqlContactStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    configure_logging()
    await init_db()
    yield


app = FastAPI(
    title="contact-link",
    description="Identity reconciliation across partial contact records",
    version=__version__,
    lifespan=lifespan,
)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, "Invalid request body")


@app.exception_handler(ValidationError)
async def handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(StorageError)
async def handle_storage(request: Request, exc: StorageError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return _error(500, "Storage failure")


@app.exception_handler(InvariantViolation)
async def handle_invariant(request: Request, exc: InvariantViolation) -> JSONResponse:
    logger.error("Identity graph invariant violated: %s", exc)
    return _error(500, "Identity graph is inconsistent")


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post("/identify", response_model=IdentifyResponse, responses=_ERROR_RESPONSES)
async def identify(
    payload: IdentifyRequest,
    session: AsyncSession = Depends(get_session),
) -> IdentifyResponse:
    """Link an email and/or phone number into its identity cluster."""
    logger.info(
        "Received identify request email=%r phoneNumber=%r",
        payload.email,
        payload.phone_number,
    )
    async with session.begin():
        resolver = IdentityResolver(SqlContactStore(session))
        identity = await resolver.resolve(email=payload.email, phone_number=payload.phone_number)
    return IdentifyResponse(contact=identity)


@app.get(
    "/contacts/{contact_id}/cluster",
    response_model=IdentifyResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def show_cluster(
    contact_id: int,
    session: AsyncSession = Depends(get_session),
):
    """Render the cluster that `contact_id` belongs to."""
    async with session.begin():
        store = SqlContactStore(session)
        contact = await store.find_by_id(contact_id)
        if contact is None:
            return _error(404, f"Contact {contact_id} not found")
        reader = ClusterReader(store)
        primary = await reader.find_primary(contact)
        identity = await reader.read_cluster(primary.id)
    return IdentifyResponse(contact=identity)
