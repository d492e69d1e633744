"""Entry point for the development ledger service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from ledger import config
from ledger.config import LEDGER_HOST, LEDGER_PORT
from ledger.database import init_database
from ledger.routes.graphql_routes import router as graphql_router
from ledger.routes.transaction_routes import router as transaction_router
from ledger.exceptions import (
    LedgerException,
    InvalidEnvelopeError,
    InvalidQueryError,
    InvalidSignatureError,
    NonceReplayError,
    TransactionNotFoundError,
    TransactionTooLargeError,
)

logger = setup_logging('ledger')

app = FastAPI(
    title="GetClayed Development Ledger",
    description="Write-once, tag-queryable blob ledger for local development",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database on application startup.
    """
    logger.info("Ledger service starting up...")
    init_database()
    logger.info(
        f"Database initialized [max_transaction_bytes={config.MAX_TRANSACTION_BYTES}] "
        f"[visibility_delay={config.VISIBILITY_DELAY_SECONDS}s]"
    )


def _error_response(request: Request, exc: Exception, status_code: int, code: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


@app.exception_handler(InvalidSignatureError)
async def invalid_signature_handler(request: Request, exc: InvalidSignatureError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_SIGNATURE")


@app.exception_handler(InvalidEnvelopeError)
async def invalid_envelope_handler(request: Request, exc: InvalidEnvelopeError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_ENVELOPE")


@app.exception_handler(NonceReplayError)
async def nonce_replay_handler(request: Request, exc: NonceReplayError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "NONCE_REPLAY")


@app.exception_handler(TransactionTooLargeError)
async def transaction_too_large_handler(request: Request, exc: TransactionTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "TRANSACTION_TOO_LARGE")


@app.exception_handler(TransactionNotFoundError)
async def transaction_not_found_handler(request: Request, exc: TransactionNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "TRANSACTION_NOT_FOUND")


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_QUERY")


@app.exception_handler(LedgerException)
async def ledger_exception_handler(request: Request, exc: LedgerException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Ledger exception: {exc} [request_id={request_id}] path={request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "INTERNAL_ERROR"}
    )


app.include_router(transaction_router)
app.include_router(graphql_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "GetClayed Development Ledger API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "ledger"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "ledger.main:app",
        host=LEDGER_HOST,
        port=LEDGER_PORT,
    )


if __name__ == "__main__":
    main()
