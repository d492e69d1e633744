"""API routes package."""

from ledger.routes.transaction_routes import router as transaction_router
from ledger.routes.graphql_routes import router as graphql_router

__all__ = ["transaction_router", "graphql_router"]
