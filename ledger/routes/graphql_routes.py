"""Tag-queryable transaction search, GraphQL shaped."""

from fastapi import APIRouter

from ledger.exceptions import InvalidQueryError
from ledger.schemas.graphql import GraphQLRequest
from ledger.services.query_service import QueryService

router = APIRouter(tags=["Query"])


@router.post("/graphql")
async def graphql(request: GraphQLRequest):
    """
    Serve the `transactions` query.

    Only the query's variables are interpreted: tags, ids, first and order.
    The response mirrors a GraphQL gateway:
    {"data": {"transactions": {"edges": [{"node": {...}}]}}}
    """
    if request.query and "transactions" not in request.query:
        raise InvalidQueryError("Only the transactions query is supported")

    variables = request.variables
    service = QueryService()
    nodes = service.search(
        tag_filters=[(f.name, f.values) for f in variables.tags],
        ids=variables.ids,
        first=variables.first,
        order=variables.order,
    )
    return {"data": {"transactions": {"edges": [{"node": node} for node in nodes]}}}
