"""Transaction upload and body retrieval routes."""

from fastapi import APIRouter, status
from fastapi.responses import Response

from ledger.schemas.transactions import ReceiptResponse, SubmitTransactionRequest
from ledger.services.transaction_service import TransactionService

router = APIRouter(prefix="/tx", tags=["Transactions"])


@router.post("", response_model=ReceiptResponse, status_code=status.HTTP_200_OK)
async def submit_transaction(request: SubmitTransactionRequest):
    """
    Store a signed transaction.

    Returns:
        - id: Transaction id
        - timestamp: Acceptance time (unix seconds)

    Raises:
        - 400: Invalid envelope, bad signature or replayed nonce
        - 413: Body over the size ceiling
    """
    service = TransactionService()
    receipt = service.submit(
        data_b64=request.data,
        tags=[(tag.name, tag.value) for tag in request.tags],
        owner=request.owner,
        nonce=request.nonce,
        signature=request.signature,
    )
    return ReceiptResponse(**receipt)


@router.get("/{tx_id}/data")
async def get_transaction_data(tx_id: str):
    """
    Raw body of a transaction. Available immediately after upload.

    Raises:
        - 404: Unknown transaction id
    """
    service = TransactionService()
    data = service.get_data(tx_id)
    return Response(content=data, media_type="application/octet-stream")
