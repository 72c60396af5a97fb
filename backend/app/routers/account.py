"""Account API: the caller's balance. Reads never provision accounts."""

from fastapi import APIRouter, Depends

from app.errors import NotFound
from app.models.account import AccountResponse, account_to_response
from app.services.identity_service import get_caller_id
from app.services.ledger_service import get_account

router = APIRouter(prefix="/api/account", tags=["account"])


@router.get("/", response_model=AccountResponse)
async def my_account(user_id: str = Depends(get_caller_id)):
    account = await get_account(user_id)
    if not account:
        raise NotFound("No account exists for this user yet.")
    return account_to_response(account)
