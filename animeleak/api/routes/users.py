from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from animeleak.db.session import get_db
from animeleak.schemas.users import AccountOut, CreditSummaryOut
from animeleak.services.auth.jwt import get_current_user
from animeleak.services.ledger.service import CreditLedger

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/ensure", response_model=AccountOut)
def ensure_account(current_user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    """Create the caller's account with the free-trial grant if it does not exist yet."""
    account = CreditLedger(db).get_or_create_account(current_user["user_id"])
    return AccountOut(user_id=account.user_id, credits=account.credits)


@router.get("/me/credits", response_model=CreditSummaryOut)
def my_credits(current_user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    return CreditLedger(db).get_credit_summary(current_user["user_id"])
