from pydantic import BaseModel


class AccountOut(BaseModel):
    user_id: str
    credits: int


class CreditSummaryOut(BaseModel):
    credits: int
    has_free_trial: bool
