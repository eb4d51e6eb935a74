from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class VotingOption(BaseModel):
    id: int = Field(..., ge=0, examples=[0])
    name: str = Field(..., examples=["option1"])
    votes: int = Field(..., ge=0, examples=[3])


class VotingWindow(BaseModel):
    start: int
    end: int


class VoterRecord(BaseModel):
    registered: bool
    voted: bool
    vote: int


class SubmittedTransaction(BaseModel):
    """Handle for a transaction the relayer has broadcast but not yet seen included."""

    transaction_hash: str


class TransactionReceipt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_hash: str = Field(..., alias="transactionHash")
    block_number: Optional[int] = Field(None, alias="blockNumber")
    status: int = 1
    gas_used: Optional[int] = Field(None, alias="gasUsed")
