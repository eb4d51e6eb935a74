from fastapi import APIRouter, Depends, Request

from ..models.signed_request import (
    SignedRegisterVoterRequest,
    SignedSetVotingPeriodRequest,
    SignedVoteRequest,
)
from ..models.voting import TransactionReceipt
from ..reconciliation import ReconciliationEngine
from ..relay import Relay

router = APIRouter(tags=["Relay"])


def get_relay(request: Request) -> Relay:
    return request.app.state.relay


def get_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.engine


# ------------------------------
# Signed meta-transactions
# ------------------------------

@router.post("/vote", response_model=TransactionReceipt)
def vote(body: SignedVoteRequest, relay: Relay = Depends(get_relay)):
    """
    Forwards a signed vote to the ledger and waits for inclusion.
    Eligibility and double-vote checks are left to the contract.
    """
    return relay.vote(body)


@router.post("/registerVoter", response_model=TransactionReceipt)
def register_voter(body: SignedRegisterVoterRequest, relay: Relay = Depends(get_relay)):
    return relay.register_voter(body)


@router.post("/setVotingPeriod", response_model=TransactionReceipt)
def set_voting_period(body: SignedSetVotingPeriodRequest, relay: Relay = Depends(get_relay)):
    return relay.set_voting_period(body)


# ------------------------------
# Operations
# ------------------------------

@router.post("/reconcile", tags=["Operations"])
def reconcile(engine: ReconciliationEngine = Depends(get_engine)):
    """Runs one reconciliation pass now, unless one is already running."""
    result = engine.run_pass()
    if result is None:
        return {"status": "skipped", "result": None}
    return {"status": "completed" if result.ok else "failed", "result": result.model_dump()}
