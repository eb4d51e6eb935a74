from typing import List

from fastapi import APIRouter, Depends, Path, Request

from ..models.signed_request import ADDRESS_PATTERN
from ..models.voting import VoterRecord, VotingOption, VotingWindow
from ..query_service import QueryService

# paging values are stored as BSON int64
MAX_INT64 = 2**63 - 1

router = APIRouter(tags=["Queries"])


def get_queries(request: Request) -> QueryService:
    return request.app.state.queries


@router.get("/owner")
def get_owner(queries: QueryService = Depends(get_queries)):
    return {"owner": queries.owner()}


@router.get("/votingParameters", response_model=VotingWindow)
def get_voting_parameters(queries: QueryService = Depends(get_queries)):
    return queries.voting_parameters()


@router.get("/getVotingOptions", response_model=List[VotingOption])
def get_voting_options(queries: QueryService = Depends(get_queries)):
    """Tallies from the cache, ascending by option id."""
    return queries.voting_options()


@router.get("/voters/{address}", response_model=VoterRecord)
def get_voter(
    address: str = Path(..., pattern=ADDRESS_PATTERN),
    queries: QueryService = Depends(get_queries),
):
    return queries.voter(address)


@router.get("/getRegisteredVoters/{start}/{limit}", response_model=List[str])
def get_registered_voters(
    start: int = Path(..., ge=0, le=MAX_INT64),
    limit: int = Path(..., ge=0, le=MAX_INT64),
    queries: QueryService = Depends(get_queries),
):
    return queries.registered_voters(start, limit)
