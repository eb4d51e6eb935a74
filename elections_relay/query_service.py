# elections_relay/query_service.py
from typing import List

from .cache_store import CacheStore
from .models.voting import VoterRecord, VotingOption, VotingWindow


class QueryService:
    """
    Read side of the API.

    Bulk listings come from the cache and never wait on reconciliation.
    Single-entity lookups go straight to the ledger, where staleness is
    not acceptable.
    """

    def __init__(self, ledger, cache: CacheStore):
        self.ledger = ledger
        self.cache = cache

    # --- ledger read-through ---

    def owner(self) -> str:
        return self.ledger.owner()

    def voting_parameters(self) -> VotingWindow:
        return self.ledger.voting_parameters()

    def voter(self, address: str) -> VoterRecord:
        return self.ledger.voter(address)

    # --- cache ---

    def voting_options(self) -> List[VotingOption]:
        return self.cache.list_voting_options()

    def registered_voters(self, start: int, limit: int) -> List[str]:
        return self.cache.list_registered_voters(start, limit)
