# cache_store.py
import logging
from typing import Dict, Iterable, List

from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config import REGISTERED_VOTERS_COLLECTION, VOTING_RESULTS_COLLECTION
from .errors import CacheReadFailure, CacheWriteFailure
from .models.voting import VotingOption

logger = logging.getLogger(__name__)


class CacheStore:
    """
    Read projections of ledger state kept in MongoDB.

    voting_results:    {_id: option id, name, votes}
    registered_voters: {_id: lowercase address, address}

    Every write is a single-document upsert keyed by `_id`, so replaying
    any write with the same ledger-sourced value leaves the store unchanged.
    """

    def __init__(self, database: Database):
        self.db = database
        self.voting_results = database[VOTING_RESULTS_COLLECTION]
        self.registered_voters = database[REGISTERED_VOTERS_COLLECTION]

    def ping(self) -> bool:
        try:
            self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"Cache ping failed: {e}")
            return False

    # --- Reconciliation merges ---

    def upsert_voting_options(self, options: Iterable[VotingOption]) -> int:
        """
        Insert missing options, overwrite name and votes of existing ones.

        Args:
            options: absolute tallies as read from the ledger

        Returns:
            Number of rows written
        """
        written = 0
        try:
            for option in options:
                self.voting_results.update_one(
                    {"_id": option.id},
                    {"$set": {"name": option.name, "votes": option.votes}},
                    upsert=True,
                )
                written += 1
        except PyMongoError as e:
            raise CacheWriteFailure(f"Failed to merge voting results after {written} rows: {e}")
        return written

    def upsert_registered_voters(self, addresses: Iterable[str]) -> int:
        """Insert each address once; existing addresses are left untouched."""
        written = 0
        try:
            for address in addresses:
                canonical = address.lower()
                self.registered_voters.update_one(
                    {"_id": canonical},
                    {"$setOnInsert": {"address": canonical}},
                    upsert=True,
                )
                written += 1
        except PyMongoError as e:
            raise CacheWriteFailure(f"Failed to merge registered voters after {written} rows: {e}")
        return written

    # --- Write-path point updates ---

    def increment_votes(self, option_id: int) -> bool:
        # Rows are only created by reconciliation; a missing row is filled on the next pass
        try:
            result = self.voting_results.update_one({"_id": option_id}, {"$inc": {"votes": 1}})
        except PyMongoError as e:
            raise CacheWriteFailure(f"Failed to increment votes for option {option_id}: {e}")
        return result.matched_count > 0

    def add_registered_voter(self, address: str) -> None:
        self.upsert_registered_voters([address])

    # --- Reads ---

    def list_voting_options(self) -> List[VotingOption]:
        try:
            rows = list(self.voting_results.find({}).sort("_id", 1))
        except PyMongoError as e:
            raise CacheReadFailure(f"Failed to read voting results: {e}")
        return [VotingOption(id=row["_id"], name=row["name"], votes=row["votes"]) for row in rows]

    def list_registered_voters(self, start: int, limit: int) -> List[str]:
        # pymongo treats limit(0) as "no limit"
        if limit <= 0:
            return []
        try:
            cursor = self.registered_voters.find({}).sort("_id", 1).skip(start).limit(limit)
            return [row["_id"] for row in cursor]
        except PyMongoError as e:
            raise CacheReadFailure(f"Failed to read registered voters: {e}")

    def snapshot(self) -> Dict[str, list]:
        """Full cache contents in key order."""
        return {
            VOTING_RESULTS_COLLECTION: [option.model_dump() for option in self.list_voting_options()],
            REGISTERED_VOTERS_COLLECTION: [row["_id"] for row in self.registered_voters.find({}).sort("_id", 1)],
        }
