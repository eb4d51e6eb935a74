# elections_relay/relay.py
"""
Relay for signed meta-transactions.

The relay forwards a signed request to the ledger, waits for inclusion and
then applies a best-effort point-update to the cache. It does not decide
whether a signer is allowed to act, nor whether a deadline has expired: the
contract is the sole arbiter of both, and the relay surfaces its verdict.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .cache_store import CacheStore
from .eip712 import verify_signer
from .errors import CacheWriteFailure, ValidationFailure
from .models.signed_request import (
    SIGNED_REQUEST_MODELS,
    SignedRegisterVoterRequest,
    SignedRequest,
    SignedSetVotingPeriodRequest,
    SignedVoteRequest,
)
from .models.voting import TransactionReceipt

logger = logging.getLogger(__name__)


def parse_signed_request(action: str, payload: Dict[str, Any]) -> SignedRequest:
    """Validate a raw request body against the signing schema of `action`."""
    model = SIGNED_REQUEST_MODELS.get(action)
    if model is None:
        raise ValidationFailure(f"Unknown action: {action}")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailure(
            f"Malformed {action} request",
            details=e.errors(include_url=False, include_context=False),
        )


class Relay:
    def __init__(self, ledger, cache: CacheStore, verify_signatures: bool = False,
                 inclusion_timeout: Optional[float] = None):
        self.ledger = ledger
        self.cache = cache
        self.verify_signatures = verify_signatures
        self.inclusion_timeout = inclusion_timeout

    def submit(self, action: str, payload: Dict[str, Any]) -> TransactionReceipt:
        request = parse_signed_request(action, payload)
        handlers = {
            "vote": self.vote,
            "registerVoter": self.register_voter,
            "setVotingPeriod": self.set_voting_period,
        }
        return handlers[action](request)

    def _check_signature(self, request: SignedRequest) -> None:
        if self.verify_signatures:
            verify_signer(request, self.ledger.chain_id, self.ledger.contract_address)

    def _confirm(self, submitted) -> TransactionReceipt:
        # Reverted / Timeout propagate to the caller untouched; no automatic resubmission
        return self.ledger.wait_for_inclusion(submitted, timeout=self.inclusion_timeout)

    def _point_update(self, description: str, update, *args):
        """The ledger already accepted the write, so a cache failure is only logged."""
        try:
            return update(*args)
        except CacheWriteFailure as e:
            logger.warning(f"Point-update skipped for {description}, next reconciliation will repair it: {e}")
        except Exception as e:
            logger.error(f"Unexpected cache error during point-update for {description}: {e}")

    def vote(self, request: SignedVoteRequest) -> TransactionReceipt:
        self._check_signature(request)
        logger.info(f"Relaying vote from {request.signer} for option {request.vote_option}")
        submitted = self.ledger.vote(
            request.v, request.r, request.s, request.signer, request.deadline, request.vote_option,
        )
        receipt = self._confirm(submitted)
        updated = self._point_update(
            f"vote option {request.vote_option}", self.cache.increment_votes, request.vote_option,
        )
        if updated is False:
            logger.info(f"No cached row for option {request.vote_option}, next reconciliation will create it")
        return receipt

    def register_voter(self, request: SignedRegisterVoterRequest) -> TransactionReceipt:
        self._check_signature(request)
        logger.info(f"Relaying registration of {request.address} signed by {request.signer}")
        submitted = self.ledger.register_voter(
            request.v, request.r, request.s, request.signer, request.deadline, request.address,
        )
        receipt = self._confirm(submitted)
        self._point_update(f"voter {request.address.lower()}", self.cache.add_registered_voter, request.address)
        return receipt

    def set_voting_period(self, request: SignedSetVotingPeriodRequest) -> TransactionReceipt:
        self._check_signature(request)
        logger.info(
            f"Relaying voting period {request.voting_start}-{request.voting_end} signed by {request.signer}"
        )
        submitted = self.ledger.set_voting_period(
            request.v, request.r, request.s, request.signer, request.deadline,
            request.voting_start, request.voting_end,
        )
        # voting window is read-through only, nothing to update in the cache
        return self._confirm(submitted)

