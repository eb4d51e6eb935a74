# elections_relay/eip712.py
"""
Typed-data (EIP-712) signing schemas for the three relayed actions.

The wallet frontend signs one of these messages and posts the (v, r, s)
triple to the relay. The ledger contract is the authoritative verifier;
`recover_signer` exists so the relay can optionally refuse an obviously
mis-signed request before spending gas on it.
"""
import logging
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_typed_data

from .config import DOMAIN_NAME, DOMAIN_VERSION
from .errors import ValidationFailure
from .models.signed_request import (
    SignedRegisterVoterRequest,
    SignedRequest,
    SignedSetVotingPeriodRequest,
    SignedVoteRequest,
)

logger = logging.getLogger(__name__)

DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

ACTION_TYPES = {
    "vote": [
        {"name": "sender", "type": "address"},
        {"name": "deadline", "type": "uint256"},
        {"name": "voteOption", "type": "uint256"},
    ],
    "registerVoter": [
        {"name": "sender", "type": "address"},
        {"name": "deadline", "type": "uint256"},
        {"name": "address", "type": "address"},
    ],
    "setVotingPeriod": [
        {"name": "sender", "type": "address"},
        {"name": "deadline", "type": "uint256"},
        {"name": "votingStart", "type": "uint256"},
        {"name": "votingEnd", "type": "uint256"},
    ],
}


def primary_type_for(request: SignedRequest) -> str:
    if isinstance(request, SignedVoteRequest):
        return "vote"
    if isinstance(request, SignedRegisterVoterRequest):
        return "registerVoter"
    if isinstance(request, SignedSetVotingPeriodRequest):
        return "setVotingPeriod"
    raise ValidationFailure(f"Unsupported signed request type: {type(request).__name__}")


def build_typed_data(request: SignedRequest, chain_id: int, verifying_contract: str) -> Dict[str, Any]:
    """Rebuild the exact typed-data document the signer was shown."""
    primary_type = primary_type_for(request)
    message = {"sender": request.signer, "deadline": request.deadline}
    # remaining payload fields, keyed by their wire names
    payload = request.model_dump(by_alias=True, exclude={"v", "r", "s", "signer", "deadline"})
    message.update(payload)
    return {
        "types": {"EIP712Domain": DOMAIN_TYPE, primary_type: ACTION_TYPES[primary_type]},
        "primaryType": primary_type,
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "message": message,
    }


def recover_signer(request: SignedRequest, chain_id: int, verifying_contract: str) -> str:
    """Return the lowercased address that produced (v, r, s) over the request."""
    signable = encode_typed_data(full_message=build_typed_data(request, chain_id, verifying_contract))
    # wallets may report the recovery id as 0/1 instead of 27/28
    v = request.v + 27 if request.v < 27 else request.v
    try:
        recovered = Account.recover_message(signable, vrs=(v, request.r, request.s))
    except Exception as e:
        raise ValidationFailure(f"Signature could not be recovered: {e}")
    return recovered.lower()


def verify_signer(request: SignedRequest, chain_id: int, verifying_contract: str) -> None:
    recovered = recover_signer(request, chain_id, verifying_contract)
    if recovered != request.signer.lower():
        logger.warning(f"Signer mismatch: claimed {request.signer}, recovered {recovered}")
        raise ValidationFailure(
            "Signature does not match the claimed signer",
            details={"signer": request.signer.lower(), "recovered": recovered},
        )
