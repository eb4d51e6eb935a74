# elections_relay/ledger.py
"""
Thin web3 adapter around the Elections contract.

Reads return decoded on-chain values and are never cached here. Writes are
signed by the relayer account and return a SubmittedTransaction handle;
`wait_for_inclusion` turns that handle into a receipt or a Reverted/Timeout
error. Anything that prevents talking to the node at all is a
SubmissionFailure.
"""
import json
import logging
import threading
from typing import Any, Callable, List, Optional

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .config import Settings
from .errors import Reverted, SubmissionFailure, Timeout
from .models.voting import (
    SubmittedTransaction,
    TransactionReceipt,
    VoterRecord,
    VotingOption,
    VotingWindow,
)

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (requests.exceptions.RequestException, ConnectionError, OSError)


def load_abi(artifact_path: str) -> List[dict]:
    """Load the ABI from a hardhat artifact (or a bare ABI list)."""
    with open(artifact_path, "r") as f:
        artifact = json.load(f)
    if isinstance(artifact, list):
        return artifact
    return artifact["abi"]


def _revert_reason(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error)
    return message.replace("execution reverted: ", "").strip() or "execution reverted"


class LedgerClient:
    """Typed calls against a deployed Elections contract."""

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        abi: List[dict],
        private_key: Optional[str] = None,
        inclusion_timeout: float = 120.0,
        poll_interval: float = 0.5,
    ):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract = w3.eth.contract(address=self.contract_address, abi=abi)
        self.account = w3.eth.account.from_key(private_key) if private_key else None
        self.inclusion_timeout = inclusion_timeout
        self.poll_interval = poll_interval
        self._chain_id = None
        self._submit_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        if not settings.contract_address:
            raise ValueError("CONTRACT_ADDRESS not configured. Check your .env file.")
        w3 = Web3(Web3.HTTPProvider(settings.rpc_endpoint, request_kwargs={"timeout": 30}))
        client = cls(
            w3,
            settings.contract_address,
            load_abi(settings.contract_artifact_path),
            private_key=settings.private_key,
            inclusion_timeout=settings.tx_inclusion_timeout,
            poll_interval=settings.tx_poll_interval,
        )
        client._chain_id = settings.chain_id
        logger.info(f"Ledger client configured for {client.contract_address} via {settings.rpc_endpoint}")
        return client

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._read(lambda: self.w3.eth.chain_id)
        return self._chain_id

    # ------------------------------------------------------------------
    # Read calls
    # ------------------------------------------------------------------

    def _read(self, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except ContractLogicError as e:
            raise Reverted(_revert_reason(e))
        except TRANSPORT_ERRORS as e:
            raise SubmissionFailure(f"Ledger node unreachable: {e}")
        except Web3Exception as e:
            raise SubmissionFailure(f"Ledger call failed: {e}")

    def owner(self) -> str:
        return self._read(lambda: self.contract.functions.owner().call()).lower()

    def voting_parameters(self) -> VotingWindow:
        start, end = self._read(lambda: self.contract.functions.votingParameters().call())
        return VotingWindow(start=start, end=end)

    def voter(self, address: str) -> VoterRecord:
        checksum = Web3.to_checksum_address(address)
        registered, voted, vote = self._read(lambda: self.contract.functions.voters(checksum).call())
        return VoterRecord(registered=registered, voted=voted, vote=vote)

    def get_voting_options(self) -> List[VotingOption]:
        options = self._read(lambda: self.contract.functions.getVotingOptions().call())
        # option identity is its position in the contract's array
        return [
            VotingOption(id=index, name=name, votes=votes)
            for index, (name, votes) in enumerate(options)
        ]

    def get_registered_voters(self, start: int, limit: int) -> List[str]:
        voters = self._read(lambda: self.contract.functions.getRegisteredVoters(start, limit).call())
        return [address.lower() for address in voters]

    # ------------------------------------------------------------------
    # Write calls
    # ------------------------------------------------------------------

    def _submit(self, function) -> SubmittedTransaction:
        if self.account is None:
            raise SubmissionFailure("Relayer PRIVATE_KEY not configured")
        # the pending nonce only advances once the node has the transaction
        with self._submit_lock:
            try:
                nonce = self.w3.eth.get_transaction_count(self.account.address, "pending")
                # build_transaction estimates gas, which surfaces contract reverts before broadcast
                tx = function.build_transaction({
                    "from": self.account.address,
                    "nonce": nonce,
                    "chainId": self.chain_id,
                })
                signed = self.account.sign_transaction(tx)
            except ContractLogicError as e:
                raise Reverted(_revert_reason(e))
            except TRANSPORT_ERRORS as e:
                raise SubmissionFailure(f"Could not submit transaction: {e}")
            except Web3Exception as e:
                raise SubmissionFailure(f"Transaction rejected by node: {e}")
            tx_hash = self._send(signed.raw_transaction)

        submitted = SubmittedTransaction(transaction_hash=Web3.to_hex(tx_hash))
        logger.info(f"Submitted transaction {submitted.transaction_hash}")
        return submitted

    def _send(self, raw_transaction: bytes):
        try:
            return self.w3.eth.send_raw_transaction(raw_transaction)
        except ContractLogicError as e:
            raise Reverted(_revert_reason(e))
        except requests.exceptions.ConnectTimeout as e:
            raise SubmissionFailure(f"Could not submit transaction: {e}")
        except requests.exceptions.Timeout as e:
            # the node may already hold the transaction
            tx_hash = Web3.to_hex(Web3.keccak(raw_transaction))
            logger.warning(f"No answer from node after sending {tx_hash}: {e}")
            raise Timeout(
                f"Node did not answer after transaction {tx_hash} was sent",
                transaction_hash=tx_hash,
            )
        except TRANSPORT_ERRORS as e:
            raise SubmissionFailure(f"Could not submit transaction: {e}")
        except Web3Exception as e:
            raise SubmissionFailure(f"Transaction rejected by node: {e}")

    def vote(self, v, r, s, signer: str, deadline: int, vote_option: int) -> SubmittedTransaction:
        return self._submit(self.contract.functions.eip712Vote(
            v, r, s, Web3.to_checksum_address(signer), deadline, vote_option,
        ))

    def register_voter(self, v, r, s, signer: str, deadline: int, address: str) -> SubmittedTransaction:
        return self._submit(self.contract.functions.eip712RegisterVoter(
            v, r, s, Web3.to_checksum_address(signer), deadline, Web3.to_checksum_address(address),
        ))

    def set_voting_period(self, v, r, s, signer: str, deadline: int,
                          voting_start: int, voting_end: int) -> SubmittedTransaction:
        return self._submit(self.contract.functions.eip712SetVotingPeriod(
            v, r, s, Web3.to_checksum_address(signer), deadline, voting_start, voting_end,
        ))

    def wait_for_inclusion(self, tx: SubmittedTransaction, timeout: Optional[float] = None) -> TransactionReceipt:
        timeout = self.inclusion_timeout if timeout is None else timeout
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx.transaction_hash, timeout=timeout, poll_latency=self.poll_interval,
            )
        except TimeExhausted:
            raise Timeout(
                f"Transaction not included within {timeout} seconds",
                transaction_hash=tx.transaction_hash,
            )
        except TRANSPORT_ERRORS + (Web3Exception,) as e:
            # already broadcast, so the outcome is as ambiguous as a timeout
            raise Timeout(
                f"Lost track of {tx.transaction_hash} while waiting for inclusion: {e}",
                transaction_hash=tx.transaction_hash,
            )

        if receipt["status"] != 1:
            raise Reverted(
                "Transaction reverted on ledger",
                details={"blockNumber": receipt.get("blockNumber")},
                transaction_hash=tx.transaction_hash,
            )
        return TransactionReceipt(
            transaction_hash=tx.transaction_hash,
            block_number=receipt.get("blockNumber"),
            status=receipt["status"],
            gas_used=receipt.get("gasUsed"),
        )
