"""Shared fixtures: an in-memory Elections ledger and a mongomock-backed cache."""

import itertools
import threading

import mongomock
import pytest
from eth_account import Account
from fastapi.testclient import TestClient

from elections_relay.cache_store import CacheStore
from elections_relay.config import Settings
from elections_relay.errors import Reverted, SubmissionFailure, Timeout
from elections_relay.main import create_app
from elections_relay.models.voting import (
    SubmittedTransaction,
    TransactionReceipt,
    VoterRecord,
    VotingOption,
    VotingWindow,
)

# hardhat's first default account
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER = Account.from_key(OWNER_KEY).address
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
CHAIN_ID = 31337

SIG_R = "0x" + "11" * 32
SIG_S = "0x" + "22" * 32


class FakeLedger:
    """
    In-memory stand-in for the Elections contract and relayer.

    Business rules live here, not in the relay: only the owner may register
    voters or move the window, only registered voters may vote, once.
    """

    chain_id = CHAIN_ID
    contract_address = CONTRACT_ADDRESS

    def __init__(self, options=("option1", "option2", "option3"), tallies=None, owner=OWNER):
        tallies = tallies or [0] * len(options)
        self.options = [[name, votes] for name, votes in zip(options, tallies)]
        self.owner_address = owner.lower()
        self.registered = []
        self.ballots = {}
        self.window = (1_700_000_000, 1_700_001_000)
        self.read_failure = None
        self.inclusion_outcome = "included"
        self.submissions = []
        self.read_calls = 0
        self._hashes = itertools.count(1)
        self._lock = threading.Lock()

    # --- reads ---

    def _check_reads(self):
        self.read_calls += 1
        if self.read_failure is not None:
            raise self.read_failure

    def owner(self):
        self._check_reads()
        return self.owner_address

    def voting_parameters(self):
        self._check_reads()
        return VotingWindow(start=self.window[0], end=self.window[1])

    def voter(self, address):
        self._check_reads()
        address = address.lower()
        voted = address in self.ballots
        return VoterRecord(
            registered=address in self.registered,
            voted=voted,
            vote=self.ballots.get(address, 0),
        )

    def get_voting_options(self):
        self._check_reads()
        return [VotingOption(id=i, name=name, votes=votes) for i, (name, votes) in enumerate(self.options)]

    def get_registered_voters(self, start, limit):
        self._check_reads()
        return list(self.registered[start:start + limit])

    # --- direct ledger mutations (other relays, direct contract calls) ---

    def register_directly(self, address):
        if address.lower() not in self.registered:
            self.registered.append(address.lower())

    def vote_directly(self, address, option):
        self.ballots[address.lower()] = option
        self.options[option][1] += 1

    # --- writes ---

    def _submit(self, action, args):
        self.submissions.append((action, args))
        return SubmittedTransaction(transaction_hash="0x%064x" % next(self._hashes))

    def vote(self, v, r, s, signer, deadline, vote_option):
        signer = signer.lower()
        with self._lock:
            if signer not in self.registered:
                raise Reverted("Voter is not registered")
            if signer in self.ballots:
                raise Reverted("Voter has already voted")
            if vote_option >= len(self.options):
                raise Reverted("Invalid vote option")
            self.vote_directly(signer, vote_option)
        return self._submit("vote", (v, r, s, signer, deadline, vote_option))

    def register_voter(self, v, r, s, signer, deadline, address):
        if signer.lower() != self.owner_address:
            raise Reverted("Ownable: caller is not the owner")
        self.register_directly(address)
        return self._submit("registerVoter", (v, r, s, signer, deadline, address))

    def set_voting_period(self, v, r, s, signer, deadline, voting_start, voting_end):
        if signer.lower() != self.owner_address:
            raise Reverted("Ownable: caller is not the owner")
        self.window = (voting_start, voting_end)
        return self._submit("setVotingPeriod", (v, r, s, signer, deadline, voting_start, voting_end))

    def wait_for_inclusion(self, tx, timeout=None):
        if self.inclusion_outcome == "timeout":
            raise Timeout("Transaction not included within 1 seconds", transaction_hash=tx.transaction_hash)
        if self.inclusion_outcome == "unreachable":
            raise SubmissionFailure("Ledger node unreachable")
        return TransactionReceipt(transaction_hash=tx.transaction_hash, block_number=len(self.submissions),
                                  status=1, gas_used=21000)


def signed_body(signer=OWNER, deadline=4_102_444_800, **payload):
    body = {"v": 27, "r": SIG_R, "s": SIG_S, "signer": signer, "deadline": deadline}
    body.update(payload)
    return body


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def cache():
    return CacheStore(mongomock.MongoClient()["elections_cache_test"])


@pytest.fixture
def settings():
    return Settings(contract_address=CONTRACT_ADDRESS, chain_id=CHAIN_ID, reconcile_interval_seconds=3600)


@pytest.fixture
def app(settings, ledger, cache):
    return create_app(settings=settings, ledger=ledger, cache=cache, run_reconciliation=False)


@pytest.fixture
def client(app):
    return TestClient(app)
