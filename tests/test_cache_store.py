"""Unit tests for the MongoDB read cache."""

from unittest.mock import MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from elections_relay.cache_store import CacheStore
from elections_relay.errors import CacheReadFailure, CacheWriteFailure
from elections_relay.models.voting import VotingOption


def _options(*tallies):
    return [VotingOption(id=i, name=f"option{i + 1}", votes=v) for i, v in enumerate(tallies)]


def test_upsert_voting_options_inserts_then_overwrites(cache):
    assert cache.upsert_voting_options(_options(1, 2)) == 2
    cache.upsert_voting_options([VotingOption(id=1, name="renamed", votes=7)])

    assert [o.model_dump() for o in cache.list_voting_options()] == [
        {"id": 0, "name": "option1", "votes": 1},
        {"id": 1, "name": "renamed", "votes": 7},
    ]


def test_upsert_voting_options_is_idempotent(cache):
    cache.upsert_voting_options(_options(3, 5))
    once = cache.snapshot()
    cache.upsert_voting_options(_options(3, 5))

    assert cache.snapshot() == once


def test_voting_options_listed_in_ascending_id_order(cache):
    cache.upsert_voting_options([VotingOption(id=2, name="c", votes=0)])
    cache.upsert_voting_options([VotingOption(id=0, name="a", votes=0), VotingOption(id=1, name="b", votes=0)])

    assert [o.id for o in cache.list_voting_options()] == [0, 1, 2]


def test_registered_voters_are_lowercased_and_unique(cache):
    address = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
    cache.add_registered_voter(address)
    cache.upsert_registered_voters([address.lower(), address])

    assert cache.list_registered_voters(0, 100) == [address.lower()]


def test_registered_voters_pagination(cache):
    addresses = ["0x%040x" % i for i in range(5)]
    cache.upsert_registered_voters(reversed(addresses))

    assert cache.list_registered_voters(0, 2) == addresses[:2]
    assert cache.list_registered_voters(2, 2) == addresses[2:4]
    assert cache.list_registered_voters(4, 10) == addresses[4:]
    assert cache.list_registered_voters(10, 10) == []


def test_zero_limit_returns_nothing(cache):
    cache.upsert_registered_voters(["0x%040x" % 1])

    assert cache.list_registered_voters(0, 0) == []


def test_increment_votes_updates_existing_row_only(cache):
    cache.upsert_voting_options(_options(3))

    assert cache.increment_votes(0) is True
    assert cache.increment_votes(5) is False
    assert [o.votes for o in cache.list_voting_options()] == [4]


def _unavailable_store():
    db = MagicMock()
    store = CacheStore(db)
    error = ServerSelectionTimeoutError("cache down")
    store.voting_results.update_one.side_effect = error
    store.voting_results.find.side_effect = error
    return store


def test_write_errors_are_wrapped():
    store = _unavailable_store()

    with pytest.raises(CacheWriteFailure):
        store.increment_votes(0)
    with pytest.raises(CacheWriteFailure):
        store.upsert_voting_options(_options(1))
    with pytest.raises(CacheWriteFailure):
        store.add_registered_voter("0x" + "ab" * 20)


def test_read_errors_are_wrapped():
    store = _unavailable_store()

    with pytest.raises(CacheReadFailure):
        store.list_voting_options()
