"""Unit tests for the idempotency ledger (in-memory and DynamoDB)."""

from datetime import timedelta

import pytest

from eventbook.ports import IdempotencyLedger
from eventbook.services.dynamodb import DynamoDBService
from eventbook.services.idempotency import (
    DynamoDBIdempotencyLedger,
    InMemoryIdempotencyLedger,
    generate_key,
)

TTL = timedelta(hours=24)
RESULT = {"checkout_url": "https://checkout.stripe.com/c/pay/cs_test_1"}


class TestGenerateKey:
    def test_prefix_and_fixed_length(self) -> None:
        key = generate_key("checkout", "tn_lakeside", "client-key-1")

        assert key.startswith("checkout_")
        assert len(key) == len("checkout_") + 32

    def test_deterministic_and_part_sensitive(self) -> None:
        assert generate_key("checkout", "a", "b") == generate_key("checkout", "a", "b")
        assert generate_key("checkout", "a", "b") != generate_key("checkout", "b", "a")
        assert generate_key("checkout", "a", "b") != generate_key("refund", "a", "b")


@pytest.fixture(params=["memory", "dynamodb"])
def ledger(request: pytest.FixtureRequest, clock) -> IdempotencyLedger:
    """Run each test against both ledgers."""
    if request.param == "memory":
        return InMemoryIdempotencyLedger(ttl=TTL, clock=clock)
    db: DynamoDBService = request.getfixturevalue("dynamodb")
    return DynamoDBIdempotencyLedger(db=db, ttl=TTL, clock=clock)


class TestLedger:
    def test_first_begin_is_new(self, ledger: IdempotencyLedger) -> None:
        begin = ledger.begin("checkout_k1")

        assert begin.is_new is True
        assert begin.cached_result is None

    def test_in_progress_has_no_result(self, ledger: IdempotencyLedger) -> None:
        ledger.begin("checkout_k1")

        begin = ledger.begin("checkout_k1")

        assert begin.is_new is False
        assert begin.cached_result is None

    def test_completed_returns_cached_result(self, ledger: IdempotencyLedger) -> None:
        ledger.begin("checkout_k1")
        ledger.complete("checkout_k1", RESULT)

        begin = ledger.begin("checkout_k1")

        assert begin.is_new is False
        assert begin.cached_result == RESULT

    def test_release_frees_key(self, ledger: IdempotencyLedger) -> None:
        ledger.begin("checkout_k1")
        ledger.release("checkout_k1")

        assert ledger.begin("checkout_k1").is_new is True

    def test_release_keeps_completed_entry(self, ledger: IdempotencyLedger) -> None:
        ledger.begin("checkout_k1")
        ledger.complete("checkout_k1", RESULT)
        ledger.release("checkout_k1")

        assert ledger.begin("checkout_k1").cached_result == RESULT

    def test_expired_entry_reads_as_absent(self, ledger: IdempotencyLedger, clock) -> None:
        ledger.begin("checkout_k1")
        ledger.complete("checkout_k1", RESULT)
        clock.advance(hours=25)

        begin = ledger.begin("checkout_k1")

        assert begin.is_new is True
        assert begin.cached_result is None

    def test_prune_expired(self, ledger: IdempotencyLedger, clock) -> None:
        ledger.begin("checkout_old")
        clock.advance(hours=25)
        ledger.begin("checkout_new")

        assert ledger.prune_expired() == 1
        assert ledger.begin("checkout_new").is_new is False
        assert ledger.begin("checkout_old").is_new is True
