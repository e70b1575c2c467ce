import pytest
import asyncio
import random
from decimal import Decimal

from aggregator import Aggregator
from generator import generate_events
from models import Account
from partitioner import partition
from repositories import InMemoryAccountRepository
from services import LedgerService


def by_client(accounts):
    return {a.client_id: a for a in accounts}


class TestAggregation:
    """Test folding every client partition into accounts."""

    def test_one_account_per_client(self, settings, make_events):
        """Test every client seen in the input gets exactly one account."""
        events = make_events(
            ("deposit", 1, 1, "1.0"),
            ("deposit", 2, 2, "2.0"),
            ("deposit", 1, 3, "2.0"),
            ("withdrawal", 1, 4, "1.5"),
            ("withdrawal", 2, 5, "3.0"),
            ("dispute", 3, 9, None),
        )

        accounts = by_client(Aggregator(settings).process_events(events))

        assert sorted(accounts) == [1, 2, 3]
        assert accounts[1].available == Decimal("1.5")
        assert accounts[1].total == Decimal("1.5")
        assert accounts[2].available == Decimal("2.0")
        assert accounts[3] == Account.new(3)

    def test_sequential_matches_parallel(self, settings):
        """Test the worker pool and the sequential fold agree."""
        events = generate_events(3000, 20, rng=random.Random(42))

        parallel = Aggregator(settings.model_copy(update={"parallel": True})).process_events(events)
        sequential = Aggregator(settings.model_copy(update={"parallel": False})).process_events(events)

        assert by_client(parallel) == by_client(sequential)

    def test_cross_client_isolation(self, settings, make_events):
        """Test interleaved clients fold exactly as they would alone."""
        client_1 = [
            ("deposit", 1, 1, "100"),
            ("withdrawal", 1, 2, "30"),
            ("dispute", 1, 1, None),
            ("chargeback", 1, 1, None),
        ]
        client_2 = [
            ("deposit", 2, 1, "10"),
            ("dispute", 2, 1, None),
            ("resolve", 2, 1, None),
            ("withdrawal", 2, 3, "4"),
        ]
        interleaved = [row for pair in zip(client_1, client_2) for row in pair]

        accounts = by_client(Aggregator(settings).process_events(make_events(*interleaved)))

        alone_1 = LedgerService(1, settings=settings).fold(make_events(*client_1))
        alone_2 = LedgerService(2, settings=settings).fold(make_events(*client_2))
        assert accounts[1] == alone_1
        assert accounts[2] == alone_2
        assert accounts[1].locked is True
        assert accounts[2].available == Decimal("6")

    def test_summary_counts(self, settings, make_events):
        """Test processed and rejected events are counted across partitions."""
        aggregator = Aggregator(settings)
        accounts = aggregator.process_events(make_events(
            ("deposit", 1, 1, "5"),
            ("withdrawal", 1, 2, "50"),
            ("dispute", 2, 3, None),
            ("deposit", 2, 4, "1"),
        ))

        summary = aggregator.summary(accounts)

        assert summary.accounts_count == 2
        assert summary.events_processed == 4
        assert summary.events_rejected == 2

    def test_empty_stream(self, settings):
        """Test no events means no accounts."""
        assert Aggregator(settings).process_events([]) == []

    @pytest.mark.asyncio
    async def test_aggregate_on_worker_pool(self, settings, make_events):
        """Test the async fan-out collects every partition."""
        events = make_events(*[
            ("deposit", client_id, tx_id, "1.25")
            for tx_id in range(5)
            for client_id in range(1, 11)
        ])

        accounts = await Aggregator(settings).aggregate(partition(events))

        assert len(accounts) == 10
        for account in accounts:
            assert account.available == Decimal("6.25")
            assert account.is_balanced()


class TestAccountRepository:
    """Test the concurrency-safe result collection."""

    @pytest.mark.asyncio
    async def test_concurrent_inserts(self):
        """Test many concurrent inserts are all kept."""
        repo = InMemoryAccountRepository()

        await asyncio.gather(*(repo.add_account(Account.new(i)) for i in range(100)))

        assert await repo.get_accounts_count() == 100
        assert sorted(a.client_id for a in await repo.list_accounts()) == list(range(100))

    @pytest.mark.asyncio
    async def test_duplicate_client_rejected(self):
        """Test one client cannot be collected twice."""
        repo = InMemoryAccountRepository()
        await repo.add_account(Account.new(1))

        with pytest.raises(ValueError):
            await repo.add_account(Account.new(1))

        repo.clear()
        assert await repo.get_accounts_count() == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
