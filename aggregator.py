import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import structlog

from config import Settings, get_settings
from models import Account, Event, RunSummary
from partitioner import partition
from repositories import AccountRepository, InMemoryAccountRepository
from services import LedgerService

logger = structlog.get_logger()


class Aggregator:
    """Runs one ledger per client partition and collects the final accounts.

    Partitions share no mutable state, so the ledgers run on a worker pool
    without locking; the only shared object is the account repository the
    results are fanned into.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        account_repo_factory: Callable[[], AccountRepository] = InMemoryAccountRepository
    ):
        self.settings = settings or get_settings()
        self.account_repo_factory = account_repo_factory
        self.events_processed = 0
        self.events_rejected = 0

    def _fold(self, client_id: int, events: List[Event]) -> Tuple[Account, int]:
        ledger = LedgerService(client_id, settings=self.settings)
        account = ledger.fold(events)
        return account, ledger.rejected_count

    def _record(self, events: List[Event], rejected: int) -> None:
        self.events_processed += len(events)
        self.events_rejected += rejected

    async def aggregate(self, partitions: Dict[int, List[Event]]) -> List[Account]:
        """Fold every partition on a bounded thread pool."""
        account_repo = self.account_repo_factory()
        loop = asyncio.get_running_loop()

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            async def run_partition(client_id: int, events: List[Event]) -> None:
                account, rejected = await loop.run_in_executor(
                    executor, self._fold, client_id, events
                )
                self._record(events, rejected)
                await account_repo.add_account(account)

            await asyncio.gather(*(
                run_partition(client_id, events)
                for client_id, events in partitions.items()
            ))

        return await account_repo.list_accounts()

    def aggregate_sequential(self, partitions: Dict[int, List[Event]]) -> List[Account]:
        """Fold every partition in the calling thread."""
        accounts = []
        for client_id, events in partitions.items():
            account, rejected = self._fold(client_id, events)
            self._record(events, rejected)
            accounts.append(account)
        return accounts

    def summary(self, accounts: List[Account]) -> RunSummary:
        return RunSummary(
            accounts_count=len(accounts),
            events_processed=self.events_processed,
            events_rejected=self.events_rejected
        )

    def process_events(self, events: Iterable[Event]) -> List[Account]:
        """Partition the event stream and fold it into one account per client."""
        start_time = time.time()
        partitions = partition(events)
        logger.info(
            "Events partitioned",
            clients=len(partitions),
            process_time=round(time.time() - start_time, 4)
        )

        start_time = time.time()
        if self.settings.parallel:
            accounts = asyncio.run(self.aggregate(partitions))
        else:
            accounts = self.aggregate_sequential(partitions)

        summary = self.summary(accounts)
        logger.info(
            "Accounts aggregated",
            parallel=self.settings.parallel,
            process_time=round(time.time() - start_time, 4),
            **summary.model_dump()
        )
        return accounts
