"""
Organizer workflow for resolving markets once betting has closed.

``MarketResolutionWorkflow`` drives one market through
Unloaded -> Loading -> Loaded -> Resolving -> Resolved | Failed and re-reads
the market right before submitting, so a stale view never resolves a market
that is still open or already settled. ``PendingResolutionList`` keeps the
set of closed-but-unresolved markets current for the admin view.
"""
import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from constants import LIST_REFRESH_INTERVAL, PENDING_RESCAN_DELAY
from errors import ErrorKind, NotFoundError, TachiError, ValidationError
from logger import setup_logger
from market_feed import scan_markets
from market_status import is_fresh
from models import MarketData, MarketListing, MarketStatus, PendingMarkets
from scheduler import PeriodicTask, ViewScope
from tachi_contract import TachiContract

logger = setup_logger('admin_workflow')


class ResolutionState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


def awaiting_resolution(market: MarketData, status: MarketStatus) -> bool:
    return status.is_betting_closed and not market.resolved


class MarketResolutionWorkflow:
    def __init__(self, contract: TachiContract, market_id: int):
        self.contract = contract
        self.market_id = market_id
        self.state = ResolutionState.UNLOADED
        self.market: Optional[MarketData] = None
        self.status: Optional[MarketStatus] = None
        self.outcome: Optional[bool] = None
        self.error: Optional[Exception] = None
        self.tx_hash: Optional[str] = None

    async def _read(self):
        return await self.contract.refresh_status(self.market_id)

    async def load(self):
        self.state = ResolutionState.LOADING
        self.error = None
        try:
            if self.market_id < 0 or self.market_id >= await self.contract.get_market_count():
                raise NotFoundError("Market not found")
            self.market, self.status = await self._read()
        except Exception as e:
            self.state = ResolutionState.FAILED
            self.error = e
            raise
        self.state = ResolutionState.LOADED
        return self

    def choose_outcome(self, outcome: bool):
        if not isinstance(outcome, bool):
            raise ValidationError("Outcome must be true (YES) or false (NO)")
        self.outcome = outcome

    @property
    def can_resolve(self) -> bool:
        return (
            self.state == ResolutionState.LOADED
            and self.outcome is not None
            and awaiting_resolution(self.market, self.status)
            and is_fresh(self.status)
        )

    async def resolve(self) -> str:
        """
        Resolve with the chosen outcome

        Raises ValidationError without touching the chain when resolution is
        not enabled. If the fresh re-read shows the market can no longer be
        resolved, the workflow goes back to Loaded with that data and raises.
        """
        if not self.can_resolve:
            if self.status is not None and not is_fresh(self.status):
                raise ValidationError("Market data is stale, reload before resolving")
            raise ValidationError("Market cannot be resolved in its current state")

        self.state = ResolutionState.RESOLVING
        try:
            market, status = await self._read()
        except Exception as e:
            self.state = ResolutionState.FAILED
            self.error = e
            raise

        if not awaiting_resolution(market, status):
            self.market, self.status = market, status
            self.state = ResolutionState.LOADED
            logger.warning(f"Market {self.market_id} changed before resolving, reloaded")
            if market.resolved:
                raise TachiError(ErrorKind.MARKET_CLOSED, "Market is already resolved")
            raise TachiError(ErrorKind.NOT_YET_CLOSED)

        try:
            self.tx_hash = await self.contract.resolve_market(self.market_id, self.outcome)
        except Exception as e:
            self.state = ResolutionState.FAILED
            self.error = e
            raise

        self.market, self.status = market, status
        self.state = ResolutionState.RESOLVED
        logger.info(f"Market {self.market_id} resolved as {'YES' if self.outcome else 'NO'}")
        return self.tx_hash


class PendingResolutionList:
    """Closed-but-unresolved markets, newest first"""

    def __init__(self, contract: TachiContract, interval: float = LIST_REFRESH_INTERVAL,
                 rescan_delay: float = PENDING_RESCAN_DELAY):
        self.contract = contract
        self.interval = interval
        self.rescan_delay = rescan_delay
        self.markets: List[MarketListing] = []
        self.scanned_at: Optional[datetime] = None
        self.selected: Optional[int] = None
        self._scope: Optional[ViewScope] = None
        self._followups: Set[asyncio.Task] = set()

    def snapshot(self) -> PendingMarkets:
        return PendingMarkets(markets=list(self.markets), scanned_at=self.scanned_at)

    def _apply(self, markets: List[MarketListing]):
        self.markets = markets
        self.scanned_at = datetime.now(timezone.utc)

    def _guarded(self, update, *args):
        if self._scope is not None:
            return self._scope.guard(update, *args)
        update(*args)
        return True

    async def scan(self) -> List[MarketListing]:
        markets = await scan_markets(
            self.contract,
            include=lambda listing: awaiting_resolution(listing.market, listing.status),
        )
        self._guarded(self._apply, markets)
        logger.info(f"Found {len(markets)} markets awaiting resolution")
        return markets

    def open(self, scope: ViewScope) -> PeriodicTask:
        """Scan now and every interval while the scope stays open"""
        self._scope = scope
        return scope.every(self.interval, self.scan, name="pending-resolution")

    def select(self, market_id: int) -> MarketResolutionWorkflow:
        self.selected = market_id
        return MarketResolutionWorkflow(self.contract, market_id)

    async def resolve(self, market_id: int, outcome: bool) -> str:
        workflow = self.select(market_id)
        await workflow.load()
        workflow.choose_outcome(outcome)
        tx_hash = await workflow.resolve()

        followup = asyncio.create_task(self._remove_later(market_id))
        self._followups.add(followup)
        followup.add_done_callback(self._followups.discard)
        return tx_hash

    def _remove(self, market_id: int):
        self.markets = [listing for listing in self.markets if listing.id != market_id]
        if self.selected == market_id:
            self.selected = None

    async def _remove_later(self, market_id: int):
        await asyncio.sleep(self.rescan_delay)
        if not self._guarded(self._remove, market_id):
            return
        try:
            await self.scan()
        except Exception as e:
            logger.error(f"Error rescanning after resolving market {market_id}: {str(e)}")
