"""
Market listings for browsing views.

A scan walks the full id range, reading each market and its status
concurrently. Ids that fail to read are skipped so one bad market never
blanks the list.
"""
import asyncio
from typing import Callable, List, Optional

from errors import ValidationError
from logger import setup_logger, mask_address
from market_status import describe_time_remaining, polling_interval, reconcile_status
from models import BetData, MarketData, MarketListing, MarketStatus
from pool_economics import compute_odds, format_display_amount, format_ether, total_pool
from scheduler import PeriodicTask, ViewScope
from tachi_contract import TachiContract
from wallet import to_checksum

logger = setup_logger('market_feed')


def build_listing(market: MarketData, status: MarketStatus, user_bet: Optional[BetData] = None) -> MarketListing:
    return MarketListing(
        id=market.id,
        question=market.question or status.question,
        market=market,
        status=status,
        odds=compute_odds(market.yes_pool, market.no_pool),
        total_pool=format_display_amount(total_pool(market.yes_pool, market.no_pool)),
        bet_amount=format_ether(market.bet_amount),
        time_remaining=describe_time_remaining(status),
        user_bet=user_bet,
    )


async def load_listing(contract: TachiContract, market_id: int, user_address: Optional[str] = None) -> MarketListing:
    """One market with its status and, if an address is given, that address's bet"""
    if user_address:
        user_address = to_checksum(user_address)
    reads = [contract.get_market(market_id), contract.get_market_status(market_id)]
    if user_address:
        reads.append(contract.get_user_bet(market_id, user_address))
    results = await asyncio.gather(*reads)
    market, status = results[0], results[1]
    user_bet = results[2] if user_address else None
    return build_listing(market, reconcile_status(status, market), user_bet)


async def _try_load(contract: TachiContract, market_id: int, user_address: Optional[str]) -> Optional[MarketListing]:
    try:
        return await load_listing(contract, market_id, user_address)
    except ValidationError:
        raise
    except Exception as e:
        logger.warning(f"Skipping market {market_id}: {str(e)}")
        return None


async def scan_markets(contract: TachiContract, user_address: Optional[str] = None,
                       include: Optional[Callable[[MarketListing], bool]] = None) -> List[MarketListing]:
    """
    Every readable market, newest first

    Args:
        contract: facade to read through
        user_address: attach this address's bet to each listing
        include: optional filter applied to each listing
    """
    if user_address:
        # Bad input fails the whole scan, not every id
        user_address = to_checksum(user_address)
    count = await contract.get_market_count()
    listings = await asyncio.gather(*[
        _try_load(contract, market_id, user_address) for market_id in range(count)
    ])

    result = [listing for listing in listings if listing is not None]
    if include is not None:
        result = [listing for listing in result if include(listing)]
    result.sort(key=lambda listing: listing.id, reverse=True)

    skipped = count - len([listing for listing in listings if listing is not None])
    if skipped:
        logger.warning(f"Scanned {count} markets, skipped {skipped}")
    return result


async def user_positions(contract: TachiContract, user_address: str) -> List[MarketListing]:
    """Markets the address has bet on, newest first"""
    logger.info(f"Loading positions for {mask_address(user_address)}")
    return await scan_markets(
        contract,
        user_address,
        include=lambda listing: listing.user_bet is not None and listing.user_bet.has_bet,
    )


class FocusedMarketView:
    """
    Polls a single market for a detail view.

    The cadence follows the market phase: every second while betting is open,
    every FOCUSED_REFRESH_INTERVAL seconds once closed or resolved. The timer
    is replaced whenever a refresh moves the market into a phase with a
    different cadence.
    """

    def __init__(self, contract: TachiContract, market_id: int, scope: ViewScope,
                 user_address: Optional[str] = None):
        self.contract = contract
        self.market_id = market_id
        self.scope = scope
        self.user_address = user_address
        self.listing: Optional[MarketListing] = None
        self.interval: Optional[int] = None
        self._task: Optional[PeriodicTask] = None

    def _apply(self, listing: MarketListing):
        self.listing = listing

    def _schedule(self, interval: int, run_immediately: bool):
        if self._task is not None:
            self._task.cancel()
        self.interval = interval
        self._task = self.scope.every(interval, self.refresh, name=f"market:{self.market_id}",
                                      run_immediately=run_immediately)

    async def refresh(self) -> MarketListing:
        listing = await load_listing(self.contract, self.market_id, self.user_address)
        if not self.scope.guard(self._apply, listing):
            return listing
        interval = polling_interval(listing.status.phase, focused=True)
        if interval != self.interval:
            self._schedule(interval, run_immediately=False)
        return listing

    async def start(self) -> MarketListing:
        """Load once, then poll at the cadence the loaded phase calls for"""
        return await self.refresh()
