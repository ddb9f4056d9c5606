"""
Leaderboard built from two ledgers that may disagree.

On-chain UserStats are authoritative once an address has placed a bet; the
off-chain profile supplies the display name and fills in whatever the chain
reports as zero. When the chain cannot be read at all the ranking comes from
the datastore alone.
"""
import asyncio
from decimal import Decimal
from typing import Dict, List, Optional

from constants import LEADERBOARD_SIZE, OFFCHAIN_UNION_LIMIT
from database import User
from logger import setup_logger, mask_address
from models import LeaderboardEntry, UserStats
from pool_economics import format_display_amount, format_percent, parse_display_amount, win_rate_percent
from tachi_contract import TachiContract
from user_store import find_users, list_ranked_users

logger = setup_logger('leaderboard')


def sort_key(entry: LeaderboardEntry):
    return (entry.wins, parse_display_amount(entry.total_won))


def rank_entries(entries: List[LeaderboardEntry], limit: Optional[int] = None) -> List[LeaderboardEntry]:
    """Sort by wins then money won, both descending, and assign 1-based ranks"""
    ranked = sorted(entries, key=sort_key, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


def offchain_entry(user: User) -> LeaderboardEntry:
    total_bets = user.wins + user.losses
    win_rate = Decimal(user.wins * 100) / Decimal(total_bets) if total_bets > 0 else 0
    return LeaderboardEntry(
        address=user.wallet_address.lower(),
        name=user.username,
        wins=user.wins,
        win_rate=format_percent(win_rate),
        total_won=format_display_amount(user.mon_won or "0"),
        total_bets=total_bets,
    )


def merge_entry(address: str, stats: UserStats, profile: Optional[User]) -> LeaderboardEntry:
    """Chain values win whenever they are nonzero, the profile fills the gaps"""
    name = profile.username if profile else mask_address(address)
    offchain_wins = profile.wins if profile else 0
    offchain_won = (profile.mon_won if profile else None) or "0"

    wins = stats.won_bets if stats.won_bets > 0 else offchain_wins
    if stats.win_rate > 0:
        win_rate = win_rate_percent(stats.win_rate)
    else:
        win_rate = Decimal(wins * 100) / Decimal(stats.total_bets)

    total_won = stats.total_winnings if int(stats.total_winnings) != 0 else offchain_won

    return LeaderboardEntry(
        address=address.lower(),
        name=name,
        wins=wins,
        win_rate=format_percent(win_rate),
        total_won=format_display_amount(total_won),
        total_bets=stats.total_bets,
    )


class LeaderboardReconciler:
    def __init__(self, session_factory, contract: Optional[TachiContract] = None):
        """
        Args:
            session_factory: callable returning a new SQLAlchemy session
            contract: read-only facade, or None when the chain is not configured
        """
        self.session_factory = session_factory
        self.contract = contract

    def _ranked_users(self, limit: int, exclude=(), wins_only: bool = True) -> List[User]:
        db = self.session_factory()
        try:
            return list_ranked_users(db, limit, exclude=exclude, wins_only=wins_only)
        finally:
            db.close()

    def offchain_leaderboard(self) -> List[LeaderboardEntry]:
        users = self._ranked_users(LEADERBOARD_SIZE, wins_only=False)
        return rank_entries([offchain_entry(user) for user in users])

    def _load_profiles(self, addresses: List[str]) -> Dict[str, User]:
        db = self.session_factory()
        try:
            return find_users(db, addresses)
        except Exception as e:
            # Names fall back to masked addresses
            logger.warning(f"Failed to load profiles for leaderboard: {str(e)}")
            return {}
        finally:
            db.close()

    async def _participant_entry(self, address: str, profile: Optional[User]) -> Optional[LeaderboardEntry]:
        try:
            stats = await self.contract.get_user_stats(address)
        except Exception as e:
            logger.warning(f"Error processing participant {mask_address(address)}: {str(e)}")
            if profile and (profile.wins > 0 or profile.losses > 0):
                return offchain_entry(profile)
            return None

        if stats.total_bets == 0:
            return None
        return merge_entry(address, stats, profile)

    async def build(self) -> List[LeaderboardEntry]:
        if self.contract is None:
            logger.warning("Contract not configured, using off-chain leaderboard only")
            return await asyncio.to_thread(self.offchain_leaderboard)

        try:
            participants = await self.contract.get_all_participants()
        except Exception as e:
            logger.error(f"Error fetching participants, falling back to off-chain leaderboard: {str(e)}")
            return await asyncio.to_thread(self.offchain_leaderboard)

        if not participants:
            logger.info("No participants on chain, using off-chain leaderboard")
            return await asyncio.to_thread(self.offchain_leaderboard)

        profiles = await asyncio.to_thread(self._load_profiles, participants)
        results = await asyncio.gather(*[
            self._participant_entry(address, profiles.get(address.lower()))
            for address in participants
        ])
        entries = [entry for entry in results if entry is not None]

        if not entries:
            return await asyncio.to_thread(self.offchain_leaderboard)

        entries = rank_entries(entries)
        covered = {entry.address for entry in entries}

        extra_users = await asyncio.to_thread(self._ranked_users, OFFCHAIN_UNION_LIMIT, covered)
        entries.extend(offchain_entry(user) for user in extra_users)

        logger.info(f"Leaderboard built: {len(covered)} on-chain, {len(extra_users)} off-chain only")
        return rank_entries(entries, LEADERBOARD_SIZE)
