import asyncio
from datetime import datetime, timezone
from typing import Optional, Set

from constants import BALANCE_SYNC_INTERVAL
from logger import setup_logger, mask_address
from models import UserState
from scheduler import PeriodicTask, ViewScope
from user_store import update_balance
from wallet import WalletProvider

logger = setup_logger('balance_sync')


class BalanceSynchronizer:
    """
    Keeps the connected user's native balance current.

    The wallet provider is the only source of truth. Every sync patches the
    in-memory ``UserState`` with the fresh balance and mirrors it to the
    datastore in a background task; a failed mirror is logged and never
    affects the in-memory state.
    """

    def __init__(self, wallet: WalletProvider, session_factory, state: UserState,
                 interval: float = BALANCE_SYNC_INTERVAL):
        self.wallet = wallet
        self.session_factory = session_factory
        self.state = state
        self.interval = interval
        self.pending_writes: Set[asyncio.Task] = set()
        self._scope: Optional[ViewScope] = None
        self._task: Optional[PeriodicTask] = None

    def _mirror(self, balance: str, updated_at: datetime):
        db = self.session_factory()
        try:
            update_balance(db, self.state.wallet_address, balance, updated_at)
        finally:
            db.close()

    async def _mirror_in_background(self, balance: str, updated_at: datetime):
        try:
            await asyncio.to_thread(self._mirror, balance, updated_at)
        except Exception as e:
            logger.error(f"Failed to save balance for {mask_address(self.state.wallet_address)}: {str(e)}")

    def _apply(self, balance: str, updated_at: datetime):
        self.state.balance = balance
        self.state.balance_updated_at = updated_at

    async def sync_once(self) -> Optional[str]:
        address = self.state.wallet_address
        try:
            balance = await self.wallet.get_balance(address)
        except Exception as e:
            logger.error(f"Error fetching balance for {mask_address(address)}: {str(e)}")
            return None

        updated_at = datetime.now(timezone.utc)
        write = asyncio.create_task(self._mirror_in_background(balance, updated_at))
        self.pending_writes.add(write)
        write.add_done_callback(self.pending_writes.discard)

        if self._scope is not None:
            self._scope.guard(self._apply, balance, updated_at)
        else:
            self._apply(balance, updated_at)
        return balance

    def start(self, scope: ViewScope) -> PeriodicTask:
        """Sync now and then every interval until the scope closes"""
        self._scope = scope
        self._task = scope.every(self.interval, self.sync_once, name=f"balance:{mask_address(self.state.wallet_address)}")
        return self._task

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
