"""
Contract facade for the Tachi prediction market factory.

Every read and write against the contract goes through ``TachiContract``.
Writes are validated locally first and re-read the state they depend on
immediately before submission; any failure after that point is classified
into the error taxonomy in ``errors``. Reads only translate the native
encodings (big integers become decimal strings of wei).
"""
import asyncio
import time
from typing import List, Optional, Tuple

from web3 import Web3
from web3.logs import DISCARD

from constants import MAX_BET_AMOUNT, MAX_DURATION, MIN_BET_AMOUNT, PLACE_BET_GAS_LIMIT
from errors import (
    ErrorKind,
    TachiError,
    ValidationError,
    classify_error,
    classify_read_error,
)
from logger import setup_logger, mask_address
from market_status import derive_status
from models import (
    BetData,
    CreateMarketResult,
    MarketData,
    MarketPhase,
    MarketStatus,
    UserStats,
)
from pool_economics import format_ether, parse_ether, validate_bet_amount
from wallet import to_checksum

logger = setup_logger('tachi_contract')


def _to_hex(value) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return Web3.to_hex(value)


def _check_market_id(market_id) -> int:
    if isinstance(market_id, bool) or not isinstance(market_id, int) or market_id < 0:
        raise ValidationError(f"Invalid market id: {market_id}")
    return market_id


class TachiContract:
    def __init__(self, contract, wallet=None):
        """
        Args:
            contract: web3 contract instance bound to the factory address
            wallet: WalletProvider able to sign, or None for a read-only facade
        """
        self.contract = contract
        self.wallet = wallet

    @property
    def signer_address(self) -> Optional[str]:
        return self.wallet.address if self.wallet is not None else None

    @property
    def can_sign(self) -> bool:
        return self.wallet is not None and self.wallet.can_sign

    def _require_signer(self, action: str):
        if not self.can_sign:
            raise ValidationError(f"Signer required for {action}")

    async def _read(self, function, description: str):
        try:
            return await function.call()
        except Exception as e:
            error = classify_read_error(e)
            logger.warning(f"Error reading {description}: {str(e)}")
            raise error from e

    async def _transact(self, function, action: str, value: int = 0, gas: Optional[int] = None) -> Tuple[dict, str]:
        self._require_signer(action)
        params = {'from': self.wallet.address, 'value': value}
        if gas is not None:
            # Skips estimation, which fails on state-dependent reverts
            params['gas'] = gas

        try:
            tx = await function.build_transaction(params)
            receipt = await self.wallet.transact(tx)
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Error in {action}: {str(e)} (classified as {error.kind.value}, reason: {error.reason})")
            raise error from e

        tx_hash = _to_hex(receipt['transactionHash'])
        if receipt.get('status') == 0:
            error = await self._replay_failure(function, params, receipt)
            logger.error(f"{action} reverted on chain, hash: {tx_hash} "
                         f"(classified as {error.kind.value}, reason: {error.reason})")
            raise error

        logger.info(f"{action} confirmed, hash: {tx_hash}")
        return receipt, tx_hash

    async def _replay_failure(self, function, params: dict, receipt) -> TachiError:
        """Re-run a mined, reverted transaction as a call at its block to recover the revert reason"""
        call_params = {'from': params['from'], 'value': params['value']}
        try:
            await function.call(call_params, block_identifier=receipt.get('blockNumber', 'latest'))
        except Exception as e:
            error = classify_error(e)
            if error.kind != ErrorKind.UNKNOWN:
                return error
            logger.warning(f"Replay of reverted transaction gave no reason: {str(e)}")
        return TachiError(ErrorKind.REVERTED, reason="receipt status 0")

    # Organizer writes

    async def create_market(self, question: str, duration_seconds: int, bet_amount) -> CreateMarketResult:
        """
        Create a new betting market (organizer only)

        Args:
            question: The betting question
            duration_seconds: Betting window, 1..MAX_DURATION seconds
            bet_amount: Fixed bet size in ether, MIN_BET_AMOUNT..MAX_BET_AMOUNT

        Returns:
            Transaction hash and market ID
        """
        question = (question or "").strip()
        if not question:
            raise ValidationError("Question is required")
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
            raise ValidationError("Duration must be a whole number of seconds")
        if duration_seconds <= 0 or duration_seconds > MAX_DURATION:
            raise ValidationError(f"Duration must be between 1 and {MAX_DURATION} seconds")
        bet_amount_wei = validate_bet_amount(parse_ether(bet_amount), MIN_BET_AMOUNT, MAX_BET_AMOUNT)

        logger.info(f"Creating market: {question!r}, duration={duration_seconds}s, bet={format_ether(bet_amount_wei)}")
        receipt, tx_hash = await self._transact(
            self.contract.functions.createMarket(question, duration_seconds, bet_amount_wei),
            "createMarket",
        )

        market_id = self._market_id_from_receipt(receipt)
        if market_id is None:
            # Race-prone if two markets land in the same block
            market_id = await self.get_market_count() - 1
            logger.warning(f"Could not decode MarketCreated event, assuming market ID {market_id}")
        else:
            logger.info(f"Market created with ID: {market_id}")

        return CreateMarketResult(tx_hash=tx_hash, market_id=market_id)

    def _market_id_from_receipt(self, receipt) -> Optional[int]:
        for event in self.contract.events.MarketCreated().process_receipt(receipt, errors=DISCARD):
            return int(event['args']['marketId'])
        return None

    async def close_betting(self, market_id: int) -> str:
        market_id = _check_market_id(market_id)
        _, tx_hash = await self._transact(self.contract.functions.closeBetting(market_id), "closeBetting")
        return tx_hash

    async def resolve_market(self, market_id: int, outcome: bool) -> str:
        """Resolve a market; the contract distributes winnings in the same transaction"""
        market_id = _check_market_id(market_id)
        if not isinstance(outcome, bool):
            raise ValidationError("Outcome must be true (YES) or false (NO)")
        _, tx_hash = await self._transact(
            self.contract.functions.resolveMarket(market_id, outcome), "resolveMarket"
        )
        return tx_hash

    async def add_house_funds(self, market_id: int, amount) -> str:
        """Add house funds in ether, split 50/50 between the pools by the contract"""
        market_id = _check_market_id(market_id)
        amount_wei = parse_ether(amount)
        if amount_wei <= 0:
            raise ValidationError("House funds amount must be greater than zero")
        _, tx_hash = await self._transact(
            self.contract.functions.addHouseFunds(market_id), "addHouseFunds", value=amount_wei
        )
        return tx_hash

    async def set_organizer(self, new_organizer: str) -> str:
        address = to_checksum(new_organizer)
        _, tx_hash = await self._transact(self.contract.functions.setOrganizer(address), "setOrganizer")
        return tx_hash

    # Betting

    async def place_bet(self, market_id: int, prediction: bool) -> str:
        """
        Place a bet on a market

        Market, chain clock and the caller's existing bet are read fresh and
        concurrently; the payment is the freshly read betAmount.

        Args:
            market_id: The market ID
            prediction: True for YES, False for NO

        Returns:
            Transaction hash
        """
        self._require_signer("placeBet")
        market_id = _check_market_id(market_id)
        if not isinstance(prediction, bool):
            raise ValidationError("Prediction must be true (YES) or false (NO)")

        signer_address = self.wallet.address
        market, current_time, existing_bet = await asyncio.gather(
            self.get_market(market_id),
            self.get_current_timestamp(),
            self.get_user_bet(market_id, signer_address),
        )

        if market.resolved:
            raise TachiError(ErrorKind.MARKET_CLOSED, "Market is already resolved")
        if market.is_closed:
            raise TachiError(ErrorKind.MARKET_CLOSED, "Betting is closed for this market")
        if current_time >= market.close_time:
            raise TachiError(ErrorKind.MARKET_CLOSED, "Betting time has ended for this market")
        if existing_bet.has_bet:
            raise TachiError(ErrorKind.ALREADY_BET)

        bet_amount = int(market.bet_amount)
        logger.info(
            f"Placing bet: market={market_id}, prediction={'YES' if prediction else 'NO'}, "
            f"amount={format_ether(bet_amount)}, signer={mask_address(signer_address)}"
        )
        _, tx_hash = await self._transact(
            self.contract.functions.placeBet(market_id, prediction),
            "placeBet",
            value=bet_amount,
            gas=PLACE_BET_GAS_LIMIT,
        )
        return tx_hash

    # Reads

    async def get_market(self, market_id: int) -> MarketData:
        market_id = _check_market_id(market_id)
        result = await self._read(self.contract.functions.getMarket(market_id), f"market {market_id}")
        question, close_time, bet_amount, yes_pool, no_pool, is_closed, resolved, outcome, participant_count = result
        return MarketData(
            id=market_id,
            question=question or "",
            close_time=int(close_time),
            bet_amount=str(bet_amount),
            yes_pool=str(yes_pool),
            no_pool=str(no_pool),
            is_closed=is_closed,
            resolved=resolved,
            outcome=outcome,
            participant_count=int(participant_count),
        )

    def _resolve_address(self, user_address: Optional[str]) -> str:
        address = user_address or self.signer_address
        if not address:
            raise ValidationError("User address required")
        return to_checksum(address)

    async def get_user_bet(self, market_id: int, user_address: Optional[str] = None) -> BetData:
        market_id = _check_market_id(market_id)
        address = self._resolve_address(user_address)
        result = await self._read(
            self.contract.functions.getUserBet(market_id, address),
            f"bet of {mask_address(address)} on market {market_id}",
        )
        has_bet, prediction, amount, claimed, won = result
        return BetData(has_bet=has_bet, prediction=prediction, amount=str(amount), claimed=claimed, won=won)

    async def get_user_stats(self, user_address: Optional[str] = None) -> UserStats:
        address = self._resolve_address(user_address)
        result = await self._read(self.contract.functions.getUserStats(address), f"stats of {mask_address(address)}")
        total_bets, won_bets, lost_bets, total_winnings, net_profit, total_amount_bet, win_rate = result
        return UserStats(
            total_bets=int(total_bets),
            won_bets=int(won_bets),
            lost_bets=int(lost_bets),
            total_winnings=str(total_winnings),
            net_profit=str(net_profit),
            total_amount_bet=str(total_amount_bet),
            win_rate=int(win_rate),
        )

    async def get_market_status(self, market_id: int) -> MarketStatus:
        market_id = _check_market_id(market_id)
        result = await self._read(self.contract.functions.getMarketStatus(market_id), f"status of market {market_id}")
        question, seconds_remaining, is_open, is_closed, is_resolved, current_time, close_time = result
        if is_resolved:
            phase = MarketPhase.RESOLVED
        elif is_open:
            phase = MarketPhase.OPEN
        else:
            phase = MarketPhase.CLOSED
        return MarketStatus(
            question=question or "",
            seconds_remaining=int(seconds_remaining),
            is_betting_open=is_open,
            is_betting_closed=is_closed,
            is_resolved=is_resolved,
            current_time=int(current_time),
            close_time=int(close_time),
            phase=phase,
            fetched_at=time.monotonic(),
        )

    async def refresh_status(self, market_id: int) -> Tuple[MarketData, MarketStatus]:
        """Market plus a status derived from a freshly read chain clock"""
        market, current_time = await asyncio.gather(self.get_market(market_id), self.get_current_timestamp())
        return market, derive_status(market, current_time)

    async def get_market_count(self) -> int:
        return int(await self._read(self.contract.functions.getMarketCount(), "market count"))

    async def get_all_participants(self) -> List[str]:
        return list(await self._read(self.contract.functions.getAllParticipants(), "participants"))

    async def get_current_timestamp(self) -> int:
        return int(await self._read(self.contract.functions.getCurrentTimestamp(), "chain timestamp"))

    async def get_contract_balance(self) -> str:
        return str(await self._read(self.contract.functions.getContractBalance(), "contract balance"))

    async def get_organizer(self) -> str:
        return await self._read(self.contract.functions.organizer(), "organizer")

    async def is_organizer(self, address: str) -> bool:
        if not address:
            return False
        organizer = await self.get_organizer()
        return organizer.lower() == address.lower()

    async def get_min_bet_amount(self) -> str:
        return str(await self._read(self.contract.functions.MIN_BET_AMOUNT(), "MIN_BET_AMOUNT"))

    async def get_max_bet_amount(self) -> str:
        return str(await self._read(self.contract.functions.MAX_BET_AMOUNT(), "MAX_BET_AMOUNT"))
