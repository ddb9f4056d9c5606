import os
import tempfile

import pytest
from web3 import Web3

from database import create_session_factory, init_db
from tachi_contract import TachiContract

ONE_ETHER = Web3.to_wei(1, "ether")
SIGNER = Web3.to_checksum_address("0x" + "11" * 20)
OTHER = Web3.to_checksum_address("0x" + "22" * 20)
TX_HASH = "0x" + "ab" * 32


def market_fields(question="Will it rain?", close_time=2000, bet_amount=ONE_ETHER, yes_pool=0, no_pool=0,
                  is_closed=False, resolved=False, outcome=False, participant_count=0):
    return {
        "question": question,
        "close_time": close_time,
        "bet_amount": bet_amount,
        "yes_pool": yes_pool,
        "no_pool": no_pool,
        "is_closed": is_closed,
        "resolved": resolved,
        "outcome": outcome,
        "participant_count": participant_count,
    }


class FakeCall:
    def __init__(self, contract, name, args):
        self.contract = contract
        self.name = name
        self.args = args

    async def call(self, transaction=None, block_identifier="latest"):
        self.contract.calls.append((self.name, self.args))
        if transaction is not None:
            self.contract.replays.append((self.name, transaction, block_identifier))
        handler = self.contract.reads.get(self.name) or getattr(self.contract, f"read_{self.name}", None)
        if handler is None:
            raise RuntimeError(f"no fake read for {self.name}")
        result = handler(*self.args) if callable(handler) else handler
        if isinstance(result, Exception):
            raise result
        return result

    async def build_transaction(self, params):
        error = self.contract.write_errors.get(self.name)
        if error is not None:
            raise error
        tx = dict(params)
        tx["fn"] = self.name
        tx["args"] = self.args
        return tx


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getattr__(self, name):
        def bind(*args):
            return FakeCall(self._contract, name, args)
        return bind


class FakeMarketCreated:
    def process_receipt(self, receipt, errors=None):
        return [{"args": {"marketId": market_id}} for market_id in receipt.get("marketIds", [])]


class FakeEvents:
    def MarketCreated(self):
        return FakeMarketCreated()


class FakeContract:
    """In-memory stand-in for the factory contract, driven by plain dicts"""

    def __init__(self):
        self.markets = {}
        self.bets = {}
        self.stats = {}
        self.participants = []
        self.now = 1000
        self.organizer = SIGNER
        self.reads = {}
        self.write_errors = {}
        self.calls = []
        self.replays = []
        self.functions = FakeFunctions(self)
        self.events = FakeEvents()

    def add_market(self, **fields):
        market_id = len(self.markets)
        self.markets[market_id] = market_fields(**fields)
        return market_id

    def read_getMarket(self, market_id):
        market = self.markets.get(market_id)
        if market is None:
            return RuntimeError("execution reverted: Market does not exist")
        if isinstance(market, Exception):
            return market
        return tuple(market.values())

    def read_getMarketStatus(self, market_id):
        market = self.markets.get(market_id)
        if market is None:
            return RuntimeError("execution reverted: Market does not exist")
        if isinstance(market, Exception):
            return market
        is_open = not market["is_closed"] and not market["resolved"] and self.now < market["close_time"]
        remaining = max(0, market["close_time"] - self.now) if is_open else 0
        return (market["question"], remaining, is_open, not is_open, market["resolved"], self.now,
                market["close_time"])

    def read_getMarketCount(self):
        return len(self.markets)

    def read_getCurrentTimestamp(self):
        return self.now

    def read_getUserBet(self, market_id, address):
        return self.bets.get((market_id, address.lower()), (False, False, 0, False, False))

    def read_getUserStats(self, address):
        return self.stats.get(address.lower(), (0, 0, 0, 0, 0, 0, 0))

    def read_getAllParticipants(self):
        return list(self.participants)

    def read_organizer(self):
        return self.organizer

    def read_getContractBalance(self):
        return 5 * ONE_ETHER

    def read_MIN_BET_AMOUNT(self):
        return ONE_ETHER // 10

    def read_MAX_BET_AMOUNT(self):
        return 100 * ONE_ETHER


class FakeWallet:
    def __init__(self, address=SIGNER, balance="0", error=None, market_ids=None, status=1):
        self.address = address
        self.can_sign = True
        self.balance = balance
        self.error = error
        self.market_ids = market_ids or []
        self.status = status
        self.sent = []

    async def transact(self, tx):
        if self.error is not None:
            raise self.error
        self.sent.append(tx)
        return {"transactionHash": TX_HASH, "blockNumber": 7, "status": self.status,
                "marketIds": list(self.market_ids)}

    async def get_balance(self, address=None):
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance


class FakeContractSession:
    def __init__(self, contract, wallet=None, read_wallet=None):
        self.contract = contract
        self.wallet = wallet
        self.read_only = TachiContract(contract)
        self.read_wallet = read_wallet or FakeWallet()
        self._signer = None

    async def check_connection(self):
        return True

    def default_wallet(self):
        return self.wallet

    def signer(self, wallet):
        if self._signer is None or self._signer.wallet is not wallet:
            self._signer = TachiContract(self.contract, wallet)
        return self._signer


@pytest.fixture(scope="function")
def session_factory():
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    engine, factory = create_session_factory(f"sqlite:///{db_path}")
    init_db(engine)
    yield factory
    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def contract():
    return FakeContract()


@pytest.fixture
def wallet():
    return FakeWallet()
