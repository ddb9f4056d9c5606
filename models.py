from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in code
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MarketPhase(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    RESOLVED = "resolved"


class MarketData(ApiModel):
    id: int
    question: str = ""
    close_time: int
    bet_amount: str  # wei
    yes_pool: str  # wei
    no_pool: str  # wei
    is_closed: bool
    resolved: bool
    outcome: bool
    participant_count: int


class BetData(ApiModel):
    has_bet: bool
    prediction: bool  # True = YES
    amount: str  # wei
    claimed: bool
    won: bool


class UserStats(ApiModel):
    total_bets: int
    won_bets: int
    lost_bets: int
    total_winnings: str  # wei
    net_profit: str  # wei
    total_amount_bet: str  # wei
    win_rate: int  # basis points


class MarketStatus(ApiModel):
    question: str = ""
    seconds_remaining: int
    is_betting_open: bool
    is_betting_closed: bool
    is_resolved: bool
    current_time: int
    close_time: int
    phase: MarketPhase
    # time.monotonic() when derived, used for freshness checks
    fetched_at: float = Field(default=0.0, exclude=True)


class Odds(ApiModel):
    yes_odds: float
    no_odds: float


class MarketListing(ApiModel):
    id: int
    question: str
    market: MarketData
    status: MarketStatus
    odds: Odds
    total_pool: str  # ether
    bet_amount: str  # ether
    time_remaining: str
    user_bet: Optional[BetData] = None


class CreateMarketResult(ApiModel):
    tx_hash: str
    market_id: int


class TransactionResult(ApiModel):
    tx_hash: str


class LeaderboardEntry(ApiModel):
    rank: int = 0
    address: str
    name: str
    wins: int
    win_rate: str  # "NN%"
    total_won: str  # ether, thousands separators
    total_bets: int


class BalanceSnapshot(ApiModel):
    balance: str  # wei
    balance_updated_at: Optional[datetime] = None


class UserState(ApiModel):
    """In-memory view of the connected user, patched by the balance synchronizer"""
    wallet_address: str
    username: Optional[str] = None
    balance: str = "0"
    balance_updated_at: Optional[datetime] = None


class UserRead(ApiModel):
    wallet_address: str
    username: str
    wins: int
    losses: int
    win_rate: float
    mon_won: str
    balance: str
    balance_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ContractInfo(ApiModel):
    contract_address: str
    organizer: str
    market_count: int
    current_timestamp: int
    contract_balance: str
    min_bet_amount: str
    max_bet_amount: str


# Request bodies

class WalletAddressRequest(ApiModel):
    wallet_address: str = Field(min_length=1)


class UserUpdateRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    wallet_address: str = Field(min_length=1)
    username: Optional[str] = None
    wins: Optional[int] = Field(default=None, ge=0)
    losses: Optional[int] = Field(default=None, ge=0)
    mon_won: Optional[str] = None


class CreateMarketRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    question: str
    duration_seconds: int
    bet_amount: str  # ether


class PlaceBetRequest(ApiModel):
    prediction: bool


class ResolveMarketRequest(ApiModel):
    outcome: bool


class HouseFundsRequest(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    amount: str  # ether


class OrganizerRequest(ApiModel):
    address: str


class PendingMarkets(ApiModel):
    markets: List[MarketListing]
    scanned_at: Optional[datetime] = None
