from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from web3 import Web3

from errors import ValidationError
from models import Odds

Amount = Union[int, str, Decimal]

TWO_PLACES = Decimal("0.01")
NEUTRAL_ODDS = 1.0


# Function to convert a wei amount (int or decimal string) to an int
def to_wei_int(amount: Amount) -> int:
    if isinstance(amount, int):
        return amount
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount}")
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount}")
    if value != value.to_integral_value():
        raise ValidationError(f"Wei amount must be a whole number: {amount}")
    return int(value)


# Function to parse an ether amount ("0.5") into wei
def parse_ether(amount: Amount) -> int:
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount}")
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount}")
    wei = value * Decimal(10) ** 18
    if wei != wei.to_integral_value():
        raise ValidationError(f"Amount has more than 18 decimals: {amount}")
    return int(wei)


# Function to format wei as an ether decimal string
def format_ether(wei: Amount) -> str:
    value = Web3.from_wei(to_wei_int(wei), "ether")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_display_amount(wei: Amount) -> str:
    """Ether with thousands separators and at most 2 decimals: 1234567 -> "1,234,567", 10.5 -> "10.5" """
    value = Decimal(format_ether(wei)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    text = f"{value:,.2f}"
    return text.rstrip("0").rstrip(".")


def parse_display_amount(text: str) -> Decimal:
    try:
        return Decimal(str(text).replace(",", "").strip() or "0")
    except InvalidOperation:
        return Decimal(0)


# Function to calculate odds from pool sizes
def compute_odds(yes_pool: Amount, no_pool: Amount) -> Odds:
    """
    Payout multiple per side: total pool / side pool, rounded to 2 decimals.

    An unseeded market (either pool empty) gets neutral 1.0 odds on both sides
    instead of a division by zero.
    """
    yes = to_wei_int(yes_pool)
    no = to_wei_int(no_pool)
    if yes == 0 or no == 0:
        return Odds(yes_odds=NEUTRAL_ODDS, no_odds=NEUTRAL_ODDS)

    total = Decimal(yes + no)
    yes_odds = (total / Decimal(yes)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    no_odds = (total / Decimal(no)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return Odds(yes_odds=float(yes_odds), no_odds=float(no_odds))


def total_pool(yes_pool: Amount, no_pool: Amount) -> str:
    return str(to_wei_int(yes_pool) + to_wei_int(no_pool))


# Function to validate a bet amount against contract bounds (all in wei)
def validate_bet_amount(amount: Amount, min_amount: Amount, max_amount: Amount) -> int:
    amount_wei = to_wei_int(amount)
    min_wei = to_wei_int(min_amount)
    max_wei = to_wei_int(max_amount)
    if amount_wei < min_wei:
        raise ValidationError(f"Bet amount too low. Minimum: {format_ether(min_wei)}")
    if amount_wei > max_wei:
        raise ValidationError(f"Bet amount too high. Maximum: {format_ether(max_wei)}")
    return amount_wei


def win_rate_percent(basis_points: int) -> Decimal:
    return Decimal(basis_points) / Decimal(100)


def format_percent(value: Union[int, float, Decimal]) -> str:
    rounded = Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{rounded}%"
