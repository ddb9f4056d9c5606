"""
Market lifecycle derived from raw contract fields and the chain clock.

Resolved overrides everything; otherwise a market is Closed once the explicit
flag is set or the chain clock reaches closeTime, and Open before that.
"""
import time
from typing import Optional

from constants import (
    COUNTDOWN_REFRESH_INTERVAL,
    FOCUSED_REFRESH_INTERVAL,
    LIST_REFRESH_INTERVAL,
)
from models import MarketData, MarketPhase, MarketStatus


def resolve_phase(market: MarketData, now: int) -> MarketPhase:
    if market.resolved:
        return MarketPhase.RESOLVED
    if market.is_closed or now >= market.close_time:
        return MarketPhase.CLOSED
    return MarketPhase.OPEN


def derive_status(market: MarketData, now: int) -> MarketStatus:
    """Build a MarketStatus from a freshly read market and chain timestamp"""
    phase = resolve_phase(market, now)
    return MarketStatus(
        question=market.question,
        seconds_remaining=max(0, market.close_time - now) if phase == MarketPhase.OPEN else 0,
        is_betting_open=phase == MarketPhase.OPEN,
        is_betting_closed=phase != MarketPhase.OPEN,
        is_resolved=phase == MarketPhase.RESOLVED,
        current_time=now,
        close_time=market.close_time,
        phase=phase,
        fetched_at=time.monotonic(),
    )


def reconcile_status(status: MarketStatus, market: MarketData) -> MarketStatus:
    """
    Merge the contract's own status view with the market record.

    The contract status may predate a resolution landing in the same poll, so
    the phase is recomputed from the market fields and the status clock.
    """
    derived = derive_status(market, status.current_time)
    if status.question and not derived.question:
        derived.question = status.question
    return derived


def is_fresh(status: MarketStatus, max_age: float = LIST_REFRESH_INTERVAL,
             now: Optional[float] = None) -> bool:
    """A status older than one polling interval must not gate a transaction"""
    now = time.monotonic() if now is None else now
    return (now - status.fetched_at) <= max_age


def polling_interval(phase: MarketPhase, focused: bool = False) -> int:
    if not focused:
        return LIST_REFRESH_INTERVAL
    if phase == MarketPhase.OPEN:
        return COUNTDOWN_REFRESH_INTERVAL
    return FOCUSED_REFRESH_INTERVAL


def format_time_remaining(seconds: int) -> str:
    if seconds <= 0:
        return "Closed"

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def describe_time_remaining(status: MarketStatus) -> str:
    if status.phase == MarketPhase.RESOLVED:
        return "Resolved"
    if status.phase == MarketPhase.CLOSED:
        return "Closed"
    return format_time_remaining(status.seconds_remaining)
