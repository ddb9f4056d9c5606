import asyncio

import pytest

from admin_workflow import MarketResolutionWorkflow, PendingResolutionList, ResolutionState
from constants import LIST_REFRESH_INTERVAL
from errors import ErrorKind, NotFoundError, TachiError, ValidationError
from tachi_contract import TachiContract


def test_load_unknown_market_fails(contract, wallet):
    contract.add_market()
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 5)

    with pytest.raises(NotFoundError):
        asyncio.run(workflow.load())
    assert workflow.state == ResolutionState.FAILED
    assert isinstance(workflow.error, NotFoundError)


def test_resolve_disabled_while_betting_open(contract, wallet):
    contract.add_market(close_time=2000)
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    workflow.choose_outcome(True)

    assert workflow.state == ResolutionState.LOADED
    assert not workflow.can_resolve
    with pytest.raises(ValidationError):
        asyncio.run(workflow.resolve())
    assert wallet.sent == []


def test_resolve_needs_an_outcome(contract, wallet):
    contract.add_market(close_time=500)
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    assert not workflow.can_resolve

    workflow.choose_outcome(False)
    assert workflow.can_resolve


def test_resolve_closed_market(contract, wallet):
    contract.add_market(close_time=500)
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    workflow.choose_outcome(True)

    tx_hash = asyncio.run(workflow.resolve())

    assert workflow.state == ResolutionState.RESOLVED
    assert workflow.tx_hash == tx_hash
    assert wallet.sent[0]["fn"] == "resolveMarket"
    assert wallet.sent[0]["args"] == (0, True)


def test_fresh_reread_blocks_stale_resolution(contract, wallet):
    contract.add_market(close_time=500)
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    workflow.choose_outcome(True)

    # Someone else resolved it after the admin view loaded
    contract.markets[0]["resolved"] = True

    with pytest.raises(TachiError) as exc_info:
        asyncio.run(workflow.resolve())
    assert exc_info.value.kind == ErrorKind.MARKET_CLOSED
    assert workflow.state == ResolutionState.LOADED
    assert workflow.market.resolved
    assert wallet.sent == []


def test_failed_transaction_moves_to_failed(contract, wallet):
    contract.add_market(close_time=500)
    contract.write_errors["resolveMarket"] = Exception("execution reverted: Only organizer")
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    workflow.choose_outcome(True)

    with pytest.raises(TachiError):
        asyncio.run(workflow.resolve())
    assert workflow.state == ResolutionState.FAILED
    assert workflow.error.kind == ErrorKind.UNAUTHORIZED


def test_pending_scan_skips_failures_newest_first(contract, wallet):
    contract.add_market(close_time=2000)                # 0: open
    contract.add_market(close_time=500)                 # 1: closed by clock
    contract.add_market(close_time=500, resolved=True)  # 2: resolved
    contract.add_market(close_time=2000, is_closed=True)  # 3: closed by flag
    contract.markets[4] = TimeoutError("flaky node")    # 4: unreadable

    pending = PendingResolutionList(TachiContract(contract, wallet))
    markets = asyncio.run(pending.scan())

    assert [listing.id for listing in markets] == [3, 1]
    assert pending.snapshot().scanned_at is not None


def test_resolved_entry_is_removed_then_rescanned(contract, wallet):
    contract.add_market(close_time=500)
    contract.add_market(close_time=500)
    pending = PendingResolutionList(TachiContract(contract, wallet), rescan_delay=0.01)

    async def run():
        await pending.scan()
        assert [listing.id for listing in pending.markets] == [1, 0]

        await pending.resolve(1, False)
        assert pending.selected == 1
        contract.markets[1]["resolved"] = True
        await asyncio.gather(*pending._followups)

    asyncio.run(run())
    assert [listing.id for listing in pending.markets] == [0]
    assert pending.selected is None


def test_stale_view_must_reload_before_resolving(contract, wallet):
    contract.add_market(close_time=500)
    workflow = MarketResolutionWorkflow(TachiContract(contract, wallet), 0)
    asyncio.run(workflow.load())
    workflow.choose_outcome(True)
    assert workflow.can_resolve

    workflow.status.fetched_at -= LIST_REFRESH_INTERVAL + 1
    assert not workflow.can_resolve
    with pytest.raises(ValidationError, match="stale"):
        asyncio.run(workflow.resolve())
    assert wallet.sent == []

    asyncio.run(workflow.load())
    assert workflow.can_resolve
