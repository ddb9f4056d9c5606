from fastapi.testclient import TestClient
import pytest
from web3.exceptions import ContractLogicError

from config import Settings
from main import app, configure_services

from conftest import ONE_ETHER, SIGNER, TX_HASH, FakeContractSession, FakeWallet

CONTRACT_ADDRESS = "0x" + "cc" * 20


@pytest.fixture
def offchain_client(session_factory):
    configure_services(Settings(), session_factory=session_factory)
    return TestClient(app)


@pytest.fixture
def chain_client(session_factory, contract, wallet):
    # Same balance as the explicit refresh, so the startup sync cannot race it
    wallet.balance = str(3 * ONE_ETHER)
    settings = Settings(contract_address=CONTRACT_ADDRESS, rpc_url="http://localhost:8545")
    session = FakeContractSession(contract, wallet, read_wallet=FakeWallet(balance=str(3 * ONE_ETHER)))
    configure_services(settings, contracts=session, session_factory=session_factory)
    with TestClient(app) as client:
        yield client


def test_root_and_health(offchain_client):
    assert offchain_client.get("/").status_code == 200
    response = offchain_client.get("/health")
    assert response.json() == {"status": "ok", "chainConfigured": False}


def test_user_lifecycle(offchain_client):
    response = offchain_client.post("/api/users", json={"walletAddress": SIGNER})
    assert response.status_code == 201
    created = response.json()
    assert created["walletAddress"] == SIGNER.lower()
    assert created["balance"] == "0"

    again = offchain_client.post("/api/users", json={"walletAddress": SIGNER})
    assert again.status_code == 200
    assert again.json()["username"] == created["username"]

    fetched = offchain_client.get("/api/users", params={"walletAddress": SIGNER})
    assert fetched.json()["username"] == created["username"]

    patched = offchain_client.patch("/api/users", json={"walletAddress": SIGNER, "wins": 3, "losses": 1,
                                                        "monWon": "5000", "nfts": 2})
    assert patched.status_code == 200
    assert patched.json()["winRate"] == 75.0
    assert patched.json()["monWon"] == "5000"


def test_user_errors(offchain_client):
    missing = offchain_client.get("/api/users")
    assert missing.status_code == 400
    assert missing.json()["error"] == "validation"

    unknown = offchain_client.get("/api/users", params={"walletAddress": SIGNER})
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "not_found", "message": "User not found"}

    assert offchain_client.post("/api/users", json={}).status_code == 400
    assert offchain_client.patch("/api/users", json={"walletAddress": SIGNER, "wins": 1}).status_code == 404
    assert offchain_client.get("/api/users/balance", params={"walletAddress": SIGNER}).status_code == 404


def test_chain_endpoints_report_missing_configuration(offchain_client):
    response = offchain_client.get("/api/markets")
    assert response.status_code == 500
    assert response.json()["error"] == "configuration"

    assert offchain_client.post("/api/markets/0/bets", json={"prediction": True}).status_code == 500


def test_leaderboard_without_chain_uses_datastore(offchain_client):
    offchain_client.post("/api/users", json={"walletAddress": SIGNER})
    offchain_client.patch("/api/users", json={"walletAddress": SIGNER, "wins": 2, "losses": 2,
                                              "monWon": str(ONE_ETHER)})

    response = offchain_client.get("/api/users/leaderboard")
    assert response.status_code == 200
    [entry] = response.json()
    assert entry["rank"] == 1
    assert entry["winRate"] == "50%"
    assert entry["totalWon"] == "1"


def test_markets_listing(chain_client, contract):
    contract.add_market(question="First", yes_pool=3 * ONE_ETHER, no_pool=ONE_ETHER)
    contract.add_market(question="Second", close_time=500)

    response = chain_client.get("/api/markets")
    assert response.status_code == 200
    markets = response.json()
    assert [market["id"] for market in markets] == [1, 0]
    assert markets[0]["timeRemaining"] == "Closed"
    assert markets[1]["odds"] == {"yesOdds": 1.33, "noOdds": 4.0}
    assert markets[1]["totalPool"] == "4"
    assert markets[1]["status"]["isBettingOpen"] is True

    detail = chain_client.get("/api/markets/0", params={"address": SIGNER})
    assert detail.status_code == 200
    assert detail.json()["userBet"]["hasBet"] is False

    assert chain_client.get("/api/markets/9").status_code == 404


def test_create_market_validation(chain_client, wallet):
    response = chain_client.post("/api/markets", json={"question": "Q", "durationSeconds": 0, "betAmount": "1"})
    assert response.status_code == 400
    assert response.json()["error"] == "validation"
    assert wallet.sent == []

    wallet.market_ids = [0]
    created = chain_client.post("/api/markets", json={"question": "Q", "durationSeconds": 60, "betAmount": 0.5})
    assert created.status_code == 201
    assert created.json() == {"txHash": TX_HASH, "marketId": 0}


def test_bet_rejections_map_to_client_errors(chain_client, contract, wallet):
    contract.add_market(resolved=True)
    response = chain_client.post("/api/markets/0/bets", json={"prediction": True})
    assert response.status_code == 400
    assert response.json()["error"] == "market_closed"

    contract.add_market()
    placed = chain_client.post("/api/markets/1/bets", json={"prediction": True})
    assert placed.status_code == 200
    assert placed.json() == {"txHash": TX_HASH}

    assert chain_client.post("/api/markets/1/bets", json={}).status_code == 400


def test_resolve_by_non_organizer(chain_client, contract):
    contract.add_market(close_time=500)
    contract.write_errors["resolveMarket"] = ContractLogicError("execution reverted: Only organizer can call this")

    response = chain_client.post("/api/markets/0/resolve", json={"outcome": True})
    assert response.status_code == 400
    assert response.json()["error"] == "unauthorized"


def test_resolve_open_market_is_rejected(chain_client, contract, wallet):
    contract.add_market(close_time=2000)
    response = chain_client.post("/api/markets/0/resolve", json={"outcome": False})
    assert response.status_code == 400
    assert wallet.sent == []


def test_pending_markets(chain_client, contract):
    contract.add_market(close_time=2000)
    contract.add_market(close_time=500)

    response = chain_client.get("/api/admin/pending")
    assert response.status_code == 200
    assert [market["id"] for market in response.json()["markets"]] == [1]


def test_balance_refresh(chain_client):
    # Startup registers the signer's profile
    assert chain_client.get("/api/users", params={"walletAddress": SIGNER}).status_code == 200

    response = chain_client.post("/api/users/balance", json={"walletAddress": SIGNER})
    assert response.status_code == 200
    assert response.json()["balance"] == str(3 * ONE_ETHER)

    stored = chain_client.get("/api/users/balance", params={"walletAddress": SIGNER})
    assert stored.json()["balance"] == str(3 * ONE_ETHER)

    unknown = chain_client.post("/api/users/balance", json={"walletAddress": "0x" + "99" * 20})
    assert unknown.status_code == 404


def test_contract_info(chain_client, contract):
    contract.add_market()
    info = chain_client.get("/api/contract").json()
    assert info["marketCount"] == 1
    assert info["organizer"] == SIGNER
    assert info["minBetAmount"] == str(ONE_ETHER // 10)


def test_invalid_address_is_rejected(chain_client, contract):
    contract.add_market()

    for path, params in [("/api/users/positions", {"walletAddress": "bad"}),
                         ("/api/markets", {"address": "bad"}),
                         ("/api/markets/0", {"address": "bad"})]:
        response = chain_client.get(path, params=params)
        assert response.status_code == 400
        assert response.json()["error"] == "validation"
