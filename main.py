import asyncio
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from admin_workflow import PendingResolutionList
from balance_sync import BalanceSynchronizer
from config import Settings, load_settings
from database import create_session_factory, init_db
from errors import ConfigurationError, ErrorKind, NotFoundError, TachiError, ValidationError
from leaderboard import LeaderboardReconciler
from logger import setup_logger, mask_address
from market_feed import load_listing, scan_markets, user_positions
from models import (
    BalanceSnapshot,
    ContractInfo,
    CreateMarketRequest,
    CreateMarketResult,
    HouseFundsRequest,
    LeaderboardEntry,
    MarketListing,
    OrganizerRequest,
    PendingMarkets,
    PlaceBetRequest,
    ResolveMarketRequest,
    TransactionResult,
    UserRead,
    UserState,
    UserUpdateRequest,
    WalletAddressRequest,
)
import user_store
from scheduler import ViewScope
from wallet import to_checksum
from web3_provider import ContractSession

# Initialize logger
logger = setup_logger('tachi_api')

# Initialize FastAPI app
app = FastAPI(title="Tachi Markets API")
app.state.settings = None


def configure_services(settings: Settings, contracts: Optional[ContractSession] = None, session_factory=None):
    """
    Wire settings, datastore and chain session into the app

    A missing contract address or RPC endpoint is reported once here; chain
    endpoints then answer with a configuration error and the leaderboard uses
    the datastore alone.
    """
    app.state.settings = settings
    app.state.config_error = None

    if session_factory is None:
        engine, session_factory = create_session_factory(settings.database_url)
        init_db(engine)
    app.state.session_factory = session_factory

    if contracts is None:
        try:
            contracts = ContractSession(settings)
        except ConfigurationError as e:
            logger.error(f"{e.message}. Chain endpoints are disabled")
            app.state.config_error = e
    app.state.contracts = contracts

    app.state.wallet = contracts.default_wallet() if contracts else None
    app.state.scope = ViewScope("api")
    app.state.pending = PendingResolutionList(signer_contract()) if contracts else None
    app.state.balance_sync = None
    logger.info("Services configured")


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def chain() -> ContractSession:
    if app.state.contracts is None:
        raise app.state.config_error or ConfigurationError("Contract connection is not configured")
    return app.state.contracts


def read_contract():
    return chain().read_only


def signer_contract():
    """Facade bound to the configured signer, or the read-only one, which rejects writes"""
    contracts = chain()
    if app.state.wallet is None:
        return contracts.read_only
    return contracts.signer(app.state.wallet)


def require_address(wallet_address: Optional[str]) -> str:
    if not wallet_address:
        raise ValidationError("Wallet address is required")
    return wallet_address


# Error handlers

@app.exception_handler(TachiError)
async def tachi_error_handler(request: Request, exc: TachiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind.value} ({exc.reason or exc.message})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": ErrorKind.VALIDATION.value, "message": message})


# Lifecycle

@app.on_event("startup")
async def startup_event():
    logger.info("Application starting up")
    if app.state.settings is None:
        configure_services(load_settings())

    contracts = app.state.contracts
    if contracts is None:
        return

    if not await contracts.check_connection():
        logger.warning("RPC endpoint unreachable at startup, reads will be retried per request")

    wallet = app.state.wallet
    if wallet is not None:
        db = app.state.session_factory()
        try:
            profile = user_store.ensure_user(db, wallet.address)
            state = UserState(wallet_address=profile.wallet_address, username=profile.username,
                              balance=profile.balance, balance_updated_at=profile.balance_updated_at)
        finally:
            db.close()
        app.state.balance_sync = BalanceSynchronizer(wallet, app.state.session_factory, state)
        app.state.balance_sync.start(app.state.scope)
        logger.info(f"Balance sync started for {mask_address(wallet.address)}")

    app.state.pending.open(app.state.scope)


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.settings is not None:
        app.state.scope.close()
    logger.info("Application shut down")


# Root endpoints

@app.get("/")
async def root():
    logger.info("Root endpoint accessed")
    return {"message": "Tachi prediction markets API"}


@app.get("/health")
async def health():
    return {"status": "ok", "chainConfigured": app.state.contracts is not None}


# Users

@app.get("/api/users", response_model=UserRead)
def get_user(wallet_address: Optional[str] = Query(None, alias="walletAddress"), db: Session = Depends(get_db)):
    user = user_store.get_user(db, require_address(wallet_address))
    if user is None:
        raise NotFoundError("User not found")
    return UserRead.model_validate(user)


@app.post("/api/users", response_model=UserRead)
def create_user(body: WalletAddressRequest, response: Response, db: Session = Depends(get_db)):
    existing = user_store.get_user(db, body.wallet_address)
    if existing:
        return UserRead.model_validate(existing)

    user = user_store.create_user(db, body.wallet_address)
    response.status_code = 201
    return UserRead.model_validate(user)


@app.patch("/api/users", response_model=UserRead)
def update_user(body: UserUpdateRequest, db: Session = Depends(get_db)):
    fields = body.model_dump(exclude_unset=True, exclude={"wallet_address"})
    logger.info(f"Updating user {mask_address(body.wallet_address)}: {sorted(fields)}")
    user = user_store.update_user(db, body.wallet_address, **fields)
    return UserRead.model_validate(user)


@app.get("/api/users/balance", response_model=BalanceSnapshot)
def get_balance(wallet_address: Optional[str] = Query(None, alias="walletAddress"), db: Session = Depends(get_db)):
    user = user_store.get_user(db, require_address(wallet_address))
    if user is None:
        raise NotFoundError("User not found")
    return BalanceSnapshot(balance=user.balance, balance_updated_at=user.balance_updated_at)


@app.post("/api/users/balance", response_model=BalanceSnapshot)
async def refresh_balance(body: WalletAddressRequest, db: Session = Depends(get_db)):
    """Read the native balance from the chain and store it on the profile"""
    try:
        balance = await chain().read_wallet.get_balance(body.wallet_address)
    except TachiError:
        raise
    except Exception as e:
        logger.error(f"Error fetching balance for {mask_address(body.wallet_address)}: {str(e)}")
        raise TachiError(ErrorKind.TRANSIENT_READ_FAILURE, "Failed to fetch balance from blockchain",
                         reason=str(e)) from e

    user = user_store.update_balance(db, body.wallet_address, balance)
    return BalanceSnapshot(balance=user.balance, balance_updated_at=user.balance_updated_at)


@app.get("/api/users/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard():
    contracts = app.state.contracts
    reconciler = LeaderboardReconciler(app.state.session_factory, contracts.read_only if contracts else None)
    return await reconciler.build()


@app.get("/api/users/positions", response_model=List[MarketListing])
async def get_positions(wallet_address: Optional[str] = Query(None, alias="walletAddress")):
    return await user_positions(read_contract(), require_address(wallet_address))


# Contract

@app.get("/api/contract", response_model=ContractInfo)
async def get_contract_info():
    contract = read_contract()
    organizer, count, now, balance, min_bet, max_bet = await asyncio.gather(
        contract.get_organizer(),
        contract.get_market_count(),
        contract.get_current_timestamp(),
        contract.get_contract_balance(),
        contract.get_min_bet_amount(),
        contract.get_max_bet_amount(),
    )
    return ContractInfo(
        contract_address=app.state.settings.contract_address,
        organizer=organizer,
        market_count=count,
        current_timestamp=now,
        contract_balance=balance,
        min_bet_amount=min_bet,
        max_bet_amount=max_bet,
    )


@app.post("/api/organizer", response_model=TransactionResult)
async def set_organizer(body: OrganizerRequest):
    logger.info(f"Transferring organizer role to {mask_address(body.address)}")
    tx_hash = await signer_contract().set_organizer(body.address)
    return TransactionResult(tx_hash=tx_hash)


# Markets

@app.get("/api/markets", response_model=List[MarketListing])
async def get_markets(address: Optional[str] = None):
    return await scan_markets(read_contract(), address)


@app.get("/api/markets/{market_id}", response_model=MarketListing)
async def get_market(market_id: int, address: Optional[str] = None):
    contract = read_contract()
    if address:
        address = to_checksum(address)
    if market_id < 0 or market_id >= await contract.get_market_count():
        raise NotFoundError("Market not found")
    return await load_listing(contract, market_id, address)


@app.post("/api/markets", response_model=CreateMarketResult, status_code=201)
async def create_market(body: CreateMarketRequest):
    return await signer_contract().create_market(body.question, body.duration_seconds, body.bet_amount)


@app.post("/api/markets/{market_id}/bets", response_model=TransactionResult)
async def place_bet(market_id: int, body: PlaceBetRequest):
    tx_hash = await signer_contract().place_bet(market_id, body.prediction)
    return TransactionResult(tx_hash=tx_hash)


@app.post("/api/markets/{market_id}/close", response_model=TransactionResult)
async def close_betting(market_id: int):
    tx_hash = await signer_contract().close_betting(market_id)
    return TransactionResult(tx_hash=tx_hash)


@app.post("/api/markets/{market_id}/resolve", response_model=TransactionResult)
async def resolve_market(market_id: int, body: ResolveMarketRequest):
    chain()
    tx_hash = await app.state.pending.resolve(market_id, body.outcome)
    return TransactionResult(tx_hash=tx_hash)


@app.post("/api/markets/{market_id}/house-funds", response_model=TransactionResult)
async def add_house_funds(market_id: int, body: HouseFundsRequest):
    tx_hash = await signer_contract().add_house_funds(market_id, body.amount)
    return TransactionResult(tx_hash=tx_hash)


# Admin

@app.get("/api/admin/pending", response_model=PendingMarkets)
async def get_pending_markets():
    chain()
    pending = app.state.pending
    await pending.scan()
    return pending.snapshot()
