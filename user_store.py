"""
Datastore operations on off-chain user profiles.

Functions take the SQLAlchemy session as their first argument; commits happen
here so callers never hold a half-written profile.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import User
from errors import NotFoundError, ValidationError
from logger import setup_logger, mask_address
from pool_economics import to_wei_int
from username_generator import generate_unique_username

logger = setup_logger('user_store')

UPDATABLE_FIELDS = ("username", "wins", "losses", "mon_won")


def normalize_address(wallet_address: str) -> str:
    address = (wallet_address or "").strip().lower()
    if not address:
        raise ValidationError("Wallet address is required")
    return address


def compute_win_rate(wins: int, losses: int) -> float:
    games = wins + losses
    return (wins / games) * 100 if games > 0 else 0.0


def get_user(db: Session, wallet_address: str) -> Optional[User]:
    address = normalize_address(wallet_address)
    return db.query(User).filter(User.wallet_address == address).first()


def username_exists(db: Session, username: str) -> bool:
    return db.query(User.id).filter(User.username == username).first() is not None


def create_user(db: Session, wallet_address: str) -> User:
    """
    Create a profile with a generated unique username

    Idempotent: if the address already exists, including when a concurrent
    create wins the insert race, the existing row is returned.
    """
    address = normalize_address(wallet_address)
    existing = get_user(db, address)
    if existing:
        return existing

    username = generate_unique_username(lambda name: username_exists(db, name))
    user = User(wallet_address=address, username=username)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        existing = get_user(db, address)
        if existing is None:
            raise
        logger.warning(f"Duplicate create for {mask_address(address)}, returning existing profile: {str(e.orig)}")
        return existing

    db.refresh(user)
    logger.info(f"Created user {username} for {mask_address(address)}")
    return user


def ensure_user(db: Session, wallet_address: str) -> User:
    return create_user(db, wallet_address)


def update_user(db: Session, wallet_address: str, **fields) -> User:
    """Update arbitrary profile fields; winRate is recomputed whenever wins or losses change"""
    user = get_user(db, wallet_address)
    if user is None:
        raise NotFoundError("User not found")

    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    for key, value in fields.items():
        if value is None:
            continue
        if key == "mon_won":
            value = str(to_wei_int(value))
        setattr(user, key, value)

    if fields.get("wins") is not None or fields.get("losses") is not None:
        user.win_rate = compute_win_rate(user.wins, user.losses)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Username already taken")
    db.refresh(user)
    return user


def update_balance(db: Session, wallet_address: str, balance: str,
                   updated_at: Optional[datetime] = None) -> User:
    user = get_user(db, wallet_address)
    if user is None:
        raise NotFoundError("User not found")
    user.balance = str(to_wei_int(balance))
    user.balance_updated_at = updated_at or datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def _mon_won(user: User) -> Decimal:
    try:
        return Decimal(user.mon_won or "0")
    except InvalidOperation:
        return Decimal(0)


def rank_key(user: User):
    return (user.wins, _mon_won(user))


def list_ranked_users(db: Session, limit: int, exclude: Iterable[str] = (),
                      wins_only: bool = False) -> List[User]:
    """
    Profiles ordered by wins, then money won, both descending

    ``wins_only`` keeps profiles with at least one win; otherwise any profile
    that has played a game qualifies. monWon is a wei string, so SQL orders
    and limits by wins only; rows tied with the last one on wins are fetched
    too and the money-won tiebreak is compared numerically in Python.
    """
    query = db.query(User)
    if wins_only:
        query = query.filter(User.wins > 0)
    else:
        query = query.filter(or_(User.wins > 0, User.losses > 0))

    excluded = [address.lower() for address in exclude]
    if excluded:
        query = query.filter(User.wallet_address.notin_(excluded))

    users = query.order_by(User.wins.desc()).limit(limit).all()
    if users and len(users) == limit:
        boundary = users[-1].wins
        users = [user for user in users if user.wins > boundary] + query.filter(User.wins == boundary).all()

    users.sort(key=rank_key, reverse=True)
    return users[:limit]


def find_users(db: Session, wallet_addresses: Iterable[str]) -> dict:
    """Profiles keyed by lower-case address; unknown addresses are simply absent"""
    addresses = [address.lower() for address in wallet_addresses]
    if not addresses:
        return {}
    users = db.query(User).filter(User.wallet_address.in_(addresses)).all()
    return {user.wallet_address: user for user in users}
