import random
import re

import pytest

from database import User
from errors import NotFoundError, ValidationError
import user_store
from username_generator import PREFIXES, SUFFIXES, generate_unique_username, generate_username

ADDRESS = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


def test_create_user_is_idempotent(db):
    first = user_store.create_user(db, ADDRESS)
    second = user_store.create_user(db, ADDRESS.lower())

    assert first.id == second.id
    assert first.wallet_address == ADDRESS.lower()
    assert first.username
    assert db.query(User).count() == 1


def test_duplicate_insert_returns_existing_row(db, monkeypatch):
    existing = User(wallet_address=ADDRESS.lower(), username="ALPHA_PRO")
    db.add(existing)
    db.commit()

    real_get_user = user_store.get_user
    lookups = []

    # The first lookup misses, as if a concurrent request inserted in between
    def racing_get_user(session, address):
        lookups.append(address)
        if len(lookups) == 1:
            return None
        return real_get_user(session, address)

    monkeypatch.setattr(user_store, "get_user", racing_get_user)

    user = user_store.create_user(db, ADDRESS)
    assert user.id == existing.id
    assert user.username == "ALPHA_PRO"


def test_update_recomputes_win_rate(db):
    user_store.create_user(db, ADDRESS)

    user = user_store.update_user(db, ADDRESS, wins=3, losses=1)
    assert user.win_rate == 75.0

    user = user_store.update_user(db, ADDRESS, wins=1)
    assert user.losses == 1
    assert user.win_rate == 50.0

    user = user_store.update_user(db, ADDRESS, wins=0, losses=0)
    assert user.win_rate == 0.0


def test_update_other_fields(db):
    user_store.create_user(db, ADDRESS)
    user = user_store.update_user(db, ADDRESS, username="ORACLE_SAGE", mon_won="2500")
    assert user.username == "ORACLE_SAGE"
    assert user.mon_won == "2500"
    assert user.win_rate == 0.0


def test_update_unknown_user_or_field(db):
    with pytest.raises(NotFoundError):
        user_store.update_user(db, ADDRESS, wins=1)

    user_store.create_user(db, ADDRESS)
    with pytest.raises(ValidationError):
        user_store.update_user(db, ADDRESS, balance="5")


def test_duplicate_username_is_rejected(db):
    user_store.create_user(db, ADDRESS)
    other = user_store.create_user(db, "0x" + "12" * 20)
    with pytest.raises(ValidationError):
        user_store.update_user(db, ADDRESS, username=other.username)


def test_update_balance(db):
    with pytest.raises(NotFoundError):
        user_store.update_balance(db, ADDRESS, "10")

    user_store.create_user(db, ADDRESS)
    user = user_store.update_balance(db, ADDRESS, "123456789")
    assert user.balance == "123456789"
    assert user.balance_updated_at is not None


def test_ranked_users_compare_money_won_numerically(db):
    db.add_all([
        User(wallet_address="0xa", username="A", wins=2, losses=0, mon_won="900"),
        User(wallet_address="0xb", username="B", wins=2, losses=1, mon_won="1000"),
        User(wallet_address="0xc", username="C", wins=5, losses=0, mon_won="1"),
        User(wallet_address="0xd", username="D", wins=0, losses=4, mon_won="0"),
        User(wallet_address="0xe", username="E", wins=0, losses=0, mon_won="0"),
    ])
    db.commit()

    ranked = user_store.list_ranked_users(db, 10)
    assert [user.username for user in ranked] == ["C", "B", "A", "D"]

    winners = user_store.list_ranked_users(db, 10, exclude=["0xC"], wins_only=True)
    assert [user.username for user in winners] == ["B", "A"]

    assert len(user_store.list_ranked_users(db, 2)) == 2


def test_generated_usernames_use_word_lists():
    rng = random.Random(7)
    name = generate_username(rng)
    assert any(name.startswith(prefix) for prefix in PREFIXES)
    assert any(name.endswith(suffix) for suffix in SUFFIXES)


def test_unique_username_falls_back_to_suffix():
    name = generate_unique_username(lambda candidate: True, rng=random.Random(1))
    assert re.search(r"_\d+$", name)

    attempts = []
    name = generate_unique_username(lambda candidate: attempts.append(candidate) or len(attempts) <= 10,
                                    rng=random.Random(2))
    assert len(attempts) == 11
    assert re.search(r"_\d{1,4}$", name)


def test_ranked_limit_keeps_best_money_won_among_tied_wins(db):
    db.add_all([
        User(wallet_address="0xa", username="A", wins=3, losses=0, mon_won="10"),
        User(wallet_address="0xb", username="B", wins=1, losses=0, mon_won="1"),
        User(wallet_address="0xc", username="C", wins=1, losses=2, mon_won="100000000000000000000"),
        User(wallet_address="0xd", username="D", wins=1, losses=0, mon_won="50"),
    ])
    db.commit()

    ranked = user_store.list_ranked_users(db, 2)
    assert [user.username for user in ranked] == ["A", "C"]
