import random
import time
from typing import Callable

PREFIXES = [
    "ALPHA", "BETA", "GAMMA", "OMEGA", "SIGMA", "DELTA", "ZETA", "THETA",
    "PREDICTION", "ORACLE", "PROPHET", "SEER", "VISION", "INSIGHT",
    "MONAD", "CHAIN", "CRYPTO", "BLOCK", "WEB3", "DEFI",
    "FORTUNE", "LUCK", "CHANCE", "ODDS", "BET", "WAGER",
    "MASTER", "LEGEND", "KING", "QUEEN", "CHAMP", "HERO",
    "NINJA", "SAMURAI", "WARRIOR", "KNIGHT", "GUARDIAN", "SENTINEL",
    "PHOENIX", "DRAGON", "TIGER", "WOLF", "EAGLE", "SHARK",
    "NEBULA", "STELLAR", "COSMIC", "VOID", "NOVA", "STAR",
    "TURBO", "RAPID", "SWIFT", "BLAZE", "STORM", "THUNDER",
    "QUANTUM", "ATOMIC", "NUCLEAR", "FUSION", "POWER", "ENERGY",
]

SUFFIXES = [
    "BETTOR", "ORACLE", "PRO", "MASTER", "LEGEND", "KING", "QUEEN",
    "CHAMP", "HERO", "NINJA", "SAGE", "WIZARD", "MAGE", "ARCHER",
    "KNIGHT", "WARRIOR", "GUARDIAN", "SENTINEL", "PILOT", "CAPTAIN",
    "COMMANDER", "GENERAL", "ADMIRAL", "CHIEF", "BOSS", "LEADER",
    "ELITE", "EXPERT", "SPECIALIST", "VETERAN", "CHAMPION",
    "PHOENIX", "DRAGON", "TIGER", "WOLF", "EAGLE", "SHARK", "LION",
    "NEBULA", "STAR", "NOVA", "VOID", "COSMOS", "GALAXY",
    "BOLT", "FLASH", "STORM", "THUNDER", "BLAZE", "FIRE",
    "GENESIS", "ALPHA", "BETA", "OMEGA", "SIGMA", "DELTA",
]

SEPARATORS = ["_", ""]


def generate_username(rng=random) -> str:
    return f"{rng.choice(PREFIXES)}{rng.choice(SEPARATORS)}{rng.choice(SUFFIXES)}"


def generate_unique_username(exists: Callable[[str], bool], max_attempts: int = 10, rng=random) -> str:
    """
    Pick a generated name that ``exists`` reports as free

    After ``max_attempts`` collisions a random 4-digit suffix is tried, then a
    millisecond timestamp suffix as the last resort.
    """
    for _ in range(max_attempts):
        username = generate_username(rng)
        if not exists(username):
            return username

    base = generate_username(rng)
    fallback = f"{base}_{rng.randrange(10000)}"
    if not exists(fallback):
        return fallback
    return f"{base}_{int(time.time() * 1000)}"
