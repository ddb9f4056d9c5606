from web3 import Web3

# Contract limits (mirrors MIN_BET_AMOUNT / MAX_BET_AMOUNT on the factory)
MIN_BET_AMOUNT = Web3.to_wei("0.1", "ether")
MAX_BET_AMOUNT = Web3.to_wei(100, "ether")
MAX_DURATION = 3600  # 1 hour in seconds

# Fixed gas ceiling for placeBet, estimation fails on state-dependent reverts
PLACE_BET_GAS_LIMIT = 500000

# Polling intervals (seconds)
LIST_REFRESH_INTERVAL = 30
COUNTDOWN_REFRESH_INTERVAL = 1
FOCUSED_REFRESH_INTERVAL = 10
BALANCE_SYNC_INTERVAL = 30
PENDING_RESCAN_DELAY = 2

# Leaderboard sizes
LEADERBOARD_SIZE = 100
OFFCHAIN_UNION_LIMIT = 50
