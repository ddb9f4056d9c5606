# Tachi prediction market factory ABI
TACHI_FACTORY_ABI = [
    # Organizer functions
    {"type":"function","name":"addHouseFunds","inputs":[{"name":"marketId","type":"uint256"}],"outputs":[],"stateMutability":"payable"},
    {"type":"function","name":"createMarket","inputs":[{"name":"question","type":"string"},{"name":"durationSeconds","type":"uint256"},{"name":"betAmount","type":"uint256"}],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"nonpayable"},
    {"type":"function","name":"closeBetting","inputs":[{"name":"marketId","type":"uint256"}],"outputs":[],"stateMutability":"nonpayable"},
    {"type":"function","name":"resolveMarket","inputs":[{"name":"marketId","type":"uint256"},{"name":"outcome","type":"bool"}],"outputs":[],"stateMutability":"nonpayable"},
    {"type":"function","name":"setOrganizer","inputs":[{"name":"newOrganizer","type":"address"}],"outputs":[],"stateMutability":"nonpayable"},

    # Betting
    {"type":"function","name":"placeBet","inputs":[{"name":"marketId","type":"uint256"},{"name":"prediction","type":"bool"}],"outputs":[],"stateMutability":"payable"},

    # Views
    {"type":"function","name":"getAllParticipants","inputs":[],"outputs":[{"name":"","type":"address[]"}],"stateMutability":"view"},
    {"type":"function","name":"getContractBalance","inputs":[],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"getCurrentTimestamp","inputs":[],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"getMarket","inputs":[{"name":"marketId","type":"uint256"}],"outputs":[{"name":"question","type":"string"},{"name":"closeTime","type":"uint256"},{"name":"betAmount","type":"uint256"},{"name":"yesPool","type":"uint256"},{"name":"noPool","type":"uint256"},{"name":"isClosed","type":"bool"},{"name":"resolved","type":"bool"},{"name":"outcome","type":"bool"},{"name":"participantCount","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"getMarketCount","inputs":[],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"getMarketStatus","inputs":[{"name":"marketId","type":"uint256"}],"outputs":[{"name":"question","type":"string"},{"name":"secondsRemaining","type":"uint256"},{"name":"isBettingOpen","type":"bool"},{"name":"isBettingClosed","type":"bool"},{"name":"isResolved","type":"bool"},{"name":"currentTime","type":"uint256"},{"name":"closeTime","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"getUserBet","inputs":[{"name":"marketId","type":"uint256"},{"name":"user","type":"address"}],"outputs":[{"name":"hasBet","type":"bool"},{"name":"prediction","type":"bool"},{"name":"amount","type":"uint256"},{"name":"claimed","type":"bool"},{"name":"won","type":"bool"}],"stateMutability":"view"},
    {"type":"function","name":"getUserStats","inputs":[{"name":"user","type":"address"}],"outputs":[{"name":"totalBets","type":"uint256"},{"name":"wonBets","type":"uint256"},{"name":"lostBets","type":"uint256"},{"name":"totalWinnings","type":"uint256"},{"name":"netProfit","type":"uint256"},{"name":"totalAmountBet","type":"uint256"},{"name":"winRate","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"organizer","inputs":[],"outputs":[{"name":"","type":"address"}],"stateMutability":"view"},
    {"type":"function","name":"MAX_BET_AMOUNT","inputs":[],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view"},
    {"type":"function","name":"MIN_BET_AMOUNT","inputs":[],"outputs":[{"name":"","type":"uint256"}],"stateMutability":"view"},

    # Events
    {"type":"event","name":"MarketCreated","inputs":[{"name":"marketId","type":"uint256","indexed":True},{"name":"question","type":"string","indexed":False},{"name":"closeTime","type":"uint256","indexed":False},{"name":"durationSeconds","type":"uint256","indexed":False},{"name":"betAmount","type":"uint256","indexed":False}]},
    {"type":"event","name":"BetPlaced","inputs":[{"name":"marketId","type":"uint256","indexed":True},{"name":"user","type":"address","indexed":True},{"name":"prediction","type":"bool","indexed":False},{"name":"amount","type":"uint256","indexed":False}]},
    {"type":"event","name":"BettingClosed","inputs":[{"name":"marketId","type":"uint256","indexed":True}]},
    {"type":"event","name":"MarketResolved","inputs":[{"name":"marketId","type":"uint256","indexed":True},{"name":"outcome","type":"bool","indexed":False}]},
    {"type":"event","name":"WinningsClaimed","inputs":[{"name":"marketId","type":"uint256","indexed":True},{"name":"user","type":"address","indexed":True},{"name":"amount","type":"uint256","indexed":False}]},
    {"type":"event","name":"UserStatsUpdated","inputs":[{"name":"user","type":"address","indexed":True},{"name":"totalBets","type":"uint256","indexed":False},{"name":"wonBets","type":"uint256","indexed":False},{"name":"totalWinnings","type":"uint256","indexed":False},{"name":"netProfit","type":"uint256","indexed":False}]},
    {"type":"event","name":"PaymentFailed","inputs":[{"name":"user","type":"address","indexed":True},{"name":"amount","type":"uint256","indexed":False}]},
]
