"""Market constants: sources, Kelly modes, signal tiers, reason codes."""

# Exchange where lays are actually placed (The Odds API bookmaker key)
DEFAULT_EXECUTION_SOURCE = "betfair_ex_uk"

# Betfair-style exchange defaults
DEFAULT_COMMISSION = 0.05
DEFAULT_MIN_STAKE = 2.0

KELLY_MODE_MULTIPLIERS = {
    "full": 1.0,
    "half": 0.5,
}

# Signal tiers, weakest to strongest
SIGNAL_NONE = "none"
SIGNAL_CONSERVATIVE = "conservative"
SIGNAL_STRONG = "strong"
SIGNAL_PREMIUM = "premium"

# Decision reason codes
REASON_NO_CURRENT_ODDS = "no current odds available"
REASON_PRICE_NOT_SHORTENED = "price not shortened"
REASON_NO_LAY_VALUE = "no lay value (model p >= market p)"
REASON_NON_POSITIVE_EDGE = "non-positive edge after commission"
REASON_BELOW_MIN_STAKE = "stake {stake:.2f} below minimum {min_stake:.2f}"
REASON_ZERO_STAKE = "zero stake (no bankroll or Kelly multiplier to size with)"
REASON_PLACE_LAY = "place lay"

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "EUR": "€",
    "USD": "$",
}
