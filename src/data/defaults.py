"""Instrument universe and default JPY quotes used when no live feed answers."""

TOP_SYMBOLS: tuple[str, ...] = (
    "BTC", "ETH", "BNB", "SOL", "XRP", "ADA", "DOGE", "AVAX", "DOT", "MATIC",
    "LINK", "UNI", "LTC", "FTM", "ATOM", "XLM", "NEAR", "ALGO", "VET", "FIL",
    "ICP", "APT", "ARB", "OP", "INJ", "TRX", "HBAR", "LDO", "IMX", "GRT",
    "SAND", "MANA", "AXS", "THETA", "EGLD", "FLOW", "CHZ", "KCS", "QNT", "AAVE",
    "SNX", "CRV", "MKR", "COMP", "ENJ", "BAT", "ZIL", "DASH", "NEO", "WAVES",
)

DEFAULT_PRICES: dict[str, float] = {
    "BTC": 6_500_000, "ETH": 400_000, "BNB": 50_000, "SOL": 20_000, "XRP": 100,
    "ADA": 80, "DOGE": 15, "AVAX": 5_000, "DOT": 1_000, "MATIC": 150,
    "LINK": 2_000, "UNI": 1_000, "LTC": 10_000, "FTM": 100, "ATOM": 1_500,
    "XLM": 20, "NEAR": 500, "ALGO": 30, "VET": 5, "FIL": 800,
    "ICP": 1_000, "APT": 1_500, "ARB": 200, "OP": 300, "INJ": 2_000,
    "TRX": 15, "HBAR": 10, "LDO": 400, "IMX": 200, "GRT": 25,
    "SAND": 100, "MANA": 100, "AXS": 1_500, "THETA": 200, "EGLD": 8_000,
    "FLOW": 150, "CHZ": 20, "KCS": 1_500, "QNT": 20_000, "AAVE": 15_000,
    "SNX": 500, "CRV": 100, "MKR": 200_000, "COMP": 8_000, "ENJ": 50,
    "BAT": 40, "ZIL": 5, "DASH": 5_000, "NEO": 1_500, "WAVES": 300,
}

UNKNOWN_SYMBOL_PRICE = 1_000.0


def default_price(symbol: str) -> float:
    return float(DEFAULT_PRICES.get(symbol, UNKNOWN_SYMBOL_PRICE))
