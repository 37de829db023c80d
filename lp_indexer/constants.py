"""
System-wide constants for the position indexer.
"""
from decimal import Decimal

# Canonical null/burn address. Transfers from it are mints.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

BIGINT_ZERO = 0
BIGDECIMAL_ZERO = Decimal("0")

# Uniswap V3 pools always carry exactly two input tokens
DEFAULT_INPUT_TOKEN_COUNT = 2

# Decimal precision for valuation math. uint256 amounts have 78 digits, so
# a product with a price of up to 120 significant digits is held exactly.
VALUATION_PRECISION = 200

DEFAULT_PROTOCOL_ID = "uniswap-v3"
DEFAULT_DATABASE_URL = "sqlite:///data/lp_indexer.db"
