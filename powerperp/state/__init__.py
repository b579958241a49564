"""
Reference collaborators for the power engine: token ledger, price feed, swap venue
"""

from .balances import InsufficientBalanceError, TokenLedger
from .pools import CpmmVenue, SlippageError
from .prices import ManualClock, PriceFeed

__all__ = [
    "TokenLedger",
    "InsufficientBalanceError",
    "CpmmVenue",
    "SlippageError",
    "ManualClock",
    "PriceFeed",
]
