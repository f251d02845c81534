"""
bazaar — multi-vendor marketplace core.

    from bazaar import saga as S     # Compensated workflows
    from bazaar import graph as G    # Checkout computation graph
    from bazaar.api import create_app
"""

from bazaar import saga
from bazaar import graph
from bazaar.config import Settings
from bazaar.errors import ErrorKind, MarketError, MarketFailure, Errors
from bazaar._types import new_id, utcnow

__version__ = "0.1.0"

__all__ = (
    "saga",
    "graph",
    "Settings",
    "ErrorKind",
    "MarketError",
    "MarketFailure",
    "Errors",
    "new_id",
    "utcnow",
)
