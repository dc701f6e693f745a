"""
Expiry component - Expired account sweep.
"""

from .component import run_disable_expired
from .models import DisableExpiredOutput, ExpiryFailure
from .ports import ExpirableUserRepoPort

__all__ = [
    "run_disable_expired",
    "DisableExpiredOutput",
    "ExpiryFailure",
    "ExpirableUserRepoPort",
]
