"""Bootstrap component - first admin account creation."""

from .component import run, run_bootstrap
from .models import BootstrapInput, BootstrapOutput, BootstrapValidationError
from .ports import AuthAdapterPort, RulesPort, TimePort, UserRepoPort

__all__ = [
    "run",
    "run_bootstrap",
    "BootstrapInput",
    "BootstrapOutput",
    "BootstrapValidationError",
    "AuthAdapterPort",
    "RulesPort",
    "TimePort",
    "UserRepoPort",
]
