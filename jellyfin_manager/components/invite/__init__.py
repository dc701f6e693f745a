"""
Invite component - invite administration, validity evaluation and redemption.
"""

from ._validity import (
    account_expiry_policy,
    add_duration,
    evaluate,
    usage_cap,
)
from .component import (
    generate_code,
    generate_label,
    run,
    run_create,
    run_delete,
    run_list,
    run_lookup,
    run_redeem,
)
from .models import (
    Capped,
    CreateInviteInput,
    DeleteInviteInput,
    ExpiresIn,
    ExpiryDuration,
    InvalidDurationError,
    InviteEvaluation,
    InviteListOutput,
    InviteOutput,
    InviteValidationError,
    InviteWithStatus,
    ListInvitesInput,
    LookupInviteInput,
    LookupOutput,
    NoExpiry,
    RedeemInviteInput,
    RedeemOutput,
    RedemptionError,
    RedemptionErrorKind,
    Unlimited,
)
from .ports import (
    ConcurrencyConflictError,
    DuplicateAccountError,
    InviteRepoPort,
    RedemptionStorePort,
    RedemptionUnitPort,
)

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_list",
    "run_lookup",
    "run_redeem",
    # Evaluation
    "evaluate",
    "usage_cap",
    "account_expiry_policy",
    "add_duration",
    "generate_code",
    "generate_label",
    # Input models
    "CreateInviteInput",
    "DeleteInviteInput",
    "ListInvitesInput",
    "LookupInviteInput",
    "RedeemInviteInput",
    # Output models
    "InviteEvaluation",
    "InviteListOutput",
    "InviteOutput",
    "InviteWithStatus",
    "LookupOutput",
    "RedeemOutput",
    # Value types and errors
    "Capped",
    "ExpiresIn",
    "ExpiryDuration",
    "InvalidDurationError",
    "InviteValidationError",
    "NoExpiry",
    "RedemptionError",
    "RedemptionErrorKind",
    "Unlimited",
    # Ports
    "ConcurrencyConflictError",
    "DuplicateAccountError",
    "InviteRepoPort",
    "RedemptionStorePort",
    "RedemptionUnitPort",
]
