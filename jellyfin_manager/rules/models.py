from typing import Literal

from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str
    public_base_url: str = "http://localhost:3000"

class PasswordHashingRules(BaseModel):
    algorithm: str

class SessionCookieRules(BaseModel):
    secure: bool
    http_only: bool
    same_site: Literal["lax", "strict", "none"] = "lax"

class SessionsRules(BaseModel):
    ttl_minutes: int
    cookie: SessionCookieRules

class AuthRules(BaseModel):
    password_hashing: PasswordHashingRules
    sessions: SessionsRules

class RbacRules(BaseModel):
    roles: dict[str, list[str]]
    public_permissions: list[str]

class RangeRule(BaseModel):
    min: int
    max: int

class RegexRule(RangeRule):
    pattern: str

class PasswordRules(BaseModel):
    min_length: int
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True

class EmailRules(BaseModel):
    required: bool = False
    pattern: str

class AccountRules(BaseModel):
    username: RegexRule
    password: PasswordRules
    email: EmailRules

class InviteRules(BaseModel):
    code_bytes: int = 16
    label_adjectives: list[str]
    label_nouns: list[str]
    attach_default_profile: bool = True

class RedemptionRules(BaseModel):
    lock_timeout_seconds: float = 5.0
    conflict_retries: int = 1
    # Jellyfin calls made while the redemption holds the write lock
    jellyfin_timeout_seconds: float = 4.0

class JellyfinRules(BaseModel):
    request_timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_factor: float = 0.5
    client_name: str
    device_name: str
    device_id: str
    client_version: str

class RateLimitWindow(BaseModel):
    window_seconds: int
    max_attempts: int | None = None
    max_requests: int | None = None

class RateLimitRules(BaseModel):
    login: RateLimitWindow
    redeem: RateLimitWindow

class AdminBootstrapRules(BaseModel):
    enabled_if_no_users: bool
    required_env_when_enabled: list[str] = Field(default_factory=list)

class OpsRules(BaseModel):
    data_dir_required: bool
    required_env: list[str]
    bootstrap_admin: AdminBootstrapRules

class Rules(BaseModel):
    project: ProjectRules
    auth: AuthRules
    rbac: RbacRules
    accounts: AccountRules
    invites: InviteRules
    redemption: RedemptionRules
    jellyfin: JellyfinRules
    rate_limits: RateLimitRules
    ops: OpsRules
