import re
from dataclasses import dataclass

from jellyfin_manager.rules.models import AccountRules


@dataclass(frozen=True)
class AccountInputError:
    """A single field-level problem with submitted account details."""

    field: str
    message: str


class AccountValidator:
    def __init__(self, rules: AccountRules):
        self.rules = rules
        self._username_re = re.compile(rules.username.pattern)
        self._email_re = re.compile(rules.email.pattern)

    def validate(
        self, username: str, password: str, email: str | None = None
    ) -> list[AccountInputError]:
        """
        Check username, password and optional email against the account rules.

        Returns every violation found, in field order. An empty list means the
        input is acceptable.
        """
        errors: list[AccountInputError] = []
        errors.extend(self.validate_username(username))
        errors.extend(self.validate_password(password))
        errors.extend(self.validate_email(email))
        return errors

    def validate_username(self, username: str) -> list[AccountInputError]:
        rule = self.rules.username
        if len(username) < rule.min:
            return [
                AccountInputError(
                    "username", f"Username must be at least {rule.min} characters"
                )
            ]
        if len(username) > rule.max:
            return [
                AccountInputError(
                    "username", f"Username must be at most {rule.max} characters"
                )
            ]
        if not self._username_re.match(username):
            return [
                AccountInputError(
                    "username",
                    "Username can only contain letters, numbers, and underscores",
                )
            ]
        return []

    def validate_password(self, password: str) -> list[AccountInputError]:
        rule = self.rules.password
        if len(password) < rule.min_length:
            return [
                AccountInputError(
                    "password", f"Password must be at least {rule.min_length} characters"
                )
            ]
        if rule.require_uppercase and not any(c.isupper() for c in password):
            return [
                AccountInputError(
                    "password", "Password must contain at least one uppercase letter"
                )
            ]
        if rule.require_lowercase and not any(c.islower() for c in password):
            return [
                AccountInputError(
                    "password", "Password must contain at least one lowercase letter"
                )
            ]
        if rule.require_digit and not any(c.isdigit() for c in password):
            return [AccountInputError("password", "Password must contain at least one number")]
        return []

    def validate_email(self, email: str | None) -> list[AccountInputError]:
        if not email:
            if self.rules.email.required:
                return [AccountInputError("email", "Email is required")]
            return []
        if not self._email_re.match(email):
            return [AccountInputError("email", "Please enter a valid email address")]
        return []
