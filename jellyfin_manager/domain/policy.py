from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.rules.models import Rules


class PolicyEngine:
    def __init__(self, rules: Rules):
        self.rules = rules

    def check_permission(self, user: AppUser | None, action: str) -> bool:
        """
        Check if the user is allowed to perform the action.

        Order of precedence:
        1. Public Permissions (Global)
        2. Role-Based Access Control (RBAC)
        """
        if action in self.rules.rbac.public_permissions:
            return True

        if not user or user.disabled:
            return False

        for role in user.roles:
            allowed_actions = self.rules.rbac.roles.get(role, [])
            if "*" in allowed_actions:
                return True
            if action in allowed_actions:
                return True

            # Scoped wildcards ("invite:*" matches "invite:create")
            if ":" in action:
                scope = action.split(":")[0]
                if f"{scope}:*" in allowed_actions:
                    return True

        return False

    def can_manage_users(self, user: AppUser) -> bool:
        return self.check_permission(user, "user:manage")

    def can_manage_invites(self, user: AppUser) -> bool:
        return self.check_permission(user, "invite:manage")

    def can_manage_profiles(self, user: AppUser) -> bool:
        return self.check_permission(user, "profile:manage")

    def can_view_activity(self, user: AppUser) -> bool:
        return self.check_permission(user, "activity:read")

    def can_manage_server(self, user: AppUser) -> bool:
        return self.check_permission(user, "jellyfin:manage")

    def can_manage_roles(self, user: AppUser) -> bool:
        return self.check_permission(user, "role:manage")

    def can_view_media_user(self, user: AppUser, jellyfin_user_id: str) -> bool:
        """Watch data of any Jellyfin user, or of the account's own one."""
        if self.check_permission(user, "media:read"):
            return True
        return (
            user.jellyfin_user_id is not None
            and user.jellyfin_user_id == jellyfin_user_id
            and self.check_permission(user, "media:read_self")
        )
