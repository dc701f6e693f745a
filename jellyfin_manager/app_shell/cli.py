import argparse
import logging
import sys
from datetime import UTC, datetime, timedelta

from jellyfin_manager.app_shell.config import ConfigurationError, Settings, validate_ops_rules
from jellyfin_manager.app_shell.context import ServiceContext
from jellyfin_manager.components.expiry import run_disable_expired
from jellyfin_manager.components.invite import CreateInviteInput, run_create
from jellyfin_manager.rules.loader import load_rules

logger = logging.getLogger("jfm.cli")


def get_context() -> ServiceContext:
    settings = Settings()
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)

    rules = load_rules(settings.rules_path)
    try:
        validate_ops_rules(rules, settings.data_dir)
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)
    return ServiceContext.create(settings, rules)


def handle_migrate(ctx: ServiceContext, args: argparse.Namespace) -> None:
    applied = ctx.migrate()
    print(f"Applied {len(applied)} migration(s).")
    for name in applied:
        print(f" - {name}")


def handle_bootstrap(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.migrate()
    result = ctx.bootstrap()
    if not result.success:
        sys.exit(1)
    if result.created and result.user:
        print(f"Admin account '{result.user.username}' created.")
    else:
        print(f"Skipped: {result.skipped_reason}")


def handle_invite(ctx: ServiceContext, args: argparse.Namespace) -> None:
    creator = ctx.user_repo.get_by_username(args.creator)
    if not creator:
        logger.error("Creator %s not found. Invoke with a valid admin username.", args.creator)
        sys.exit(1)

    expires_at = None
    if args.expires_in_days is not None:
        expires_at = datetime.now(UTC) + timedelta(days=args.expires_in_days)

    expiry_enabled = any(
        (args.account_months, args.account_days, args.account_hours, args.account_minutes)
    )
    out = run_create(
        CreateInviteInput(
            creator=creator,
            label=args.label,
            max_uses=args.max_uses,
            expires_at=expires_at,
            user_expiry_enabled=expiry_enabled,
            user_expiry_months=args.account_months,
            user_expiry_days=args.account_days,
            user_expiry_hours=args.account_hours,
            user_expiry_minutes=args.account_minutes,
        ),
        ctx.invite_repo,
        ctx.profile_repo,
        ctx.activity_repo,
        ctx.policy,
        ctx.rules.invites,
        ctx.clock,
    )
    if not out.success or out.invite is None:
        logger.error("Invite not created: %s", out.error)
        sys.exit(1)

    base_url = ctx.rules.project.public_base_url.rstrip("/")
    print(f"Invite '{out.invite.label}' created.")
    print(f"Code: {out.invite.code}")
    print(f"Link: {base_url}/invite/{out.invite.code}")


def handle_expire_users(ctx: ServiceContext, args: argparse.Namespace) -> None:
    out = run_disable_expired(ctx.user_repo, ctx.media_server(), ctx.activity_repo, ctx.clock)
    print(f"Disabled {len(out.disabled)} expired account(s).")
    for user in out.disabled:
        print(f" - {user.username}")
    for failure in out.failures:
        print(f" ! {failure.username}: {failure.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jfm", description="Jellyfin User Manager CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migrate", help="Apply pending database migrations")
    subparsers.add_parser("bootstrap", help="Create the first admin account from the environment")

    invite_parser = subparsers.add_parser("invite", help="Create an invite")
    invite_parser.add_argument("--creator", required=True, help="Username of the admin creating it")
    invite_parser.add_argument("--label", help="Display label (generated when omitted)")
    invite_parser.add_argument("--max-uses", type=int, help="Leave out for unlimited uses")
    invite_parser.add_argument("--expires-in-days", type=int, help="Invite validity in days")
    invite_parser.add_argument("--account-months", type=int, default=0)
    invite_parser.add_argument("--account-days", type=int, default=0)
    invite_parser.add_argument("--account-hours", type=int, default=0)
    invite_parser.add_argument("--account-minutes", type=int, default=0)

    subparsers.add_parser("expire-users", help="Disable accounts whose expiry has passed")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx = get_context()

    if args.command == "migrate":
        handle_migrate(ctx, args)
    elif args.command == "bootstrap":
        handle_bootstrap(ctx, args)
    elif args.command == "invite":
        handle_invite(ctx, args)
    elif args.command == "expire-users":
        handle_expire_users(ctx, args)


if __name__ == "__main__":
    main()
