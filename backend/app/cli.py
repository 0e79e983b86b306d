"""DentalDesk CLI - Command Line Interface for administrative tasks.

Usage:
    python -m app.cli <command> [options]

Commands:
    create-admin    Create an admin user
    init-db         Create tables and default users
    seed-demo       Insert demo patients (development only)
    check-db        Check database connectivity
    version         Show version information

Examples:
    python -m app.cli create-admin --username admin --email admin@clinic.example --password secret123
    python -m app.cli init-db
    python -m app.cli check-db

"""

import argparse
import asyncio
import getpass
import sys
from typing import NoReturn

from app.core.config import settings


def print_banner() -> None:
    """Print DentalDesk CLI banner."""
    print("\n" + "=" * 50)
    print(" DentalDesk CLI")
    print(" Dental Clinic Management Backend")
    print("=" * 50 + "\n")


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


def print_success(message: str) -> None:
    """Print success message."""
    print(f"SUCCESS: {message}")


def print_info(message: str) -> None:
    """Print info message."""
    print(f"INFO: {message}")


async def check_database() -> bool:
    """Check database connectivity."""
    from sqlalchemy import text

    from app.models.base import async_session_maker

    try:
        print_info("Checking database connectivity...")
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            print_success("Database connection successful")
            return True
    except Exception as e:
        print_error(f"Database connection failed: {e}")
        return False


async def create_admin_user(
    username: str,
    email: str,
    password: str,
    full_name: str | None = None,
) -> bool:
    """Add an account holding the admin role."""
    from app.api.v1.endpoints.auth import StaffUserConflict, create_staff_user
    from app.models.base import async_session_maker

    try:
        async with async_session_maker() as session:
            user = await create_staff_user(
                session,
                username=username,
                email=email,
                password=password,
                roles=["admin"],
                full_name=full_name or username.title(),
            )
    except StaffUserConflict as e:
        print_error(str(e))
        return False
    except Exception as e:
        print_error(f"Failed to create admin user: {e}")
        return False

    print_success(f"Admin user '{user.username}' created ({user.user_id}, {user.email})")
    return True


async def init_database() -> bool:
    """Create missing tables, then default users when none exist."""
    from app.api.v1.endpoints.auth import DEFAULT_USERS, init_default_users
    from app.models.base import Base, async_session_maker, engine

    if not await check_database():
        return False
    try:
        # Only creates missing tables; schema changes go through alembic
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print_success("Database tables ready")

        async with async_session_maker() as session:
            created = await init_default_users(session)
    except Exception as e:
        print_error(f"Failed to initialize database: {e}")
        return False

    if not created:
        print_info("Users already exist; default accounts not created")
        return True

    print_success("Default users created:")
    for _, username, password, role, _ in DEFAULT_USERS:
        print_info(f"  {username} / {password} ({role})")
    print_info("Change these passwords before exposing the server.")
    return True


async def seed_demo_data() -> bool:
    """Insert the demo patients."""
    from app.models.base import async_session_maker
    from app.services.demo_data import seed_demo_patients

    try:
        async with async_session_maker() as session:
            inserted = await seed_demo_patients(session)
        print_success(f"Inserted {inserted} demo patient(s)")
        return True
    except Exception as e:
        print_error(f"Failed to seed demo data: {e}")
        return False


def cmd_version(_args: argparse.Namespace) -> int:
    """Show version information."""
    print_banner()
    print(f"Version:      {settings.app_version}")
    print(f"Environment:  {settings.environment}")
    print(f"Debug:        {settings.debug}")
    print(f"Storage mode: {settings.attachments.storage_mode}")
    print(f"Python:       {sys.version.split()[0]}")
    return 0


def cmd_check_db(_args: argparse.Namespace) -> int:
    """Check database connectivity command."""
    print_banner()
    result = asyncio.run(check_database())
    return 0 if result else 1


def _prompt_password() -> str | None:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print_error("Passwords do not match")
        return None
    return password


def cmd_create_admin(args: argparse.Namespace) -> int:
    """Create admin user command."""
    print_banner()

    password = args.password or _prompt_password()
    if password is None:
        return 1
    # Same bounds as the /auth/register payload; bcrypt ignores bytes past 72
    if not 8 <= len(password) <= 72:
        print_error("Password must be at least 8 characters and at most 72")
        return 1
    _, _, domain = args.email.partition("@")
    if "." not in domain:
        print_error(f"Invalid email address: {args.email}")
        return 1

    created = asyncio.run(
        create_admin_user(args.username, args.email, password, full_name=args.full_name)
    )
    return 0 if created else 1


def cmd_init_db(_args: argparse.Namespace) -> int:
    """Initialize database command."""
    print_banner()
    result = asyncio.run(init_database())
    return 0 if result else 1


def cmd_seed_demo(_args: argparse.Namespace) -> int:
    """Seed demo patients command."""
    print_banner()
    if settings.is_production:
        print_error("Refusing to seed demo data in production")
        return 1
    result = asyncio.run(seed_demo_data())
    return 0 if result else 1


COMMANDS = (
    ("version", "Show version information", cmd_version),
    ("check-db", "Check database connectivity", cmd_check_db),
    ("init-db", "Create tables and default users", cmd_init_db),
    ("seed-demo", "Insert demo patients (development only)", cmd_seed_demo),
    ("create-admin", "Create an admin user", cmd_create_admin),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dentaldesk",
        description="DentalDesk administrative commands",
    )
    parser.add_argument(
        "--version", "-V", action="version", version=f"DentalDesk {settings.app_version}"
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")
    for name, help_text, func in COMMANDS:
        subparsers.add_parser(name, help=help_text).set_defaults(func=func)

    create_admin = subparsers.choices["create-admin"]
    create_admin.add_argument("--username", "-u", required=True)
    create_admin.add_argument("--email", "-e", required=True)
    create_admin.add_argument("--password", "-p", help="prompted for when omitted")
    create_admin.add_argument("--full-name", "-n")
    return parser


def main() -> NoReturn:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
