"""CLI entry point for the applicant tracker client."""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from src.api.presets import PRESET_KINDS
from src.controller.app import open_controller
from src.controller.view import NoticeLevel, ViewController
from src.core.config import Settings
from src.core.schemas import (
    ALLOWED_ROLES,
    ALLOWED_STATUSES,
    ApplicantFields,
    ApplicantRecord,
    Company,
)


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--search", default="", help="Free-text search (name, email, position, status)")
    parser.add_argument("--role", default="", help="Exact position, case-insensitive")
    parser.add_argument("--status", default="", help=f"One of {', '.join(ALLOWED_STATUSES)}")
    parser.add_argument("--applied-on", default="", help="Application date (YYYY-MM-DD)")
    parser.add_argument("--interview-on", default="", help="Interview date (YYYY-MM-DD)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Applicant tracker - manage applicants over the tracker REST API",
    )
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="Sign in and remember the session")
    login_parser.add_argument("--user", help="User ID (prompted when omitted)")
    login_parser.add_argument("--password", help="Password (prompted when omitted)")

    subparsers.add_parser("logout", help="Forget the stored session")
    subparsers.add_parser("whoami", help="Show the signed-in user")

    list_parser = subparsers.add_parser("list", help="List applicants matching the filters")
    _add_filter_args(list_parser)

    add_parser = subparsers.add_parser("add", help="Add an applicant from a YAML file")
    add_parser.add_argument("--file", required=True, help="YAML file with applicant fields")
    add_parser.add_argument("--resume", help="Resume PDF to attach (max 5MB)")

    edit_parser = subparsers.add_parser("edit", help="Edit an applicant; YAML fields override")
    edit_parser.add_argument("id", help="Applicant ID")
    edit_parser.add_argument("--file", required=True, help="YAML file with fields to change")
    edit_parser.add_argument("--resume", help="Replacement resume PDF")

    delete_parser = subparsers.add_parser("delete", help="Delete an applicant (admin password)")
    delete_parser.add_argument("id", help="Applicant ID")
    delete_parser.add_argument("--admin-password", help="Admin password (prompted when omitted)")

    export_parser = subparsers.add_parser("export", help="Export filtered applicants to Excel")
    export_parser.add_argument("--output-dir", help="Directory for the .xlsx file")
    _add_filter_args(export_parser)

    subparsers.add_parser("roles", help="List job roles available for filtering")
    subparsers.add_parser("change-password", help="Change your password")
    users_parser = subparsers.add_parser("users", help="Manage user accounts (admin only)")
    users_actions = users_parser.add_subparsers(dest="users_action")
    users_actions.add_parser("list", help="List user accounts (default)")
    user_add = users_actions.add_parser("add", help="Create a user account")
    user_add.add_argument("userid", help="New user ID")
    user_add.add_argument("--role", default="user", choices=sorted(ALLOWED_ROLES))
    user_add.add_argument("--password", help="Initial password (prompted when omitted)")
    user_edit = users_actions.add_parser("edit", help="Change a user's role or password")
    user_edit.add_argument("userid", help="User ID")
    user_edit.add_argument("--role", choices=sorted(ALLOWED_ROLES))
    user_edit.add_argument("--reset-password", action="store_true", help="Prompt for a new password")
    user_delete = users_actions.add_parser("delete", help="Delete a user account")
    user_delete.add_argument("userid", help="User ID")

    presets_parser = subparsers.add_parser(
        "presets", help="Manage company and position presets (admin only)",
    )
    presets_parser.add_argument("kind", choices=sorted(PRESET_KINDS))
    preset_actions = presets_parser.add_subparsers(dest="preset_action")
    preset_actions.add_parser("list", help="List entries (default)")
    preset_add = preset_actions.add_parser("add", help="Add an entry")
    preset_add.add_argument("name")
    preset_rename = preset_actions.add_parser("rename", help="Rename an entry")
    preset_rename.add_argument("id")
    preset_rename.add_argument("name")
    preset_delete = preset_actions.add_parser("delete", help="Delete an entry")
    preset_delete.add_argument("id")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_fields_file(path: str | Path) -> dict[str, Any]:
    """Read applicant fields from YAML."""
    path = Path(path)
    if not path.exists():
        msg = f"Applicant file not found: {path}"
        raise FileNotFoundError(msg)
    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        msg = f"Applicant file must contain a mapping: {path}"
        raise ValueError(msg)
    return raw


def _wire_keys(raw: dict[str, Any]) -> dict[str, Any]:
    """Rename snake_case field names to their camelCase aliases."""
    aliases = {
        name: field.alias or name for name, field in ApplicantFields.model_fields.items()
    }
    return {aliases.get(key, key): value for key, value in raw.items()}


def format_table(records: list[ApplicantRecord]) -> str:
    header = f"{'ID':<26} {'Name':<24} {'Position':<26} {'Status':<12} {'Applied':<10} {'Interview':<10}"
    lines = [header, "-" * len(header)]
    for r in records:
        interview = r.interview_date.date().isoformat() if r.interview_date else "-"
        lines.append(
            f"{r.id:<26} {r.full_name[:24]:<24} {r.position[:26]:<26} {r.status:<12} "
            f"{r.date_of_application.date().isoformat():<10} {interview:<10}"
        )
    return "\n".join(lines)


def print_notices(view: ViewController) -> None:
    for notice in view.notices:
        stream = sys.stderr if notice.level is NoticeLevel.ERROR else sys.stdout
        print(notice.message, file=stream)
    view.notices.clear()


def _apply_filters(view: ViewController, args: argparse.Namespace) -> None:
    view.set_filters(
        search_query=args.search,
        role=args.role,
        status=args.status,
        application_date=args.applied_on or None,
        interview_date=args.interview_on or None,
    )


async def cmd_login(view: ViewController, args: argparse.Namespace) -> int:
    userid = args.user or input("User ID: ")
    password = args.password or getpass.getpass("Password: ")
    ok = await view.login(userid, password, on_progress=print)
    print_notices(view)
    if ok:
        print(f"{len(view.cache)} applicants loaded.")
    return 0 if ok else 1


async def cmd_list(view: ViewController, args: argparse.Namespace) -> int:
    _apply_filters(view, args)
    records = view.visible_records()
    print(f"Applicants ({len(records)} of {len(view.cache)})")
    if records:
        print(format_table(records))
    return 0


async def cmd_add(view: ViewController, args: argparse.Namespace) -> int:
    fields = ApplicantFields.model_validate(load_fields_file(args.file))
    view.open_form()
    record = await view.submit_record(fields, resume=args.resume)
    print_notices(view)
    if record is None:
        return 1
    print(f"  ID: {record.id}")
    return 0


async def cmd_edit(view: ViewController, args: argparse.Namespace) -> int:
    existing = view.cache.get(args.id)
    if existing is None:
        print(f"Error: no applicant with ID {args.id}", file=sys.stderr)
        return 1
    current = view.open_form(existing)
    data = current.model_dump(by_alias=True) if current is not None else {}
    data.update(_wire_keys(load_fields_file(args.file)))
    fields = ApplicantFields.model_validate(data)
    record = await view.submit_record(fields, resume=args.resume)
    print_notices(view)
    return 0 if record is not None else 1


async def cmd_delete(view: ViewController, args: argparse.Namespace) -> int:
    record = view.cache.get(args.id)
    if record is None:
        print(f"Error: no applicant with ID {args.id}", file=sys.stderr)
        return 1
    print(f"Deleting {record.full_name} ({record.position})")
    admin_password = args.admin_password or getpass.getpass("Admin password: ")
    ok = await view.delete_record(args.id, admin_password)
    print_notices(view)
    return 0 if ok else 1


async def cmd_export(view: ViewController, args: argparse.Namespace) -> int:
    _apply_filters(view, args)
    path = await view.export(args.output_dir)
    print_notices(view)
    if path is None:
        return 1
    print(f"  Written to {path}")
    return 0


async def cmd_change_password(view: ViewController, args: argparse.Namespace) -> int:
    current = getpass.getpass("Current password: ")
    new = getpass.getpass("New password: ")
    confirm = getpass.getpass("Confirm new password: ")
    ok = await view.change_password(current, new, confirm)
    print_notices(view)
    return 0 if ok else 1


async def cmd_users(view: ViewController, args: argparse.Namespace) -> int:
    action = args.users_action or "list"
    if action == "list":
        users = await view.list_users()
        print_notices(view)
        if users is None:
            return 1
        for user in users:
            print(f"  {user.userid:<24} {user.role}")
        return 0

    if action == "add":
        password = args.password or getpass.getpass("Password for new user: ")
        ok = await view.create_user(args.userid, password, args.role)
    elif action == "edit":
        password = getpass.getpass("New password: ") if args.reset_password else None
        ok = await view.update_user(args.userid, password=password, role=args.role)
    else:
        ok = await view.delete_user(args.userid)
    print_notices(view)
    return 0 if ok else 1


async def cmd_presets(view: ViewController, args: argparse.Namespace) -> int:
    action = args.preset_action or "list"
    if action == "list":
        entries = await view.list_presets(args.kind)
        print_notices(view)
        if entries is None:
            return 1
        for entry in entries:
            name = entry.company_name if isinstance(entry, Company) else entry.position_name
            print(f"  {entry.id:<26} {name}")
        return 0

    if action == "add":
        ok = await view.save_preset(args.kind, args.name)
    elif action == "rename":
        ok = await view.save_preset(args.kind, args.name, args.id)
    else:
        ok = await view.delete_preset(args.kind, args.id)
    print_notices(view)
    return 0 if ok else 1


async def run(settings: Settings, args: argparse.Namespace) -> int:
    """Run one subcommand against a freshly mounted controller."""
    async with open_controller(settings) as view:
        if args.command == "login":
            return await cmd_login(view, args)

        if args.command == "logout":
            view.logout()
            print_notices(view)
            return 0

        await view.mount()
        if not view.session.is_authenticated:
            print_notices(view)
            print("Not signed in - run: python main.py login", file=sys.stderr)
            return 1
        print_notices(view)

        if args.command == "whoami":
            principal = view.session.session.principal
            if principal is None:
                return 1
            print(f"{principal.id} ({principal.role})")
            return 0
        if args.command == "roles":
            for role in await view.job_roles():
                print(f"  {role}")
            return 0

        handlers = {
            "list": cmd_list,
            "add": cmd_add,
            "edit": cmd_edit,
            "delete": cmd_delete,
            "export": cmd_export,
            "change-password": cmd_change_password,
            "users": cmd_users,
            "presets": cmd_presets,
        }
        return await handlers[args.command](view, args)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.load(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        code = asyncio.run(run(settings, args))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
