import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any

import orjson

from wavefront_users.config import Config
from wavefront_users.errors import WavefrontError
from wavefront_users.ext.wavefront_api import create_client
from wavefront_users.search import MatchingMethod, SearchCondition
from wavefront_users.users import NewUserRequest, User, UserGroup, Users


logger = logging.getLogger(__name__)


def parse_condition(raw: str, matching_method: MatchingMethod) -> SearchCondition:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected key=value, got {raw!r}")
    return SearchCondition(key=key, value=value, matching_method=matching_method)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavefront-users",
        description="Manage Wavefront users",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Show a single user")
    get.add_argument("user_id", help="User identifier (email)")

    find = commands.add_parser("find", help="Search users, all of them by default")
    find.add_argument(
        "--contains",
        action="append",
        default=[],
        type=lambda raw: parse_condition(raw, MatchingMethod.CONTAINS),
        metavar="KEY=VALUE",
    )
    find.add_argument(
        "--exact",
        action="append",
        default=[],
        type=lambda raw: parse_condition(raw, MatchingMethod.EXACT),
        metavar="KEY=VALUE",
    )

    create = commands.add_parser("create", help="Create a user")
    create.add_argument("email", help="Email address of the new user")
    create.add_argument("--permission", action="append", dest="permissions")
    create.add_argument("--group", action="append", dest="groups")
    create.add_argument(
        "--send-email",
        action="store_true",
        help="Send an invitation email to the new user",
    )

    update = commands.add_parser(
        "update", help="Replace permissions, groups or the password of a user"
    )
    update.add_argument("user_id", help="User identifier (email)")
    update.add_argument("--permission", action="append", dest="permissions")
    update.add_argument("--group", action="append", dest="groups")
    update.add_argument("--credential", help="New password")

    delete = commands.add_parser("delete", help="Delete a user")
    delete.add_argument("user_id", help="User identifier (email)")

    return parser


def dump_user(user: User) -> dict[str, Any]:
    data = user.model_dump(mode="json", by_alias=True, exclude={"groups", "credential"})
    data["userGroups"] = [
        group.model_dump(mode="json", by_alias=True, exclude_defaults=True)
        for group in user.groups
    ]
    return data


def _print(data: Any) -> None:
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode() + "\n")


async def run(args: argparse.Namespace, config: Config) -> None:
    async with create_client(config.wavefront) as client:
        users = Users(client)
        match args.command:
            case "get":
                user = await users.get(User(id=args.user_id))
                _print(dump_user(user))
            case "find":
                found = await users.find([*args.contains, *args.exact] or None)
                logger.info(f"Found {len(found)} users")
                _print([dump_user(user) for user in found])
            case "create":
                new_user = NewUserRequest(
                    email_address=args.email,
                    permissions=args.permissions or [],
                    groups=[UserGroup(id=group_id) for group_id in args.groups or []],
                )
                user = await users.create(new_user, send_email=args.send_email)
                logger.info(f"Created user {user.id}")
                _print(dump_user(user))
            case "update":
                user = await users.get(User(id=args.user_id))
                if args.permissions is not None:
                    user.permissions = args.permissions
                if args.groups is not None:
                    user.groups = [UserGroup(id=group_id) for group_id in args.groups]
                if args.credential:
                    user.credential = args.credential
                await users.update(user)
                logger.info(f"Updated user {user.id}")
                _print(dump_user(user))
            case "delete":
                user = User(id=args.user_id)
                await users.delete(user)
                logger.info(f"Deleted user {args.user_id}")


async def main(argv: Sequence[str] | None, config: Config) -> int:
    args = build_parser().parse_args(argv)
    try:
        await run(args, config)
    except WavefrontError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0
