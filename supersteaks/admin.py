"""
Administrative command line for SuperSteaks.

Usage:
    python -m supersteaks.admin create tournaments.json
    python -m supersteaks.admin list [--status active]
    python -m supersteaks.admin delete "Premier League 2025-26" ...
    python -m supersteaks.admin close TOURNAMENT_ID
    python -m supersteaks.admin cleanup-duplicates
    python -m supersteaks.admin join TOURNAMENT_ID USER_ID

Uses the same DB_TYPE / DATA_DIR / SUPABASE_* settings as the API.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from .services.errors import AllocationError
from .services.lobby_allocator import LobbyAllocator
from .services.tournament_service import TournamentService
from .storage import DatabaseError, get_database, reset_database


def _load_definitions(path: str) -> list:
    """Read tournament definitions: a JSON list, or an object with a 'tournaments' list."""
    with open(Path(path), "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("tournaments", [])
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SuperSteaks tournament administration")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create tournaments from a JSON file")
    create.add_argument("file", help="JSON file with tournament definitions")
    create.add_argument("--created-by", default="admin", help="Recorded as createdBy")

    listing = sub.add_parser("list", help="List tournaments")
    listing.add_argument("--status", choices=["active", "closed"], default=None)

    delete = sub.add_parser("delete", help="Delete tournaments by name")
    delete.add_argument("names", nargs="+")

    close = sub.add_parser("close", help="Stop accepting joins for a tournament")
    close.add_argument("tournament_id")

    sub.add_parser("cleanup-duplicates", help="Retire duplicate active assignments")

    join = sub.add_parser("join", help="Join a user to a tournament (support use)")
    join.add_argument("tournament_id")
    join.add_argument("user_id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        db = get_database()
        service = TournamentService(db)

        if args.command == "create":
            ids = service.create_tournaments(_load_definitions(args.file), created_by=args.created_by)
            print(f"[+] Created {len(ids)} tournaments")
            for tournament_id in ids:
                print(f"    {tournament_id}")

        elif args.command == "list":
            for t in service.list_tournaments(status=args.status):
                print(f"{t.id}\t{t.status.value}\t{t.capacity}\t{t.name}")

        elif args.command == "delete":
            deleted = service.delete_tournaments_by_name(args.names)
            print(f"[+] Deleted {deleted} tournaments")

        elif args.command == "close":
            t = service.close_tournament(args.tournament_id)
            print(f"[+] Closed {t.id} ({t.name})")

        elif args.command == "cleanup-duplicates":
            retired = service.cleanup_duplicate_assignments()
            print(f"[+] Retired {retired} duplicate assignments")

        elif args.command == "join":
            result = LobbyAllocator(db).join(args.tournament_id, args.user_id)
            print(f"[+] {args.user_id} -> {result.assignment.team} in {result.lobby.id} "
                  f"({result.lobby.current_count}/{result.lobby.capacity}, {result.lobby.status.value})")

    except AllocationError as e:
        print(f"[-] {e.code}: {e.message}")
        return 1
    except (DatabaseError, OSError, ValueError) as e:
        print(f"[-] Failed: {e}")
        return 1
    finally:
        reset_database()

    return 0


if __name__ == "__main__":
    sys.exit(main())
