from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from backend.app.config import load_settings
from backend.app.models.library_contracts import LibraryExport, SubscribedChannel
from backend.app.repositories.database import Database
from backend.app.repositories.notification_repository import NotificationRepository
from backend.app.repositories.playlist_repository import PlaylistRepository
from backend.app.repositories.subscription_repository import SubscriptionRepository
from backend.app.services.library_service import LibraryService


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export, import and inspect the local Tube Clone library.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write the library as JSON.")
    export_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file. Defaults to stdout.",
    )

    import_parser = subparsers.add_parser(
        "import",
        help="Merge playlists, subscriptions and notifications from an export file.",
    )
    import_parser.add_argument("path", type=Path, help="Export file to merge.")

    subparsers.add_parser("playlists", help="List playlists as tab-separated rows.")

    return parser.parse_args(argv)


def build_library_service() -> LibraryService:
    settings = load_settings()
    database = Database(settings.db_path)
    database.initialize()
    return LibraryService(
        playlist_repository=PlaylistRepository(database),
        subscription_repository=SubscriptionRepository(database),
        notification_repository=NotificationRepository(database),
        forced_channel=SubscribedChannel(
            id=settings.forced_subscription_channel_id,
            name=settings.forced_subscription_channel_name,
            avatar_url=settings.forced_subscription_channel_avatar_url,
        ),
        notifications_max_items=settings.notifications_max_items,
    )


def _print_playlists(library: LibraryService) -> None:
    playlists = library.list_playlists()
    if not playlists:
        print("No playlists found.")
        return

    print("playlist_id\tname\tvideos\tcreated_at")
    for playlist in playlists:
        print(
            "\t".join(
                [
                    playlist.id,
                    playlist.name,
                    str(len(playlist.video_ids)),
                    playlist.created_at,
                ]
            )
        )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    library = build_library_service()

    if args.command == "export":
        document = json.dumps(
            library.export_library().model_dump(mode="json", by_alias=True),
            ensure_ascii=False,
            indent=2,
        )
        if args.output is None:
            sys.stdout.write(f"{document}\n")
        else:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(f"{document}\n", encoding="utf-8")
            print(f"Wrote library export to {args.output}")
        return 0

    if args.command == "import":
        try:
            payload = LibraryExport.model_validate_json(args.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            print(f"Could not read library export {args.path}: {exc}", file=sys.stderr)
            return 1
        counts = library.import_library(payload)
        print(
            "Imported "
            f"{counts['playlists']} playlists, "
            f"{counts['subscriptions']} subscriptions, "
            f"{counts['notifications']} notifications."
        )
        return 0

    if args.command == "playlists":
        _print_playlists(library)
        return 0

    raise RuntimeError(f"Unhandled command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
