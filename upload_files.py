import argparse
import logging
import sys
from pathlib import Path

from drive_client.api import DriveClient, format_file_size
from drive_client.errors import DriveClientError
from drive_client.transfers import TransferCoordinator, TransferItem, TransferStatus


def check_backend_health(client: DriveClient) -> None:
    """
    Call GET /health and exit if the backend is not reachable.
    """
    try:
        client.health()
    except DriveClientError as e:
        print(f"[ERROR] Backend health check failed: {e}", file=sys.stderr)
        sys.exit(1)


def print_transition(item: TransferItem) -> None:
    if item.status is TransferStatus.UPLOADING and item.progress == 0:
        print(f"[..] {item.name} ({format_file_size(item.size_bytes)})")
    elif item.status is TransferStatus.SUCCESS:
        print(f"[OK] {item.name}")
    elif item.status is TransferStatus.ERROR:
        print(f"[ERROR] {item.name}: {item.error}", file=sys.stderr)


def main():
    parser = argparse.ArgumentParser(description="Upload local files to the file manager backend.")
    parser.add_argument(
        "--backend-url",
        default="http://localhost:8000",
        help="Base URL of the backend API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--user-id",
        type=int,
        required=True,
        help="Id of the user the uploads belong to.",
    )
    parser.add_argument(
        "--folder-id",
        type=int,
        default=None,
        help="Target folder id (default: root level).",
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Files to upload, in order.",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    missing = [p for p in args.paths if not Path(p).is_file()]
    if missing:
        print(f"[ERROR] Not a file: {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)

    with DriveClient(args.backend_url, args.user_id) as client:
        # 1) Check that the backend is reachable
        check_backend_health(client)

        # 2) Queue and upload one file at a time
        coordinator = TransferCoordinator(
            lambda item, progress: client.upload_file(item.path, args.folder_id, progress),
            evict_after=0,
            on_change=print_transition,
        )
        items = coordinator.enqueue(args.paths)
        coordinator.start()

    failed = [item for item in coordinator.items if item.status is TransferStatus.ERROR]
    print(f"Uploaded {len(items) - len(failed)} of {len(items)} file(s)")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()


#Script run command
# python upload_files.py \
#   --backend-url http://localhost:8000 \
#   --user-id 1 \
#   --folder-id 3 \
#   report.pdf photo.jpg
