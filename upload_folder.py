"""
Загрузка локальной папки в Gallery/<folder> или Uploads/<folder>.

Подключение к GitHub берётся из окружения / .env (GITHUB_TOKEN, GITHUB_OWNER,
GITHUB_REPO, GITHUB_BRANCH) или из сохранённого ботом github_config.json.

    python upload_folder.py --kind gallery --folder sports-day ./photos
    python upload_folder.py --kind uploads --folder exams-2024 --title "Exam papers" ./pdf
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from admin_actions import NamedFile, submit_gallery, submit_upload
from github_store import ContentStoreClient, StoreError
from settings import load_location, strict_lookups

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
)
log = logging.getLogger("upload-folder")

# Пропускаем служебные файлы
EXCLUDE_FILES = {".DS_Store", "Thumbs.db", "desktop.ini"}


def should_skip(p: Path) -> bool:
    if p.is_dir():
        return True
    if p.name.startswith("."):
        return True
    return p.name in EXCLUDE_FILES


def collect_files(root: Path) -> List[NamedFile]:
    files = []
    for p in sorted(root.iterdir()):
        if should_skip(p):
            continue
        files.append((p.name, p.read_bytes()))
    return files


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Upload a local folder to the school content repository")
    ap.add_argument("local_dir", type=Path)
    ap.add_argument("--kind", choices=("gallery", "uploads"), required=True)
    ap.add_argument("--folder", required=True, help="folder name under Gallery/ or Uploads/")
    ap.add_argument("--title", default="", help="uploads only")
    ap.add_argument("--date", default="", help="uploads only, YYYY-MM-DD (default: today)")
    ap.add_argument("--description", default="", help="uploads only")
    ap.add_argument(
        "--keep-going", action="store_true", help="try every file even after a failure"
    )
    return ap


def main(argv: Optional[List[str]] = None, client: Optional[ContentStoreClient] = None) -> int:
    args = build_parser().parse_args(argv)
    root = args.local_dir.resolve()
    if not root.is_dir():
        raise SystemExit(f"LOCAL_DIR not found: {root}")

    files = collect_files(root)
    if not files:
        raise SystemExit(f"No files in {root}")

    if client is None:
        client = ContentStoreClient(load_location(), strict=strict_lookups())

    try:
        if args.kind == "gallery":
            result = submit_gallery(client, args.folder, files, stop_on_error=not args.keep_going)
        else:
            result = submit_upload(
                client,
                args.folder,
                args.title or args.folder,
                args.date,
                args.description,
                files,
                stop_on_error=not args.keep_going,
            )
    except (StoreError, ValueError) as e:
        log.error(f"❌ {e}")
        print(f"[ERR]  {e}")
        return 1

    for item in result.items:
        if item.ok:
            print(f"[OK]   {item.path}")
        elif item.status == "failed":
            print(f"[ERR]  {item.path}: {item.error}")
        else:
            print(f"[SKIP] {item.path}")

    print(f"Done. {result.summary()}")
    return 0 if result.clean else 1


if __name__ == "__main__":
    sys.exit(main())
