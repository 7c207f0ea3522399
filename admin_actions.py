"""
Действия админки: то, что в исходной веб-версии делали экраны форм.

Каждое действие собирает путь и содержимое и вызывает ContentStoreClient.
Никакого состояния здесь нет, клиент передаётся явно.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from github_store import (
    BatchResult,
    ContentStoreClient,
    DirectoryEntry,
    NoticeRecord,
    RemoteWriteError,
    generate_notice_id,
    parse_date,
)
from records import (
    ACHIEVEMENT_CATEGORIES,
    NOTICE_CATEGORIES,
    PROTECTED_FOLDERS,
    Achievement,
    Notice,
    UploadFolder,
    check_name,
    gallery_path,
    managed_folder_path,
    notice_path,
    upload_path,
)

log = logging.getLogger(__name__)

NamedFile = Tuple[str, bytes]


def today() -> str:
    return date.today().isoformat()


def normalize_date(value: Optional[str]) -> str:
    """Пустое значение — сегодня, иначе строго YYYY-MM-DD."""
    if not value or not value.strip():
        return today()
    value = value.strip()
    if parse_date(value) is None or len(value) != 10:
        raise ValueError(f"Date must be YYYY-MM-DD, got {value!r}")
    return value


def _required(value: str, field_name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{field_name} is required")
    return value


def _check_category(value: str, allowed: Sequence[str]) -> str:
    if value not in allowed:
        raise ValueError(f"Category must be one of: {', '.join(allowed)}")
    return value


# ——————————————————————————————————————————————
#                  ДОСТИЖЕНИЯ / ЗАГРУЗКИ / ГАЛЕРЕЯ
# ——————————————————————————————————————————————
def submit_achievement(
    client: ContentStoreClient,
    folder: str,
    title: str,
    category: str,
    date_str: Optional[str],
    description: str,
    image: Optional[bytes] = None,
) -> List[str]:
    record = Achievement(
        folder=check_name(folder),
        title=_required(title, "title"),
        category=_check_category(category, ACHIEVEMENT_CATEGORIES),
        date=normalize_date(date_str),
        description=description.strip(),
    )
    content = record.serialize()
    written = []
    client.write_text(record.data_path, content, f"Add achievement: {record.title}")
    written.append(record.data_path)
    if image:
        client.write_binary(record.image_path, image, f"Add image for achievement: {record.title}")
        written.append(record.image_path)
    log.info(f"Достижение {record.folder}: записано файлов {len(written)}")
    return written


def submit_upload(
    client: ContentStoreClient,
    folder: str,
    title: str,
    date_str: Optional[str],
    description: str,
    files: Sequence[NamedFile],
    stop_on_error: bool = True,
) -> BatchResult:
    """data.txt пишется первым; если он не записался, файлы не трогаем."""
    record = UploadFolder(
        folder=check_name(folder),
        title=_required(title, "title"),
        date=normalize_date(date_str),
        description=(description or "").strip(),
    )
    if not files:
        raise ValueError("At least one file is required")
    items = [(upload_path(record.folder, name), data, f"Add file: {name}") for name, data in files]
    content = record.serialize()
    client.write_text(record.data_path, content, f"Add upload folder: {record.title}")
    return client.write_batch(items, stop_on_error=stop_on_error)


def submit_gallery(
    client: ContentStoreClient,
    folder: str,
    images: Sequence[NamedFile],
    stop_on_error: bool = True,
) -> BatchResult:
    folder = check_name(folder)
    if not images:
        raise ValueError("At least one image is required")
    items = [
        (gallery_path(folder, name), data, f"Add image: {name} to gallery {folder}")
        for name, data in images
    ]
    return client.write_batch(items, stop_on_error=stop_on_error)


# ——————————————————————————————————————————————
#                  ОБЪЯВЛЕНИЯ
# ——————————————————————————————————————————————
def new_notice_id(client: ContentStoreClient, attempts: int = 3) -> str:
    """Генерирует id и перегенерирует его, если такой файл уже есть.

    Каждый возвращаемый id проверен; если все попытки заняты — RemoteWriteError,
    существующее объявление не перезаписывается.
    """
    for _ in range(attempts):
        notice_id = generate_notice_id()
        if not client.exists(notice_path(notice_id)).exists:
            return notice_id
        log.warning(f"Коллизия id объявления {notice_id}, генерирую заново")
    raise RemoteWriteError(f"Could not generate a free notice id after {attempts} attempts")


def submit_notice(
    client: ContentStoreClient,
    title: str,
    date_str: Optional[str],
    category: str,
    pinned: bool,
    content: str,
    notice_id: Optional[str] = None,
) -> Notice:
    notice = Notice(
        notice_id=notice_id or new_notice_id(client),
        title=_required(title, "title"),
        date=normalize_date(date_str),
        category=_check_category(category, NOTICE_CATEGORIES),
        pinned=bool(pinned),
        content=content,
    )
    client.write_text(notice.path, notice.serialize(), f"Add notice: {notice.title}")
    return notice


def delete_notice(client: ContentStoreClient, notice: NoticeRecord) -> None:
    client.delete_file(notice.path, notice.sha, f"Delete notice: {notice.title}")


def find_notice(client: ContentStoreClient, notice_id: str) -> Optional[NoticeRecord]:
    for notice in client.list_notices():
        if notice.notice_id == notice_id:
            return notice
    return None


# ——————————————————————————————————————————————
#                  ПАПКИ
# ——————————————————————————————————————————————
def list_managed_folders(client: ContentStoreClient) -> Dict[str, List[DirectoryEntry]]:
    return {
        main: [e for e in client.list_directory(main) if e.is_dir]
        for main in PROTECTED_FOLDERS
    }


def delete_managed_folder(client: ContentStoreClient, main_folder: str, folder: str) -> List[str]:
    """Удаляет подпапку Achievements/Uploads/Gallery вместе со всем содержимым."""
    path = managed_folder_path(main_folder, folder)
    return client.delete_tree(path)
