"""
Форматы текстовых записей и соглашения о путях в репозитории.

Поля пишутся построчно и порядок строк и есть формат. Экранирования нет,
поэтому перевод строки внутри поля ломает запись (кроме последнего поля
объявления — текста).
"""
from dataclasses import dataclass
from typing import List

from github_store import NOTICE_SUFFIX, NOTICES_DIR

ACHIEVEMENTS_DIR = "Achievements"
UPLOADS_DIR = "Uploads"
GALLERY_DIR = "Gallery"

# удалять можно только подпапки, сами корневые папки — нет
PROTECTED_FOLDERS = (ACHIEVEMENTS_DIR, UPLOADS_DIR, GALLERY_DIR)

DATA_FILE = "data.txt"
ACHIEVEMENT_IMAGE = "image.jpg"

ACHIEVEMENT_CATEGORIES = ("Achievements", "Activity")
NOTICE_CATEGORIES = (
    "General",
    "Urgent",
    "Meeting",
    "Event",
    "Announcement",
    "Holiday",
    "Training",
    "Other",
)


def check_name(value: str, what: str = "folder name") -> str:
    """Имя папки или файла: непустое, без слэшей, не '.' и не '..'."""
    name = (value or "").strip()
    if not name:
        raise ValueError(f"{what} must not be empty")
    if "/" in name or "\\" in name:
        raise ValueError(f"{what} must not contain slashes: {name!r}")
    if name in (".", ".."):
        raise ValueError(f"{what} is not allowed: {name!r}")
    return name


def _single_line(value: str, field_name: str) -> str:
    if "\n" in value or "\r" in value:
        raise ValueError(f"{field_name} must be a single line")
    return value


def _join(fields: List[str]) -> str:
    return "\n".join(fields)


# ——————————————————————————————————————————————
#                  ЗАПИСИ
# ——————————————————————————————————————————————
@dataclass
class Achievement:
    folder: str
    title: str
    category: str
    date: str
    description: str

    def serialize(self) -> str:
        return _join([
            _single_line(self.title, "title"),
            _single_line(self.category, "category"),
            _single_line(self.date, "date"),
            _single_line(self.description, "description"),
        ])

    @property
    def data_path(self) -> str:
        return achievement_path(self.folder, DATA_FILE)

    @property
    def image_path(self) -> str:
        return achievement_path(self.folder, ACHIEVEMENT_IMAGE)


@dataclass
class UploadFolder:
    folder: str
    title: str
    date: str
    description: str = ""

    def serialize(self) -> str:
        return _join([
            _single_line(self.title, "title"),
            _single_line(self.date, "date"),
            _single_line(self.description or "", "description"),
        ])

    @property
    def data_path(self) -> str:
        return upload_path(self.folder, DATA_FILE)


@dataclass
class Notice:
    notice_id: str
    title: str
    date: str
    category: str
    pinned: bool
    content: str

    def serialize(self) -> str:
        return _join([
            _single_line(self.title, "title"),
            _single_line(self.date, "date"),
            _single_line(self.category, "category"),
            "true" if self.pinned else "false",
            self.content,
        ])

    @property
    def path(self) -> str:
        return notice_path(self.notice_id)


# ——————————————————————————————————————————————
#                  ПУТИ
# ——————————————————————————————————————————————
def achievement_path(folder: str, name: str) -> str:
    return f"{ACHIEVEMENTS_DIR}/{check_name(folder)}/{name}"


def upload_path(folder: str, name: str) -> str:
    return f"{UPLOADS_DIR}/{check_name(folder)}/{check_name(name, 'file name')}"


def gallery_path(folder: str, name: str) -> str:
    return f"{GALLERY_DIR}/{check_name(folder)}/{check_name(name, 'file name')}"


def notice_path(notice_id: str) -> str:
    return f"{NOTICES_DIR}/{check_name(notice_id, 'notice id')}{NOTICE_SUFFIX}"


def managed_folder_path(main_folder: str, folder: str) -> str:
    """Путь подпапки одной из защищённых корневых папок."""
    if main_folder not in PROTECTED_FOLDERS:
        raise ValueError(f"Unknown main folder: {main_folder!r}")
    return f"{main_folder}/{check_name(folder)}"
