"""
Клиент хранилища контента поверх GitHub Contents API.

Все сущности админки (достижения, объявления, загрузки, галереи) — это просто
файлы в репозитории. Любое изменение существующего файла требует его текущий
sha, папок как отдельных объектов нет, а удалять папку приходится пофайлово.
"""
import base64
import binascii
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

import requests

log = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
API_VERSION = "2022-11-28"
NOTICES_DIR = "Notices"
NOTICE_SUFFIX = ".txt"
READ_TIMEOUT = 30
WRITE_TIMEOUT = 60

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


# ——————————————————————————————————————————————
#                  ОШИБКИ
# ——————————————————————————————————————————————
class StoreError(Exception):
    """Базовая ошибка хранилища."""


class NotConfigured(StoreError):
    """Не заданы токен, владелец или репозиторий."""


class RemoteReadError(StoreError):
    """Чтение или листинг не удались по причине, отличной от 404."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RemoteWriteError(StoreError):
    """GitHub отклонил создание, обновление или удаление файла."""

    def __init__(self, message: str, status: Optional[int] = None, path: str = ""):
        super().__init__(message)
        self.status = status
        self.path = path


class DecodeError(StoreError):
    """Содержимое файла не является корректным base64 / UTF-8."""


class PartialTreeDeleteError(StoreError):
    """Удаление папки прервалось после того, как часть файлов уже удалена."""

    def __init__(self, path: str, deleted: List[str], cause: StoreError):
        super().__init__(
            f"Deleting '{path}' stopped after {len(deleted)} file(s) were removed: {cause}"
        )
        self.path = path
        self.deleted = deleted
        self.cause = cause


# ——————————————————————————————————————————————
#                  МОДЕЛИ
# ——————————————————————————————————————————————
@dataclass(frozen=True)
class RepositoryLocation:
    owner: str
    repo: str
    token: str
    branch: Optional[str] = None
    api_url: str = GITHUB_API

    @property
    def complete(self) -> bool:
        return bool(self.token and self.owner and self.repo)

    def __repr__(self) -> str:
        # токен в логи не попадает
        return f"RepositoryLocation(owner={self.owner!r}, repo={self.repo!r}, branch={self.branch!r})"


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    path: str
    kind: str  # "file" | "dir"
    sha: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"


class LookupState(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class Lookup:
    state: LookupState
    sha: Optional[str] = None
    reason: str = ""
    status: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.state is LookupState.FOUND


@dataclass(frozen=True)
class ExistenceCheck:
    exists: bool
    sha: Optional[str] = None


@dataclass(frozen=True)
class NoticeRecord:
    name: str
    path: str
    sha: str
    title: str
    date: str
    category: str
    pinned: bool
    content: str = ""

    @property
    def notice_id(self) -> str:
        return self.name[: -len(NOTICE_SUFFIX)] if self.name.endswith(NOTICE_SUFFIX) else self.name


@dataclass
class ItemResult:
    path: str
    status: str  # "ok" | "failed" | "skipped"
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class BatchResult:
    items: List[ItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemResult]:
        return [i for i in self.items if i.status == "ok"]

    @property
    def failed(self) -> List[ItemResult]:
        return [i for i in self.items if i.status == "failed"]

    @property
    def skipped(self) -> List[ItemResult]:
        return [i for i in self.items if i.status == "skipped"]

    @property
    def clean(self) -> bool:
        return all(i.ok for i in self.items)

    def summary(self) -> str:
        return (
            f"Uploaded={len(self.succeeded)}, Failed={len(self.failed)}, "
            f"Skipped={len(self.skipped)}"
        )


# ——————————————————————————————————————————————
#           ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ
# ——————————————————————————————————————————————
def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def generate_notice_id() -> str:
    """NOTICE-<время в base36>-<5 случайных символов base36>, в верхнем регистре."""
    timestamp = _to_base36(int(time.time() * 1000))
    rnd = "".join(random.choice(_BASE36) for _ in range(5))
    return f"NOTICE-{timestamp}-{rnd}".upper()


def parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _notice_sort_key(notice: NoticeRecord) -> Tuple[int, int]:
    # новые сверху, непарсящиеся даты — в самом конце
    parsed = parse_date(notice.date)
    if parsed is None:
        return (1, 0)
    return (0, -parsed.toordinal())


def _error_message(r: requests.Response, default: str) -> str:
    try:
        body = r.json()
    except ValueError:
        return f"{default} ({r.status_code})"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"{default} ({r.status_code})"


def _json_result(r: requests.Response, path: str) -> Dict[str, Any]:
    try:
        return r.json()
    except ValueError as e:
        raise RemoteWriteError(
            f"'{path}': malformed response from GitHub", status=r.status_code, path=path
        ) from e


# ——————————————————————————————————————————————
#                  КЛИЕНТ
# ——————————————————————————————————————————————
class ContentStoreClient:
    """Отображает сущности админки на файлы репозитория GitHub.

    Местоположение фиксируется при создании клиента. При смене настроек
    создаётся новый клиент, поэтому операция в процессе всегда работает с
    одним и тем же репозиторием и токеном.

    strict=False повторяет исходное поведение: любая ошибка при проверке
    существования или листинге считается отсутствием файла. strict=True
    поднимает RemoteReadError вместо этого.
    """

    def __init__(
        self,
        location: Optional[RepositoryLocation],
        session: Optional[requests.Session] = None,
        strict: bool = False,
        read_timeout: float = READ_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
    ):
        self.location = location
        self.session = session or requests.Session()
        self.strict = strict
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    # —— запросы ——
    def _require_location(self) -> RepositoryLocation:
        if self.location is None or not self.location.complete:
            raise NotConfigured("GitHub token, owner and repository must be configured")
        return self.location

    def _headers(self, write: bool = False) -> Dict[str, str]:
        loc = self._require_location()
        hdr = {
            "Authorization": f"Bearer {loc.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if write:
            hdr["Content-Type"] = "application/json"
        return hdr

    def _url(self, path: str) -> str:
        loc = self._require_location()
        rel = quote(path.strip("/"), safe="/")
        return f"{loc.api_url.rstrip('/')}/repos/{loc.owner}/{loc.repo}/contents/{rel}"

    def _get(self, path: str) -> requests.Response:
        loc = self._require_location()
        params = {"ref": loc.branch} if loc.branch else None
        log.debug(f"GET {path}")
        return self.session.get(
            self._url(path), headers=self._headers(), params=params, timeout=self.read_timeout
        )

    def _send(self, method: str, path: str, payload: Dict[str, Any]) -> requests.Response:
        loc = self._require_location()
        if loc.branch:
            payload["branch"] = loc.branch
        log.debug(f"{method.upper()} {path}")
        send = getattr(self.session, method)
        return send(
            self._url(path), headers=self._headers(write=True), json=payload, timeout=self.write_timeout
        )

    # —— проверка существования ——
    def lookup(self, path: str) -> Lookup:
        try:
            r = self._get(path)
        except requests.RequestException as e:
            return Lookup(LookupState.ERROR, reason=str(e))
        if r.status_code == 404:
            return Lookup(LookupState.NOT_FOUND, status=404)
        if not r.ok:
            return Lookup(
                LookupState.ERROR,
                reason=_error_message(r, "Failed to check file existence"),
                status=r.status_code,
            )
        try:
            body = r.json()
        except ValueError:
            return Lookup(LookupState.ERROR, reason="Malformed response", status=r.status_code)
        if not isinstance(body, dict):
            # 200 со списком — это папка, а не файл
            return Lookup(LookupState.ERROR, reason=f"'{path}' is a directory", status=r.status_code)
        return Lookup(LookupState.FOUND, sha=body.get("sha"), status=r.status_code)

    def exists(self, path: str) -> ExistenceCheck:
        res = self.lookup(path)
        if res.state is LookupState.ERROR:
            if self.strict:
                raise RemoteReadError(f"Could not check '{path}': {res.reason}", status=res.status)
            log.warning(f"Проверка {path} не удалась ({res.reason}), считаем что файла нет")
            return ExistenceCheck(False)
        return ExistenceCheck(res.found, res.sha)

    # —— запись ——
    def _put(self, path: str, content_b64: str, message: str) -> Dict[str, Any]:
        cur = self.exists(path)
        payload: Dict[str, Any] = {"message": message, "content": content_b64}
        if cur.exists and cur.sha:
            payload["sha"] = cur.sha
        try:
            r = self._send("put", path, payload)
        except requests.RequestException as e:
            raise RemoteWriteError(f"PUT {path} failed: {e}", path=path) from e
        if not r.ok:
            msg = _error_message(r, "Failed to create file")
            log.error(f"[ERR] PUT {path}: {r.status_code} {msg}")
            raise RemoteWriteError(msg, status=r.status_code, path=path)
        log.info(f"[{'UPD' if cur.exists else 'NEW'}] {path}")
        return _json_result(r, path)

    def write_text(self, path: str, content: str, message: str) -> Dict[str, Any]:
        b64 = base64.b64encode(content.encode("utf-8")).decode("ascii")
        return self._put(path, b64, message)

    def write_binary(self, path: str, data: bytes, message: str) -> Dict[str, Any]:
        if isinstance(data, str):
            raise TypeError("write_binary expects bytes, use write_text for text")
        b64 = base64.b64encode(bytes(data)).decode("ascii")
        return self._put(path, b64, message)

    def write_batch(
        self, items: Iterable[Tuple[str, bytes, str]], stop_on_error: bool = True
    ) -> BatchResult:
        """Последовательно пишет (path, data, message).

        Ошибки отдельных файлов попадают в результат, NotConfigured пробрасывается.
        """
        self._require_location()
        result = BatchResult()
        aborted = False
        for path, data, message in items:
            if aborted:
                result.items.append(ItemResult(path, "skipped"))
                continue
            try:
                self.write_binary(path, data, message)
                result.items.append(ItemResult(path, "ok"))
            except NotConfigured:
                raise
            except StoreError as e:
                result.items.append(ItemResult(path, "failed", str(e)))
                if stop_on_error:
                    aborted = True
        return result

    # —— чтение ——
    def list_directory(self, path: str) -> List[DirectoryEntry]:
        try:
            r = self._get(path)
        except requests.RequestException as e:
            return self._degraded_listing(path, str(e), None)
        if r.status_code == 404:
            return []
        if not r.ok:
            return self._degraded_listing(
                path, _error_message(r, "Failed to fetch folder contents"), r.status_code
            )
        try:
            data = r.json()
        except ValueError:
            return self._degraded_listing(path, "Malformed response", r.status_code)
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            kind = item.get("type")
            if kind not in ("file", "dir"):
                continue
            entries.append(
                DirectoryEntry(
                    name=item.get("name", ""),
                    path=item.get("path", ""),
                    kind=kind,
                    sha=item.get("sha") if kind == "file" else None,
                )
            )
        return entries

    def _degraded_listing(self, path: str, reason: str, status: Optional[int]) -> List[DirectoryEntry]:
        if self.strict:
            raise RemoteReadError(f"Could not list '{path}': {reason}", status=status)
        log.warning(f"Листинг {path} не удался ({reason}), возвращаем пустой список")
        return []

    def _fetch_blob(self, path: str) -> Dict[str, Any]:
        try:
            r = self._get(path)
        except requests.RequestException as e:
            raise RemoteReadError(f"Failed to fetch '{path}': {e}") from e
        if not r.ok:
            raise RemoteReadError(
                _error_message(r, f"Failed to fetch file content for '{path}'"), status=r.status_code
            )
        try:
            body = r.json()
        except ValueError as e:
            raise DecodeError(f"'{path}': response is not JSON") from e
        if not isinstance(body, dict) or body.get("type", "file") != "file":
            raise DecodeError(f"'{path}' is not a file")
        encoding = body.get("encoding", "base64")
        if encoding != "base64":
            raise DecodeError(f"'{path}': unsupported content encoding '{encoding}'")
        return body

    def read_bytes(self, path: str) -> bytes:
        body = self._fetch_blob(path)
        raw = "".join(str(body.get("content", "")).split())
        try:
            return base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"'{path}': content is not valid base64") from e

    def read_text(self, path: str) -> str:
        data = self.read_bytes(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"'{path}': content is not valid UTF-8") from e

    # —— удаление ——
    def delete_file(self, path: str, sha: str, message: str) -> Dict[str, Any]:
        try:
            r = self._send("delete", path, {"message": message, "sha": sha})
        except requests.RequestException as e:
            raise RemoteWriteError(f"DELETE {path} failed: {e}", path=path) from e
        if not r.ok:
            msg = _error_message(r, "Failed to delete file")
            log.error(f"[ERR] DELETE {path}: {r.status_code} {msg}")
            raise RemoteWriteError(msg, status=r.status_code, path=path)
        log.info(f"[DEL] {path}")
        return _json_result(r, path)

    def delete_tree(self, path: str) -> List[str]:
        deleted: List[str] = []
        try:
            self._delete_tree(path, deleted)
        except NotConfigured:
            raise
        except StoreError as e:
            if deleted:
                raise PartialTreeDeleteError(path, deleted, e) from e
            raise
        log.info(f"🗑️  {path}: удалено файлов {len(deleted)}")
        return deleted

    def _delete_tree(self, path: str, deleted: List[str]) -> None:
        for entry in self.list_directory(path):
            if entry.is_file and entry.sha:
                self.delete_file(entry.path, entry.sha, f"Delete {entry.name}")
                deleted.append(entry.path)
            elif entry.is_dir:
                self._delete_tree(entry.path, deleted)

    # —— объявления ——
    def list_notices(self) -> List[NoticeRecord]:
        notices: List[NoticeRecord] = []
        for entry in self.list_directory(NOTICES_DIR):
            if not entry.is_file or not entry.name.endswith(NOTICE_SUFFIX):
                continue
            try:
                text = self.read_text(entry.path)
            except NotConfigured:
                raise
            except StoreError as e:
                log.warning(f"Пропускаю объявление {entry.name}: {e}")
                continue
            lines = text.split("\n")
            if len(lines) < 4:
                log.warning(f"Пропускаю объявление {entry.name}: строк {len(lines)}, нужно минимум 4")
                continue
            notices.append(
                NoticeRecord(
                    name=entry.name,
                    path=entry.path,
                    sha=entry.sha or "",
                    title=lines[0],
                    date=lines[1],
                    category=lines[2],
                    pinned=lines[3] == "true",
                    content="\n".join(lines[4:]),
                )
            )
        return sorted(notices, key=_notice_sort_key)
