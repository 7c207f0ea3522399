"""
Настройки подключения к GitHub.

Значения берутся из окружения (.env подгружается через python-dotenv).
Команда /config бота сохраняет токен, владельца и репозиторий в JSON-файл,
и он имеет приоритет над окружением.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from github_store import GITHUB_API, RepositoryLocation

log = logging.getLogger(__name__)

DEFAULT_OWNER = "GHSS-School"
DEFAULT_REPO = "GHSS_School"
DEFAULT_CONFIG_FILE = "github_config.json"

_TRUE = {"1", "true", "yes", "on"}


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def env_flag(name: str, default: bool = False) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in _TRUE


def config_file() -> Path:
    return Path(_env("CONFIG_FILE", DEFAULT_CONFIG_FILE))


def _read_saved(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning(f"Не удалось прочитать {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def load_location(path: Optional[Path] = None) -> Optional[RepositoryLocation]:
    """Текущее местоположение репозитория или None, если токена нет."""
    load_dotenv()
    saved = _read_saved(path or config_file())

    token = str(saved.get("token") or _env("GITHUB_TOKEN")).strip()
    owner = str(saved.get("owner") or _env("GITHUB_OWNER", DEFAULT_OWNER)).strip()
    repo = str(saved.get("repo") or _env("GITHUB_REPO", DEFAULT_REPO)).strip()
    if not token:
        return None
    return RepositoryLocation(
        owner=owner,
        repo=repo,
        token=token,
        branch=_env("GITHUB_BRANCH") or None,
        api_url=_env("GITHUB_API_URL", GITHUB_API) or GITHUB_API,
    )


def save_location(token: str, owner: str, repo: str, path: Optional[Path] = None) -> Path:
    token, owner, repo = token.strip(), owner.strip(), repo.strip()
    if not (token and owner and repo):
        raise ValueError("token, owner and repo are all required")
    target = path or config_file()
    with target.open("w", encoding="utf-8") as f:
        json.dump({"token": token, "owner": owner, "repo": repo}, f)
    try:
        os.chmod(target, 0o600)
    except OSError:
        log.warning(f"Не удалось ограничить права на {target}")
    log.info(f"Настройки GitHub сохранены: {owner}/{repo}")
    return target


def strict_lookups() -> bool:
    return env_flag("STRICT_LOOKUPS")
