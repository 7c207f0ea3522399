"""
Фейковый GitHub Contents API для тестов.

Хранит файлы по путям, папки выводит из префиксов, считает sha как git
(blob <len>\\0<data>) и, как настоящий GitHub, отказывает в обновлении
существующего файла без актуального sha.
"""
import base64
import hashlib
import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import pytest

from github_store import ContentStoreClient, RepositoryLocation


def blob_sha(data: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


def encode_content(data: bytes) -> str:
    # GitHub отдаёт base64 с переносами строк
    b64 = base64.b64encode(data).decode("ascii")
    return "\n".join(b64[i:i + 60] for i in range(0, len(b64), 60)) + "\n"


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None):
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body) if body is not None else ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeContentsAPI:
    """Подставляется в ContentStoreClient вместо requests.Session."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.raw_content: Dict[str, str] = {}
        self.failures: Dict[Tuple[str, str], int] = {}
        self.garbled: set = set()
        self.requests: List[Dict[str, Any]] = []

    # —— вспомогательное ——
    def seed(self, path: str, data) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.files[path] = data
        return blob_sha(data)

    def fail(self, method: str, path: str, status: int = 500) -> None:
        self.failures[(method.upper(), path)] = status

    def garble(self, method: str, path: str) -> None:
        # запрос выполняется, но тело ответа не JSON
        self.garbled.add((method.upper(), path))

    def calls(self, method: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == method.upper()]

    def paths(self, method: str) -> List[str]:
        return [r["path"] for r in self.calls(method)]

    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    @staticmethod
    def _path(url: str) -> str:
        return unquote(url.split("/contents/", 1)[1]).strip("/")

    def _record(self, method, url, headers, params=None, body=None) -> Tuple[str, Optional[FakeResponse]]:
        path = self._path(url)
        self.requests.append(
            {"method": method, "path": path, "headers": dict(headers or {}), "params": params, "body": body}
        )
        status = self.failures.get((method, path))
        if status is not None:
            return path, FakeResponse(status, {"message": f"Injected failure {status}"})
        return path, None

    def _listing(self, path: str) -> List[Dict[str, Any]]:
        prefix = f"{path}/" if path else ""
        children: Dict[str, Dict[str, Any]] = {}
        for p in sorted(self.files):
            if not p.startswith(prefix):
                continue
            head, sep, _ = p[len(prefix):].partition("/")
            if sep:
                children.setdefault(head, {
                    "name": head,
                    "path": prefix + head,
                    "type": "dir",
                    "sha": blob_sha(head.encode()),
                })
            else:
                children[head] = {
                    "name": head,
                    "path": p,
                    "type": "file",
                    "sha": blob_sha(self.files[p]),
                }
        return [children[k] for k in sorted(children)]

    # —— requests.Session API ——
    def get(self, url, headers=None, params=None, timeout=None):
        path, failed = self._record("GET", url, headers, params=params)
        if failed:
            return failed
        if path in self.files:
            data = self.files[path]
            return FakeResponse(200, {
                "type": "file",
                "name": path.rsplit("/", 1)[-1],
                "path": path,
                "sha": blob_sha(data),
                "encoding": "base64",
                "content": self.raw_content.get(path, encode_content(data)),
            })
        listing = self._listing(path)
        if not listing:
            return FakeResponse(404, {"message": "Not Found"})
        return FakeResponse(200, listing)

    def put(self, url, headers=None, json=None, timeout=None):
        path, failed = self._record("PUT", url, headers, body=json)
        if failed:
            return failed
        if path in self.files:
            current = blob_sha(self.files[path])
            if "sha" not in json:
                return FakeResponse(422, {"message": "Invalid request.\n\n\"sha\" wasn't supplied."})
            if json["sha"] != current:
                return FakeResponse(409, {"message": f"{path} does not match {json['sha']}"})
        created = path not in self.files
        data = base64.b64decode(json["content"])
        self.files[path] = data
        if ("PUT", path) in self.garbled:
            return FakeResponse(201 if created else 200)
        return FakeResponse(201 if created else 200, {
            "content": {"name": path.rsplit("/", 1)[-1], "path": path, "sha": blob_sha(data)},
            "commit": {"message": json["message"]},
        })

    def delete(self, url, headers=None, json=None, timeout=None):
        path, failed = self._record("DELETE", url, headers, body=json)
        if failed:
            return failed
        if path not in self.files:
            return FakeResponse(404, {"message": "Not Found"})
        if json.get("sha") != blob_sha(self.files[path]):
            return FakeResponse(409, {"message": f"{path} does not match {json.get('sha')}"})
        del self.files[path]
        if ("DELETE", path) in self.garbled:
            return FakeResponse(200)
        return FakeResponse(200, {"content": None, "commit": {"message": json["message"]}})


@pytest.fixture
def store() -> FakeContentsAPI:
    return FakeContentsAPI()


@pytest.fixture
def location() -> RepositoryLocation:
    return RepositoryLocation(owner="GHSS-School", repo="GHSS_School", token="ghp_test")


@pytest.fixture
def client(store, location) -> ContentStoreClient:
    return ContentStoreClient(location, session=store)


@pytest.fixture
def strict_client(store, location) -> ContentStoreClient:
    return ContentStoreClient(location, session=store, strict=True)
