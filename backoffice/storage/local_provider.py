"""
Local filesystem storage provider.
Attachments live under ``<base_dir>/<owner>/<stored_name>``.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List

import structlog

from ..config import settings
from ..errors import NotFound
from .provider import StorageProvider, check_owner, check_stored_name


logger = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir or settings.files_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _owner_dir(self, owner: str) -> Path:
        return self.base_dir / check_owner(owner)

    def _get_path(self, owner: str, stored_name: str) -> Path:
        return self._owner_dir(owner) / check_stored_name(stored_name)

    def put(self, owner: str, filename: str, data: bytes | BinaryIO) -> str:
        folder = self._owner_dir(owner)
        folder.mkdir(parents=True, exist_ok=True)
        payload = data.read() if hasattr(data, "read") else data
        fd, tmp_name = tempfile.mkstemp(dir=str(folder), prefix=".upload-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            # link() never replaces an existing file; a lost race tries the next name
            for stored_name in self._candidate_names(owner, filename):
                try:
                    os.link(tmp_name, folder / stored_name)
                except FileExistsError:
                    continue
                break
        finally:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
        logger.info("attachment_stored", owner=owner, stored_name=stored_name, size=len(payload))
        return stored_name

    def get(self, owner: str, stored_name: str) -> bytes:
        path = self._get_path(owner, stored_name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound("File", stored_name)

    def exists(self, owner: str, stored_name: str) -> bool:
        return self._get_path(owner, stored_name).is_file()

    def delete(self, owner: str, stored_name: str) -> None:
        path = self._get_path(owner, stored_name)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFound("File", stored_name)

    def delete_owner(self, owner: str) -> None:
        folder = self._owner_dir(owner)
        if folder.exists():
            shutil.rmtree(folder)
            logger.info("attachments_removed", owner=owner)

    def list(self, owner: str) -> List[str]:
        folder = self._owner_dir(owner)
        if not folder.is_dir():
            return []
        return sorted(p.name for p in folder.iterdir() if p.is_file() and not p.name.startswith("."))
