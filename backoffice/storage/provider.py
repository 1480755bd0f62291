import os
import re
import time
import uuid
from typing import BinaryIO, Iterator, List

from slugify import slugify

from ..errors import ValidationError


_OWNER_PART_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def sanitize_filename(filename: str) -> str:
    """Reduce an uploaded filename to a safe ``slug.ext`` form."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    stem, ext = os.path.splitext(base)
    safe_stem = slugify(stem) or "file"
    safe_ext = slugify(ext.lstrip("."), separator="")
    return f"{safe_stem}.{safe_ext}" if safe_ext else safe_stem


def timestamped(name: str) -> str:
    return f"{int(time.time() * 1000)}-{name}"


def check_owner(owner: str) -> str:
    parts = owner.strip("/").split("/")
    if not parts or any(p in ("", ".", "..") or not _OWNER_PART_RE.match(p) for p in parts):
        raise ValidationError(f"Invalid attachment owner: {owner!r}")
    return "/".join(parts)


def check_stored_name(stored_name: str) -> str:
    if not stored_name or stored_name in (".", "..") or "/" in stored_name or "\\" in stored_name:
        raise ValidationError(f"Invalid file name: {stored_name!r}")
    return stored_name


class StorageProvider:
    """Opaque byte store for attachments, partitioned by owner (``notes/<id>``)."""

    def put(self, owner: str, filename: str, data: bytes | BinaryIO) -> str:
        raise NotImplementedError

    def get(self, owner: str, stored_name: str) -> bytes:
        raise NotImplementedError

    def exists(self, owner: str, stored_name: str) -> bool:
        raise NotImplementedError

    def delete(self, owner: str, stored_name: str) -> None:
        raise NotImplementedError

    def delete_owner(self, owner: str) -> None:
        raise NotImplementedError

    def list(self, owner: str) -> List[str]:
        raise NotImplementedError

    def _candidate_names(self, owner: str, filename: str) -> Iterator[str]:
        """Yield free-looking names: the sanitized name, then a timestamped one, then random prefixes.

        A name can still be taken between the ``exists`` check and the write,
        so providers must write with create-only semantics and move on to the
        next candidate when the target already exists.
        """
        name = sanitize_filename(filename)
        candidates = [name, timestamped(name)]
        while True:
            candidate = candidates.pop(0) if candidates else f"{uuid.uuid4().hex[:8]}-{timestamped(name)}"
            if not self.exists(owner, candidate):
                yield candidate
