"""
shopemx/adapters/file_storage.py — Файловое хранилище (локальный каталог).

Файлы кладутся в ``storage_root`` по ключу вида ``contracts/{user_id}/x.pdf``;
публичная ссылка = ``storage_public_url + "/" + key``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shopemx.config import get_settings
from shopemx.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


def _root() -> Path:
    return Path(get_settings().storage_root)


def public_url(key: str) -> str:
    """Публичная ссылка на объект по ключу."""
    prefix = get_settings().storage_public_url.rstrip("/")
    return f"{prefix}/{key}"


def key_from_url(url: str) -> str:
    """Ключ объекта по его публичной ссылке (обратное к ``public_url``)."""
    prefix = get_settings().storage_public_url.rstrip("/") + "/"
    if url.startswith(prefix):
        return url[len(prefix):]
    return url.lstrip("/")


def save(key: str, data: bytes) -> str:
    """Сохраняет объект и возвращает его публичную ссылку."""
    path = _root() / key
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        logger.error("Storage write failed for %s: %s", key, exc)
        raise ExternalServiceError("storage", "Failed to store file") from exc
    logger.info("Stored %s (%d bytes)", key, len(data))
    return public_url(key)


def delete(key: str) -> bool:
    """Удаляет объект. Возвращает False, если его не было."""
    path = _root() / key
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.error("Storage delete failed for %s: %s", key, exc)
        raise ExternalServiceError("storage", "Failed to delete file") from exc
    return True


def find_legacy_document(user_id: str) -> str | None:
    """
    Ищет фото паспорта, загруженное до появления ``passport_document_url``:
    ``uploads/{user_id}/*passport*``. Возвращает публичную ссылку или None.
    """
    directory = _root() / "uploads" / user_id
    if not directory.is_dir():
        return None
    for path in sorted(directory.iterdir()):
        if path.is_file() and "passport" in path.name:
            return public_url(f"uploads/{user_id}/{path.name}")
    return None
