"""
NFTMint - JSON File Storage

This module provides JSON persistence with thread and process safe file
locking, atomic replace-on-write and rolling backups.
"""

import fcntl
import hashlib
import json
import logging
import os
import shutil
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Union


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base storage exception."""
    pass


class LockTimeoutError(StorageError):
    """Lock acquisition timeout exception."""
    pass


class IntegrityError(StorageError):
    """Stored data could not be decoded."""
    pass


class FileLock:
    """Advisory lock on a sidecar .lock file, reentrant within one instance."""

    def __init__(self, file_path: Union[str, Path], timeout: float = 30.0):
        self.file_path = Path(file_path)
        self.lock_file_path = self.file_path.with_suffix(self.file_path.suffix + '.lock')
        self.timeout = timeout
        self.lock_fd = None
        self._depth = 0
        self._thread_lock = RLock()

    def acquire(self) -> None:
        """Acquire the lock, waiting up to timeout seconds."""
        if not self._thread_lock.acquire(timeout=self.timeout):
            raise LockTimeoutError(f"Failed to acquire lock within {self.timeout} seconds")

        if self._depth > 0:
            self._depth += 1
            return

        deadline = time.monotonic() + self.timeout
        fd = os.open(str(self.lock_file_path), os.O_CREAT | os.O_RDWR)
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    self._thread_lock.release()
                    raise LockTimeoutError(f"Failed to acquire lock within {self.timeout} seconds")
                time.sleep(0.05)

        self.lock_fd = fd
        self._depth = 1

    def release(self) -> None:
        """Release one level of the lock."""
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0 and self.lock_fd is not None:
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
                os.close(self.lock_fd)
            except OSError as e:
                logger.warning(f"Failed to release lock {self.lock_file_path}: {e}")
            finally:
                self.lock_fd = None
        self._thread_lock.release()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class JSONStorage:
    """Thread-safe JSON document storage with atomic writes and backups."""

    def __init__(
        self,
        file_path: Union[str, Path],
        backup_count: int = 5,
        lock_timeout: float = 30.0
    ):
        self.file_path = Path(file_path)
        self.backup_count = backup_count
        self._lock = FileLock(self.file_path, timeout=lock_timeout)

        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _calculate_checksum(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def _write_file(self, data: Dict[str, Any]) -> bytes:
        """Write data to a temp file and move it over the target."""
        payload = json.dumps(data, indent=2, default=str).encode('utf-8')
        temp_file = self.file_path.with_suffix(self.file_path.suffix + '.tmp')

        try:
            with open(temp_file, 'wb') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_file, self.file_path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise StorageError(f"Failed to write {self.file_path}: {e}")

        return payload

    def _read_unlocked(self) -> Dict[str, Any]:
        if not self.file_path.exists():
            return {}
        try:
            raw = self.file_path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {self.file_path}: {e}")
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise IntegrityError(f"Invalid JSON data in {self.file_path}: {e}")
        if not isinstance(data, dict):
            raise IntegrityError(f"Expected a JSON object in {self.file_path}")
        return data

    def _backup_dir(self) -> Path:
        return self.file_path.parent / 'backups'

    def _create_backup(self) -> None:
        """Create a timestamped copy of the current file."""
        if not self.file_path.exists() or self.backup_count <= 0:
            return

        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S_%f')
        backup_path = self._backup_dir() / f"{self.file_path.stem}_{timestamp}{self.file_path.suffix}"
        backup_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.file_path, backup_path)

        for old in self.list_backups()[self.backup_count:]:
            try:
                old.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove old backup {old}: {e}")

    @contextmanager
    def locked(self):
        """Hold the storage lock across several operations."""
        with self._lock:
            yield self

    def read(self) -> Dict[str, Any]:
        """Read and deserialize the stored document ({} when absent)."""
        with self._lock:
            return self._read_unlocked()

    def write(self, data: Dict[str, Any], create_backup: bool = True) -> str:
        """Write the document atomically and return its checksum."""
        with self._lock:
            if create_backup:
                self._create_backup()
            return self._calculate_checksum(self._write_file(data))

    def update(self, updater_func: Callable[[Dict[str, Any]], Dict[str, Any]],
               create_backup: bool = True) -> str:
        """Read, transform and write back the document under one lock."""
        with self._lock:
            updated = updater_func(self._read_unlocked())
            return self.write(updated, create_backup=create_backup)

    def exists(self) -> bool:
        return self.file_path.exists()

    def size(self) -> int:
        """Get storage file size in bytes."""
        if not self.file_path.exists():
            return 0
        return self.file_path.stat().st_size

    def list_backups(self) -> List[Path]:
        """List backup files, newest first."""
        backup_dir = self._backup_dir()
        if not backup_dir.exists():
            return []
        pattern = f"{self.file_path.stem}_*{self.file_path.suffix}"
        return sorted(backup_dir.glob(pattern), key=lambda p: p.name, reverse=True)

    def get_storage_info(self, expected_checksum: Optional[str] = None) -> Dict[str, Any]:
        """Get storage information."""
        info = {
            'file_path': str(self.file_path),
            'size_bytes': self.size(),
            'exists': self.exists(),
            'backup_count': len(self.list_backups())
        }
        if expected_checksum and self.exists():
            info['checksum_ok'] = self._calculate_checksum(self.file_path.read_bytes()) == expected_checksum
        return info
