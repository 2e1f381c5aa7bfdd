import os
import threading
from typing import Any, Callable, Optional

DOCUMENT_EXTENSIONS = [".csv", ".xlsx", ".xls", ".pdf", ".pages"]
IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp"]
ACCEPTED_EXTENSIONS = DOCUMENT_EXTENSIONS + IMAGE_EXTENSIONS
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "25"))


def validate_file(filename: str, size: int, max_mb: int = MAX_FILE_SIZE_MB) -> Optional[str]:
    """Returns an error message, or None when the file can be uploaded."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ACCEPTED_EXTENSIONS:
        return f"Unsupported file type {ext or '(none)'}. Accepted: {', '.join(ACCEPTED_EXTENSIONS)}"
    if size <= 0:
        return "File is empty"
    if size > max_mb * 1024 * 1024:
        return f"File is {format_bytes(size)}; the limit is {max_mb} MB"
    return None


def format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    for unit in ("KB", "MB", "GB"):
        n /= 1024
        if n < 1024 or unit == "GB":
            return f"{n:.1f} {unit}"
    return f"{n:.1f} GB"


class Debouncer:
    """Trailing-edge debounce: only the last call within `wait` seconds runs."""

    def __init__(self, fn: Callable[..., Any], wait: float = 0.3):
        self.fn = fn
        self.wait = wait
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def __call__(self, *args, **kwargs) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.wait, self.fn, args=args, kwargs=kwargs)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
