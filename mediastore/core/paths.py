"""
Object key derivation.

Pure helpers that turn directories and filenames into bucket keys.
Keys never start with a slash; slashes inside a key are left alone.
"""

import posixpath
import re
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from .errors import UniqueNameExhaustedError

# Upper bound on exists() probes while searching for a free filename
MAX_UNIQUE_ATTEMPTS = 50

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w@.]", re.ASCII)


def normalize_key(path: str) -> str:
    """
    Strip leading slashes so the result is a bucket key.

    Every leading slash is removed, not just one: `//a` becomes `a`, not
    `/a`. This keeps normalize_key(normalize_key(p)) == normalize_key(p).
    """
    return path.lstrip("/")


def strip_trailing_slash(path: str) -> str:
    """Remove a single trailing slash."""
    return path[:-1] if path.endswith("/") else path


def join_key(directory: str, filename: str) -> str:
    """Join directory and filename with exactly one slash at the seam."""
    if not directory:
        return normalize_key(filename)
    return normalize_key(f"{directory.rstrip('/')}/{filename.lstrip('/')}")


def sanitize_filename(name: str) -> str:
    """Replace every character outside [A-Za-z0-9_@.] with a dash."""
    return _UNSAFE_FILENAME_CHARS.sub("-", name)


def target_dir(base: str = "", now: Optional[datetime] = None) -> str:
    """
    Date-bucketed directory for new uploads: <base>/<YYYY>/<MM>.

    Used when the host does not pass a directory of its own.
    """
    now = now or datetime.now(timezone.utc)
    return join_key(base, f"{now:%Y}/{now:%m}")


async def unique_filename(
    requested_name: str,
    directory: str,
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: int = MAX_UNIQUE_ATTEMPTS,
) -> str:
    """
    Find a key under `directory` that no stored object is using.

    Tries `name.ext`, then `name-1.ext`, `name-2.ext` and so on. Each
    candidate costs one `exists` probe; after `max_attempts` probes we
    give up with UniqueNameExhaustedError rather than overwrite.
    """
    basename = posixpath.basename(requested_name)
    stem, ext = posixpath.splitext(basename)
    stem = sanitize_filename(stem) or "file"

    for attempt in range(max_attempts):
        candidate = f"{stem}-{attempt}{ext}" if attempt else f"{stem}{ext}"
        key = join_key(directory, candidate)
        if not await exists(key):
            return key

    raise UniqueNameExhaustedError(
        f"No free filename for {basename!r} after {max_attempts} attempts",
        key=join_key(directory, basename),
    )


def url_to_path(url: str) -> str:
    """Path component of an absolute URL."""
    return urlparse(url).path
