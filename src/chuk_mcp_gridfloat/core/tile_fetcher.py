"""
Tile fetcher: make sure a tile's header and data files are on disk.

Downloads the upstream archive (primary naming convention, then the
fallback), unpacks the header and data members under their local names,
and deduplicates concurrent requests for the same tile code.

All functions are synchronous; callers wrap them in asyncio.to_thread().
"""

import logging
import os
import shutil
import threading
import zipfile
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import (
    DATA_EXTENSION,
    DOWNLOAD_CHUNK_BYTES,
    DOWNLOAD_TIMEOUT_S,
    HEADER_EXTENSION,
    RETRY_ATTEMPTS,
    RETRY_WAIT_MAX,
    RETRY_WAIT_MIN,
    ErrorMessages,
)
from . import tile_naming
from .errors import TileFetchError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Retry decorator for network I/O
# ---------------------------------------------------------------------------

_retry_network = retry(
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)


@dataclass
class TilePaths:
    """Local files for one tile."""

    code: int
    header_path: str
    data_path: str
    downloaded: bool = False
    source_url: str | None = None

    @property
    def base_name(self) -> str:
        return tile_naming.base_filename(self.code)


def tile_paths(code: int, directory: str) -> TilePaths:
    return TilePaths(
        code=code,
        header_path=tile_naming.local_header_filename(code, directory),
        data_path=tile_naming.local_data_filename(code, directory),
    )


def _is_present(path: str) -> bool:
    return os.path.isfile(path) and os.path.getsize(path) > 0


def tile_is_present(code: int, directory: str) -> bool:
    """True if both files for a tile exist and are non-empty."""
    paths = tile_paths(code, directory)
    return _is_present(paths.header_path) and _is_present(paths.data_path)


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


@_retry_network
def _download(url: str, target: str) -> bool:
    """
    Stream ``url`` into ``target``.

    Args:
        url: Remote archive URL
        target: Local path; written via a ``.part`` file and renamed on success

    Returns:
        True if a non-empty body was saved, False if the server had nothing
    """
    logger.debug(f"GET {url} -> {target}")
    partial = target + ".part"

    response = requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_S)
    try:
        if response.status_code != 200:
            logger.debug(f"{url} returned HTTP {response.status_code}")
            return False

        with open(partial, "wb") as f:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                if chunk:
                    f.write(chunk)
    finally:
        response.close()

    if os.path.getsize(partial) == 0:
        os.remove(partial)
        logger.debug(f"{url} returned an empty body")
        return False

    os.replace(partial, target)
    return True


def _download_archive(code: int, directory: str) -> tuple[str, str]:
    """Fetch the archive for a tile, trying each remote naming convention.

    Returns:
        (local archive path, URL it came from, or "" when already on disk)
    """
    archive = tile_naming.local_archive_filename(code, directory)

    if _is_present(archive):
        logger.debug(f"Using existing archive {archive}")
        return archive, ""

    if os.path.exists(archive):
        os.remove(archive)

    tried = []
    for name in tile_naming.remote_tile_filenames(code):
        url = tile_naming.remote_tile_url(name)
        tried.append(url)
        try:
            if _download(url, archive):
                logger.info(f"Downloaded {name}")
                return archive, url
        except requests.RequestException as e:
            logger.warning(ErrorMessages.NETWORK_ERROR.format(url, RETRY_ATTEMPTS, e))
            if os.path.exists(archive + ".part"):
                os.remove(archive + ".part")

    message = ErrorMessages.DOWNLOAD_FAILED.format(
        tile_naming.base_filename(code), ", ".join(tried)
    )
    logger.error(message)
    raise TileFetchError(message)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _extract_member(archive: str, candidates: list[str], target: str) -> str:
    """
    Copy the first matching archive member to ``target``.

    Members are matched on their basename, case-insensitively, so archives
    that nest files in a folder still match. The member is written to a
    ``.part`` file and renamed into place once complete.

    Returns:
        The member name that was extracted
    """
    partial = target + ".part"

    with zipfile.ZipFile(archive) as zf:
        by_name = {os.path.basename(m.filename).lower(): m for m in zf.infolist() if not m.is_dir()}

        for candidate in candidates:
            member = by_name.get(candidate.lower())
            if member is None:
                continue
            try:
                with zf.open(member) as src, open(partial, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            except BaseException:
                if os.path.exists(partial):
                    os.remove(partial)
                raise
            os.replace(partial, target)
            if member.filename != os.path.basename(target):
                logger.debug(f"Extracted {member.filename} as {os.path.basename(target)}")
            return member.filename

    message = ErrorMessages.MEMBER_MISSING.format(archive, *candidates)
    logger.error(message)
    raise TileFetchError(message)


def ensure_tile_present(code: int, local_directory: str) -> TilePaths:
    """
    Guarantee that the header and data files for a tile exist and are non-empty.

    No network activity happens when both files are already present.

    Args:
        code: Tile code
        local_directory: Directory that holds tiles (flat layout)

    Returns:
        TilePaths for the tile

    Raises:
        TileFetchError: No naming convention could be downloaded, or the
            archive lacks the header or data member
    """
    paths = tile_paths(code, local_directory)

    if _is_present(paths.header_path) and _is_present(paths.data_path):
        return paths

    os.makedirs(local_directory, exist_ok=True)

    archive, url = _download_archive(code, local_directory)

    try:
        _extract_member(
            archive,
            tile_naming.archive_member_names(code, HEADER_EXTENSION),
            paths.header_path,
        )
        _extract_member(
            archive,
            tile_naming.archive_member_names(code, DATA_EXTENSION),
            paths.data_path,
        )
    except zipfile.BadZipFile as e:
        os.remove(archive)
        message = f"Archive {archive} is not a valid zip file: {e}"
        logger.error(message)
        raise TileFetchError(message) from e

    paths.downloaded = bool(url)
    paths.source_url = url or None
    return paths


# ---------------------------------------------------------------------------
# Single-flight fetcher
# ---------------------------------------------------------------------------


class TileFetcher:
    """
    Fetches tiles into one directory, one download per tile code at a time.

    Concurrent callers asking for the same code wait on that code's lock;
    when the first finishes, the rest find the files present and return
    without touching the network. Different codes proceed in parallel.
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, code: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(code)
            if lock is None:
                lock = self._locks[code] = threading.Lock()
            return lock

    def paths(self, code: int) -> TilePaths:
        return tile_paths(code, self.directory)

    def is_present(self, code: int) -> bool:
        return tile_is_present(code, self.directory)

    def ensure(self, code: int) -> TilePaths:
        with self._lock_for(code):
            return ensure_tile_present(code, self.directory)

    def fetch_all(self, codes: Iterable[int], max_workers: int | None = None) -> list[TilePaths]:
        """Fetch many tiles in parallel; the first failure propagates."""
        ordered = sorted(set(codes))
        if not ordered:
            return []

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(self.ensure, code) for code in ordered]
            return [f.result() for f in futures]


def fetch_tiles(
    codes: Iterable[int],
    directory: str,
    max_workers: int | None = None,
) -> list[TilePaths]:
    """Fetch many tiles in parallel into ``directory``."""
    return TileFetcher(directory).fetch_all(codes, max_workers=max_workers)
