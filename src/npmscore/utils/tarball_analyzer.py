"""Download, extract and inspect npm package tarballs.

Tarball contents are untrusted. Every archive member is checked against the
extraction root before anything is written, and the per-package working
directory is removed when analysis finishes, whether it succeeded or not.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path, PurePosixPath, PureWindowsPath
from urllib.parse import urlsplit

import httpx

from npmscore.core.errors import (
    DownloadError,
    DownloadTimeoutError,
    ExtractionError,
    FileReadError,
    InvalidPathError,
    MissingUrlError,
)
from npmscore.models.schemas import TarballAnalysis, TarballFile
from npmscore.utils.entropy import calculate_entropy

logger = logging.getLogger(__name__)

DEFAULT_TEMP_DIR = Path(tempfile.gettempdir()) / "npm-security-score"

# Script files whose content is sampled for entropy
SCRIPT_EXTENSIONS = {".js", ".mjs", ".cjs"}

# Bytes read per file for entropy sampling
ENTROPY_SAMPLE_BYTES = 1024 * 1024

ARCHIVE_NAME = "package.tgz"


def safe_directory_name(package_name: str) -> str:
    """Turn a package name into a single safe path component.

    "@scope/pkg" becomes "@scope-pkg". Leading dots are stripped so the
    result can never be "." or "..".
    """
    name = re.sub(r"[^A-Za-z0-9@._-]", "-", package_name or "")
    name = name.lstrip(".")
    return name or "package"


def resolve_inside(root: str | Path, relative_path: str | Path) -> Path:
    """Resolve a relative path under root, refusing anything that escapes it.

    `..` components and absolute paths are rejected outright rather than
    normalized away. The resolved path is checked again so a symlink cannot
    point outside the root.

    Raises:
        InvalidPathError: If the path is absolute, contains `..`, or resolves
            outside root.
    """
    raw = str(relative_path)
    rel = PurePosixPath(raw.replace("\\", "/"))
    if not raw or rel.is_absolute() or PureWindowsPath(raw).drive or ".." in rel.parts:
        raise InvalidPathError(raw)

    base = Path(root).resolve()
    target = (base / rel).resolve()
    if target == base or not target.is_relative_to(base):
        raise InvalidPathError(raw)
    return target


class TarballAnalyzer:
    """Fetches a tarball into a scoped temporary directory and inspects it.

    Working directories are named after the package, so concurrent analyses
    of different packages never collide. Concurrent analyses of the same
    package name are not supported.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        temp_dir: str | Path | None = None,
        timeout: float = 60.0,
        max_largest_files: int = 10,
        max_tarball_size: int = 50_000_000,
    ) -> None:
        """Initialize the analyzer.

        Args:
            client: Optional HTTP client for downloads.
            temp_dir: Parent directory for per-package working directories.
            timeout: Seconds allowed for a whole download.
            max_largest_files: How many of the largest files to report.
            max_tarball_size: Downloads larger than this many bytes are aborted.
        """
        self._client = client
        self.temp_dir = Path(temp_dir) if temp_dir else DEFAULT_TEMP_DIR
        self.timeout = timeout
        self.max_largest_files = max_largest_files
        self.max_tarball_size = max_tarball_size

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    def work_dir_for(self, package_name: str) -> Path:
        return self.temp_dir / safe_directory_name(package_name)

    async def analyze_tarball(
        self,
        url: str | None,
        package_name: str,
        measure_entropy: bool = False,
    ) -> TarballAnalysis:
        """Download, extract and inspect a package tarball.

        Args:
            url: http(s) URL of the tarball.
            package_name: Package name, used to scope the working directory.
            measure_entropy: Sample the entropy of the largest script files.

        Returns:
            TarballAnalysis describing the package contents.

        Raises:
            MissingUrlError: If url is empty.
            DownloadError: On non-2xx responses, transport errors, oversized
                downloads or unsupported URL schemes.
            DownloadTimeoutError: If the download exceeds the timeout.
            ExtractionError: If the archive is corrupt.
            InvalidPathError: If an archive member would land outside the
                extraction directory.
        """
        if not url:
            raise MissingUrlError()

        work_dir = self.work_dir_for(package_name)
        self._cleanup(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        try:
            archive = work_dir / ARCHIVE_NAME
            tarball_size = await self.download(url, archive)
            logger.info(f"Downloaded {package_name} tarball ({tarball_size} bytes)")

            return await asyncio.to_thread(
                self._extract_and_inspect,
                archive,
                work_dir / "extract",
                tarball_size,
                measure_entropy,
            )
        finally:
            self._cleanup(work_dir)

    async def download(self, url: str, destination: Path) -> int:
        """Stream a tarball to disk, returning the number of bytes written."""
        scheme = urlsplit(url).scheme.lower()
        if scheme not in ("http", "https"):
            raise DownloadError(f"Unsupported URL scheme: {scheme or '(none)'}", url=url)

        try:
            # wait_for cancels the transfer on expiry, which closes the stream
            return await asyncio.wait_for(self._stream_to_file(url, destination), timeout=self.timeout)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise DownloadTimeoutError(url, self.timeout) from e

    async def _stream_to_file(self, url: str, destination: Path) -> int:
        client = await self._get_client()
        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"Failed to download tarball: HTTP {response.status_code}",
                        url=url,
                        status_code=response.status_code,
                    )

                written = 0
                with destination.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        written += len(chunk)
                        if written > self.max_tarball_size:
                            raise DownloadError(
                                f"Tarball exceeds maximum size of {self.max_tarball_size} bytes",
                                url=url,
                            )
                        fh.write(chunk)
                return written
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download tarball: {e}", url=url) from e
        finally:
            if self._client is None:
                await client.aclose()

    def _extract_and_inspect(
        self,
        archive: Path,
        extract_dir: Path,
        tarball_size: int,
        measure_entropy: bool,
    ) -> TarballAnalysis:
        self.extract(archive, extract_dir)
        return self.inspect(extract_dir, tarball_size=tarball_size, measure_entropy=measure_entropy)

    def extract(self, archive: Path, destination: Path) -> None:
        """Extract an archive after validating every member path.

        Links and device entries are skipped. A member that would be written
        outside the destination aborts the whole extraction.
        """
        destination.mkdir(parents=True, exist_ok=True)
        root = destination.resolve()

        try:
            with tarfile.open(archive, "r:*") as tar:
                members = []
                for member in tar.getmembers():
                    self._check_member(root, member.name)
                    if member.isfile() or member.isdir():
                        members.append(member)
                    else:
                        logger.debug(f"Skipping non-regular archive member {member.name}")
                tar.extractall(root, members=members, filter="data")
        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise ExtractionError(f"Failed to extract tarball: {e}") from e
        except OSError as e:
            raise ExtractionError(f"Failed to extract tarball: {e}") from e

    @staticmethod
    def _check_member(root: Path, name: str) -> None:
        if not name or PurePosixPath(name).is_absolute() or PureWindowsPath(name).drive:
            raise InvalidPathError(name)
        target = (root / name).resolve()
        if not target.is_relative_to(root):
            raise InvalidPathError(name)

    def inspect(
        self,
        extract_dir: Path,
        tarball_size: int = 0,
        measure_entropy: bool = False,
    ) -> TarballAnalysis:
        """Summarize an extracted package."""
        root = self._package_root(extract_dir)

        files: list[tuple[str, int]] = []
        for path in root.rglob("*"):
            if path.is_file() and not path.is_symlink():
                files.append((path.relative_to(root).as_posix(), path.stat().st_size))

        # Largest first; ties broken by path so output is stable
        files.sort(key=lambda item: (-item[1], item[0]))

        largest = []
        for rel_path, size in files[: self.max_largest_files]:
            entropy = None
            if measure_entropy and PurePosixPath(rel_path).suffix.lower() in SCRIPT_EXTENSIONS:
                entropy = calculate_entropy(self._read_sample(root, rel_path))
            largest.append(TarballFile(path=rel_path, size=size, entropy=entropy))

        return TarballAnalysis(
            has_manifest=(root / "package.json").is_file(),
            largest_files=largest,
            total_files=len(files),
            tarball_size=tarball_size,
        )

    @staticmethod
    def _package_root(extract_dir: Path) -> Path:
        """npm tarballs wrap everything in a single top-level directory (usually package/)."""
        entries = list(extract_dir.iterdir())
        if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
            return entries[0]
        return extract_dir

    def _read_sample(self, root: Path, relative_path: str) -> bytes:
        target = resolve_inside(root, relative_path)
        try:
            with target.open("rb") as fh:
                return fh.read(ENTROPY_SAMPLE_BYTES)
        except OSError as e:
            raise FileReadError(relative_path, str(e)) from e

    def get_file_content(self, extract_root: str | Path, relative_path: str) -> str:
        """Read a file from an extracted package.

        Raises:
            InvalidPathError: If the path would escape extract_root.
            FileReadError: If the file cannot be read.
        """
        target = resolve_inside(extract_root, relative_path)
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise FileReadError(relative_path, str(e)) from e

    def _cleanup(self, work_dir: Path) -> None:
        if not work_dir.exists():
            return
        try:
            shutil.rmtree(work_dir)
        except OSError as e:
            logger.warning(f"Could not remove working directory {work_dir}: {e}")
