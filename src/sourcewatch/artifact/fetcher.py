"""Artifact download, verification and extraction.

``ArchiveFetcher.fetch`` downloads a source-controller artifact over HTTP,
checks it against the digest published in the GitRepository status and
unpacks the tarball into a caller-owned directory.

The download is spooled to an anonymous temporary file outside the
destination, so a payload that fails verification never touches it.
Archive members are all validated before the first one is extracted.
"""

import asyncio
import hashlib
import tarfile
import tempfile
from pathlib import Path
from typing import IO
from urllib.parse import urlsplit, urlunsplit

import httpx

from sourcewatch.config.settings import UNLIMITED_SIZE, FetchSettings, get_settings
from sourcewatch.errors import (
    ArchiveSizeError,
    ArtifactFetchError,
    IntegrityError,
    PathTraversalError,
    TransientTransportError,
)
from sourcewatch.observability._logging import get_logger
from sourcewatch.observability._metrics import (
    artifact_fetch_duration_seconds,
    artifact_fetch_retries_total,
    artifact_fetches_total,
)
from sourcewatch.utils import run_in_thread


log = get_logger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500

SUPPORTED_DIGEST_ALGORITHMS = frozenset({"sha1", "sha256", "sha384", "sha512"})
DEFAULT_DIGEST_ALGORITHM = "sha256"

_CHUNK_SIZE = 64 * 1024


class _RetryableStatusError(Exception):
    """Server answered with a status worth retrying (5xx, 429)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"server returned HTTP {status_code}")
        self.status_code = status_code


def rewrite_hostname(url: str, hostname: str | None) -> str:
    """Replace the host[:port] of ``url`` with ``hostname`` when one is given."""
    if not hostname:
        return url
    parts = urlsplit(url)
    return urlunsplit(parts._replace(netloc=hostname))


def parse_digest(digest: str) -> tuple[str, str]:
    """Split ``<algorithm>:<hex>`` into its parts.

    A bare hex string is taken as sha256, the source-controller default.

    Raises:
        IntegrityError: If the digest is empty, malformed or uses an
            unsupported algorithm.
    """
    if not digest:
        raise IntegrityError("artifact has no digest to verify against")

    algorithm, sep, encoded = digest.partition(":")
    if not sep:
        algorithm, encoded = DEFAULT_DIGEST_ALGORITHM, digest
    algorithm = algorithm.lower()

    if algorithm not in SUPPORTED_DIGEST_ALGORITHMS:
        raise IntegrityError(
            f"unsupported digest algorithm {algorithm!r}",
            details={"digest": digest},
        )
    try:
        int(encoded, 16)
    except ValueError:
        raise IntegrityError(
            f"malformed {algorithm} digest {encoded!r}",
            details={"digest": digest},
        ) from None
    return algorithm, encoded.lower()


def verify_digest(fileobj: IO[bytes], digest: str) -> None:
    """Hash ``fileobj`` from the start and compare it with ``digest``.

    Raises:
        IntegrityError: On any mismatch.
    """
    algorithm, expected = parse_digest(digest)
    hasher = hashlib.new(algorithm)
    fileobj.seek(0)
    for chunk in iter(lambda: fileobj.read(_CHUNK_SIZE), b""):
        hasher.update(chunk)
    fileobj.seek(0)

    actual = hasher.hexdigest()
    if actual != expected:
        raise IntegrityError(
            f"computed digest {algorithm}:{actual} does not match {algorithm}:{expected}",
            details={"expected": f"{algorithm}:{expected}", "actual": f"{algorithm}:{actual}"},
        )


def _within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)


def _select_members(
    members: list[tarfile.TarInfo],
    root: Path,
    max_size: int,
) -> list[tarfile.TarInfo]:
    """Validate every member and return the ones to extract.

    Raises:
        PathTraversalError: A member or link target escapes ``root``.
        ArchiveSizeError: Extracted content would exceed ``max_size``.
    """
    selected: list[tarfile.TarInfo] = []
    total = 0

    for member in members:
        target = (root / member.name).resolve()
        if not _within(target, root):
            raise PathTraversalError(
                f"archive entry {member.name!r} resolves outside the extraction directory",
                details={"entry": member.name},
            )

        if member.issym() or member.islnk():
            base = target.parent if member.issym() else root
            link_target = (base / member.linkname).resolve()
            if not _within(link_target, root):
                raise PathTraversalError(
                    f"archive link {member.name!r} points outside the extraction directory",
                    details={"entry": member.name, "link": member.linkname},
                )
            log.debug("artifact_link_skipped", entry=member.name, link=member.linkname)
            continue

        if not (member.isfile() or member.isdir()):
            log.debug("artifact_special_file_skipped", entry=member.name)
            continue

        total += member.size
        if max_size != UNLIMITED_SIZE and total > max_size:
            raise ArchiveSizeError(
                f"extracted artifact exceeds the {max_size} byte limit",
                details={"limit": max_size, "entry": member.name},
            )
        selected.append(member)

    return selected


def extract_tarball(fileobj: IO[bytes], destination: str | Path, max_size: int) -> int:
    """Extract a (optionally gzipped) tarball into ``destination``.

    Returns:
        Number of members written.

    Raises:
        PathTraversalError: See :func:`_select_members`.
        ArchiveSizeError: See :func:`_select_members`.
        ArtifactFetchError: The archive is corrupt or unreadable.
    """
    root = Path(destination).resolve()
    fileobj.seek(0)
    try:
        with tarfile.open(fileobj=fileobj, mode="r:*") as tar:
            members = _select_members(tar.getmembers(), root, max_size)
            for member in members:
                tar.extract(member, path=root, filter="data")
    except tarfile.TarError as e:
        raise ArtifactFetchError(f"failed to extract artifact: {e}") from e
    return len(members)


def verify_and_extract(
    fileobj: IO[bytes], digest: str, destination: str | Path, max_size: int
) -> int:
    """Check ``fileobj`` against ``digest``, then extract it into ``destination``.

    Blocking; the archive is hashed in full before anything is written.
    """
    verify_digest(fileobj, digest)
    return extract_tarball(fileobj, destination, max_size)


class ArchiveFetcher:
    """Downloads, verifies and extracts source-controller artifacts.

    Transport failures (connection errors, timeouts, 5xx and 429 answers) are
    retried with exponential backoff up to ``retries`` times. Digest, size and
    path-traversal failures are never retried.
    """

    def __init__(
        self,
        config: FetchSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Fetch settings (default from settings)
            transport: Optional httpx transport, e.g. a MockTransport in tests
        """
        self._config = config or get_settings().fetch
        self._transport = transport

    async def fetch(self, url: str, digest: str, destination: str | Path) -> None:
        """Download the artifact at ``url`` and extract it into ``destination``.

        The caller owns ``destination``: it must exist before the call and is
        not removed here.

        Raises:
            TransientTransportError: Retry budget exhausted.
            IntegrityError: Digest mismatch or unusable digest.
            PathTraversalError: An entry escapes ``destination``.
            ArchiveSizeError: Download or extraction size limit exceeded.
            ArtifactFetchError: Any other non-retryable failure.
        """
        url = rewrite_hostname(url, self._config.hostname_override)
        log.info("artifact_fetch_started", url=url, digest=digest)

        try:
            with artifact_fetch_duration_seconds.time(), tempfile.TemporaryFile() as archive:
                size = await self._download(url, archive)
                count = await run_in_thread(
                    verify_and_extract,
                    archive,
                    digest,
                    destination,
                    self._config.max_untar_size,
                )
        except ArtifactFetchError as e:
            artifact_fetches_total.labels(result=e.code).inc()
            log.warning("artifact_fetch_failed", url=url, error=e.message, code=e.code)
            raise

        artifact_fetches_total.labels(result="success").inc()
        log.info("artifact_fetched", url=url, size=size, entries=count)

    async def _download(self, url: str, archive: IO[bytes]) -> int:
        """Download ``url`` into ``archive`` with bounded retries."""
        retries = self._config.retries
        last_error: Exception | None = None

        async with httpx.AsyncClient(
            timeout=self._config.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            for attempt in range(retries + 1):
                try:
                    return await self._download_once(client, url, archive)
                except (httpx.TransportError, _RetryableStatusError) as e:
                    last_error = e
                    log.warning(
                        "artifact_download_error",
                        url=url,
                        error=str(e) or type(e).__name__,
                        attempt=attempt + 1,
                    )

                if attempt < retries:
                    wait_time = min(self._config.backoff_min * 2**attempt, self._config.backoff_max)
                    artifact_fetch_retries_total.inc()
                    log.debug("retrying_download", wait_seconds=wait_time)
                    await asyncio.sleep(wait_time)

        raise TransientTransportError(
            f"failed to download artifact after {retries + 1} attempts: {last_error}",
            details={"url": url, "attempts": retries + 1},
        ) from last_error

    async def _download_once(
        self,
        client: httpx.AsyncClient,
        url: str,
        archive: IO[bytes],
    ) -> int:
        archive.seek(0)
        archive.truncate()
        max_size = self._config.max_download_size

        async with client.stream("GET", url) as response:
            status = response.status_code
            if status == HTTP_TOO_MANY_REQUESTS or status >= HTTP_SERVER_ERROR:
                raise _RetryableStatusError(status)
            if response.is_error:
                raise ArtifactFetchError(
                    f"failed to download artifact from {url}: HTTP {status}",
                    details={"url": url, "status": status},
                )

            content_length = response.headers.get("Content-Length")
            if (
                max_size != UNLIMITED_SIZE
                and content_length is not None
                and content_length.isdigit()
                and int(content_length) > max_size
            ):
                raise ArchiveSizeError(
                    f"artifact is {content_length} bytes, over the {max_size} byte limit",
                    details={"url": url, "limit": max_size},
                )

            received = 0
            async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                received += len(chunk)
                if max_size != UNLIMITED_SIZE and received > max_size:
                    raise ArchiveSizeError(
                        f"artifact exceeds the {max_size} byte download limit",
                        details={"url": url, "limit": max_size},
                    )
                archive.write(chunk)

        archive.flush()
        return received
