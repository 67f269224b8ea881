"""Background self-update: stage newer releases and swap them in on the next start."""

from __future__ import annotations

import functools
import gzip
import hashlib
import io
import json
import os
import platform
import posixpath
import re
import shutil
import stat
import subprocess
import sys
import tarfile
import urllib.error
import urllib.request
import zipfile
from collections.abc import Callable
from typing import BinaryIO

BINARY = "roadmapctl"
HTTP_TIMEOUT = 60.0
NO_UPDATE_ENV = "ROADMAPCTL_NO_UPDATE"
RELEASE_API_ENV = "ROADMAPCTL_RELEASE_API"
DOWNLOAD_BASE_ENV = "ROADMAPCTL_DOWNLOAD_BASE"
DEV_VERSION = "dev"

_NUMBER = re.compile(r"[0-9]+")

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "arm": "arm",
}


class ChecksumMismatchError(ValueError):
    """A downloaded archive does not match its published SHA256 checksum."""


def _is_windows() -> bool:
    return sys.platform == "win32"


def _goos() -> str:
    if _is_windows():
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    for prefix in ("freebsd", "openbsd", "netbsd"):
        if sys.platform.startswith(prefix):
            return prefix
    return sys.platform


def _goarch() -> str:
    machine = platform.machine().lower()
    return _GOARCH.get(machine, machine)


def parse_semver(version: str) -> tuple[int, int, int] | None:
    """Parse "vMAJOR.MINOR.PATCH", ignoring pre-release and build metadata."""
    if version.startswith("v"):
        version = version[1:]
    cut = min((i for i in (version.find("-"), version.find("+")) if i != -1), default=-1)
    if cut != -1:
        version = version[:cut]
    parts = version.split(".", 2)
    if len(parts) != 3 or not all(_NUMBER.fullmatch(part) for part in parts):
        return None
    major, minor, patch = (int(part) for part in parts)
    return major, minor, patch


def is_newer(candidate: str, current: str) -> bool:
    """Report whether candidate is a strictly newer semantic version than current."""
    left = parse_semver(candidate)
    right = parse_semver(current)
    if left is None or right is None:
        return False
    return left > right


def user_cache_dir() -> str:
    """Return the per-user cache directory; raise OSError when it cannot be found."""
    if _is_windows():
        local = os.environ.get("LocalAppData", "")
        if not local:
            raise OSError("%LocalAppData% is not defined")
        return local
    if sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return os.path.join(home, "Library", "Caches")
    cache = os.environ.get("XDG_CACHE_HOME", "")
    if cache:
        if not os.path.isabs(cache):
            raise OSError("path in $XDG_CACHE_HOME is relative")
        return cache
    home = os.environ.get("HOME", "")
    if not home:
        raise OSError("neither $XDG_CACHE_HOME nor $HOME are defined")
    return home + "/.cache"


def _staged_base(cache_dir: str | None) -> str:
    return os.path.join(cache_dir if cache_dir is not None else user_cache_dir(), BINARY, "staged")


def staging_dir(tag: str, cache_dir: str | None = None) -> str:
    """Create and return the staging directory for a release tag."""
    directory = os.path.join(_staged_base(cache_dir), tag)
    os.makedirs(directory, mode=0o755, exist_ok=True)
    return directory


def binary_name() -> str:
    """File name of the executable on this platform."""
    return BINARY + ".exe" if _is_windows() else BINARY


def archive_name(tag: str) -> str:
    """Name of the release archive for this platform."""
    version = tag[1:] if tag.startswith("v") else tag
    extension = "zip" if _is_windows() else "tar.gz"
    return f"{BINARY}_{version}_{_goos()}_{_goarch()}.{extension}"


def download_bytes(url: str) -> bytes:
    """Fetch a URL; raise OSError on network failure or a non-200 status."""
    try:
        with urllib.request.urlopen(url, timeout=HTTP_TIMEOUT) as response:
            if response.status != 200:
                raise OSError(f"download {url}: status {response.status}")
            return response.read()
    except urllib.error.HTTPError as exc:
        raise OSError(f"download {url}: status {exc.code}") from exc


def fetch_latest_tag(api_url: str) -> str:
    """Return the tag name of the latest release.

    Raises OSError on network failure and ValueError on a malformed response.
    """
    body = download_bytes(api_url)
    release = json.loads(body)
    tag = release.get("tag_name") if isinstance(release, dict) else None
    if not isinstance(tag, str) or not tag:
        raise ValueError("empty tag_name in release response")
    return tag


def fetch_checksum(url: str, archive: str) -> str:
    """Return the checksum listed for archive; raise ValueError if it is absent."""
    body = download_bytes(url).decode("utf-8", errors="replace")
    for line in body.split("\n"):
        fields = line.split()
        if len(fields) == 2 and fields[1] == archive:
            return fields[0]
    raise ValueError(f"checksum not found for {archive}")


def write_atomic(dest: str, reader: BinaryIO, mode: int = 0o755) -> None:
    """Write reader's content to dest through a temporary file."""
    tmp = dest + ".tmp"
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        with os.fdopen(fd, "wb") as handle:
            shutil.copyfileobj(reader, handle)
        os.replace(tmp, dest)
    except BaseException:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


def _member_base(name: str) -> str:
    return posixpath.basename(name.replace("\\", "/").rstrip("/"))


def extract_from_tar_gz(data: bytes, dest: str) -> None:
    """Write the executable found in a .tar.gz archive to dest."""
    target = binary_name()
    try:
        archive = tarfile.open(fileobj=io.BytesIO(data), mode="r:gz")
    except (tarfile.TarError, gzip.BadGzipFile, EOFError) as exc:
        raise ValueError(f"gzip: {exc}") from exc
    with archive:
        try:
            for member in archive:
                if _member_base(member.name) != target:
                    continue
                content = archive.extractfile(member)
                if content is None:
                    continue
                write_atomic(dest, content, 0o755)
                return
        except (tarfile.TarError, EOFError) as exc:
            raise ValueError(f"tar: {exc}") from exc
    raise FileNotFoundError(f"binary {target} not found in archive")


def extract_from_zip(data: bytes, dest: str) -> None:
    """Write the executable found in a zip archive to dest."""
    target = binary_name()
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ValueError(f"zip: {exc}") from exc
    with archive:
        for info in archive.infolist():
            if _member_base(info.filename) != target:
                continue
            with archive.open(info) as content:
                write_atomic(dest, content, 0o755)
            return
    raise FileNotFoundError(f"binary {target} not found in zip")


def stage_release(tag: str, stage_dir: str, staged_bin: str, download_base: str) -> str | None:
    """Download, verify and unpack a release into the staging directory.

    Network failures return None; a checksum mismatch raises ChecksumMismatchError.
    Returns the staged binary path on success.
    """
    archive = archive_name(tag)
    base_url = download_base + tag + "/"
    try:
        body = download_bytes(base_url + archive)
    except OSError:
        return None
    try:
        expected = fetch_checksum(base_url + "checksums.txt", archive)
    except (OSError, ValueError):
        return None
    if hashlib.sha256(body).hexdigest() != expected:
        raise ChecksumMismatchError(f"SHA256 mismatch for {archive}")
    try:
        os.makedirs(stage_dir, mode=0o755, exist_ok=True)
    except OSError:
        return None
    if _is_windows():
        extract_from_zip(body, staged_bin)
    else:
        extract_from_tar_gz(body, staged_bin)
    return staged_bin


def fetch_and_stage(
    current_version: str,
    api_url: str | None = None,
    download_base: str | None = None,
    cache_dir: str | None = None,
) -> str | None:
    """Stage the latest release when it is newer than current_version.

    The release endpoints default to the ROADMAPCTL_RELEASE_API and
    ROADMAPCTL_DOWNLOAD_BASE environment variables; without them nothing is
    checked. Network problems are ignored. Returns the newly staged binary path.
    """
    if current_version == DEV_VERSION or os.environ.get(NO_UPDATE_ENV) == "1":
        return None
    api_url = api_url or os.environ.get(RELEASE_API_ENV, "")
    download_base = download_base or os.environ.get(DOWNLOAD_BASE_ENV, "")
    if not api_url or not download_base:
        return None
    try:
        tag = fetch_latest_tag(api_url)
    except (OSError, ValueError):
        return None
    if not is_newer(tag, current_version):
        return None
    try:
        stage_dir = staging_dir(tag, cache_dir)
    except OSError:
        return None
    staged_bin = os.path.join(stage_dir, binary_name())
    if os.path.exists(staged_bin):
        return None
    return stage_release(tag, stage_dir, staged_bin, download_base)


def _compare_tags(left: tuple[str, str], right: tuple[str, str]) -> int:
    if is_newer(left[0], right[0]):
        return -1
    if is_newer(right[0], left[0]):
        return 1
    return 0


def find_newest(staged_base: str) -> tuple[str, str] | None:
    """Return (tag, binary path) of the newest staged release, or None.

    Raises OSError when staged_base cannot be read.
    """
    with os.scandir(staged_base) as iterator:
        entries = sorted(iterator, key=lambda entry: entry.name)
    candidates = [
        (entry.name, os.path.join(staged_base, entry.name, binary_name()))
        for entry in entries
        if entry.is_dir()
    ]
    candidates = [candidate for candidate in candidates if os.path.exists(candidate[1])]
    if not candidates:
        return None
    candidates.sort(key=functools.cmp_to_key(_compare_tags))
    return candidates[0]


def copy_file(src: str, dst: str) -> None:
    """Copy src to dst, keeping src's permission bits."""
    with open(src, "rb") as source:
        mode = stat.S_IMODE(os.fstat(source.fileno()).st_mode)
        fd = os.open(dst, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as target:
            shutil.copyfileobj(source, target)


def atomic_replace(dest: str, src: str) -> None:
    """Replace dest with src; on Windows the running file is moved aside first."""
    if not _is_windows():
        os.replace(src, dest)
        return
    tmp = dest + ".old"
    os.replace(dest, tmp)
    try:
        copy_file(src, dest)
    except OSError:
        try:
            os.replace(tmp, dest)
        except OSError:
            pass
        raise
    try:
        os.remove(tmp)
    except OSError:
        pass


def platform_exec(path: str) -> None:
    """Restart the current command with the binary at path.

    On Unix the process is replaced; on Windows a child is started and this
    process exits. Raises OSError when the binary cannot be started.
    """
    if not _is_windows():
        os.execve(path, list(sys.argv), dict(os.environ))
    subprocess.Popen([path, *sys.argv[1:]], stdin=sys.stdin, stdout=sys.stdout, stderr=sys.stderr)
    sys.exit(0)


def _current_executable() -> str:
    return os.path.realpath(sys.argv[0])


def apply_staged_if_available(
    current_version: str,
    cache_dir: str | None = None,
    executable: str | None = None,
    exec_fn: Callable[[str], object] | None = None,
) -> bool:
    """Swap in the newest staged binary when it is newer, then restart.

    All failures are ignored. Returns True when the binary was replaced and
    the restart was attempted.
    """
    if current_version == DEV_VERSION:
        return False
    try:
        newest = find_newest(_staged_base(cache_dir))
    except OSError:
        return False
    if newest is None:
        return False
    tag, staged_bin = newest
    if not is_newer(tag, current_version):
        return False
    current_bin = executable if executable is not None else _current_executable()
    try:
        atomic_replace(current_bin, staged_bin)
    except OSError:
        return False
    try:
        (exec_fn or platform_exec)(current_bin)
    except OSError:
        pass
    return True