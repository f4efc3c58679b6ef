# BSD 2-Clause License
#
# Copyright (c) 2021-2024, Hewlett Packard Enterprise
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

import enum
import os
import pathlib
import posixpath
import shutil
import tarfile
import typing as t
from urllib.error import URLError
from urllib.parse import urlparse
from urllib.request import urlretrieve

import git
from tqdm import tqdm

from ....error import FetchError, UnsupportedFormatError

PathLike = t.Union[str, "os.PathLike[str]"]

FILE_URL_PREFIX = "file://"


class URLType(enum.Enum):
    FILE = "file"
    HTTP = "http"
    GIT = "git"


class ArchiveFormat(enum.Enum):
    BZ2 = "bz2"
    GZ = "gz"
    TAR = "tar"


_TAR_FLAGS = {
    ArchiveFormat.BZ2: "-xjf",
    ArchiveFormat.GZ: "-xzf",
    ArchiveFormat.TAR: "-xf",
}

_EXTENSIONS = {
    ".bz2": ArchiveFormat.BZ2,
    ".tbz2": ArchiveFormat.BZ2,
    ".gz": ArchiveFormat.GZ,
    ".tgz": ArchiveFormat.GZ,
    ".tar": ArchiveFormat.TAR,
}


class _TqdmUpTo(tqdm):  # type: ignore[type-arg]
    """Provides `update_to(n)` which uses `tqdm.update(delta_n)`

    From tqdm doumentation for progress bar when downloading
    """

    def update_to(
        self, num_blocks: int = 1, bsize: int = 1, tsize: t.Optional[int] = None
    ) -> t.Optional[bool]:
        """Update progress in tqdm-like way

        :param num_blocks: number of blocks transferred so far, defaults to 1
        :param bsize: size of each block (in tqdm units), defaults to 1
        :param tsize: total size (in tqdm units), defaults to None
        :return: Update
        """

        if tsize is not None:
            self.total = tsize
        return self.update(num_blocks * bsize - self.n)  # also sets self.n = b * bsize


def detect_url_type(url: str) -> URLType:
    """Classify the URL of a package

    :param url: location of the package
    :raises FetchError: if the URL is not a file, http(s) or git URL
    """
    if url.startswith(FILE_URL_PREFIX):
        return URLType.FILE
    if urlparse(url).path.endswith(".git"):
        return URLType.GIT
    if url.startswith("http"):
        return URLType.HTTP
    raise FetchError(f"Impossible to detect type from URL {url}")


def url_basename(url: str) -> str:
    return posixpath.basename(urlparse(url).path.rstrip("/"))


def checkout_name(url: str) -> str:
    name = url_basename(url)
    return name[: -len(".git")] if name.endswith(".git") else name


def detect_archive_format(path: PathLike) -> ArchiveFormat:
    """Detect the format of an archive from its extension

    :param path: path or name of the archive
    :raises UnsupportedFormatError: if the extension is not known
    """
    suffix = pathlib.PurePath(path).suffix.lower()
    if suffix not in _EXTENSIONS:
        raise UnsupportedFormatError(f"Unsupported archive format: {path}")
    return _EXTENSIONS[suffix]


def tar_flag(archive_format: ArchiveFormat) -> str:
    """tar arguments extracting an archive of the given format"""
    if archive_format not in _TAR_FLAGS:
        raise UnsupportedFormatError(f"Unsupported archive format: {archive_format}")
    return _TAR_FLAGS[archive_format]


def extract(archive: PathLike, destination: pathlib.Path) -> None:
    """Decompress a local archive

    :param archive: Path to the archive on a local system
    :param destination: Where to unpack the archive
    """
    try:
        with tarfile.open(archive) as tar:
            tar.extractall(path=destination)
    except (tarfile.TarError, OSError) as e:
        raise FetchError(f"Failed to unpack {archive}: {e}") from e


def copy_from_file_url(url: str, destination: pathlib.Path) -> pathlib.Path:
    """Copy a file:// package into a directory

    :param url: file URL of the package
    :param destination: directory receiving the copy
    :returns: path to the copy
    """
    source = pathlib.Path(url[len(FILE_URL_PREFIX) :])
    target = destination / source.name
    try:
        shutil.copyfile(source, target)
    except OSError as e:
        raise FetchError(f"Cannot copy file {source} to {target}: {e}") from e
    return target


def download(url: str, destination: pathlib.Path) -> pathlib.Path:
    """Download a package into a directory

    :param url: URL to a particular package
    :param destination: directory receiving the package
    :returns: path to the downloaded file
    """
    name = url_basename(url)
    target = destination / name
    try:
        with _TqdmUpTo(
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            miniters=1,
            desc=name,
        ) as _t:  # all optional kwargs
            urlretrieve(url, filename=str(target), reporthook=_t.update_to)
            _t.total = _t.n
    except (URLError, OSError) as e:
        raise FetchError(f"Impossible to download {url}: {e}") from e
    return target


def git_checkout(url: str, destination: pathlib.Path) -> pathlib.Path:
    """Clone a repository, or pull it if a checkout already exists

    :param url: Path to the remote (URL or local) repository
    :param destination: directory holding the checkout
    :returns: path to the checkout
    """
    checkout = destination / checkout_name(url)
    try:
        if checkout.is_dir():
            git.Repo(checkout).remotes.origin.pull()
        else:
            git.Repo.clone_from(url, checkout)
    except (git.GitCommandError, git.InvalidGitRepositoryError) as e:
        raise FetchError(f"Impossible to get Git repository {url}: {e}") from e
    return checkout
