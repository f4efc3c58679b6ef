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

from pathlib import Path

import pytest

from mpicompat._core._install.utils import retrieve
from mpicompat._core._install.utils.retrieve import ArchiveFormat, URLType
from mpicompat.error import FetchError, UnsupportedFormatError

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a


@pytest.mark.parametrize(
    "url, expected",
    [
        pytest.param("file:///tmp/mpitest.c", URLType.FILE, id="file"),
        pytest.param(
            "https://github.com/intel/mpi-benchmarks.git", URLType.GIT, id="git"
        ),
        pytest.param(
            "https://download.open-mpi.org/release/open-mpi/v4.0/"
            "openmpi-4.0.2.tar.bz2",
            URLType.HTTP,
            id="https",
        ),
        pytest.param(
            "http://netpipe.cs.ksu.edu/download/NetPIPE-5.1.4.tar.gz",
            URLType.HTTP,
            id="http",
        ),
    ],
)
def test_detect_url_type(url, expected):
    assert retrieve.detect_url_type(url) == expected


def test_detect_url_type_unknown():
    with pytest.raises(FetchError):
        retrieve.detect_url_type("ftp://example.com/openmpi-4.0.2.tar.bz2")


def test_url_basename():
    url = "https://example.com/release/openmpi-4.0.2.tar.bz2"
    assert retrieve.url_basename(url) == "openmpi-4.0.2.tar.bz2"
    assert retrieve.url_basename("https://example.com/dir/") == "dir"


def test_checkout_name():
    url = "https://github.com/intel/mpi-benchmarks.git"
    assert retrieve.checkout_name(url) == "mpi-benchmarks"


@pytest.mark.parametrize(
    "name, archive_format, flag",
    [
        pytest.param("openmpi-4.0.2.tar.bz2", ArchiveFormat.BZ2, "-xjf", id="bz2"),
        pytest.param("NetPIPE-5.1.4.tar.gz", ArchiveFormat.GZ, "-xzf", id="gz"),
        pytest.param("l_mpi_2019.6.166.tgz", ArchiveFormat.GZ, "-xzf", id="tgz"),
        pytest.param("mpich-3.3.2.tar", ArchiveFormat.TAR, "-xf", id="tar"),
    ],
)
def test_archive_format(name, archive_format, flag):
    assert retrieve.detect_archive_format(name) == archive_format
    assert retrieve.tar_flag(archive_format) == flag


def test_archive_format_unsupported():
    with pytest.raises(UnsupportedFormatError):
        retrieve.detect_archive_format("openmpi-4.0.2.zip")


def test_extract(test_dir, fileutils):
    archive = fileutils.make_tarball(
        Path(test_dir) / "pkg-1.0.tar.gz", {"pkg-1.0/configure": "#!/bin/sh\n"}
    )
    destination = Path(test_dir) / "out"
    retrieve.extract(archive, destination)
    assert (destination / "pkg-1.0" / "configure").is_file()


def test_extract_corrupted_archive(test_dir, fileutils):
    archive = fileutils.make_test_file("broken.tar.gz", test_dir, "not a tarball")
    with pytest.raises(FetchError):
        retrieve.extract(archive, Path(test_dir) / "out")


def test_copy_from_file_url(test_dir, fileutils):
    source = fileutils.make_test_file("mpitest.c", f"{test_dir}/src", "int x;\n")
    destination = Path(test_dir) / "dst"
    destination.mkdir()

    copy = retrieve.copy_from_file_url(f"file://{source}", destination)

    assert copy == destination / "mpitest.c"
    assert copy.read_text(encoding="utf-8") == "int x;\n"


def test_copy_from_missing_file_url(test_dir):
    with pytest.raises(FetchError):
        retrieve.copy_from_file_url(f"file://{test_dir}/missing.c", Path(test_dir))
