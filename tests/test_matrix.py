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

import pytest

from mpicompat.error import ConfigurationError
from mpicompat.matrix import detect_implementation, load_matrix, parse_matrix
from mpicompat.mpi import MPIImplementation

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a

MPICH_332 = "http://www.mpich.org/static/downloads/3.3.2/mpich-3.3.2.tar.gz"
MPICH_321 = "http://www.mpich.org/static/downloads/3.2.1/mpich-3.2.1.tar.gz"


@pytest.mark.parametrize(
    "line, implementation, version",
    [
        pytest.param(
            "https://download.open-mpi.org/release/open-mpi/v4.0/"
            "openmpi-4.0.2.tar.bz2",
            MPIImplementation.OPENMPI,
            "4.0.2",
            id="openmpi",
        ),
        pytest.param(MPICH_332, MPIImplementation.MPICH, "3.3.2", id="mpich"),
        pytest.param(
            "file:///data/l_mpi_2019.6.166.tgz",
            MPIImplementation.INTEL,
            "2019.6.166",
            id="intel",
        ),
    ],
)
def test_detect_implementation(line, implementation, version):
    assert detect_implementation(line) == (implementation, version)


def test_detect_implementation_unknown():
    with pytest.raises(ConfigurationError):
        detect_implementation("https://example.com/mvapich2-2.3.tar.gz")


def test_parse(fileutils):
    lines = [
        "# Open MPI versions",
        "",
        fileutils.openmpi_url("3.1.4"),
        "   ",
        f"  {fileutils.openmpi_url('4.0.2')}  ",
    ]
    matrix = parse_matrix(lines, "openmpi.txt")

    assert matrix.implementation == MPIImplementation.OPENMPI
    assert list(matrix.versions) == ["3.1.4", "4.0.2"]
    assert matrix.versions["4.0.2"] == fileutils.openmpi_url("4.0.2")
    assert matrix.source == "openmpi.txt"


def test_parse_rejects_mixed_implementations(fileutils):
    with pytest.raises(ConfigurationError) as ex:
        parse_matrix([fileutils.openmpi_url("4.0.2"), MPICH_332], "mixed.txt")
    assert "mixed.txt" in str(ex.value)


def test_parse_empty():
    with pytest.raises(ConfigurationError):
        parse_matrix(["# nothing to test", ""])


def test_experiments_order():
    matrix = parse_matrix([MPICH_321, MPICH_332])
    cells = [cell.key for cell in matrix.experiments()]
    assert cells == [
        ("3.2.1", "3.2.1"),
        ("3.2.1", "3.3.2"),
        ("3.3.2", "3.2.1"),
        ("3.3.2", "3.3.2"),
    ]


def test_experiment_config():
    cell = parse_matrix([MPICH_321, MPICH_332]).experiments()[1]
    assert cell.host.url == MPICH_321
    assert cell.container.url == MPICH_332
    assert cell.name == "mpich-3.2.1-mpich-3.3.2"
    assert str(cell) == "host mpich-3.2.1 / container mpich-3.3.2"


def test_load_matrix(test_dir, fileutils):
    path = fileutils.make_test_file(
        "mpich.txt", test_dir, f"{MPICH_321}\n# {MPICH_332}\n"
    )
    matrix = load_matrix(path)
    assert list(matrix.versions) == ["3.2.1"]
    assert len(matrix.experiments()) == 1


def test_load_missing_matrix(test_dir):
    with pytest.raises(ConfigurationError):
        load_matrix(f"{test_dir}/missing.txt")


def test_shipped_samples(etc_dir):
    for implementation in (MPIImplementation.OPENMPI, MPIImplementation.MPICH):
        matrix = load_matrix(etc_dir / f"{implementation.value}-matrix.conf")
        assert matrix.implementation == implementation
        assert matrix.versions
