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

"""Parsing of the matrix configuration files.

A matrix configuration lists, one per line, the download URLs of the
versions of a single MPI implementation. Every pair of versions makes
one cell of the compatibility matrix.
"""

import itertools
import re
import typing as t
from dataclasses import dataclass, field
from pathlib import Path

from .error import ConfigurationError
from .log import get_logger
from .mpi import ImplementationDescriptor, MPIImplementation

logger = get_logger(__name__)

_COMMENT = re.compile(r"^\s*#")
_VERSION_PATTERNS = (
    (MPIImplementation.OPENMPI, re.compile(r"openmpi-(?P<version>[^/]+?)\.tar")),
    (MPIImplementation.MPICH, re.compile(r"mpich-(?P<version>[^/]+?)\.tar")),
    (MPIImplementation.INTEL, re.compile(r"l_mpi_(?P<version>[^/]+?)\.(tgz|tar)")),
)


@dataclass(frozen=True)
class ExperimentConfig:
    """One cell of the compatibility matrix"""

    host: ImplementationDescriptor
    container: ImplementationDescriptor

    @property
    def key(self) -> t.Tuple[str, str]:
        return (self.host.version, self.container.version)

    @property
    def name(self) -> str:
        return f"{self.host.label}-{self.container.label}"

    def __str__(self) -> str:
        return f"host {self.host.label} / container {self.container.label}"


@dataclass
class MatrixConfig:
    """Versions of one MPI implementation, in declaration order"""

    implementation: MPIImplementation
    versions: t.Dict[str, str] = field(default_factory=dict)
    source: str = ""

    def descriptors(self) -> t.List[ImplementationDescriptor]:
        return [
            ImplementationDescriptor(self.implementation, version, url)
            for version, url in self.versions.items()
        ]

    def experiments(self) -> t.List[ExperimentConfig]:
        """Every (host, container) pair, host versions in the outer loop"""
        descriptors = self.descriptors()
        return [
            ExperimentConfig(host, container)
            for host, container in itertools.product(descriptors, descriptors)
        ]


def detect_implementation(line: str) -> t.Tuple[MPIImplementation, str]:
    """Identify the implementation and version a download URL refers to

    :param line: URL of a source tarball, e.g. .../openmpi-4.0.2.tar.bz2
    :raises ConfigurationError: if neither can be detected
    :returns: the implementation and the version
    """
    for implementation, pattern in _VERSION_PATTERNS:
        match = pattern.search(line)
        if match:
            return implementation, match.group("version")
    raise ConfigurationError(f"Cannot detect the MPI implementation from {line}")


def parse_matrix(lines: t.Iterable[str], source: str = "") -> MatrixConfig:
    """Build a matrix configuration from the lines of a file

    :param lines: lines of the configuration, comments start with #
    :param source: name of the configuration, used in error messages
    :raises ConfigurationError: on an unknown URL, or if the lines refer
                                to more than one implementation
    """
    matrix: t.Optional[MatrixConfig] = None
    for raw_line in lines:
        line = raw_line.strip()
        if not line or _COMMENT.match(line):
            continue
        implementation, version = detect_implementation(line)
        if matrix is None:
            matrix = MatrixConfig(implementation, source=source)
        elif matrix.implementation != implementation:
            raise ConfigurationError(
                f"Detected two implementations of MPI in {source or 'configuration'}"
                f" ({matrix.implementation.value} and {implementation.value})"
            )
        if version in matrix.versions:
            logger.warning(f"Version {version} declared twice in {source}")
        matrix.versions[version] = line

    if matrix is None:
        raise ConfigurationError(
            f"No MPI version defined in {source or 'configuration'}"
        )
    return matrix


def load_matrix(path: t.Union[str, Path]) -> MatrixConfig:
    """Read a matrix configuration file

    :raises ConfigurationError: if the file cannot be read or is invalid
    """
    config_path = Path(path)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot open {config_path}: {e}") from e
    return parse_matrix(content.splitlines(), str(config_path))
