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
from dataclasses import dataclass

from .._core._install.builder import SoftwarePackage
from .._core._install.utils import url_basename
from ..error import ConfigurationError


class MPIImplementation(enum.Enum):
    OPENMPI = "openmpi"
    MPICH = "mpich"
    INTEL = "intel"

    @classmethod
    def from_str(cls, value: str) -> "MPIImplementation":
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown MPI implementation {value}, expected one of: {valid}"
            ) from None


@dataclass(frozen=True)
class ImplementationDescriptor:
    """One buildable version of an MPI implementation"""

    id: MPIImplementation
    version: str
    url: str = ""

    @property
    def tarball(self) -> str:
        return url_basename(self.url) if self.url else ""

    @property
    def label(self) -> str:
        return f"{self.id.value}-{self.version}"

    def as_package(self) -> SoftwarePackage:
        return SoftwarePackage(name=self.label, url=self.url)

    def __str__(self) -> str:
        return self.label
