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

import typing as t
from dataclasses import dataclass, field
from pathlib import Path

from .._core._install.builder import BuildEnvironment
from ..container import ContainerDescriptor
from ..error import LaunchError
from ..mpi import ImplementationDescriptor, MPIVariant


@dataclass
class LaunchCommand:
    """A concrete command launching a job"""

    exe: str
    args: t.List[str] = field(default_factory=list)
    env: t.Dict[str, str] = field(default_factory=dict)

    @property
    def cmd_list(self) -> t.List[str]:
        return [self.exe, *self.args]

    def __str__(self) -> str:
        return " ".join(self.cmd_list)


@dataclass
class JobDescriptor:
    """One execution of an application across the host and a container

    The launch buffers hold what the launch command printed, the output
    buffers what the job manager collected once the job completed.
    """

    name: str
    host_impl: ImplementationDescriptor
    host_env: BuildEnvironment
    variant: MPIVariant
    container: ContainerDescriptor
    app_exe: str
    ranks: int = 2
    nodes: int = 2
    batch_script: t.Optional[Path] = None
    launch_stdout: str = ""
    launch_stderr: str = ""
    stdout: str = ""
    stderr: str = ""
    returncode: t.Optional[int] = None
    timed_out: bool = False

    def __post_init__(self) -> None:
        if self.ranks < 1 or self.nodes < 1:
            raise LaunchError(
                f"Invalid job {self.name}: {self.ranks} ranks on {self.nodes} nodes"
            )

    @property
    def mpirun(self) -> Path:
        return self.variant.mpirun(self.host_env)
