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

"""Containerization of an arbitrary MPI application.

The application is described by a key=value file::

    app_name = lulesh
    app_url = https://github.com/LLNL/LULESH.git
    app_exe = lulesh2.0
    app_compile_cmd = make
    mpi = openmpi
    container_mpi = 4.0.2
    mpi_model = hybrid
    distro = ubuntu:disco
    registry = library://me/default
"""

import datetime
import typing as t
from dataclasses import dataclass
from pathlib import Path

from ._core._install.builder import BuildEnvironment, SoftwarePackage, build_against
from ._core._install.utils.retrieve import (
    URLType,
    copy_from_file_url,
    detect_url_type,
)
from ._core.utils import init_dir
from ._core.utils.kv import load_key_value_config
from .container import (
    ContainerDescriptor,
    MPIModel,
    Singularity,
    backup,
    bind_definition,
    hybrid_definition,
)
from .error import ConfigurationError
from .log import get_logger
from .mpi import ImplementationDescriptor, MPIImplementation
from .workspace import install_host_mpi, mpi_url

if t.TYPE_CHECKING:
    from ._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)

REQUIRED_KEYS = ("app_name", "app_url", "app_exe")


@dataclass
class ContainerizeConfig:
    app_name: str
    app_url: str
    app_exe: str
    app_compile_cmd: str = ""
    mpi: str = ""
    host_mpi: str = ""
    container_mpi: str = ""
    mpi_model: str = MPIModel.HYBRID.value
    distro: str = ""
    registry: str = ""

    @classmethod
    def load(cls, path: t.Union[str, Path]) -> "ContainerizeConfig":
        """Read the description of the application

        :raises ConfigurationError: if a required key is missing or the
                                    MPI settings are inconsistent
        """
        kvs = load_key_value_config(path)
        missing = [key for key in REQUIRED_KEYS if not kvs.get(key)]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} undefined in {path}")
        fields = cls.__dataclass_fields__
        known = {key: value for key, value in kvs.items() if key in fields}
        config = cls(**known)
        if config.mpi and not config.container_mpi:
            raise ConfigurationError(f"container_mpi is required with mpi in {path}")
        model = MPIModel.from_str(config.mpi_model or MPIModel.HYBRID.value)
        if model == MPIModel.BIND and not config.host_mpi:
            raise ConfigurationError(f"The bind model requires host_mpi in {path}")
        return config

    @property
    def model(self) -> MPIModel:
        return MPIModel.from_str(self.mpi_model or MPIModel.HYBRID.value)

    @property
    def bin_path(self) -> str:
        if self.app_exe.startswith("/"):
            return self.app_exe
        return f"/opt/{self.app_exe}"

    @property
    def package(self) -> SoftwarePackage:
        return SoftwarePackage(self.app_name, self.app_url, self.app_compile_cmd)


class Containerizer:
    """Build the image of an application described by a
    ``ContainerizeConfig``"""

    def __init__(self, sysconf: "SystemConfig", config: ContainerizeConfig) -> None:
        self.sysconf = sysconf
        self.config = config
        self.engine = Singularity(sysconf)
        self.distro = config.distro or sysconf.distro

    def _descriptor(
        self, impl: t.Optional[ImplementationDescriptor]
    ) -> ContainerDescriptor:
        root = self.sysconf.persistent or self.sysconf.output_dir
        build_dir = self.sysconf.scratch_dir / f"containerize_{self.config.app_name}"
        container = ContainerDescriptor(
            name=f"{self.config.app_name}.sif",
            image_path=root / f"{self.config.app_name}.sif",
            build_dir=build_dir,
            install_dir=root,
            definition_file=build_dir / f"{self.config.app_name}.def",
            distro=self.distro,
            implementation=impl,
            model=self.config.model,
            app_name=self.config.app_name,
            app_exe=self.config.bin_path,
        )
        if impl is not None:
            container.mpi_mount_dir = f"/opt/{impl.label}"
        return container

    def _implementation(self, version: str) -> ImplementationDescriptor:
        implementation = MPIImplementation.from_str(self.config.mpi)
        if implementation == MPIImplementation.INTEL:
            raise ConfigurationError("Intel MPI applications cannot be containerized")
        url = mpi_url(self.sysconf, implementation.value, version)
        return ImplementationDescriptor(implementation, version, url)

    def install_host_mpi(self, impl: ImplementationDescriptor) -> BuildEnvironment:
        """Install MPI on the host, unless it already is, and write the
        script setting up its environment"""
        root = self.sysconf.persistent or self.sysconf.scratch_dir
        return install_host_mpi(impl, root, self.sysconf)

    def build_app_on_host(self, host_env: BuildEnvironment) -> Path:
        build_dir = self.sysconf.scratch_dir / f"app_build_{self.config.app_name}"
        src_dir = build_against(self.config.package, host_env, build_dir)
        return src_dir / Path(self.config.app_exe).name

    def registry_url(self) -> str:
        registry = self.config.registry or self.sysconf.registry
        if not registry:
            return ""
        if not registry.endswith("/"):
            registry += "/"
        date = datetime.date.today().strftime("%Y%m%d")
        return f"{registry}{self.config.app_name}:{date}"

    def run(self) -> ContainerDescriptor:
        """Generate the definition file and build the image

        :raises ConfigurationError: if the description is inconsistent
        :raises BuildError: if MPI or the application cannot be built
        :raises ContainerError: if the image cannot be built or uploaded
        """
        impl = None
        if self.config.mpi:
            impl = self._implementation(self.config.container_mpi)
        container = self._descriptor(impl)
        logger.info(f"Containerizing {self.config.app_name} in {container.image_path}")
        if container.image_path.is_file():
            logger.info(f"{container.image_path} already exists, stopping")
            return container

        host_env = None
        if self.config.host_mpi:
            host_env = self.install_host_mpi(self._implementation(self.config.host_mpi))

        init_dir(container.build_dir)
        if container.model == MPIModel.BIND and host_env is not None:
            container.bind_host_mpi(host_env.install_dir)
            binary = self.build_app_on_host(host_env)
            container.app_exe = f"/opt/{binary.name}"
            definition = bind_definition(container, binary)
        elif impl is not None:
            if detect_url_type(self.config.app_url) == URLType.FILE:
                copy_from_file_url(self.config.app_url, container.build_dir)
            definition = hybrid_definition(
                container, impl.url, self.config.app_url, self.config.app_compile_cmd
            )
        else:
            raise ConfigurationError(
                "An MPI implementation is required to containerize "
                f"{self.config.app_name}"
            )
        definition.write(container.definition_file)
        if self.sysconf.debug:
            backup(container.definition_file, self.sysconf.output_dir)

        self.engine.build(container)
        if self.sysconf.upload:
            self.engine.upload(container, self.registry_url())
        logger.info(f"Container image path: {container.image_path}")
        return container
