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
import typing as t
from dataclasses import dataclass, field
from pathlib import Path

from ..error import ConfigurationError, ContainerError
from ..mpi import ImplementationDescriptor, MPIImplementation

if t.TYPE_CHECKING:
    from .._core.config.sysconfig import SystemConfig
    from ..apps import AppInfo

CONTAINER_INSTALL_DIR_PREFIX = "mpi_container_"
CONTAINER_BUILD_DIR_PREFIX = "container_build_"
REQUIRED_LABELS = ("MPI_Implementation", "MPI_Version", "Model")


class MPIModel(enum.Enum):
    """How MPI gets into the container.

    HYBRID: MPI is built and installed inside the image.
    BIND: the MPI installation of the host is mounted at run time.
    """

    HYBRID = "hybrid"
    BIND = "bind"

    @classmethod
    def from_str(cls, value: str) -> "MPIModel":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown MPI model {value}") from None


@dataclass
class ContainerDescriptor:
    """A container image and what is needed to rebuild or run it"""

    name: str
    image_path: Path
    build_dir: Path
    install_dir: Path
    definition_file: Path
    distro: str
    implementation: t.Optional[ImplementationDescriptor] = None
    source_registry_url: str = ""
    model: MPIModel = MPIModel.HYBRID
    app_name: str = ""
    app_exe: str = ""
    mpi_mount_dir: str = ""
    bind_mounts: t.List[str] = field(default_factory=list)

    @classmethod
    def for_experiment(
        cls,
        impl: ImplementationDescriptor,
        app: "AppInfo",
        sysconf: "SystemConfig",
        model: MPIModel = MPIModel.HYBRID,
        host: t.Optional[ImplementationDescriptor] = None,
    ) -> "ContainerDescriptor":
        """Describe the image testing ``app`` with ``impl`` inside

        Images live in the persistent workspace when there is one and
        in the scratch directory otherwise.

        :param host: MPI of the host, bind images hold an application
                     compiled against it and are named after it
        """
        distro_label = sysconf.distro.replace(":", "-")
        base_name = (
            f"{distro_label}-{impl.id.value}-{impl.version}-{app.name}-{model.value}"
        )
        dir_suffix = f"{impl.id.value}_{impl.version}"
        if model == MPIModel.BIND and host is not None:
            base_name += f"-host-{host.version}"
            dir_suffix += f"_host_{host.version}"
        build_dir = sysconf.scratch_dir / f"{CONTAINER_BUILD_DIR_PREFIX}{dir_suffix}"
        root = sysconf.persistent or sysconf.scratch_dir
        install_dir = root / f"{CONTAINER_INSTALL_DIR_PREFIX}{base_name}"
        mpi_dir = f"/opt/{impl.id.value}-{impl.version}"
        app_exe = app.bin_path
        if model == MPIModel.BIND:
            app_exe = f"/opt/{app.bin_name}"
        return cls(
            name=f"{base_name}.sif",
            image_path=install_dir / f"{base_name}.sif",
            build_dir=build_dir,
            install_dir=install_dir,
            definition_file=build_dir / f"{base_name}.def",
            distro=sysconf.distro,
            implementation=impl,
            source_registry_url=sysconf.image_url(impl.id.value, impl.version),
            model=model,
            app_name=app.name,
            app_exe=app_exe,
            mpi_mount_dir=mpi_dir,
        )

    @classmethod
    def from_labels(
        cls, image: Path, labels: t.Dict[str, str]
    ) -> "ContainerDescriptor":
        """Describe an existing image from the labels it was built with

        :param image: path to the image
        :param labels: labels reported by the container engine
        :raises ContainerError: if a required label is missing or invalid
        """
        missing = [key for key in REQUIRED_LABELS if not labels.get(key)]
        if missing:
            raise ContainerError(
                f"Image {image} is missing the labels: {', '.join(missing)}"
            )
        try:
            impl_id = MPIImplementation.from_str(labels["MPI_Implementation"])
            model = MPIModel.from_str(labels["Model"])
        except ConfigurationError as e:
            raise ContainerError(f"Invalid metadata in {image}: {e}") from None
        return cls(
            name=image.name,
            image_path=image,
            build_dir=image.parent,
            install_dir=image.parent,
            definition_file=image.with_suffix(".def"),
            distro=labels.get("Linux_version", ""),
            implementation=ImplementationDescriptor(impl_id, labels["MPI_Version"]),
            model=model,
            app_name=labels.get("Application", ""),
            app_exe=labels.get("App_exe", ""),
            mpi_mount_dir=labels.get("MPI_Directory", ""),
        )

    @property
    def distro_name(self) -> str:
        return self.distro.split(":", maxsplit=1)[0]

    def labels(self) -> t.Dict[str, str]:
        """Metadata embedded in the image, read back by ``inspect``"""
        impl_id = self.implementation.id.value if self.implementation else ""
        version = self.implementation.version if self.implementation else ""
        return {
            "Linux_distribution": self.distro_name,
            "Linux_version": self.distro,
            "MPI_Implementation": impl_id,
            "MPI_Version": version,
            "MPI_Directory": self.mpi_mount_dir,
            "Model": self.model.value,
            "Application": self.app_name,
            "App_exe": self.app_exe,
        }

    def bind_host_mpi(self, host_install_dir: Path) -> None:
        """Mount the MPI installation of the host at ``mpi_mount_dir``"""
        mount = f"{host_install_dir}:{self.mpi_mount_dir}"
        if mount not in self.bind_mounts:
            self.bind_mounts.append(mount)
