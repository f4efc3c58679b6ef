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

"""Installations kept in the persistent workspace.

Host MPI installations live in ``mpi_install_<implementation>-<version>``
directories next to their build directories, container images in
``mpi_container_*`` directories or directly in the workspace.
"""

import typing as t
from pathlib import Path

from ._core._install.builder import BuildEnvironment
from ._core._install.buildenv import BuildEnv, Version_
from ._core.utils.kv import load_key_value_config
from .container.container import CONTAINER_INSTALL_DIR_PREFIX
from .error import ConfigurationError
from .log import get_logger
from .mpi import ImplementationDescriptor, MPIImplementation, lookup

if t.TYPE_CHECKING:
    from ._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)

HOST_INSTALL_PREFIX = "mpi_install_"
HOST_BUILD_PREFIX = "mpi_build_"
IMAGE_SUFFIX = ".sif"
ENV_FILE_TEMPLATE = "{label}.env"


def parse_install_spec(spec: str) -> t.Tuple[MPIImplementation, str]:
    """Split an ``implementation:version`` description, e.g. openmpi:4.0.2

    :raises ConfigurationError: if the description is malformed or the
                                implementation unknown
    """
    implementation, sep, version = spec.strip().partition(":")
    if not sep or not implementation or not version:
        raise ConfigurationError(
            f"Invalid MPI description {spec!r}, expected <implementation>:<version>"
        )
    return MPIImplementation.from_str(implementation), version.strip()


def mpi_url(sysconf: "SystemConfig", implementation: str, version: str) -> str:
    """Download URL of a version, from <etc>/<implementation>.conf

    :raises ConfigurationError: if the version is unknown
    """
    kvs = load_key_value_config(sysconf.etc_dir / f"{implementation}.conf")
    if version not in kvs:
        raise ConfigurationError(f"No URL known for {implementation} {version}")
    return kvs[version]


def host_environment(
    root: Path,
    impl: ImplementationDescriptor,
    sysconf: "SystemConfig",
    persistent: bool = True,
) -> BuildEnvironment:
    """Build environment of an MPI installation on the host

    :param root: directory holding the build and install directories
    :param impl: the MPI implementation and version
    :param sysconf: settings of the run
    :param persistent: whether the installation outlives the environment
    """
    return BuildEnvironment(
        build_dir=root / f"{HOST_BUILD_PREFIX}{impl.label}",
        install_dir=root / f"{HOST_INSTALL_PREFIX}{impl.label}",
        scratch_dir=sysconf.scratch_dir / f"host_{impl.label}",
        persistent=persistent,
        jobs=BuildEnv.JOBS,
        timeout=sysconf.build_timeout,
    )


def write_env_file(env: BuildEnvironment, path: Path) -> Path:
    """Script setting up the environment of an MPI installation"""
    lines = [
        "#!/bin/bash",
        "#",
        "",
        f"export PATH={env.install_dir}/bin:$PATH",
        f"export LD_LIBRARY_PATH={env.install_dir}/lib:$LD_LIBRARY_PATH",
        f"export MANPATH={env.install_dir}/man:$MANPATH",
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"Environment script written to {path}")
    return path


def install_host_mpi(
    impl: ImplementationDescriptor, root: Path, sysconf: "SystemConfig"
) -> BuildEnvironment:
    """Install MPI on the host, unless it already is, and write the
    script setting up its environment

    :raises BuildError: if the installation fails
    :returns: the environment of the installation
    """
    env = host_environment(root, impl, sysconf)
    env.init()
    variant = lookup(impl.id)
    if env.is_installed(impl.as_package()):
        logger.info(f"{impl.label} is already installed in {env.install_dir}")
    else:
        variant.install_on_host(impl, env, sysconf)
    variant.set_environment(env)
    env_file = ENV_FILE_TEMPLATE.format(label=impl.label)
    write_env_file(env, env.install_dir / env_file)
    return env


class Workspace:
    """Host MPI installations and images of the persistent workspace

    :param sysconf: settings of the run, ``persistent`` selects the
                    workspace directory
    """

    def __init__(self, sysconf: "SystemConfig") -> None:
        if sysconf.persistent is None:
            raise ConfigurationError("No persistent workspace configured")
        self.sysconf = sysconf
        self.root: Path = sysconf.persistent

    def _entries(self) -> t.List[Path]:
        if not self.root.is_dir():
            return []
        return sorted(self.root.iterdir())

    def host_installs(self) -> t.List[ImplementationDescriptor]:
        """MPI installations of the host, sorted by implementation and
        version"""
        installs = []
        for entry in self._entries():
            if not entry.is_dir() or not entry.name.startswith(HOST_INSTALL_PREFIX):
                continue
            label = entry.name[len(HOST_INSTALL_PREFIX) :]
            implementation, _, version = label.partition("-")
            try:
                impl_id = MPIImplementation.from_str(implementation)
            except ConfigurationError:
                logger.debug(f"Ignoring unknown installation {entry}")
                continue
            installs.append(ImplementationDescriptor(impl_id, version))
        return sorted(
            installs, key=lambda impl: (impl.id.value, Version_(impl.version))
        )

    def containers(self) -> t.List[Path]:
        """Images stored in the workspace"""
        images = []
        for entry in self._entries():
            if entry.is_dir() and entry.name.startswith(CONTAINER_INSTALL_DIR_PREFIX):
                images.extend(sorted(entry.glob(f"*{IMAGE_SUFFIX}")))
            elif entry.is_file() and entry.suffix == IMAGE_SUFFIX:
                images.append(entry)
        return images

    def install(self, spec: str) -> BuildEnvironment:
        """Install an ``implementation:version`` on the host

        :raises ConfigurationError: if the description or version is unknown
        :raises BuildError: if the installation fails
        """
        impl_id, version = parse_install_spec(spec)
        url = mpi_url(self.sysconf, impl_id.value, version)
        impl = ImplementationDescriptor(impl_id, version, url)
        return install_host_mpi(impl, self.root, self.sysconf)

    def uninstall(self, spec: str) -> None:
        """Remove an ``implementation:version`` installed on the host

        :raises ConfigurationError: if it is not installed in the workspace
        :raises BuildError: if the uninstall procedure fails
        """
        impl_id, version = parse_install_spec(spec)
        impl = ImplementationDescriptor(impl_id, version)
        env = host_environment(self.root, impl, self.sysconf)
        if not env.install_dir.is_dir():
            raise ConfigurationError(f"{impl} is not installed in {self.root}")
        logger.info(f"Uninstalling {impl} from {self.root}")
        lookup(impl_id).uninstall_on_host(impl, env, self.sysconf)
