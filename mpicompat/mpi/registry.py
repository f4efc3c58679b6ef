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

"""Behavior specific to each supported MPI implementation.

The set of implementations is closed: every variant is a subclass of
``MPIVariant`` registered in ``_VARIANTS`` and retrieved with ``lookup``.
"""

import typing as t
from pathlib import Path

from .._core._install.builder import BuildEnvironment
from .._core._install.utils import detect_archive_format, tar_flag
from .._core._install.utils.retrieve import FILE_URL_PREFIX
from .._core.utils import remove_dir
from ..error import BuildError, ContainerError, InvalidTemplateError
from ..log import get_logger
from .implementation import ImplementationDescriptor, MPIImplementation

if t.TYPE_CHECKING:
    from .._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)

TARARGS_TAG = "TARARGS"
DISTRO_CODENAME_TAG = "DISTROCODENAME"


class MPIVariant:
    """Default autotools based procedure shared by Open MPI and MPICH"""

    implementation: MPIImplementation
    # prefix of the definition file templates, e.g. ubuntu_ompi.def.tmpl
    template_prefix = ""
    version_tag = ""
    url_tag = ""
    tarball_tag = ""

    @property
    def required_tags(self) -> t.Tuple[str, ...]:
        """Placeholders every definition template of this variant uses"""
        return (self.version_tag, self.url_tag, self.tarball_tag)

    def extra_configure_args(self, sysconf: "SystemConfig") -> t.List[str]:
        return []

    def extra_launch_args(self, sysconf: "SystemConfig") -> t.List[str]:
        return []

    def bin_dir(self, env: BuildEnvironment) -> Path:
        return env.bin_dir

    def lib_dir(self, env: BuildEnvironment) -> Path:
        return env.lib_dir

    def mpirun(self, env: BuildEnvironment) -> Path:
        return self.bin_dir(env) / "mpirun"

    def set_environment(self, env: BuildEnvironment) -> None:
        """Point PATH and LD_LIBRARY_PATH at the MPI installation"""
        env.prepend_path("PATH", self.bin_dir(env))
        env.prepend_path("LD_LIBRARY_PATH", self.lib_dir(env))

    def install_on_host(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> None:
        """Fetch, unpack, configure, compile and install MPI on the host

        :raises BuildError: if any step fails
        """
        pkg = impl.as_package()
        logger.info(f"Installing {impl.label} on the host in {env.install_dir}")
        env.fetch(pkg)
        env.unpack()
        env.configure(self.extra_configure_args(sysconf))
        env.compile()
        env.install()
        env.mark_installed(pkg)

    def uninstall_on_host(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> None:
        """Remove an installation made by ``install_on_host``"""
        logger.info(f"Removing {impl.label} from {env.install_dir}")
        remove_dir(env.install_dir)
        remove_dir(env.build_dir)

    def template_tags(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> t.Dict[str, str]:
        """Values substituted in the definition template

        :raises InvalidTemplateError: if the descriptor misses a field
        """
        if not impl.version or not impl.url or not impl.tarball:
            raise InvalidTemplateError(
                f"Version, URL and tarball of {impl.id.value} must be defined"
            )
        return {
            self.version_tag: impl.version,
            self.url_tag: impl.url,
            self.tarball_tag: impl.tarball,
            TARARGS_TAG: tar_flag(detect_archive_format(impl.tarball)),
            DISTRO_CODENAME_TAG: sysconf.distro_codename,
        }


class OpenMPI(MPIVariant):
    implementation = MPIImplementation.OPENMPI
    template_prefix = "ompi"
    version_tag = "OMPIVERSION"
    url_tag = "OMPIURL"
    tarball_tag = "OMPITARBALL"

    def extra_configure_args(self, sysconf: "SystemConfig") -> t.List[str]:
        extra_args = []
        if sysconf.slurm_enabled:
            extra_args.append("--with-slurm")
        if sysconf.ib_enabled:
            if sysconf.tool.mxm_dir:
                extra_args.append(f"--with-mxm={sysconf.tool.mxm_dir}")
            if sysconf.tool.knem_dir:
                extra_args.append(f"--with-knem={sysconf.tool.knem_dir}")
        return extra_args


class MPICH(MPIVariant):
    implementation = MPIImplementation.MPICH
    template_prefix = "mpich"
    version_tag = "MPICHVERSION"
    url_tag = "MPICHURL"
    tarball_tag = "MPICHTARBALL"


class IntelMPI(MPIVariant):
    """Intel MPI ships a silent installer instead of an autotools
    build system and installs its binaries in a nested directory"""

    implementation = MPIImplementation.INTEL
    template_prefix = "intel"
    version_tag = "IMPIVERSION"
    url_tag = ""
    tarball_tag = "IMPITARBALL"

    INSTALL_PATH_PREFIX = "compilers_and_libraries/linux/mpi/intel64"
    CONTAINER_INSTALL_DIR = "/opt/impi"
    INSTALL_CONF_FILE = "silent_install.cfg"
    UNINSTALL_CONF_FILE = "silent_uninstall.cfg"
    INSTALL_DIR_TAG = "MPIINSTALLDIR"
    DIR_TAG = "IMPIDIR"
    INSTALL_CONF_TAG = "IMPIINSTALLCONFFILE"
    UNINSTALL_CONF_TAG = "IMPIUNINSTALLCONFFILE"
    IFNET_TAG = "NETWORKINTERFACE"

    @property
    def required_tags(self) -> t.Tuple[str, ...]:
        return (self.version_tag, self.tarball_tag, self.INSTALL_CONF_TAG)

    def extra_launch_args(self, sysconf: "SystemConfig") -> t.List[str]:
        # Intel MPI is OFI based, even a simple TCP test needs a provider
        return ["-env", "FI_PROVIDER", "socket", "-env", "I_MPI_FABRICS", "ofi"]

    def bin_dir(self, env: BuildEnvironment) -> Path:
        return env.install_dir / self.INSTALL_PATH_PREFIX / "bin"

    def lib_dir(self, env: BuildEnvironment) -> Path:
        return env.install_dir / self.INSTALL_PATH_PREFIX / "lib"

    def mpirun(self, env: BuildEnvironment) -> Path:
        return self.bin_dir(env) / "mpiexec"

    @classmethod
    def write_silent_configs(
        cls, template_dir: Path, destination: Path, install_dir: str
    ) -> t.Tuple[Path, Path]:
        """Render the silent install and uninstall configurations

        :param template_dir: directory holding intel/*.cfg.tmpl
        :param destination: directory receiving the configurations
        :param install_dir: where Intel MPI must be installed
        :returns: paths to the install and uninstall configurations
        """
        rendered = []
        for conf_file in (cls.INSTALL_CONF_FILE, cls.UNINSTALL_CONF_FILE):
            template = template_dir / "intel" / f"{conf_file}.tmpl"
            if not template.is_file():
                raise InvalidTemplateError(f"Template {template} does not exist")
            content = template.read_text(encoding="utf-8")
            target = destination / conf_file
            target.write_text(
                content.replace(cls.INSTALL_DIR_TAG, install_dir), encoding="utf-8"
            )
            rendered.append(target)
        return rendered[0], rendered[1]

    def _run_installer(self, env: BuildEnvironment, phase: str) -> None:
        conf_file = {
            "install": self.INSTALL_CONF_FILE,
            "uninstall": self.UNINSTALL_CONF_FILE,
        }.get(phase)
        if conf_file is None:
            raise BuildError(f"Unknown phase of the Intel MPI installer: {phase}")
        logger.info(f"Running Intel MPI {phase} script")
        env.run_command(["./install.sh", "--silent", conf_file])

    def install_on_host(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> None:
        pkg = impl.as_package()
        logger.info(f"Installing {impl.label} on the host in {env.install_dir}")
        env.fetch(pkg)
        env.unpack()
        if env.src_dir is None:
            raise BuildError(f"Unable to find the sources of {impl.label}")
        self.write_silent_configs(
            sysconf.template_dir, env.src_dir, str(env.install_dir)
        )
        self._run_installer(env, "install")
        env.mark_installed(pkg)

    def uninstall_on_host(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> None:
        """Run the uninstall script of the installer, kept in the build
        directory, then remove the directories of the installation"""
        if env.src_dir is None and env.build_dir.is_dir():
            sources = [entry for entry in env.build_dir.iterdir() if entry.is_dir()]
            if len(sources) == 1:
                env.src_dir = sources[0]
        if env.src_dir is None:
            raise BuildError(f"Sources of {impl.label} are required to uninstall it")
        self.write_silent_configs(
            sysconf.template_dir, env.src_dir, str(env.install_dir)
        )
        self._run_installer(env, "uninstall")
        super().uninstall_on_host(impl, env, sysconf)

    def template_tags(
        self,
        impl: ImplementationDescriptor,
        env: BuildEnvironment,
        sysconf: "SystemConfig",
    ) -> t.Dict[str, str]:
        """Intel MPI is installed from a local tarball copied into the
        image; the silent installer configurations are staged in the
        build directory of the container"""
        if not impl.version or not impl.url.startswith(FILE_URL_PREFIX):
            raise InvalidTemplateError(
                "Intel MPI requires a version and a file:// URL to its tarball"
            )
        try:
            self.write_silent_configs(
                sysconf.template_dir, env.build_dir, self.CONTAINER_INSTALL_DIR
            )
        except OSError as e:
            raise ContainerError(
                f"Failed to stage Intel MPI configurations: {e}"
            ) from e
        return {
            self.version_tag: impl.version,
            self.tarball_tag: impl.url[len(FILE_URL_PREFIX) :],
            self.DIR_TAG: str(
                Path(self.CONTAINER_INSTALL_DIR, self.INSTALL_PATH_PREFIX)
            ),
            self.INSTALL_CONF_TAG: str(env.build_dir / self.INSTALL_CONF_FILE),
            self.UNINSTALL_CONF_TAG: str(env.build_dir / self.UNINSTALL_CONF_FILE),
            self.IFNET_TAG: sysconf.ofi_interface(),
            TARARGS_TAG: tar_flag(detect_archive_format(impl.tarball)),
            DISTRO_CODENAME_TAG: sysconf.distro_codename,
        }


_VARIANTS: t.Dict[MPIImplementation, MPIVariant] = {
    MPIImplementation.OPENMPI: OpenMPI(),
    MPIImplementation.MPICH: MPICH(),
    MPIImplementation.INTEL: IntelMPI(),
}


def lookup(implementation: t.Union[MPIImplementation, str]) -> MPIVariant:
    """Return the behavior of an MPI implementation

    :param implementation: implementation or its identifier, e.g. "openmpi"
    :raises ConfigurationError: if the identifier is unknown
    """
    if not isinstance(implementation, MPIImplementation):
        implementation = MPIImplementation.from_str(implementation)
    return _VARIANTS[implementation]
