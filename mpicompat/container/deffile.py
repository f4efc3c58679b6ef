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

"""Generation of Singularity definition files.

Hybrid images of the bundled applications are rendered from the
templates shipped with the package. Bind images and containerized
applications are assembled section by section with ``DefinitionFile``.
"""

import shutil
import typing as t
from pathlib import Path

from .._core._install.utils import (
    URLType,
    detect_archive_format,
    detect_url_type,
    tar_flag,
    url_basename,
)
from ..error import ContainerError, InvalidTemplateError
from ..log import get_logger

if t.TYPE_CHECKING:
    from .container import ContainerDescriptor

logger = get_logger(__name__)

BOOTSTRAP_KEYWORD = "Bootstrap:"
UBUNTU_MIRROR = "http://us.archive.ubuntu.com/ubuntu/"
DISTRO_DEPENDENCIES = (
    "wget git bash gcc gfortran g++ make file software-properties-common"
)
APP_DIR_DETECTION = "APPDIR=`ls -l /opt | egrep '^d' | head -1 | awk '{print $9}'`"
IB_PACKAGES = (
    "libc-bin",
    "libopensm-dev",
    "librdmacm-dev",
    "librdmacm1",
    "kmod",
    "libmlx4-1",
    "libibverbs-dev",
    "libibverbs1",
    "libnl-3-dev",
    "infiniband-diags",
    "ibverbs-utils",
)


def render(
    template: Path, tags: t.Mapping[str, str], required: t.Iterable[str] = ()
) -> str:
    """Substitute every tag of a template

    :param template: path to the template
    :param tags: placeholder to value mapping
    :param required: placeholders that must appear in the template
    :raises InvalidTemplateError: if the template is missing, a required
                                  placeholder is absent or has no value
    :returns: the rendered content
    """
    if not template.is_file():
        raise InvalidTemplateError(f"Template {template} does not exist")
    content = template.read_text(encoding="utf-8")
    for tag in required:
        if not tag:
            continue
        if tag not in content:
            raise InvalidTemplateError(f"Template {template} does not use {tag}")
        if not tags.get(tag):
            raise InvalidTemplateError(f"No value for {tag} in {template}")
    # longest first so that a tag never clobbers a longer one it prefixes
    for tag in sorted(tags, key=len, reverse=True):
        if tag:
            content = content.replace(tag, tags[tag])
    return content


def labels_section(labels: t.Mapping[str, str]) -> str:
    lines = ["%labels"]
    lines.extend(f"\t{key} {value}" for key, value in labels.items())
    return "\n".join(lines) + "\n\n"


def insert_labels(content: str, labels: t.Mapping[str, str]) -> str:
    """Add a %labels section right after the bootstrap header

    :param content: definition file content
    :param labels: label to value mapping
    :raises InvalidTemplateError: if the content defines labels already
    """
    if "%labels" in content:
        raise InvalidTemplateError("Definition file already has a %labels section")
    header, sep, sections = content.partition("\n%")
    if not sep:
        return content.rstrip("\n") + "\n\n" + labels_section(labels)
    return header.rstrip("\n") + "\n\n" + labels_section(labels) + "%" + sections


def check_definition_file(path: Path) -> None:
    """Make sure a file looks like a definition file

    :raises InvalidTemplateError: if the first meaningful line is not a
                                  bootstrap directive
    """
    if not path.is_file():
        raise InvalidTemplateError(f"Definition file {path} does not exist")
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith(BOOTSTRAP_KEYWORD):
            return
        break
    raise InvalidTemplateError(f"{path} does not start with '{BOOTSTRAP_KEYWORD}'")


def backup(def_file: Path, destination: Path) -> Path:
    """Keep a copy of the definition file next to the image"""
    destination.mkdir(parents=True, exist_ok=True)
    target = destination / def_file.name
    if target != def_file:
        shutil.copyfile(def_file, target)
    logger.debug(f"Definition file saved as {target}")
    return target


class DefinitionFile:
    """Definition file assembled one section at a time"""

    def __init__(self, distro: str) -> None:
        self.distro = distro
        self.labels: t.Dict[str, str] = {}
        self.files: t.List[t.Tuple[str, str]] = []
        self.environment: t.List[str] = []
        self.post: t.List[str] = []

    @property
    def codename(self) -> str:
        _, _, codename = self.distro.partition(":")
        return codename or self.distro

    def bootstrap(self) -> str:
        return (
            f"Bootstrap: debootstrap\nOSVersion: {self.codename}\n"
            f"MirrorURL: {UBUNTU_MIRROR}\n\n"
        )

    def add_distro_init(self) -> None:
        self.post.extend(
            [
                f"apt-get update && apt-get install -y {DISTRO_DEPENDENCIES}",
                "add-apt-repository universe",
                "add-apt-repository multiverse",
                "apt-get update",
            ]
        )

    def add_mpi_environment(self, mpi_dir: str) -> None:
        self.environment.extend(
            [
                f"MPI_DIR={mpi_dir}",
                "SINGULARITY_MPI_DIR=$MPI_DIR",
                "SINGULARITYENV_APPEND_PATH=$MPI_DIR/bin",
                "SINGULARITYENV_APPEND_LD_LIBRARY_PATH=$MPI_DIR/lib",
                "export MPI_DIR SINGULARITY_MPI_DIR "
                "SINGULARITYENV_APPEND_PATH SINGULARITYENV_APPEND_LD_LIBRARY_PATH",
            ]
        )

    def add_mpi_install(
        self, impl_id: str, version: str, url: str, tarball: str, tar_args: str
    ) -> None:
        """Build MPI from its sources inside the image"""
        self.post.extend(
            [
                f"export MPI_VERSION={version}",
                f"export MPI_URL={url}",
                "mkdir -p /tmp/mpi",
                f"cd /tmp/mpi && wget $MPI_URL && tar {tar_args} {tarball}",
                f"cd /tmp/mpi/{impl_id}-$MPI_VERSION "
                "&& ./configure --prefix=$MPI_DIR && make -j8 install",
                "export PATH=$MPI_DIR/bin:$PATH",
                "export LD_LIBRARY_PATH=$MPI_DIR/lib:$LD_LIBRARY_PATH",
            ]
        )

    def add_ib_packages(self) -> None:
        self.post.extend(
            [
                f"apt install -y {' '.join(IB_PACKAGES)}",
                "ldconfig",
                "apt-get clean",
            ]
        )

    def add_app_download(self, url: str) -> None:
        """Fetch the application into /opt, which must still be empty,
        and record its directory in $APPDIR"""
        url_type = detect_url_type(url)
        if url_type == URLType.GIT:
            self.post.append(f"cd /opt && git clone {url}")
        elif url_type == URLType.HTTP:
            tar_args = tar_flag(detect_archive_format(url_basename(url)))
            self.post.append(
                f"cd /opt && wget {url} && tar {tar_args} {url_basename(url)}"
            )
        else:
            return
        self.post.append(APP_DIR_DETECTION)

    def add_app_install(self, url: str, install_cmd: str, bin_path: str) -> None:
        if detect_url_type(url) == URLType.FILE:
            source = Path("/opt") / url_basename(url)
            self.post.append(f"cd /opt && mpicc -o {bin_path} {source}")
            return
        self.post.append(f"cd /opt/$APPDIR && {install_cmd or 'make install'}")

    def add_file(self, source: t.Union[str, Path], target: str) -> None:
        self.files.append((str(source), target))

    def add_post(self, *commands: str) -> None:
        self.post.extend(commands)

    def render(self) -> str:
        content = self.bootstrap()
        if self.labels:
            content += labels_section(self.labels)
        if self.files:
            content += "%files\n"
            content += "".join(f"\t{src} {dst}\n" for src, dst in self.files)
            content += "\n"
        if self.environment:
            content += "%environment\n"
            content += "".join(f"\t{line}\n" for line in self.environment)
            content += "\n"
        if self.post:
            content += "%post\n"
            content += "".join(f"\t{line}\n" for line in self.post)
            content += "\n"
        return content

    def write(self, path: Path) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.render(), encoding="utf-8")
        except OSError as e:
            raise ContainerError(f"Unable to write definition file {path}: {e}") from e
        return path


def bind_definition(
    container: "ContainerDescriptor", app_binary: Path
) -> DefinitionFile:
    """Definition of an image without MPI: the application built on the
    host is copied in and the host MPI is bound at run time

    :param container: the image to define
    :param app_binary: application compiled against the host MPI
    """
    definition = DefinitionFile(container.distro)
    definition.labels = container.labels()
    definition.add_file(app_binary, f"/opt/{app_binary.name}")
    definition.add_mpi_environment(container.mpi_mount_dir)
    definition.add_distro_init()
    definition.add_ib_packages()
    return definition


def hybrid_definition(
    container: "ContainerDescriptor",
    mpi_url: str,
    app_url: str,
    install_cmd: str = "",
) -> DefinitionFile:
    """Definition of an image building both MPI and the application

    :param container: the image to define, with its MPI implementation
    :param mpi_url: download URL of the MPI tarball
    :param app_url: location of the application sources
    :param install_cmd: command building the application in its sources
    :raises InvalidTemplateError: if the MPI implementation is unset
    """
    impl = container.implementation
    if impl is None or not impl.version or not mpi_url:
        raise InvalidTemplateError(
            f"MPI version and URL are required to define {container.name}"
        )
    tarball = url_basename(mpi_url)
    definition = DefinitionFile(container.distro)
    definition.labels = container.labels()
    if detect_url_type(app_url) == URLType.FILE:
        definition.add_file(url_basename(app_url), f"/opt/{url_basename(app_url)}")
    definition.add_mpi_environment(container.mpi_mount_dir)
    definition.add_distro_init()
    definition.add_app_download(app_url)
    definition.add_mpi_install(
        impl.id.value,
        impl.version,
        mpi_url,
        tarball,
        tar_flag(detect_archive_format(tarball)),
    )
    definition.add_app_install(app_url, install_cmd, container.app_exe)
    return definition
