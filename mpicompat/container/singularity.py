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

import shutil
import typing as t
from pathlib import Path

from ..error import ContainerError, ShellError
from ..log import get_logger
from .._core.utils.shell import execute_cmd
from .container import ContainerDescriptor
from .deffile import backup, check_definition_file

if t.TYPE_CHECKING:
    from .._core.config.sysconfig import SystemConfig

logger = get_logger(__name__)

INSPECT_LABELS = (
    "MPI_Implementation",
    "MPI_Version",
    "MPI_Directory",
    "Model",
    "Linux_distribution",
    "Linux_version",
    "Application",
    "App_exe",
)


class Singularity:
    """Thin adapter over the singularity command line

    :param sysconf: settings of the run, selects the executable, the
                    privilege escalation policy and the timeouts
    """

    def __init__(self, sysconf: "SystemConfig") -> None:
        self.sysconf = sysconf
        self.exe = shutil.which(sysconf.singularity) or sysconf.singularity
        if not shutil.which(self.exe):
            # Some systems have singularity available on compute nodes only
            logger.warning(
                f"Unable to find {sysconf.singularity}. Continuing in case it "
                "is available on compute nodes"
            )

    def _privileged(self, subcommand: str) -> t.List[str]:
        cmd = [self.exe, subcommand]
        if self.sysconf.is_sudo_cmd(subcommand):
            cmd.insert(0, "sudo")
        return cmd

    def _run(
        self,
        cmd: t.List[str],
        cwd: t.Optional[Path] = None,
        proc_input: str = "",
        timeout: t.Optional[int] = None,
    ) -> str:
        logger.debug(f"Executing: {' '.join(cmd)}")
        try:
            returncode, out, err = execute_cmd(
                cmd,
                cwd=str(cwd) if cwd else None,
                proc_input=proc_input,
                timeout=timeout or self.sysconf.cmd_timeout,
            )
        except ShellError as e:
            raise ContainerError(str(e), e.stdout, e.stderr) from e
        if returncode != 0:
            raise ContainerError(f"Command failed: {' '.join(cmd)}", out, err)
        return out

    def build(self, container: ContainerDescriptor) -> Path:
        """Build an image from its definition file

        The build runs from the build directory of the container so that
        relative paths of the %files section resolve there.

        :param container: the image to build
        :raises ContainerError: if the build fails or times out
        :returns: path to the image
        """
        if self.sysconf.is_persistent and container.image_path.is_file():
            logger.info(f"Reusing existing image {container.image_path}")
            return container.image_path
        check_definition_file(container.definition_file)
        container.install_dir.mkdir(parents=True, exist_ok=True)

        cmd = self._privileged("build")
        if cmd[0] != "sudo" and self.sysconf.tool.no_privilege:
            cmd.append("--fakeroot")
        cmd.extend([str(container.image_path), str(container.definition_file)])
        logger.info(f"Building {container.name}")
        self._run(cmd, cwd=container.build_dir, timeout=self.sysconf.build_timeout)
        if self.sysconf.is_persistent or self.sysconf.debug:
            backup(container.definition_file, container.install_dir)
        return container.image_path

    def pull(self, container: ContainerDescriptor) -> Path:
        """Download a pre-built image from its registry

        :raises ContainerError: if no registry URL is known or the pull fails
        """
        if not container.source_registry_url:
            raise ContainerError(f"No registry URL for {container.name}")
        if self.sysconf.is_persistent and container.image_path.is_file():
            logger.info(f"Reusing existing image {container.image_path}")
            return container.image_path
        container.install_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Pulling {container.source_registry_url}")
        self._run(
            [
                self.exe,
                "pull",
                str(container.image_path),
                container.source_registry_url,
            ],
            cwd=container.install_dir,
            timeout=self.sysconf.build_timeout,
        )
        return container.image_path

    def sign(self, container: ContainerDescriptor) -> None:
        """Sign an image with the key selected by the configuration"""
        passphrase = self.sysconf.key_passphrase
        if passphrase is None:
            raise ContainerError(
                f"A passphrase is required to sign {container.name}"
            )
        logger.info(f"Signing {container.name}")
        self._run(
            [
                self.exe,
                "sign",
                "--keyidx",
                self.sysconf.key_index,
                str(container.image_path),
            ],
            proc_input=passphrase + "\n",
        )

    def push(self, container: ContainerDescriptor, registry: str) -> None:
        if not registry:
            raise ContainerError("No registry to upload the image to")
        logger.info(f"Uploading {container.name} to {registry}")
        self._run(
            [self.exe, "push", str(container.image_path), registry],
            timeout=self.sysconf.build_timeout,
        )

    def upload(self, container: ContainerDescriptor, registry: str) -> None:
        self.sign(container)
        self.push(container, registry)

    def inspect(self, image: Path) -> ContainerDescriptor:
        """Describe an image from its metadata

        :param image: path to the image
        :raises ContainerError: if the image does not exist or lacks the
                                labels written when it was built
        :returns: the container, its MPI implementation and model included
        """
        if not image.is_file():
            raise ContainerError(f"Image {image} does not exist")
        out = self._run([self.exe, "inspect", str(image)])
        return ContainerDescriptor.from_labels(image, parse_labels(out))

    def exec_cmds(
        self, container: ContainerDescriptor, app_exe: t.Optional[str] = None
    ) -> t.List[str]:
        """Command running the application of a container"""
        cmd = [self.exe, "exec"]
        if container.bind_mounts:
            cmd.extend(["--bind", ",".join(container.bind_mounts)])
        cmd.extend([str(container.image_path), app_exe or container.app_exe])
        return cmd


def parse_labels(output: str) -> t.Dict[str, str]:
    """Extract the labels from the output of ``singularity inspect``"""
    labels = {}
    for line in output.splitlines():
        key, sep, value = line.strip().partition(": ")
        if sep and key in INSPECT_LABELS:
            labels[key] = value.strip()
    return labels
