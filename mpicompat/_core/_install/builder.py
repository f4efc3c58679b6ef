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

import os
import shlex
import shutil
import typing as t
from dataclasses import dataclass, field
from pathlib import Path

from ...error import (
    BuildError,
    FetchError,
    InconsistentLayoutError,
    ShellError,
    UnsupportedFormatError,
)
from ...log import get_logger
from ..utils import env_to_dict, init_dir, remove_dir
from ..utils.shell import execute_cmd
from .buildenv import BuildEnv
from .utils import retrieve
from .utils.retrieve import URLType

logger = get_logger(__name__)

_PathLike = t.Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class SoftwarePackage:
    """A piece of software to fetch and build

    :param name: name used in logs
    :param url: file://, http(s):// or git URL of the sources
    :param install_cmd: command installing the software from its
                        source directory, if it is not autotools based
    """

    name: str
    url: str
    install_cmd: str = ""

    @property
    def artifact(self) -> str:
        """Name of the file or directory the package is fetched as"""
        if retrieve.detect_url_type(self.url) == URLType.GIT:
            return retrieve.checkout_name(self.url)
        return retrieve.url_basename(self.url)


@dataclass
class BuildEnvironment:
    """Directories and environment of a single build.

    Each step only writes the fields it is responsible for:
    ``fetch`` sets ``src_path``, ``unpack`` sets ``src_dir``. Used as a
    context manager, the build and scratch directories are created on
    entry and removed on exit unless the environment is persistent.
    """

    build_dir: Path
    install_dir: Path
    scratch_dir: Path
    src_path: t.Optional[Path] = None
    src_dir: t.Optional[Path] = None
    env: t.List[str] = field(default_factory=list)
    persistent: bool = False
    jobs: int = 4
    timeout: t.Optional[int] = None

    def __enter__(self) -> "BuildEnvironment":
        self.init()
        return self

    def __exit__(self, *_: t.Any) -> None:
        if not self.persistent:
            self.cleanup()

    def init(self) -> None:
        for directory in (self.build_dir, self.install_dir, self.scratch_dir):
            init_dir(directory)

    def cleanup(self) -> None:
        for directory in (self.build_dir, self.scratch_dir):
            remove_dir(directory)
        if not self.persistent:
            remove_dir(self.install_dir)

    @property
    def bin_dir(self) -> Path:
        return self.install_dir / "bin"

    @property
    def lib_dir(self) -> Path:
        return self.install_dir / "lib"

    def prepend_path(self, var: str, path: _PathLike) -> None:
        """Add ``var=path:$var`` to the environment overrides

        :param var: environment variable, e.g. PATH
        :param path: directory to put first
        """
        current = self.environ().get(var, "")
        value = f"{path}:{current}" if current else str(path)
        self.env = [entry for entry in self.env if not entry.startswith(f"{var}=")]
        self.env.append(f"{var}={value}")

    def environ(self) -> t.Dict[str, str]:
        """Environment of the build commands: the process environment,
        the compiler settings and the overrides of this build"""
        environ = BuildEnv(checks=False)()
        environ.update(env_to_dict(self.env))
        return environ

    def run_command(
        self,
        cmd: t.List[str],
        cwd: t.Optional[_PathLike] = None,
        env: t.Optional[t.Dict[str, str]] = None,
        proc_input: str = "",
    ) -> t.Tuple[str, str]:
        """Run a build command

        :param cmd: command with its arguments
        :param cwd: working directory, defaults to the source directory
        :param env: environment, defaults to ``environ()``
        :param proc_input: text sent to the standard input of the command
        :raises BuildError: if the command fails or times out
        :returns: output and error of the command
        """
        work_dir = cwd or self.src_dir or self.build_dir
        logger.debug(f"Executing from {work_dir}: {' '.join(cmd)}")
        try:
            returncode, out, err = execute_cmd(
                cmd,
                cwd=str(work_dir),
                env=env or self.environ(),
                proc_input=proc_input,
                timeout=self.timeout,
            )
        except ShellError as e:
            raise BuildError(str(e), e.stdout, e.stderr) from e
        if returncode != 0:
            raise BuildError(f"Command failed: {' '.join(cmd)}", out, err)
        return out, err

    def fetch(self, pkg: SoftwarePackage) -> None:
        """Stage the sources of a package in the build directory

        :param pkg: the package to fetch
        :raises FetchError: if the URL cannot be handled or the transfer fails
        """
        if not pkg.url:
            raise FetchError(f"No URL defined for {pkg.name}")
        logger.info(f"Getting {pkg.name} from {pkg.url}")
        init_dir(self.build_dir)

        url_type = retrieve.detect_url_type(pkg.url)
        if url_type == URLType.FILE:
            self.src_path = retrieve.copy_from_file_url(pkg.url, self.build_dir)
        elif url_type == URLType.HTTP:
            self.src_path = retrieve.download(pkg.url, self.build_dir)
        else:
            self.src_path = retrieve.git_checkout(pkg.url, self.build_dir)
            self.src_dir = self.src_path

    def unpack(self) -> None:
        """Extract the fetched archive; its single top-level entry
        becomes the source directory

        :raises InconsistentLayoutError: if the archive does not hold
                                         exactly one top-level entry
        """
        if self.src_path is None:
            raise BuildError("Nothing to unpack, the package was not fetched")
        if self.src_path.is_dir():
            logger.debug(f"{self.src_path} does not need to be unpacked")
            self.src_dir = self.src_path
            return
        try:
            retrieve.detect_archive_format(self.src_path)
        except UnsupportedFormatError:
            logger.debug(f"{self.src_path} does not need to be unpacked")
            self.src_dir = self.build_dir
            return

        logger.info(f"Unpacking {self.src_path.name}")
        retrieve.extract(self.src_path, self.build_dir)
        entries = [
            entry for entry in self.build_dir.iterdir() if entry != self.src_path
        ]
        if len(entries) != 1:
            raise InconsistentLayoutError(
                f"Inconsistent temporary {self.build_dir} directory, "
                f"{len(entries)} files instead of 1"
            )
        self.src_dir = entries[0]

    def _require_src_dir(self) -> Path:
        if self.src_dir is None:
            raise BuildError("The source directory is undefined, unpack first")
        return self.src_dir

    def configure(self, extra_args: t.Optional[t.List[str]] = None) -> None:
        """Run ``./configure --prefix=<install dir>`` if the sources
        ship a configure script

        :param extra_args: additional configure arguments
        """
        src_dir = self._require_src_dir()
        if not (src_dir / "configure").is_file():
            logger.debug(f"No configure script in {src_dir}, skipping")
            return
        cmd = ["./configure", f"--prefix={self.install_dir}", *(extra_args or [])]
        logger.info(f"Configuring: {' '.join(cmd)}")
        self.run_command(cmd, cwd=src_dir)

    def make(self, stage: str = "", sudo: bool = False) -> None:
        src_dir = self._require_src_dir()
        if not (src_dir / "Makefile").is_file():
            logger.debug(f"No Makefile in {src_dir}, skipping")
            return
        cmd = ["make", f"-j{self.jobs}"]
        if stage:
            cmd.append(stage)
        if sudo:
            cmd.insert(0, "sudo")
        logger.info(f"Executing: {' '.join(cmd)}")
        self.run_command(cmd, cwd=src_dir)

    def compile(self, sudo: bool = False) -> None:
        self.make(sudo=sudo)

    def install(self, sudo: bool = False) -> None:
        self.make("install", sudo=sudo)

    def install_package(self, pkg: SoftwarePackage) -> None:
        """Run the install command of a package from its source
        directory. Leading ``VAR=value`` words set the environment.

        :param pkg: the package to install
        """
        if not pkg.install_cmd:
            logger.debug(f"{pkg.name} does not need installation, skipping")
            return
        tokens = shlex.split(pkg.install_cmd)
        environ = self.environ()
        while tokens and "=" in tokens[0] and not tokens[0].startswith("="):
            key, _, value = tokens.pop(0).partition("=")
            environ[key] = value
        if not tokens:
            raise BuildError(
                f"Invalid install command for {pkg.name}: {pkg.install_cmd}"
            )
        tokens[0] = shutil.which(tokens[0], path=environ.get("PATH")) or tokens[0]
        logger.info(f"Installing {pkg.name}: {' '.join(tokens)}")
        self.run_command(tokens, cwd=self._require_src_dir(), env=environ)

    def mark_installed(self, pkg: SoftwarePackage) -> None:
        """Keep the fetched archive in the install directory so that
        ``is_installed`` recognizes the installation on later runs"""
        if self.src_path is None or not self.src_path.is_file():
            return
        init_dir(self.install_dir)
        target = self.install_dir / pkg.artifact
        if self.src_path != target:
            shutil.move(str(self.src_path), target)
            self.src_path = target

    def is_installed(self, pkg: SoftwarePackage) -> bool:
        """Whether the package was already fetched and installed here

        :param pkg: the package to check
        :returns: True if the artifact of the package is present in
                  the install directory, or its checkout in the build
                  directory
        """
        try:
            url_type = retrieve.detect_url_type(pkg.url)
        except FetchError:
            return False
        if url_type == URLType.GIT:
            return (self.build_dir / pkg.artifact).is_dir()
        return (self.install_dir / pkg.artifact).is_file()


def build_against(
    pkg: SoftwarePackage, mpi_env: BuildEnvironment, build_dir: Path
) -> Path:
    """Build a package with the MPI installation of ``mpi_env`` first
    in the path. Anything left in ``build_dir`` is removed first.

    :param pkg: the package, its install command compiles it in place
    :param mpi_env: environment of the MPI installation
    :param build_dir: where the package is fetched and built
    :raises BuildError: if the package cannot be fetched or built
    :returns: the source directory holding the build results
    """
    app_env = BuildEnvironment(
        build_dir=build_dir,
        install_dir=build_dir,
        scratch_dir=build_dir.parent,
        env=list(mpi_env.env),
        jobs=mpi_env.jobs,
        timeout=mpi_env.timeout,
    )
    remove_dir(build_dir)
    app_env.fetch(pkg)
    app_env.unpack()
    app_env.install_package(pkg)
    if app_env.src_dir is None:
        raise BuildError(f"Unable to find the sources of {pkg.name}")
    return app_env.src_dir
