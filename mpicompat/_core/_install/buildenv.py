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

# pylint: disable=invalid-name

import os
import platform
import subprocess
import sys
import typing as t
from pathlib import Path
from typing import Iterable

from packaging.version import InvalidVersion, Version, parse


class SetupError(Exception):
    """Raised when a prerequisite of mpicompat is missing, e.g. a compiler,
    the container engine or a download tool, or when a capability probe
    fails.

    This error must be defined here and not in the error package since
    setup.py loads this module on its own to compute the package
    version, before mpicompat itself is importable.
    """


# so as to not conflict with packaging.version.Version
# pylint: disable-next=invalid-name
class Version_(str):
    """A string holding a version that compares like
    packaging.version.Version whenever both sides can be parsed.

    MPI versions such as ``2019.6.166`` or ``4.0.2rc1`` compare correctly,
    anything else falls back to plain string comparison.
    """

    @staticmethod
    def _convert_to_version(
        vers: t.Union[str, Iterable[Version], Version],
    ) -> t.Any:
        if isinstance(vers, Version):
            return vers
        if isinstance(vers, str):
            return Version(vers)
        if isinstance(vers, Iterable):
            return Version(".".join((str(item) for item in vers)))

        raise InvalidVersion(vers)

    @property
    def major(self) -> int:
        return int(parse(self).base_version.split(".", maxsplit=1)[0])

    @property
    def minor(self) -> int:
        return int(parse(self).base_version.split(".", maxsplit=2)[1])

    def __gt__(self, cmp: t.Any) -> bool:
        try:
            return bool(Version(self).__gt__(self._convert_to_version(cmp)))
        except InvalidVersion:
            return super().__gt__(cmp)

    def __lt__(self, cmp: t.Any) -> bool:
        try:
            return bool(Version(self).__lt__(self._convert_to_version(cmp)))
        except InvalidVersion:
            return super().__lt__(cmp)

    def __eq__(self, cmp: t.Any) -> bool:
        try:
            return bool(Version(self).__eq__(self._convert_to_version(cmp)))
        except InvalidVersion:
            return super().__eq__(cmp)

    def __ge__(self, cmp: t.Any) -> bool:
        try:
            return bool(Version(self).__ge__(self._convert_to_version(cmp)))
        except InvalidVersion:
            return super().__ge__(cmp)

    def __le__(self, cmp: t.Any) -> bool:
        try:
            return bool(Version(self).__le__(self._convert_to_version(cmp)))
        except InvalidVersion:
            return super().__le__(cmp)

    def __hash__(self) -> int:
        return hash(str(self))


def get_env(var: str, default: str) -> str:
    return os.environ.get(var, default)


class Versioner:
    """Versioner is responsible for managing all the versions
    within mpicompat including mpicompat itself.

    The mpicompat version is written into version.py upon pip install
    by using this class in setup.py. By setting MPICOMPAT_SUFFIX,
    the version will be written as a "dirty" version with the
    git-sha appended.
    i.e.
        export MPICOMPAT_SUFFIX=nightly
        pip install -e .
        mpicompat.__version__ == 0.4.0+nightly.3fe23ff

    The versions and download locations of the benchmark
    applications built inside the test containers live here too
    and can be overridden through the environment.
    """

    # compatible Python version
    PYTHON_MIN = Version_("3.9.0")

    # Versions
    MPICOMPAT = Version_(get_env("MPICOMPAT_VERSION", "0.4.0"))
    MPICOMPAT_SUFFIX = get_env("MPICOMPAT_SUFFIX", "")

    # NetPIPE
    NETPIPE = Version_(get_env("MPICOMPAT_NETPIPE", "5.1.4"))
    NETPIPE_URL = get_env(
        "MPICOMPAT_NETPIPE_URL",
        f"http://netpipe.cs.ksu.edu/download/NetPIPE-{NETPIPE}.tar.gz",
    )

    # Intel MPI Benchmarks
    IMB_URL = get_env(
        "MPICOMPAT_IMB_URL", "https://github.com/intel/mpi-benchmarks.git"
    )

    # Linux distribution of the test containers
    DISTRO = get_env("MPICOMPAT_DISTRO", "ubuntu:disco")

    def as_dict(self) -> t.Dict[str, t.Tuple[str, ...]]:
        pkg_map = {
            "MPICOMPAT": self.MPICOMPAT,
            "NETPIPE": self.NETPIPE,
            "IMB": self.IMB_URL,
            "DISTRO": self.DISTRO,
        }
        return {"Packages": tuple(pkg_map), "Versions": tuple(pkg_map.values())}

    @staticmethod
    def get_sha(setup_py_dir: Path) -> str:
        """Get the git sha of the current branch"""
        try:
            rev_cmd = ["git", "rev-parse", "HEAD"]
            git_rev = subprocess.check_output(rev_cmd, cwd=setup_py_dir.absolute())
            sha = git_rev.decode("ascii").strip()

            return sha[:7]
        except (OSError, subprocess.CalledProcessError):
            # return empty string if not in git-repo
            return ""

    def write_version(self, setup_py_dir: Path) -> str:
        """
        Write version info to version.py

        Use git_sha in the case where mpicompat suffix is set in the environment
        """
        version = str(self.MPICOMPAT)

        if self.MPICOMPAT_SUFFIX:
            version += f"+{self.MPICOMPAT_SUFFIX}"

            # wheel build (python -m build) won't include git sha
            if git_sha := self.get_sha(setup_py_dir):
                version += f".{git_sha}"

        version_file_path = setup_py_dir / "mpicompat" / "version.py"
        with open(version_file_path, "w", encoding="utf-8") as version_file:
            version_file.write("# This file is automatically generated by setup.py\n")
            version_file.write("# do not edit this file manually.\n\n")

            version_file.write(f"__version__ = '{version}'\n")
        return version


class BuildEnv:
    """Environment for building MPI implementations and test applications
    on the host

    The environment variables listed here control the compilers used
    when an MPI implementation or an application is compiled on the
    host. Prerequisite tools are also checked for here and if they are
    not found then a SetupError is raised.
    """

    # Compiler overrides
    CC = os.environ.get("CC", "gcc")
    CXX = os.environ.get("CXX", "g++")
    FC = os.environ.get("FC", "gfortran")
    CFLAGS = os.environ.get("CFLAGS", "")

    # build overrides
    JOBS = int(os.environ.get("BUILD_JOBS", 4))

    # check for CC/GCC/ETC
    CHECKS = int(os.environ.get("NO_CHECKS", 0))
    PLATFORM = sys.platform

    # tools every experiment relies on
    PREREQUISITES = ("wget", "make", "file")

    def __init__(self, checks: bool = True) -> None:
        if checks:
            self.check_dependencies()

    @property
    def dependencies(self) -> t.List[str]:
        return [*self.PREREQUISITES, self.CC, self.CXX, self.FC]

    def check_dependencies(self) -> None:
        if int(self.CHECKS) == 0:
            for dep in self.dependencies:
                self.check_build_dependency(dep)

    def missing_dependencies(self) -> t.List[str]:
        missing = []
        for dep in self.dependencies:
            try:
                self.check_build_dependency(dep)
            except SetupError:
                missing.append(dep)
        return missing

    def __call__(self) -> t.Dict[str, str]:
        # return the build env for the build process
        env = os.environ.copy()
        env.update(
            {
                "CC": self.CC,
                "CXX": self.CXX,
                "FC": self.FC,
                "CFLAGS": self.CFLAGS,
            }
        )
        return env

    def as_dict(self) -> t.Dict[str, t.List[str]]:
        variables: t.List[str] = [
            "CC",
            "CXX",
            "FC",
            "CFLAGS",
            "JOBS",
            "PYTHON_VERSION",
            "PLATFORM",
        ]
        values: t.List[str] = [
            self.CC,
            self.CXX,
            self.FC,
            self.CFLAGS,
            str(self.JOBS),
            self.python_version,
            self.PLATFORM,
        ]
        env = {"Environment": variables, "Values": values}
        return env

    @property
    def python_version(self) -> str:
        return platform.python_version()

    @staticmethod
    def is_compatible_python(python_min: Version_) -> bool:
        """Detect if system Python is too old"""
        sys_py = sys.version_info
        system_python = Version_(f"{sys_py.major}.{sys_py.minor}.{sys_py.micro}")
        return system_python >= python_min

    @classmethod
    def is_windows(cls) -> bool:
        return cls.PLATFORM in ["win32", "cygwin", "msys"]

    @staticmethod
    def check_build_dependency(command: str) -> None:
        try:
            subprocess.check_call(
                [command, "--version"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, subprocess.CalledProcessError):
            raise SetupError(f"{command} must be installed to run mpicompat") from None
