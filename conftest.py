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

from __future__ import annotations

import logging
import os
import re
import shutil
import tarfile
import time
import typing as t
from pathlib import Path

import pytest

import mpicompat
from mpicompat._core.config import CONFIG
from mpicompat._core.config.sysconfig import SystemConfig
from mpicompat._core.config.toolconfig import ToolConfig
from mpicompat.log import get_logger

logger = get_logger(__name__)

# pylint: disable=redefined-outer-name,invalid-name

# Globals, yes, but its a testing file
test_path = os.path.dirname(os.path.abspath(__file__))
test_output_root = os.path.join(test_path, "tests", "test_output")

OPENMPI_URL = (
    "https://download.open-mpi.org/release/open-mpi/v{minor}/openmpi-{version}.tar.bz2"
)


def print_test_configuration() -> None:
    print("TEST_MPICOMPAT_LOCATION:", mpicompat.__path__)
    print("TEST_PATH:", test_path)
    print("TEST_DIR:", test_output_root)
    print("Test output will be located in TEST_DIR if there is a failure")


def pytest_sessionstart(
    session: pytest.Session,  # pylint: disable=unused-argument
) -> None:
    """
    Called after the Session object has been created and
    before performing collection and entering the run test loop.
    """
    if os.path.isdir(test_output_root):
        shutil.rmtree(test_output_root)
    os.makedirs(test_output_root)
    while not os.path.isdir(test_output_root):
        time.sleep(0.1)

    print_test_configuration()


def _sanitize_caller_function(caller_function: str) -> str:
    # Parametrized test functions end with a list of all
    # parameter values. The list is enclosed in square brackets.
    # We split at the opening bracket, sanitize the string
    # to its right and then merge the function name and
    # the sanitized list with a dot.
    caller_function = caller_function.replace("]", "")
    caller_function_list = caller_function.split("[", maxsplit=1)

    def is_accepted_char(char: str) -> bool:
        return char.isalnum() or char in "-."

    if len(caller_function_list) > 1:
        caller_function_list[1] = "".join(
            filter(is_accepted_char, caller_function_list[1])
        )

    return ".".join(caller_function_list)


@pytest.fixture(autouse=True)
def isolated_workspace(monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the persistent workspace and tool configuration of the
    tests away from the home directory"""
    workspace = Path(test_output_root) / "workspace"
    monkeypatch.setenv("MPICOMPAT_DIR", str(workspace))
    monkeypatch.delenv("MPICOMPAT_CONFIG_FILE", raising=False)
    monkeypatch.delenv("MPICOMPAT_ETC_DIR", raising=False)
    monkeypatch.delenv("MPICOMPAT_TEMPLATE_DIR", raising=False)
    return workspace


@pytest.fixture
def console_level() -> t.Generator[logging.Logger, None, None]:
    """The mpicompat logger, its levels restored after the test"""
    logger = logging.getLogger("MPICompat")
    level = logger.level
    handler_levels = [(handler, handler.level) for handler in logger.handlers]
    yield logger
    logger.setLevel(level)
    for handler, handler_level in handler_levels:
        handler.setLevel(handler_level)


@pytest.fixture
def test_dir(request: pytest.FixtureRequest) -> str:
    caller_function = _sanitize_caller_function(request.node.name)
    dir_path = FileUtils.get_test_output_path(caller_function, str(request.path))

    if os.path.isdir(dir_path):
        shutil.rmtree(dir_path)
    os.makedirs(dir_path)
    return dir_path


@pytest.fixture
def fileutils() -> t.Type[FileUtils]:
    return FileUtils


@pytest.fixture
def tool_config(test_dir: str) -> ToolConfig:
    """Capabilities of a host that can build images with sudo"""
    return ToolConfig(
        Path(test_dir) / "mpicompat.conf",
        {
            ToolConfig.BUILD_PRIVILEGE_KEY: "true",
            ToolConfig.SUDO_CMDS_KEY: "build",
        },
    )


@pytest.fixture
def etc_dir(test_dir: str) -> Path:
    """Writable copy of the configuration files shipped with mpicompat"""
    etc = Path(test_dir) / "etc"
    shutil.copytree(CONFIG.etc_dir, etc)
    return etc


@pytest.fixture
def sysconf(test_dir: str, tool_config: ToolConfig, etc_dir: Path) -> SystemConfig:
    output_dir = Path(test_dir) / "output"
    return SystemConfig(
        tool=tool_config,
        output_dir=output_dir,
        scratch_dir=output_dir / "scratch",
        template_dir=CONFIG.template_dir,
        etc_dir=etc_dir,
        distro="ubuntu:disco",
        cmd_timeout=30,
        build_timeout=60,
        job_timeout=30,
    )


class FileUtils:
    @staticmethod
    def get_test_output_path(caller_function: str, caller_fspath: str) -> str:
        caller_file_to_dir = os.path.splitext(str(caller_fspath))[0]
        dir_name = os.path.dirname(test_output_root)
        rel_path = os.path.relpath(caller_file_to_dir, dir_name)
        dir_path = os.path.join(test_output_root, rel_path, caller_function)
        return dir_path

    @staticmethod
    def make_test_file(
        file_name: str, file_dir: str, file_content: t.Optional[str] = None
    ) -> str:
        """Create a dummy file in the test output directory.

        :param file_name: name of file to create, e.g. "file.txt"
        :param file_dir: path
        :return: String path to test output file
        """
        file_path = os.path.join(file_dir, file_name)
        os.makedirs(file_dir, exist_ok=True)
        with open(file_path, "w+", encoding="utf-8") as dummy_file:
            if not file_content:
                dummy_file.write("dummy\n")
            else:
                dummy_file.write(file_content)
        return file_path

    @staticmethod
    def make_tarball(
        archive: t.Union[str, Path],
        files: t.Mapping[str, str],
        mode: str = "w:gz",
        executables: t.Iterable[str] = (),
    ) -> Path:
        """Create an archive holding ``files``, a mapping of relative
        path to content. Entries listed in ``executables`` get the
        execute permission."""
        archive_path = Path(archive)
        staging = archive_path.parent / f".{archive_path.name}.staging"
        for name, content in files.items():
            target = staging / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        for name in executables:
            (staging / name).chmod(0o755)
        with tarfile.open(archive_path, mode) as tar:
            for entry in sorted(staging.iterdir()):
                tar.add(entry, arcname=entry.name)
        shutil.rmtree(staging)
        return archive_path

    @staticmethod
    def openmpi_url(version: str) -> str:
        minor = re.sub(r"^(\d+\.\d+).*$", r"\1", version)
        return OPENMPI_URL.format(minor=minor, version=version)
