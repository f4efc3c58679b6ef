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

"""Simple probes of the host capabilities"""

import tempfile
import typing as t
from pathlib import Path

from ...error import ShellError
from ...log import get_logger
from .helpers import check_for_utility
from .shell import execute_cmd

if t.TYPE_CHECKING:
    from ..config.toolconfig import ToolConfig

logger = get_logger(__name__)

PROBE_DEF_FILE = "Bootstrap: docker\nFrom: alpine\n"


def probe_build_privilege(singularity: str = "singularity", timeout: int = 60) -> bool:
    """Try to build a minimal image with sudo to find out whether
    images can be built on this host

    :param singularity: container engine executable
    :param timeout: timeout of the test build in seconds
    :returns: True if the test image could be built
    """
    sudo = check_for_utility("sudo")
    if not sudo:
        logger.info("sudo is not available, images cannot be built")
        return False

    with tempfile.TemporaryDirectory() as tmp_dir:
        def_file = Path(tmp_dir) / "test.def"
        def_file.write_text(PROBE_DEF_FILE, encoding="utf-8")
        image = Path(tmp_dir) / "test.sif"
        cmd = [sudo, singularity, "build", str(image), str(def_file)]
        logger.info(f"Trying to create image with: {' '.join(cmd)}")
        try:
            returncode, _, err = execute_cmd(cmd, cwd=tmp_dir, timeout=timeout)
        except ShellError as e:
            logger.info(f"Failed to build test image: {e}")
            return False
    if returncode != 0:
        logger.info(f"Failed to build test image: {err}")
    return returncode == 0


def detect_infiniband() -> bool:
    return bool(check_for_utility("ibstat"))


def detect_slurm() -> bool:
    return bool(check_for_utility("sbatch"))


def load_infiniband(tool_config: "ToolConfig") -> bool:
    """Detect Infiniband and record it in the tool configuration the
    first time it is found. An explicit ``force_ib`` entry wins.

    :param tool_config: the tool configuration
    :returns: whether Infiniband should be used
    """
    if not detect_infiniband():
        logger.debug("Infiniband not detected")
        return tool_config.ib_enabled

    if not tool_config.has(tool_config.IB_KEY):
        logger.info("Infiniband detected, updating the configuration file")
        tool_config.persist(tool_config.IB_KEY, True)
    return tool_config.ib_enabled
