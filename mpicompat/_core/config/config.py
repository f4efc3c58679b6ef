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
import typing as t
from functools import lru_cache
from pathlib import Path

from ...error import ConfigurationError

# Configuration Values
#
# These values can be set through environment variables to
# override the default behavior of mpicompat.
#
# MPICOMPAT_LOG_LEVEL
#   - Log level for mpicompat (quiet, info, debug, developer)
#   - Default: info
#
# MPICOMPAT_DIR
#   - Workspace where persistent MPI installations and images live
#   - Default: $HOME/.mpicompat
#
# MPICOMPAT_CONFIG_FILE
#   - Path to the persisted tool configuration (capabilities)
#   - Default: $MPICOMPAT_DIR/mpicompat.conf
#
# MPICOMPAT_TEMPLATE_DIR
#   - Directory holding the definition file templates
#   - Default: mpicompat/_core/config/templates
#
# MPICOMPAT_ETC_DIR
#   - Directory holding ofi.conf and the <mpi>-images.conf files
#   - Default: mpicompat/_core/config/etc
#
# MPICOMPAT_CMD_TIMEOUT
#   - Timeout in minutes of external commands, builds and pulls
#     get twice as much
#   - Default: 10
#
# MPICOMPAT_JOB_TIMEOUT
#   - Timeout in minutes of a single MPI job
#   - Default: 30
#
# SY_KEY_PASSPHRASE
#   - Passphrase of the key used to sign images
#   - Default: None
#
# SY_KEY_INDEX
#   - Index of the key used to sign images
#   - Default: 0


class Config:
    def __init__(self) -> None:
        # mpicompat/_core
        self.core_path = Path(os.path.abspath(__file__)).parent.parent
        self.conf_dir = self.core_path / "config"

    @property
    def log_level(self) -> str:
        return os.environ.get("MPICOMPAT_LOG_LEVEL", "info")

    @property
    def workspace_dir(self) -> Path:
        default_path = Path.home() / ".mpicompat"
        return Path(os.environ.get("MPICOMPAT_DIR", str(default_path))).resolve()

    @property
    def tool_config_file(self) -> Path:
        default_path = self.workspace_dir / "mpicompat.conf"
        return Path(os.environ.get("MPICOMPAT_CONFIG_FILE", str(default_path)))

    @property
    def template_dir(self) -> Path:
        template_dir = Path(
            os.environ.get("MPICOMPAT_TEMPLATE_DIR", str(self.conf_dir / "templates"))
        ).resolve()
        if not template_dir.is_dir():
            raise ConfigurationError(
                f"Template directory {template_dir} set by MPICOMPAT_TEMPLATE_DIR "
                "could not be found"
            )
        return template_dir

    @property
    def etc_dir(self) -> Path:
        return Path(
            os.environ.get("MPICOMPAT_ETC_DIR", str(self.conf_dir / "etc"))
        ).resolve()

    @property
    def cmd_timeout(self) -> int:
        """Timeout of external commands in seconds"""
        return int(os.environ.get("MPICOMPAT_CMD_TIMEOUT") or 10) * 60

    @property
    def build_timeout(self) -> int:
        return self.cmd_timeout * 2

    @property
    def job_timeout(self) -> int:
        """Timeout of an MPI job in seconds"""
        return int(os.environ.get("MPICOMPAT_JOB_TIMEOUT") or 30) * 60

    @property
    def key_passphrase(self) -> t.Optional[str]:
        return os.environ.get("SY_KEY_PASSPHRASE", None)

    @property
    def key_index(self) -> str:
        key_index = os.environ.get("SY_KEY_INDEX") or "0"
        if not key_index.isdigit():
            raise ConfigurationError(
                f"SY_KEY_INDEX must be an integer, not {key_index}"
            )
        return key_index


@lru_cache(maxsize=128, typed=False)
def get_config() -> Config:
    # wrap into a function with a cached result
    return Config()
