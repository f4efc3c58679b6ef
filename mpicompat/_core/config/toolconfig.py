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

import typing as t
from pathlib import Path

from filelock import FileLock

from ...log import get_logger
from ..utils.kv import load_key_value_config, write_key_value_config

logger = get_logger(__name__)

_TRUE_VALUES = ("1", "t", "true", "yes", "on")


def _to_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


class ToolConfig:
    """Capabilities of the host, persisted as a human editable
    key=value file.

    The file is read once at startup and the resulting object is
    passed around. A capability is written back, through ``persist``,
    only the first time it is detected.
    """

    BUILD_PRIVILEGE_KEY = "build_privilege"
    NO_PRIVILEGE_KEY = "force_unprivileged"
    SUDO_CMDS_KEY = "singularity_sudo_cmds"
    SLURM_KEY = "enable_slurm"
    SLURM_PARTITION_KEY = "slurm_partition"
    IB_KEY = "force_ib"
    MXM_DIR_KEY = "mxm_dir"
    KNEM_DIR_KEY = "knem_dir"

    def __init__(
        self, path: t.Union[str, Path], entries: t.Optional[t.Dict[str, str]] = None
    ) -> None:
        self.path = Path(path)
        self._entries: t.Dict[str, str] = dict(entries or {})

    @classmethod
    def load(cls, path: t.Union[str, Path]) -> "ToolConfig":
        """Load the tool configuration, a missing file yields an
        empty configuration

        :param path: path to the configuration file
        :returns: the configuration
        """
        config_path = Path(path)
        if not config_path.is_file():
            return cls(config_path)
        return cls(config_path, load_key_value_config(config_path))

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def has(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, default: str = "") -> str:
        return self._entries.get(key, default)

    def get_bool(self, key: str) -> bool:
        return _to_bool(self.get(key, "false"))

    @property
    def build_privilege(self) -> bool:
        return self.get_bool(self.BUILD_PRIVILEGE_KEY)

    @property
    def no_privilege(self) -> bool:
        return self.get_bool(self.NO_PRIVILEGE_KEY)

    @property
    def sudo_commands(self) -> t.List[str]:
        # unprivileged mode never escalates
        if self.no_privilege:
            return []
        return self.get(self.SUDO_CMDS_KEY).split()

    @property
    def slurm_enabled(self) -> bool:
        return self.get_bool(self.SLURM_KEY)

    @property
    def slurm_partition(self) -> str:
        return self.get(self.SLURM_PARTITION_KEY)

    @property
    def ib_enabled(self) -> bool:
        return self.get_bool(self.IB_KEY)

    @property
    def mxm_dir(self) -> str:
        return self.get(self.MXM_DIR_KEY)

    @property
    def knem_dir(self) -> str:
        return self.get(self.KNEM_DIR_KEY)

    def as_dict(self) -> t.Dict[str, str]:
        return dict(self._entries)

    def persist(self, key: str, value: t.Union[str, bool]) -> None:
        """Set a capability and write it back to the configuration file

        The file is re-read under a lock so that concurrent instances
        of the tool do not drop each other's entries.

        :param key: the configuration key
        :param value: the value, booleans are stored as true/false
        """
        str_value = str(value).lower() if isinstance(value, bool) else str(value)
        if self._entries.get(key) == str_value and self.exists:
            logger.debug(f"Key {key} from {self.path} already set to {str_value}")
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(self.lock_path)):
            entries = load_key_value_config(self.path) if self.exists else {}
            entries[key] = str_value
            write_key_value_config(self.path, entries)
        self._entries[key] = str_value
        logger.debug(f"Saved {key} = {str_value} in {self.path}")

    def initialize(self, build_privilege: t.Callable[[], bool]) -> None:
        """Create the configuration file if it does not exist yet

        :param build_privilege: probe telling whether images can be built
        """
        if self.exists:
            return
        logger.info(f"Creating tool configuration file {self.path}")
        privileged = build_privilege()
        if not privileged:
            logger.info("Container images cannot be built on this host")
        self.persist(self.BUILD_PRIVILEGE_KEY, privileged)
        # image builds need sudo unless configured otherwise
        self.persist(self.SUDO_CMDS_KEY, "build")
