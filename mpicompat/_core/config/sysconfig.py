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
from dataclasses import dataclass, field
from pathlib import Path

from ...apps import APP_NAMES
from ...error import ConfigurationError
from .._install.buildenv import Versioner
from ..utils.kv import load_key_value_config
from .config import Config, get_config
from .toolconfig import ToolConfig

OFI_CONFIG_FILE = "ofi.conf"
OFI_IFNET_KEY = "ifnet"
OFI_PLACEHOLDER = "<your network interface>"


@dataclass
class SystemConfig:
    """Settings of one run of the tool.

    Built once by the command line and handed to every component so
    that nothing reads configuration from global state.
    """

    tool: ToolConfig
    output_dir: Path
    scratch_dir: Path
    template_dir: Path
    etc_dir: Path
    persistent: t.Optional[Path] = None
    singularity: str = "singularity"
    app: str = "helloworld"
    nrun: int = 1
    distro: str = Versioner.DISTRO
    debug: bool = False
    verbose: bool = False
    upload: bool = False
    registry: str = ""
    cmd_timeout: int = 600
    build_timeout: int = 1200
    job_timeout: int = 1800
    ranks: int = 2
    nodes: int = 2
    key_index: str = "0"
    key_passphrase: t.Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.app not in APP_NAMES:
            raise ConfigurationError(
                f"Unknown test application {self.app}, expected one of {APP_NAMES}"
            )
        if self.nrun < 1:
            raise ConfigurationError("The number of iterations must be at least 1")

    @classmethod
    def from_env(
        cls,
        output_dir: t.Union[str, Path],
        tool: t.Optional[ToolConfig] = None,
        **kwargs: t.Any,
    ) -> "SystemConfig":
        """Create a configuration with defaults taken from the
        environment

        :param output_dir: where results, logs and error dumps are written
        :param tool: tool configuration, loaded from the default location
                     if not provided
        :returns: the run configuration
        """
        config: Config = get_config()
        output_path = Path(output_dir).resolve()
        defaults: t.Dict[str, t.Any] = {
            "scratch_dir": output_path / "scratch",
            "template_dir": config.template_dir,
            "etc_dir": config.etc_dir,
            "cmd_timeout": config.cmd_timeout,
            "build_timeout": config.build_timeout,
            "job_timeout": config.job_timeout,
            "key_index": config.key_index,
            "key_passphrase": config.key_passphrase,
        }
        defaults.update(kwargs)
        if tool is None:
            tool = ToolConfig.load(config.tool_config_file)
        return cls(tool=tool, output_dir=output_path, **defaults)

    @property
    def is_persistent(self) -> bool:
        return self.persistent is not None

    @property
    def slurm_enabled(self) -> bool:
        return self.tool.slurm_enabled

    @property
    def ib_enabled(self) -> bool:
        return self.tool.ib_enabled

    @property
    def distro_name(self) -> str:
        return self.distro.split(":", maxsplit=1)[0]

    @property
    def distro_codename(self) -> str:
        _, _, codename = self.distro.partition(":")
        return codename or self.distro

    def is_sudo_cmd(self, cmd: str) -> bool:
        return cmd in self.tool.sudo_commands

    def ofi_interface(self) -> str:
        """Network interface Intel MPI containers must use

        :raises ConfigurationError: if ofi.conf is missing or not filled in
        """
        kvs = load_key_value_config(self.etc_dir / OFI_CONFIG_FILE)
        ifnet = kvs.get(OFI_IFNET_KEY, "")
        if not ifnet or ifnet == OFI_PLACEHOLDER:
            raise ConfigurationError(
                f"{OFI_IFNET_KEY} must be set in {self.etc_dir / OFI_CONFIG_FILE}"
            )
        return ifnet

    def image_url(self, implementation: str, version: str) -> str:
        """Registry URL of a pre-built image, from <etc>/<mpi>-images.conf

        :returns: the URL, or an empty string if none is configured
        """
        images_conf = self.etc_dir / f"{implementation}-images.conf"
        if not images_conf.is_file():
            return ""
        return load_key_value_config(images_conf).get(version, "")
