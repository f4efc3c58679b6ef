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

import argparse
import typing as t
from argparse import ArgumentParser, Namespace
from pathlib import Path

from ...log import get_logger, set_console_level
from .._install.buildenv import BuildEnv
from ..config import CONFIG
from ..config.sysconfig import SystemConfig
from ..config.toolconfig import ToolConfig
from ..utils import colorize
from ..utils.sysprobe import load_infiniband, probe_build_privilege

MPICOMPAT_LOGGER_FORMAT = "[%(name)s] %(levelname)s %(message)s"
logger = get_logger("MPICompat", fmt=MPICOMPAT_LOGGER_FORMAT)


def color_bool(trigger: bool = True) -> str:
    _color = "green" if trigger else "red"
    return colorize(str(trigger), color=_color)


def load_tool_config(singularity: str = "singularity") -> ToolConfig:
    """Load the tool configuration, creating it on first use

    :param singularity: container engine used to probe the build privilege
    :returns: the configuration, with Infiniband detection applied
    """
    tool = ToolConfig.load(CONFIG.tool_config_file)
    tool.initialize(lambda: probe_build_privilege(singularity))
    load_infiniband(tool)
    return tool


def add_common_arguments(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--output-dir",
        type=str,
        default=".",
        help="Directory receiving results, logs and error dumps",
    )
    parser.add_argument(
        "--persistent",
        action="store_true",
        default=False,
        help=f"Keep installations and images in the workspace ({CONFIG.workspace_dir})",
    )
    parser.add_argument(
        "--distro",
        type=str,
        default=None,
        help="Linux distribution of the containers, e.g. ubuntu:disco",
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        default=False,
        help="Sign and upload the images that are built",
    )
    parser.add_argument(
        "--registry",
        type=str,
        default="",
        help="Registry the images are uploaded to",
    )
    parser.add_argument(
        "--singularity",
        type=str,
        default="singularity",
        help="Container engine executable",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Check prerequisites and keep definition files",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable verbose mode",
    )


def system_config(args: Namespace, **kwargs: t.Any) -> SystemConfig:
    """Build the settings of the run from the command line

    :raises SetupError: in debug mode, if a prerequisite is missing
    """
    if args.verbose:
        set_console_level("debug")
    if args.debug:
        BuildEnv(checks=True)
    tool = load_tool_config(args.singularity)
    persistent: t.Optional[Path] = None
    if args.persistent:
        persistent = CONFIG.workspace_dir
        persistent.mkdir(parents=True, exist_ok=True)
    if args.distro:
        kwargs["distro"] = args.distro
    return SystemConfig.from_env(
        args.output_dir,
        tool=tool,
        persistent=persistent,
        singularity=args.singularity,
        debug=args.debug,
        verbose=args.verbose,
        upload=args.upload,
        registry=args.registry,
        **kwargs,
    )


def existing_file(path: str) -> Path:
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise argparse.ArgumentTypeError(f"{path} does not exist")
    return file_path


_CliHandler = t.Callable[[Namespace], int]
_CliParseConfigurator = t.Callable[[ArgumentParser], None]


class MenuItemConfig:
    def __init__(
        self,
        cmd: str,
        description: str,
        handler: _CliHandler,
        configurator: t.Optional[_CliParseConfigurator] = None,
    ):
        self.command = cmd
        self.description = description
        self.handler = handler
        self.configurator = configurator
