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
import os

from tabulate import tabulate

from ...workspace import Workspace
from ..config import CONFIG
from ..config.sysconfig import SystemConfig
from ..config.toolconfig import ToolConfig
from .utils import load_tool_config


def _workspace(tool: ToolConfig) -> Workspace:
    workspace_dir = CONFIG.workspace_dir
    workspace_dir.mkdir(parents=True, exist_ok=True)
    return Workspace(
        SystemConfig.from_env(workspace_dir, tool=tool, persistent=workspace_dir)
    )


def configure_parser(parser: argparse.ArgumentParser) -> None:
    """Builds the parser of the install and uninstall commands"""
    parser.add_argument(
        "mpi",
        type=str,
        help="MPI implementation and version, e.g. openmpi:4.0.2",
    )


def execute_list(_args: argparse.Namespace) -> int:
    workspace = _workspace(ToolConfig.load(CONFIG.tool_config_file))
    print(f"\nWorkspace: {workspace.root}\n")
    installs = [[impl.id.value, impl.version] for impl in workspace.host_installs()]
    if installs:
        print("MPI installations on the host:")
        print(
            tabulate(
                installs,
                headers=["Implementation", "Version"],
                tablefmt="fancy_outline",
                disable_numparse=True,
            ),
            end="\n\n",
        )
    else:
        print("No MPI available on the host\n")

    images = [[image.name, str(image.parent)] for image in workspace.containers()]
    if images:
        print("Container images:")
        print(
            tabulate(
                images,
                headers=["Image", "Directory"],
                tablefmt="fancy_outline",
            ),
            end="\n\n",
        )
    else:
        print("No container available\n")
    return os.EX_OK


def execute_install(args: argparse.Namespace) -> int:
    env = _workspace(load_tool_config()).install(args.mpi)
    print(f"{args.mpi} installed in {env.install_dir}")
    return os.EX_OK


def execute_uninstall(args: argparse.Namespace) -> int:
    _workspace(ToolConfig.load(CONFIG.tool_config_file)).uninstall(args.mpi)
    print(f"{args.mpi} uninstalled")
    return os.EX_OK
