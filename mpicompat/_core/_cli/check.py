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

from .._install.buildenv import BuildEnv
from ..utils import check_for_utility
from ..utils.sysprobe import detect_slurm
from .utils import color_bool, load_tool_config


def configure_parser(parser: argparse.ArgumentParser) -> None:
    """Builds the parser for the command"""
    parser.add_argument(
        "--singularity",
        type=str,
        default="singularity",
        help="Container engine executable",
    )


def execute(args: argparse.Namespace) -> int:
    build_env = BuildEnv(checks=False)
    missing = build_env.missing_dependencies()
    tools = [*build_env.dependencies, args.singularity, "sudo", "sbatch", "ibstat"]
    print("Prerequisites:")
    print(
        tabulate(
            [[tool, check_for_utility(tool) or color_bool(False)] for tool in tools],
            headers=["Tool", "Path"],
            tablefmt="fancy_outline",
        ),
        end="\n\n",
    )

    tool_config = load_tool_config(args.singularity)
    if detect_slurm() and not tool_config.slurm_enabled:
        tool_config.persist(tool_config.SLURM_KEY, True)
    print(f"Tool configuration ({tool_config.path}):")
    print(
        tabulate(
            [
                ["Build privilege", color_bool(tool_config.build_privilege)],
                ["Unprivileged builds", color_bool(tool_config.no_privilege)],
                ["Commands run with sudo", " ".join(tool_config.sudo_commands)],
                ["Slurm", color_bool(tool_config.slurm_enabled)],
                ["Infiniband", color_bool(tool_config.ib_enabled)],
            ],
            tablefmt="fancy_outline",
        ),
        end="\n\n",
    )
    if missing:
        print(f"Missing prerequisites: {', '.join(missing)}")
        return 1
    return os.EX_OK
