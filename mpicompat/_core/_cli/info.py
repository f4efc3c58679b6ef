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
import importlib.metadata
import os

from tabulate import tabulate

from .._install.buildenv import BuildEnv
from ..config import CONFIG
from ..config.toolconfig import ToolConfig
from ..utils import colorize


def _fmt_version() -> str:
    try:
        return colorize(importlib.metadata.version("mpicompat"), "green")
    except importlib.metadata.PackageNotFoundError:
        return colorize("Not installed", "red")


def execute(_args: argparse.Namespace) -> int:
    print("\nMPICompat:")
    print(
        tabulate(
            [
                ["Version", _fmt_version()],
                ["Workspace", str(CONFIG.workspace_dir)],
                ["Tool configuration", str(CONFIG.tool_config_file)],
                ["Templates", str(CONFIG.template_dir)],
                ["Configuration files", str(CONFIG.etc_dir)],
            ],
            tablefmt="fancy_outline",
        ),
        end="\n\n",
    )

    tool_config = ToolConfig.load(CONFIG.tool_config_file)
    print("Tool configuration:")
    if tool_config.exists:
        print(
            tabulate(
                sorted(tool_config.as_dict().items()),
                headers=["Key", "Value"],
                tablefmt="fancy_outline",
                disable_numparse=True,
            ),
            end="\n\n",
        )
    else:
        print("Not created yet, run `mpicompat check`\n")

    print("Build environment:")
    print(
        tabulate(
            BuildEnv(checks=False).as_dict(),
            headers="keys",
            tablefmt="fancy_outline",
        ),
        end="\n\n",
    )
    return os.EX_OK
