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

from ...container import Singularity
from ..config import CONFIG
from ..config.sysconfig import SystemConfig
from ..config.toolconfig import ToolConfig
from .utils import existing_file


def configure_parser(parser: argparse.ArgumentParser) -> None:
    """Builds the parser for the command"""
    parser.add_argument("image", type=existing_file, help="Path to the image")
    parser.add_argument(
        "--singularity",
        type=str,
        default="singularity",
        help="Container engine executable",
    )


def execute(args: argparse.Namespace) -> int:
    sysconf = SystemConfig.from_env(
        args.image.parent,
        tool=ToolConfig.load(CONFIG.tool_config_file),
        singularity=args.singularity,
    )
    container = Singularity(sysconf).inspect(args.image)
    print(f"{args.image}:")
    print(
        tabulate(
            list(container.labels().items()),
            headers=["Label", "Value"],
            tablefmt="fancy_outline",
            disable_numparse=True,
        ),
        end="\n\n",
    )
    return os.EX_OK
