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
from pathlib import Path

from tabulate import tabulate

from ...experiment import compile_matrix
from ...mpi import MPIImplementation
from .utils import color_bool


def configure_parser(parser: argparse.ArgumentParser) -> None:
    """Builds the parser for the command"""
    parser.add_argument(
        "--implementation",
        type=str,
        required=True,
        choices=[implementation.value for implementation in MPIImplementation],
        help="MPI implementation whose results are aggregated",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=".",
        help="Directory holding the results files",
    )


def execute(args: argparse.Namespace) -> int:
    output_dir = Path(args.output_dir).resolve()
    path = compile_matrix(output_dir, args.implementation)
    rows = []
    with open(path, "r", encoding="utf-8") as matrix_fd:
        for line in matrix_fd:
            host, container, compatible = line.rstrip("\n").split("\t")
            rows.append([host, container, color_bool(compatible == "true")])
    print(f"Compatibility matrix of {args.implementation} ({path}):")
    print(
        tabulate(
            rows,
            headers=["Host", "Container", "Compatible"],
            tablefmt="fancy_outline",
            disable_numparse=True,
        ),
        end="\n\n",
    )
    return os.EX_OK
