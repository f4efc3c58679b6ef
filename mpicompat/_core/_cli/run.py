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

from ...container import MPIModel
from ...experiment import Experiment
from ...matrix import load_matrix
from .utils import add_common_arguments, existing_file, system_config


def configure_parser(parser: argparse.ArgumentParser) -> None:
    """Builds the parser for the command"""
    parser.add_argument(
        "--config",
        type=existing_file,
        required=True,
        help="Matrix configuration listing the MPI versions to test",
    )
    test_group = parser.add_mutually_exclusive_group()
    test_group.add_argument(
        "--netpipe",
        action="store_true",
        default=False,
        help="Run the NetPIPE point-to-point test",
    )
    test_group.add_argument(
        "--imb",
        action="store_true",
        default=False,
        help="Run the IMB collective tests",
    )
    parser.add_argument(
        "-n",
        "--nrun",
        type=int,
        default=1,
        help="Number of iterations of each experiment",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=MPIModel.HYBRID.value,
        choices=[model.value for model in MPIModel],
        help="How MPI gets into the containers",
    )
    parser.add_argument(
        "--ranks", type=int, default=2, help="Number of ranks of each job"
    )
    parser.add_argument(
        "--nodes", type=int, default=2, help="Number of nodes of each job"
    )
    add_common_arguments(parser)


def execute(args: argparse.Namespace) -> int:
    app = "helloworld"
    if args.netpipe:
        app = "netpipe"
    elif args.imb:
        app = "imb"

    matrix = load_matrix(args.config)
    sysconf = system_config(
        args, app=app, nrun=args.nrun, ranks=args.ranks, nodes=args.nodes
    )
    experiment = Experiment(sysconf, matrix, MPIModel.from_str(args.model))
    experiment.run()
    return os.EX_OK
