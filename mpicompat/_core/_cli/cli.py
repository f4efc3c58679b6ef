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

from mpicompat._core._cli.check import configure_parser as check_parser
from mpicompat._core._cli.check import execute as check_execute
from mpicompat._core._cli.containerize import configure_parser as containerize_parser
from mpicompat._core._cli.containerize import execute as containerize_execute
from mpicompat._core._cli.info import execute as info_execute
from mpicompat._core._cli.inspect_image import configure_parser as inspect_parser
from mpicompat._core._cli.inspect_image import execute as inspect_execute
from mpicompat._core._cli.matrix import configure_parser as matrix_parser
from mpicompat._core._cli.matrix import execute as matrix_execute
from mpicompat._core._cli.run import configure_parser as run_parser
from mpicompat._core._cli.run import execute as run_execute
from mpicompat._core._cli.utils import MenuItemConfig
from mpicompat._core._cli.workspace import configure_parser as workspace_parser
from mpicompat._core._cli.workspace import execute_install as install_execute
from mpicompat._core._cli.workspace import execute_list as list_execute
from mpicompat._core._cli.workspace import execute_uninstall as uninstall_execute


class MpiCompatCli:
    def __init__(self, menu: t.List[MenuItemConfig]) -> None:
        self.menu: t.Dict[str, MenuItemConfig] = {item.command: item for item in menu}
        parser = argparse.ArgumentParser(
            prog="mpicompat",
            description="MPI host/container compatibility testing",
        )
        self.parser = parser
        self.args: t.Optional[argparse.Namespace] = None

        subparsers = parser.add_subparsers(
            dest="command",
            required=True,
            metavar="<command>",
            help="Available commands",
        )

        for cmd, item in self.menu.items():
            parser = subparsers.add_parser(
                cmd, description=item.description, help=item.description
            )
            if item.configurator:
                item.configurator(parser)

    def execute(self, cli_args: t.List[str]) -> int:
        if len(cli_args) < 2:
            self.parser.print_help()
            return 0

        app_args = cli_args[1:]
        self.args = self.parser.parse_args(app_args)

        if not (menu_item := self.menu.get(app_args[0], None)):
            self.parser.print_help()
            return 0

        return menu_item.handler(self.args)


def default_cli() -> MpiCompatCli:
    menu = [
        MenuItemConfig(
            "run",
            "Run the host/container compatibility experiments of a matrix",
            run_execute,
            run_parser,
        ),
        MenuItemConfig(
            "matrix",
            "Aggregate the results of all test categories into a matrix",
            matrix_execute,
            matrix_parser,
        ),
        MenuItemConfig(
            "check",
            "Check prerequisites and detect the capabilities of the host",
            check_execute,
            check_parser,
        ),
        MenuItemConfig(
            "containerize",
            "Build the container image of an MPI application",
            containerize_execute,
            containerize_parser,
        ),
        MenuItemConfig(
            "inspect",
            "Display the MPI configuration of an image",
            inspect_execute,
            inspect_parser,
        ),
        MenuItemConfig(
            "list",
            "List the MPI installations and images of the workspace",
            list_execute,
        ),
        MenuItemConfig(
            "install",
            "Install a version of MPI on the host, e.g. openmpi:4.0.2",
            install_execute,
            workspace_parser,
        ),
        MenuItemConfig(
            "uninstall",
            "Remove a version of MPI installed on the host",
            uninstall_execute,
            workspace_parser,
        ),
        MenuItemConfig(
            "info",
            "Display information about the current mpicompat installation",
            info_execute,
        ),
    ]

    return MpiCompatCli(menu)
