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

"""Catalog of the applications used to test MPI compatibility"""

import typing as t
from dataclasses import dataclass
from pathlib import Path

from ._core._install.builder import SoftwarePackage
from ._core._install.buildenv import Versioner
from ._core._install.utils.retrieve import FILE_URL_PREFIX
from ._core.utils import strip_color_codes
from .error import ConfigurationError

RANK_TAG = "#RANK"
NP_TAG = "#NP"


def _no_note(output: str) -> str:
    return ""


def netpipe_note(output: str) -> str:
    """Extract max bandwidth and latency from the NetPIPE summary line

    :param output: standard output of NPmpi
    :returns: a note such as "max bandwidth: 9.8 GB/s; latency: 0.3 usecs",
              or an empty string if the summary line is absent
    """
    for line in output.splitlines():
        if "Completed with" not in line:
            continue
        tokens = [strip_color_codes(token).strip() for token in line.split(" ")]
        if len(tokens) < 22:
            return ""
        return (
            f"max bandwidth: {tokens[13]} {tokens[14]}; "
            f"latency: {tokens[20]} {tokens[21]}"
        )
    return ""


@dataclass(frozen=True)
class AppInfo:
    """A test application and how to build and check it

    :param name: name of the application
    :param url: location of the sources
    :param bin_path: path of the executable inside the container
    :param install_cmd: command building the application in its source tree
    :param category: test category, names the results file
    :param template_suffix: suffix of the definition template, e.g. "_netpipe"
    :param expected_output: text every rank prints, with #RANK and #NP
                            placeholders; empty to skip the check
    """

    name: str
    url: str
    bin_path: str
    install_cmd: str = ""
    category: str = "init"
    template_suffix: str = ""
    expected_output: str = ""
    note_parser: t.Callable[[str], str] = _no_note

    @property
    def package(self) -> SoftwarePackage:
        return SoftwarePackage(self.name, self.url, self.install_cmd)

    @property
    def bin_name(self) -> str:
        return Path(self.bin_path).name

    def note(self, output: str) -> str:
        return self.note_parser(output)

    def expected_outputs(self, ranks: int) -> t.List[str]:
        """Expected output of each rank of a job

        :param ranks: number of ranks of the job
        """
        if not self.expected_output:
            return []
        if ranks <= 0:
            return [self.expected_output]
        expected = self.expected_output.replace(NP_TAG, str(ranks))
        return [expected.replace(RANK_TAG, str(rank)) for rank in range(ranks)]


def helloworld(template_dir: Path) -> AppInfo:
    return AppInfo(
        name="helloworld",
        url=FILE_URL_PREFIX + str(template_dir / "mpitest.c"),
        bin_path="/opt/mpitest",
        install_cmd="mpicc -o mpitest mpitest.c",
        category="init",
        expected_output=f"Hello, I am rank {RANK_TAG}/{NP_TAG}",
    )


def netpipe(template_dir: Path) -> AppInfo:
    name = f"NetPIPE-{Versioner.NETPIPE}"
    return AppInfo(
        name=name,
        url=Versioner.NETPIPE_URL,
        bin_path=f"/opt/{name}/NPmpi",
        install_cmd="make mpi",
        category="netpipe",
        template_suffix="_netpipe",
        note_parser=netpipe_note,
    )


def imb(template_dir: Path) -> AppInfo:
    return AppInfo(
        name="IMB",
        url=Versioner.IMB_URL,
        bin_path="/opt/mpi-benchmarks/IMB-MPI1",
        install_cmd="CC=mpicc CXX=mpic++ make IMB-MPI1",
        category="imb",
        template_suffix="_imb",
    )


_APPS: t.Dict[str, t.Callable[[Path], AppInfo]] = {
    "helloworld": helloworld,
    "netpipe": netpipe,
    "imb": imb,
}

APP_NAMES = tuple(_APPS)
CATEGORIES = ("init", "netpipe", "imb")


def get_app(name: str, template_dir: Path) -> AppInfo:
    """Return one of the bundled test applications

    :param name: helloworld, netpipe or imb
    :param template_dir: directory holding mpitest.c
    :raises ConfigurationError: if the application is unknown
    """
    if name not in _APPS:
        raise ConfigurationError(f"Unknown application {name}")
    return _APPS[name](template_dir)
