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

from pathlib import Path

import pytest

from mpicompat._core.config.toolconfig import ToolConfig
from mpicompat._core.utils import sysprobe
from mpicompat.error import ShellError

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a


def test_probe_without_sudo(monkeypatch):
    monkeypatch.setattr(sysprobe, "check_for_utility", lambda util: "")
    assert not sysprobe.probe_build_privilege()


@pytest.mark.parametrize(
    "returncode, expected",
    [pytest.param(0, True, id="built"), pytest.param(255, False, id="failed")],
)
def test_probe_build(monkeypatch, returncode, expected):
    calls = []

    def execute_cmd(cmd, cwd=None, timeout=None):
        calls.append(cmd)
        return returncode, "", "FATAL: permission denied"

    monkeypatch.setattr(sysprobe, "check_for_utility", lambda util: "/usr/bin/sudo")
    monkeypatch.setattr(sysprobe, "execute_cmd", execute_cmd)

    assert sysprobe.probe_build_privilege("apptainer") == expected
    assert calls[0][:3] == ["/usr/bin/sudo", "apptainer", "build"]
    assert calls[0][-1].endswith("test.def")


def test_probe_build_timeout(monkeypatch):
    def execute_cmd(cmd, cwd=None, timeout=None):
        raise ShellError("timeout reached", cmd)

    monkeypatch.setattr(sysprobe, "check_for_utility", lambda util: "/usr/bin/sudo")
    monkeypatch.setattr(sysprobe, "execute_cmd", execute_cmd)
    assert not sysprobe.probe_build_privilege()


def test_infiniband_detected_once(monkeypatch, test_dir):
    monkeypatch.setattr(sysprobe, "detect_infiniband", lambda: True)
    tool = ToolConfig.load(Path(test_dir) / "mpicompat.conf")

    assert sysprobe.load_infiniband(tool)
    assert ToolConfig.load(tool.path).ib_enabled


def test_infiniband_forced_off(monkeypatch, test_dir):
    monkeypatch.setattr(sysprobe, "detect_infiniband", lambda: True)
    tool = ToolConfig.load(Path(test_dir) / "mpicompat.conf")
    tool.persist(ToolConfig.IB_KEY, False)

    assert not sysprobe.load_infiniband(tool)


def test_no_infiniband(monkeypatch, test_dir):
    monkeypatch.setattr(sysprobe, "detect_infiniband", lambda: False)
    tool = ToolConfig.load(Path(test_dir) / "mpicompat.conf")

    assert not sysprobe.load_infiniband(tool)
    assert not tool.exists
