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

import os
import sys

import pytest

from mpicompat._core.utils.shell import execute_cmd
from mpicompat.error import ShellError

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a


def test_execute_cmd(test_dir):
    returncode, out, err = execute_cmd(
        [sys.executable, "-c", "import os; print(os.getcwd())"], cwd=test_dir
    )
    assert returncode == 0
    assert os.path.realpath(out.strip()) == os.path.realpath(test_dir)
    assert err == ""


def test_execute_cmd_input():
    code = "import sys; print(sys.stdin.read().upper())"
    _, out, _ = execute_cmd([sys.executable, "-c", code], proc_input="secret\n")
    assert out.strip() == "SECRET"


def test_execute_cmd_timeout():
    with pytest.raises(ShellError) as ex:
        execute_cmd([sys.executable, "-c", "import time; time.sleep(30)"], timeout=1)
    assert "timeout" in str(ex.value)


def test_execute_cmd_missing_executable():
    with pytest.raises(ShellError):
        execute_cmd(["mpicompat-no-such-executable"])


def test_execute_cmd_timeout_keeps_output():
    code = "import sys, time; print('started', flush=True); time.sleep(30)"
    with pytest.raises(ShellError) as ex:
        execute_cmd([sys.executable, "-c", code], timeout=1)
    assert ex.value.stdout.strip() == "started"
