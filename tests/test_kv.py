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

import pytest

from mpicompat._core.utils.kv import (
    load_key_value_config,
    parse_key_value_lines,
    write_key_value_config,
)
from mpicompat.error import ConfigurationError

# The tests in this file belong to the group_a group
pytestmark = pytest.mark.group_a


def test_parse_skips_comments_and_blank_lines():
    lines = [
        "# versions of Open MPI",
        "",
        "   ",
        "  # indented comment",
        "4.0.2 = https://example.com/openmpi-4.0.2.tar.bz2",
    ]
    entries = parse_key_value_lines(lines)
    assert entries == {"4.0.2": "https://example.com/openmpi-4.0.2.tar.bz2"}


def test_parse_strips_whitespace():
    entries = parse_key_value_lines(["  ifnet   =   eth0  \n"])
    assert entries == {"ifnet": "eth0"}


@pytest.mark.parametrize(
    "line",
    [
        pytest.param("no separator", id="no equal sign"),
        pytest.param("a = b = c", id="two equal signs"),
    ],
)
def test_parse_rejects_malformed_lines(line):
    with pytest.raises(ConfigurationError) as ex:
        parse_key_value_lines([line], "test.conf")
    assert "test.conf" in str(ex.value)


def test_parse_keeps_last_duplicate():
    entries = parse_key_value_lines(["key = first", "key = second"])
    assert entries == {"key": "second"}


def test_load_missing_file(test_dir):
    with pytest.raises(ConfigurationError):
        load_key_value_config(f"{test_dir}/missing.conf")


def test_write_then_load(test_dir):
    path = f"{test_dir}/nested/tool.conf"
    write_key_value_config(path, {"build_privilege": "true", "force_ib": "false"})

    with open(path, "r", encoding="utf-8") as conf:
        assert conf.read() == "build_privilege = true\nforce_ib = false\n"
    assert load_key_value_config(path) == {
        "build_privilege": "true",
        "force_ib": "false",
    }
