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

import re
import typing as t
from pathlib import Path

from ...error import ConfigurationError

_COMMENT = re.compile(r"^\s*#")


def parse_key_value_lines(lines: t.Iterable[str], source: str = "") -> t.Dict[str, str]:
    """Parse ``key = value`` lines

    Blank lines and lines starting with ``#`` are skipped, key and
    value are stripped of surrounding whitespace.

    :param lines: lines to parse
    :param source: name of the origin of the lines, used in errors
    :raises ConfigurationError: if a line is not exactly ``key=value``
    :returns: ordered mapping of the parsed entries
    """
    entries: t.Dict[str, str] = {}
    for line in lines:
        if not line.strip() or _COMMENT.match(line):
            continue
        tokens = line.split("=")
        if len(tokens) != 2:
            raise ConfigurationError(
                f"Invalid entry format in {source}: {line.strip()}"
            )
        entries[tokens[0].strip()] = tokens[1].strip()
    return entries


def load_key_value_config(path: t.Union[str, Path]) -> t.Dict[str, str]:
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file {config_path} does not exist")
    with open(config_path, "r", encoding="utf-8") as config_file:
        return parse_key_value_lines(config_file.readlines(), str(config_path))


def write_key_value_config(
    path: t.Union[str, Path], entries: t.Mapping[str, str]
) -> None:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as config_file:
        for key, value in entries.items():
            config_file.write(f"{key} = {value}\n")
