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

"""Line oriented ledger of the experiment results.

Results are only ever appended: rerunning a cell adds a new line, and
readers use the last occurrence of a pair when they need the latest.
"""

import enum
import typing as t
from dataclasses import dataclass
from pathlib import Path

from filelock import FileLock

from .error import LedgerError
from .log import get_logger

if t.TYPE_CHECKING:
    from .matrix import ExperimentConfig

logger = get_logger(__name__)

SEPARATOR = "\t"
RESULTS_SUFFIX = "results.txt"
MATRIX_SUFFIX = "compatibility_matrix.txt"


class Outcome(enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ExperimentResult:
    host_version: str
    container_version: str
    outcome: Outcome
    note: str = ""

    @property
    def key(self) -> t.Tuple[str, str]:
        return (self.host_version, self.container_version)

    @property
    def passed(self) -> bool:
        return self.outcome == Outcome.PASS

    def to_line(self) -> str:
        note = " ".join(self.note.split())
        return SEPARATOR.join(
            (self.host_version, self.container_version, self.outcome.value, note)
        )

    @classmethod
    def from_line(cls, line: str, source: str = "") -> "ExperimentResult":
        """Parse one line of a results file

        :raises LedgerError: if the line is malformed
        """
        fields = line.rstrip("\n").split(SEPARATOR)
        if len(fields) < 3:
            raise LedgerError(f"Invalid result in {source}: {line!r}")
        try:
            outcome = Outcome(fields[2].strip())
        except ValueError:
            raise LedgerError(
                f"Invalid outcome {fields[2]!r} in {source}: {line!r}"
            ) from None
        note = SEPARATOR.join(fields[3:]).strip()
        return cls(fields[0].strip(), fields[1].strip(), outcome, note)


def results_file(output_dir: Path, implementation: str, category: str) -> Path:
    return output_dir / f"{implementation}-{category}-{RESULTS_SUFFIX}"


def matrix_file(output_dir: Path, implementation: str) -> Path:
    return output_dir / f"{implementation}_{MATRIX_SUFFIX}"


def load(path: t.Union[str, Path]) -> t.List[ExperimentResult]:
    """Read a results file, a missing file holds no result

    :raises LedgerError: if a line is malformed
    """
    results_path = Path(path)
    if not results_path.is_file():
        return []
    results = []
    with open(results_path, "r", encoding="utf-8") as results_fd:
        for line in results_fd:
            if not line.strip():
                continue
            results.append(ExperimentResult.from_line(line, str(results_path)))
    return results


def append(path: t.Union[str, Path], result: ExperimentResult) -> None:
    """Add a result at the end of a results file"""
    results_path = Path(path)
    results_path.parent.mkdir(parents=True, exist_ok=True)
    with FileLock(str(results_path) + ".lock"):
        with open(results_path, "a", encoding="utf-8") as results_fd:
            results_fd.write(result.to_line() + "\n")
    logger.debug(f"Recorded {result.to_line()!r} in {results_path}")


def latest(
    results: t.Iterable[ExperimentResult],
) -> t.Dict[t.Tuple[str, str], ExperimentResult]:
    """Last recorded result of each (host, container) pair"""
    return {result.key: result for result in results}


def prune(
    cells: t.Iterable["ExperimentConfig"], existing: t.Iterable[ExperimentResult]
) -> t.List["ExperimentConfig"]:
    """Cells that have no recorded result yet, in their original order"""
    done = {result.key for result in existing}
    remaining = [cell for cell in cells if cell.key not in done]
    return remaining


def aggregate(
    init: t.Iterable[ExperimentResult],
    netpipe: t.Iterable[ExperimentResult],
    imb: t.Iterable[ExperimentResult],
) -> t.List[t.Tuple[str, str, bool]]:
    """Combine the results of the test categories

    A pair is compatible only if its latest result passed in every
    category; a missing result counts as a failure.

    :returns: (host version, container version, compatible) per pair
              of the init results, in recording order
    """
    others = (latest(netpipe), latest(imb))
    return [
        (
            key[0],
            key[1],
            result.passed
            and all(key in category and category[key].passed for category in others),
        )
        for key, result in latest(init).items()
    ]


def write_matrix(
    path: t.Union[str, Path], matrix: t.Iterable[t.Tuple[str, str, bool]]
) -> None:
    matrix_path = Path(path)
    matrix_path.parent.mkdir(parents=True, exist_ok=True)
    with open(matrix_path, "w", encoding="utf-8") as matrix_fd:
        for host, container, compatible in matrix:
            matrix_fd.write(
                SEPARATOR.join((host, container, str(compatible).lower())) + "\n"
            )
    logger.info(f"Compatibility matrix written to {matrix_path}")
