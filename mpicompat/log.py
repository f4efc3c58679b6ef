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

import functools
import logging
import socket
import sys
import typing as t
from contextvars import ContextVar

import coloredlogs

from ._core.config import CONFIG

# constants
DEFAULT_DATE_FORMAT: t.Final[str] = "%H:%M:%S"
DEFAULT_LOG_FORMAT: t.Final[str] = (
    "%(asctime)s %(hostname)s %(name)s[%(process)d] %(levelname)s %(message)s"
)
EXPERIMENT_LOG_FORMAT = DEFAULT_LOG_FORMAT.replace("s[%", "s {%(experiment)s} [%")

# configure colored loggs
coloredlogs.DEFAULT_DATE_FORMAT = DEFAULT_DATE_FORMAT
coloredlogs.DEFAULT_LOG_FORMAT = DEFAULT_LOG_FORMAT

# matrix cell currently being processed, e.g. "openmpi 3.1.4/4.0.2"
ctx_experiment = ContextVar("experiment", default="")


def _translate_log_level(user_log_level: str = "info") -> str:
    """Translate value of CONFIG.log_level to one
    accepted as ``level`` option by Python's logging module.

       Logging levels
         - quiet: Just shows errors and warnings
         - info: Show basic information and errors (default)
         - debug: Shows info, errors and user debug information
         - developer: Shows everything happening during execution
                      extremely verbose logging.

    :param user_log_level: log level specified by user, defaults to info
    :returns: Log level for coloredlogs
    """
    user_log_level = user_log_level.lower()
    if user_log_level in ["info", "debug", "warning"]:
        return user_log_level
    if user_log_level == "quiet":
        return "warning"
    # extremely verbose logging used internally
    if user_log_level == "developer":
        return "debug"
    return "info"


class ContextInjectingLogFilter(logging.Filter):
    """Filter that enriches a log record with the matrix cell
    being processed"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.experiment = ctx_experiment.get()
        return True


class HostnameFilter(logging.Filter):
    """Filter that performs enrichment of a log record by adding
    the hostname of the machine executing the code"""

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._hostname = ""

    @property
    @functools.lru_cache
    def hostname(self) -> str:
        """Returns the hostname of the machine executing the code"""
        self._hostname = socket.gethostname()
        return self._hostname

    def filter(self, record: logging.LogRecord) -> bool:
        # the hostname may already added if using the `ColoredLogs` plugin
        if not hasattr(record, "hostname"):
            record.hostname = self.hostname
        return True


def get_logger(
    name: str, log_level: t.Optional[str] = None, fmt: t.Optional[str] = None
) -> logging.Logger:
    """Return a logger instance

    levels:
        - quiet
        - info
        - debug
        - developer

    examples:
        # returns a logger with the name of the module
        logger = get_logger(__name__)

        logger.info("This is a message")
        logger.debug("This is a debug message")

    :param name: the name of the desired logger
    :param log_level: what level to set the logger to
    :param fmt: the format of the log messages
    :returns: logger instance
    """
    user_log_level = CONFIG.log_level
    if user_log_level != "developer":
        name = "MPICompat"

    logger = logging.getLogger(name)
    if log_level:
        logger.setLevel(log_level)
    else:
        log_level = _translate_log_level(user_log_level)
    coloredlogs.install(level=log_level, logger=logger, fmt=fmt, stream=sys.stdout)
    return logger


def log_to_file(
    filename: str, log_level: str = "debug", name: str = "MPICompat"
) -> logging.Handler:
    """Installs a filestream handler to the mpicompat logger,
    allowing subsequent logging calls to be sent to filename.

    Records carry the matrix cell they were emitted for.

    :param filename: the name of the desired log file.
    :param log_level: as defined in get_logger.  Can be specified
                      to allow the file to store more or less verbose
                      logging information.
    :param name: name of the logger to attach the handler to
    :returns: the installed handler, to be removed by the caller
    """
    logger = logging.getLogger(name)
    handler = logging.FileHandler(filename, mode="a+", encoding="utf-8")
    handler.addFilter(HostnameFilter())
    handler.addFilter(ContextInjectingLogFilter())
    handler.setFormatter(
        logging.Formatter(fmt=EXPERIMENT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
    )
    handler.setLevel(_translate_log_level(log_level).upper())
    logger.addHandler(handler)
    return handler


def set_console_level(log_level: str, name: str = "MPICompat") -> None:
    """Change how much of the logging reaches the terminal

    File handlers installed by ``log_to_file`` keep their own level.

    :param log_level: as defined in get_logger
    :param name: name of the logger to adjust
    """
    level = _translate_log_level(log_level).upper()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)
