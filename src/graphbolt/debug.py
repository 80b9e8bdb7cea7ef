# Copyright (c) "Neo4j"
# Neo4j Sweden AB [https://neo4j.com]
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from __future__ import annotations

import typing as t
from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    Formatter,
    getLogger,
    INFO,
    StreamHandler,
    WARNING,
)
from sys import stderr


__all__ = [
    "Watcher",
    "watch",
]


_LEVEL_COLOURS = {
    CRITICAL: "\x1b[31;1m",  # bright red
    ERROR: "\x1b[33;1m",     # bright yellow
    WARNING: "\x1b[33m",     # yellow
    INFO: "\x1b[37m",        # white
    DEBUG: "\x1b[36m",       # cyan
}


class ColourFormatter(Formatter):
    """ Colour formatter for pretty log output.
    """

    def format(self, record):
        s = super().format(record)
        colour = _LEVEL_COLOURS.get(record.levelno)
        if colour is None:
            return s
        return "%s%s\x1b[0m" % (colour, s)


class Watcher:
    """Log watcher for troubleshooting connections, pools and routing.

    Example::

        from graphbolt.debug import Watcher

        with Watcher("graphbolt.pool", "graphbolt.routing"):
            # DEBUG logging to stderr enabled within this context
            ...

    :param logger_names: Names of loggers to watch, ``"graphbolt"`` if none
        are given.
    :param default_level: Default minimum log level to show.
    :param default_out: Default output stream for all loggers.
    :param colour: Whether the log levels should be indicated with ANSI colour
        codes.
    """

    def __init__(
        self,
        *logger_names: str,
        default_level: int = DEBUG,
        default_out: t.TextIO = stderr,
        colour: bool = False
    ) -> None:
        self.logger_names = logger_names or ("graphbolt",)
        self._loggers = [getLogger(name) for name in self.logger_names]
        self.default_level = default_level
        self.default_out = default_out
        self._handlers: t.Dict[str, StreamHandler] = {}

        format_ = "%(asctime)s  %(name)s  %(message)s"
        if not colour:
            format_ = "[%(levelname)-8s] " + format_
        formatter_cls = ColourFormatter if colour else Formatter
        self.formatter = formatter_cls(format_)

    def __enter__(self) -> Watcher:
        self.watch()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def watch(self, level: int = None, out: t.TextIO = None):
        """Enable logging for all loggers.

        :param level: Minimum log level to show.
            If :const:`None`, the ``default_level`` is used.
        :param out: Output stream for all loggers.
            If :const:`None`, the ``default_out`` is used.
        """
        if level is None:
            level = self.default_level
        if out is None:
            out = self.default_out
        self.stop()
        handler = StreamHandler(out)
        handler.setFormatter(self.formatter)
        for logger in self._loggers:
            self._handlers[logger.name] = handler
            logger.addHandler(handler)
            logger.setLevel(level)

    def stop(self) -> None:
        """Disable logging for all loggers."""
        for logger in self._loggers:
            handler = self._handlers.pop(logger.name, None)
            if handler is not None:
                logger.removeHandler(handler)


def watch(
    *logger_names: str,
    level: int = DEBUG,
    out: t.TextIO = stderr,
    colour: bool = False
) -> Watcher:
    """Create a :class:`.Watcher`, start watching and return it.

    Example::

        from graphbolt.debug import watch

        watch("graphbolt")
        # from now on, DEBUG logging to stderr is enabled

    :return: Watcher instance
    :rtype: :class:`.Watcher`
    """
    watcher = Watcher(*logger_names, colour=colour, default_level=level,
                      default_out=out)
    watcher.watch()
    return watcher
