"""Loggers used by the agents: one that writes to the console, one that is silent."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import Any, TextIO


def _render(msg: str, args: tuple[Any, ...]) -> str:
    if not args:
        return msg
    return msg.replace("%v", "%s") % args


class Logger(ABC):
    """Printf-style logging interface with info, error and debug levels."""

    @abstractmethod
    def info(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def error(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def debug(self, msg: str, *args: Any) -> None: ...


class ConsoleLogger(Logger):
    """Writes info and debug lines to stdout and errors to stderr."""

    def __init__(self, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self._stdout = stdout
        self._stderr = stderr

    def _write(self, stream: TextIO | None, fallback: TextIO, level: str,
               msg: str, args: tuple[Any, ...]) -> None:
        print(f"[{level}] {_render(msg, args)}", file=stream or fallback)

    def info(self, msg: str, *args: Any) -> None:
        self._write(self._stdout, sys.stdout, "INFO", msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._write(self._stderr, sys.stderr, "ERROR", msg, args)

    def debug(self, msg: str, *args: Any) -> None:
        self._write(self._stdout, sys.stdout, "DEBUG", msg, args)


class SilentLogger(Logger):
    """Discards every message."""

    def info(self, msg: str, *args: Any) -> None:
        pass

    def error(self, msg: str, *args: Any) -> None:
        pass

    def debug(self, msg: str, *args: Any) -> None:
        pass