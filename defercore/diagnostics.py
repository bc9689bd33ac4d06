"""
Diagnostics for deferc.

The rewrite pass never prints: it is handed a Diagnostics collector and
appends structured records to it. The command line decides whether records
are echoed to stderr as they arrive or flushed afterwards.

The module-level helpers (`log`, `warn`, `error`, `debug_log`) write the
coloured stderr lines used by the command line.
"""
import sys
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

# Global verbose flag
_VERBOSE = False


def set_verbose(value):
    """Set the global verbose flag."""
    global _VERBOSE
    _VERBOSE = value


def is_verbose():
    return _VERBOSE


def debug_log(message):
    """Log a debug message to stderr if verbose mode is enabled."""
    if _VERBOSE:
        print(f"\033[94mDEBUG:\033[0m {message}", file=sys.stderr)


def log(message):
    """Log informational messages to stderr."""
    print(f"\033[92m\033[1mINFO:\033[0m {message}", file=sys.stderr)


def warn(message):
    print(f"\033[93m\033[1mWARNING:\033[0m {message}", file=sys.stderr)


def error(message):
    print(f"\033[91m\033[1mERROR:\033[0m {message}", file=sys.stderr)


class Level(str, Enum):
    DEBUG = "debug"
    WARNING = "warning"


class Diagnostic(BaseModel):
    """One record produced while transforming a file."""
    level: Level
    message: str
    filename: Optional[str] = None
    line: Optional[int] = None

    def __str__(self):
        return self.message


class Diagnostics:
    """
    Collects diagnostic records for one or more files.

    Args:
        echo: When True, every record is also written to stderr as soon as
            it is added (debug records only in verbose mode).
    """

    def __init__(self, echo=False):
        self.echo = echo
        self.records: List[Diagnostic] = []

    def add(self, record: Diagnostic) -> Diagnostic:
        self.records.append(record)
        if self.echo:
            self._write(record)
        return record

    def warning(self, message, filename=None, line=None):
        return self.add(Diagnostic(level=Level.WARNING, message=message, filename=filename, line=line))

    def debug(self, message, filename=None, line=None):
        return self.add(Diagnostic(level=Level.DEBUG, message=message, filename=filename, line=line))

    @property
    def warnings(self):
        return [r for r in self.records if r.level is Level.WARNING]

    @property
    def debug_records(self):
        return [r for r in self.records if r.level is Level.DEBUG]

    def extend(self, records):
        for record in records:
            self.add(record)

    def flush(self):
        """Write every collected record to stderr and forget them."""
        for record in self.records:
            self._write(record)
        self.records = []

    @staticmethod
    def _write(record):
        if record.level is Level.WARNING:
            warn(record.message)
        else:
            debug_log(record.message)

    def __len__(self):
        return len(self.records)
