# tests/conftest.py
# Put the project root on sys.path so `compiler`, `deferc` and `defercore`
# import without an install.
import sys
import pathlib

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from defercore.codegen import generate  # noqa: E402
from defercore.diagnostics import Diagnostics  # noqa: E402
from defercore.grammar import Dialect  # noqa: E402
from defercore.parser import parse  # noqa: E402
from defercore.transform import DeferTransform  # noqa: E402


def normalize(code):
    """Collapse all whitespace so layout differences do not matter."""
    return " ".join(code.split())


@pytest.fixture
def rewrite():
    """Parse, run the deferred-binding transform, and emit. Returns (code, diagnostics)."""
    def _rewrite(source, filename="test.js", marker="defer", dialect=Dialect.PLAIN):
        diagnostics = Diagnostics()
        program = parse(source, dialect, filename=filename)
        DeferTransform(filename=filename, marker=marker, diagnostics=diagnostics).run(program)
        code, _ = generate(program, source_maps=False)
        return code, diagnostics
    return _rewrite


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run in an empty directory with an empty home so no config file is picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path
