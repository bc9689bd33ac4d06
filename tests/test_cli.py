"""
Tests for the deferc command line.
"""
import asyncio
import io
import json

import pytest

import deferc
from conftest import normalize
from defercore.config import CONFIG_FILE, DeferConfig
from defercore.diagnostics import Level, is_verbose, set_verbose


@pytest.fixture
def project(isolated_config):
    """A small source tree with one rewritable file, one plain file and a dependency."""
    src = isolated_config / "src"
    (src / "lib").mkdir(parents=True)
    (src / "node_modules" / "dep").mkdir(parents=True)
    (src / "main.js").write_text('defer: x = F();\nlog(x);\n')
    (src / "lib" / "util.js").write_text('export const one = 1;\n')
    (src / "notes.txt").write_text('not code')
    (src / "node_modules" / "dep" / "index.js").write_text('defer: y = G();\n')
    return isolated_config


class TestBuild:
    """Tests for `deferc build`."""

    def test_builds_tree(self, project):
        deferc.main(["build", "src", "--output", "out", "--jobs", "2"])
        out = project / "out"

        main_js = (out / "main.js").read_text()
        code, footer = main_js.rsplit("//# ", 1)
        assert normalize(code) == "F((x) => { log(x); });"
        assert footer == "sourceMappingURL=main.js.map\n"

        source_map = json.loads((out / "main.js.map").read_text())
        assert source_map["file"] == "main.js"
        assert source_map["sources"] == ["main.js"]

        assert (out / "lib" / "util.js").exists()
        assert not (out / "notes.txt").exists()
        assert not (out / "node_modules").exists()

    def test_default_output_directory(self, project):
        deferc.main(["build", "src"])
        assert (project / deferc.OUTPUT_DIR / "main.js").exists()

    def test_single_file(self, project):
        deferc.main(["build", "src/main.js", "--output", "single"])
        assert (project / "single" / "main.js").exists()

    def test_source_maps_off(self, project):
        (project / CONFIG_FILE).write_text(json.dumps({"source_maps": False}))
        deferc.main(["build", "src", "--output", "out"])
        assert "sourceMappingURL" not in (project / "out" / "main.js").read_text()
        assert not (project / "out" / "main.js.map").exists()

    def test_syntax_error_fails_the_build(self, project):
        (project / "src" / "broken.js").write_text('let = ;\n')
        with pytest.raises(SystemExit) as exc_info:
            deferc.main(["build", "src", "--output", "out"])
        assert exc_info.value.code == 1
        # Other files are still written.
        assert (project / "out" / "main.js").exists()

    def test_missing_source(self, project):
        with pytest.raises(SystemExit):
            deferc.main(["build", "nowhere"])

    def test_warnings_go_to_stderr(self, project, capsys):
        (project / "src" / "bad.js").write_text('defer: x = 1;\n')
        deferc.main(["build", "src", "--output", "out"])
        err = capsys.readouterr().err
        assert "bad.js:1: invalid deferred-binding structure" in err


class TestPrint:
    """Tests for `deferc print`."""

    def test_prints_file(self, project, capsys):
        deferc.main(["print", "src/main.js"])
        out = capsys.readouterr().out
        assert normalize(out) == "F((x) => { log(x); });"
        assert "sourceMappingURL" not in out

    def test_reads_stdin(self, project, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("defer: v = load();\nreturn v;\n"))
        deferc.main(["print"])
        assert normalize(capsys.readouterr().out) == "load((v) => { return v; });"

    def test_syntax_error(self, project):
        (project / "broken.js").write_text('let = ;\n')
        with pytest.raises(SystemExit):
            deferc.main(["print", "broken.js"])


class TestCheck:
    """Tests for `deferc check`."""

    def test_reports_without_writing(self, project, capsys):
        deferc.main(["check", "src"])
        err = capsys.readouterr().err
        assert "rewritten, 0 warning(s)" in err
        assert not (project / deferc.OUTPUT_DIR).exists()

    def test_strict_fails_on_warning(self, project):
        (project / "src" / "bad.js").write_text('defer: x = 1;\n')
        deferc.main(["check", "src"])
        with pytest.raises(SystemExit) as exc_info:
            deferc.main(["check", "src", "--strict"])
        assert exc_info.value.code == 1


class TestInit:
    """Tests for `deferc init`."""

    def test_writes_config(self, isolated_config):
        deferc.main(["init"])
        data = json.loads((isolated_config / CONFIG_FILE).read_text())
        assert data["marker"] == "defer"

    def test_refuses_to_overwrite(self, isolated_config):
        (isolated_config / CONFIG_FILE).write_text("{}")
        with pytest.raises(SystemExit):
            deferc.main(["init"])
        deferc.main(["init", "--force"])
        assert json.loads((isolated_config / CONFIG_FILE).read_text())["indent"] == 2


class TestOptions:
    """Tests for global options."""

    def test_bad_config_file(self, project):
        (project / CONFIG_FILE).write_text('{"indent": -1}')
        with pytest.raises(SystemExit):
            deferc.main(["build", "src"])

    def test_custom_config_path(self, project, capsys):
        (project / "alt.json").write_text(json.dumps({"marker": "later"}))
        (project / "src" / "main.js").write_text('later: x = F();\nlog(x);\n')
        deferc.main(["--config", "alt.json", "print", "src/main.js"])
        assert normalize(capsys.readouterr().out) == "F((x) => { log(x); });"

    def test_no_command_prints_help(self, capsys):
        deferc.main([])
        assert "usage" in capsys.readouterr().out


class TestCompileMany:
    """Tests for compiling several files at once."""

    @pytest.fixture
    def sources(self, isolated_config):
        paths = []
        for i in range(4):
            path = isolated_config / f"m{i}.js"
            path.write_text(f'defer: x = F({i});\nlog(x);\n')
            paths.append(str(path))
        broken = isolated_config / "broken.js"
        broken.write_text('let = ;\n')
        paths.insert(2, str(broken))
        return paths

    @pytest.mark.parametrize("jobs", [1, 3])
    def test_results_keep_input_order(self, sources, jobs):
        results = asyncio.run(deferc.compile_many(sources, DeferConfig(), jobs))
        assert [path for path, _, _, _ in results] == sources
        failed = [path for path, _, _, message in results if message is not None]
        assert failed == [sources[2]]
        assert normalize(results[0][1].code) == "F(0, (x) => { log(x); });"
        assert normalize(results[4][1].code) == "F(3, (x) => { log(x); });"

    def test_worker_diagnostics_come_back(self, isolated_config):
        paths = []
        for name in ("a.js", "b.js"):
            (isolated_config / name).write_text('defer: x = 1;\n')
            paths.append(str(isolated_config / name))
        results = asyncio.run(deferc.compile_many(paths, DeferConfig(), 2))
        for path, _, diagnostics, _ in results:
            assert [r.level for r in diagnostics.records] == [Level.WARNING]
            assert diagnostics.records[0].filename == path

    def test_compile_job_reports_failure_as_message(self, isolated_config):
        (isolated_config / "broken.js").write_text('let = ;\n')
        result, records, message = deferc._compile_job("broken.js", DeferConfig(), None, False)
        assert result is None
        assert records == []
        assert "Syntax error" in message

    def test_compile_job_sets_verbosity(self, isolated_config):
        (isolated_config / "a.js").write_text('a();\n')
        before = is_verbose()
        try:
            deferc._compile_job("a.js", DeferConfig(), None, True)
            assert is_verbose()
        finally:
            set_verbose(before)
