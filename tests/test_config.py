"""
Tests for configuration loading and file selection.
"""
import json

import pytest

from defercore.config import CONFIG_FILE, DeferConfig, config_paths, load_config, write_default_config
from defercore.errors import DeferCompileError
from defercore.grammar import Dialect
from defercore.selection import dialect_for, is_eligible


class TestDeferConfig:
    """Tests for the settings model."""

    def test_defaults(self):
        config = DeferConfig()
        assert config.marker == "defer"
        assert config.extensions == [".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx"]
        assert config.exclude_dirs == ["node_modules"]
        assert config.source_maps is True
        assert config.indent == 2

    def test_extensions_are_normalized(self):
        assert DeferConfig(extensions=["js", ".ts"]).extensions == [".js", ".ts"]

    @pytest.mark.parametrize("marker", ["", "1abc", "de fer", "a-b"])
    def test_invalid_marker(self, marker):
        with pytest.raises(ValueError):
            DeferConfig(marker=marker)

    def test_indent_is_bounded(self):
        with pytest.raises(ValueError):
            DeferConfig(indent=12)


class TestLoadConfig:
    """Tests for finding and reading config files."""

    def test_defaults_when_no_file(self, isolated_config):
        assert load_config() == DeferConfig()

    def test_reads_project_file(self, isolated_config):
        (isolated_config / CONFIG_FILE).write_text(json.dumps({"marker": "later", "indent": 4}))
        config = load_config()
        assert config.marker == "later"
        assert config.indent == 4
        assert config.extensions == DeferConfig().extensions

    def test_reads_user_file(self, isolated_config):
        user_dir = isolated_config / "home" / ".deferc"
        user_dir.mkdir(parents=True)
        (user_dir / "config.json").write_text(json.dumps({"source_maps": False}))
        assert load_config().source_maps is False

    def test_project_file_wins(self, isolated_config):
        user_dir = isolated_config / "home" / ".deferc"
        user_dir.mkdir(parents=True)
        (user_dir / "config.json").write_text(json.dumps({"marker": "user"}))
        (isolated_config / CONFIG_FILE).write_text(json.dumps({"marker": "project"}))
        assert load_config().marker == "project"

    def test_explicit_path(self, isolated_config):
        path = isolated_config / "custom.json"
        path.write_text(json.dumps({"marker": "custom"}))
        assert load_config(str(path)).marker == "custom"
        assert config_paths(str(path))[0] == str(path)

    def test_missing_explicit_path(self, isolated_config):
        with pytest.raises(DeferCompileError, match="Config file not found"):
            load_config(str(isolated_config / "nope.json"))

    def test_invalid_json(self, isolated_config):
        (isolated_config / CONFIG_FILE).write_text('{"marker": ')
        with pytest.raises(DeferCompileError) as exc_info:
            load_config()
        assert exc_info.value.message.startswith("Invalid JSON in config")
        assert exc_info.value.line_number == 1

    def test_invalid_field(self, isolated_config):
        (isolated_config / CONFIG_FILE).write_text(json.dumps({"indent": "wide"}))
        with pytest.raises(DeferCompileError) as exc_info:
            load_config()
        assert "indent" in exc_info.value.context

    def test_write_default_config(self, isolated_config):
        write_default_config()
        data = json.loads((isolated_config / CONFIG_FILE).read_text())
        assert DeferConfig.model_validate(data) == DeferConfig()


class TestSelection:
    """Tests for which files are transformed."""

    @pytest.fixture
    def config(self):
        return DeferConfig()

    @pytest.mark.parametrize("path", ["app.js", "src/a.mjs", "lib/b.cjs", "src/types/c.ts", "src/app.jsx", "ui/view.tsx"])
    def test_eligible(self, config, path):
        assert is_eligible(path, config)

    @pytest.mark.parametrize("path", [
        "README.md",
        "src/app.d.md",
        "node_modules/pkg/index.js",
        "src/node_modules/pkg/index.js",
    ])
    def test_not_eligible(self, config, path):
        assert not is_eligible(path, config)

    def test_excluded_name_only_matches_whole_directories(self, config):
        assert is_eligible("src/node_modules_backup/index.js", config)

    def test_custom_extensions(self):
        config = DeferConfig(extensions=[".jsx"], exclude_dirs=[])
        assert is_eligible("node_modules/x.jsx", config)
        assert not is_eligible("x.js", config)

    @pytest.mark.parametrize("path, dialect", [
        ("a.js", Dialect.PLAIN),
        ("a.mjs", Dialect.PLAIN),
        ("a.ts", Dialect.TYPED),
        ("a.mts", Dialect.TYPED),
        ("a.jsx", Dialect.JSX),
        ("a.tsx", Dialect.TSX),
    ])
    def test_dialect_for(self, path, dialect):
        assert dialect_for(path) is dialect
