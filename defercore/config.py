"""
Configuration for deferc.

Settings live in `deferc.json` in the working directory or in
`~/.deferc/config.json`; missing files mean defaults.
"""
import json
import os
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from defercore.errors import DeferCompileError

CONFIG_FILE = "deferc.json"
USER_CONFIG_FILE = os.path.join("~", ".deferc", "config.json")


class DeferConfig(BaseModel):
    """Settings for one deferc run."""
    marker: str = "defer"
    extensions: List[str] = Field(default_factory=lambda: [".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx"])
    exclude_dirs: List[str] = Field(default_factory=lambda: ["node_modules"])
    source_maps: bool = True
    indent: int = Field(default=2, ge=0, le=8)

    @field_validator("marker")
    @classmethod
    def _marker_is_identifier(cls, value):
        if not re.fullmatch(r"[a-zA-Z_$][\w$]*", value):
            raise ValueError(f"marker must be a valid label name, got {value!r}")
        return value

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value):
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]


def config_paths(path=None):
    """Candidate config files, most specific first."""
    paths = [path] if path else []
    paths += [CONFIG_FILE, os.path.expanduser(USER_CONFIG_FILE)]
    return paths


def load_config(path: Optional[str] = None) -> DeferConfig:
    """Load the first config file that exists; defaults when none does."""
    if path and not os.path.exists(path):
        raise DeferCompileError(f"Config file not found: {path}", filename=path)

    for candidate in config_paths(path):
        if not os.path.exists(candidate):
            continue
        try:
            with open(candidate, "r") as f:
                data = json.load(f)
            return DeferConfig.model_validate(data)
        except json.JSONDecodeError as e:
            raise DeferCompileError(
                message=f"Invalid JSON in config: {e.msg}",
                line_number=e.lineno,
                column=e.colno,
                filename=candidate,
                suggestion="Fix the JSON syntax or run 'deferc init' to start over",
            ) from e
        except ValidationError as e:
            raise DeferCompileError(
                message=f"Invalid config: {e.error_count()} error(s)",
                context="; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()),
                filename=candidate,
                suggestion="Check field names and types in the config file",
            ) from e
    return DeferConfig()


def write_default_config(path=CONFIG_FILE):
    """Write a config file holding the default settings."""
    with open(path, "w") as f:
        json.dump(DeferConfig().model_dump(), f, indent=2)
        f.write("\n")
    return path
