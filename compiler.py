import os
from typing import List, Optional

from pydantic import BaseModel, Field

# Import from the defercore package
from defercore.codegen import generate
from defercore.config import DeferConfig, load_config
from defercore.diagnostics import Diagnostic, Diagnostics, debug_log
from defercore.errors import DeferCompileError
from defercore.parser import parse
from defercore.selection import dialect_for, is_eligible
from defercore.transform import DeferTransform


class CompileResult(BaseModel):
    """Output of compiling one file."""
    filename: str
    code: str
    source_map: Optional[dict] = None
    transformed: bool = False
    diagnostics: List[Diagnostic] = Field(default_factory=list)


def read_source(file_path):
    if not os.path.exists(file_path):
        raise DeferCompileError(f"File '{file_path}' not found.", filename=file_path,
                                suggestion="Check the path")
    with open(file_path, 'r', encoding='utf-8') as f:
        return f.read()


def compile_source(file_path, source_code=None, config: Optional[DeferConfig] = None,
                   diagnostics: Optional[Diagnostics] = None, output_name=None) -> CompileResult:
    # STEP 1: READ SOURCE
    if source_code is None:
        source_code = read_source(file_path)
    if config is None:
        config = load_config()
    if diagnostics is None:
        diagnostics = Diagnostics()
    start = len(diagnostics.records)

    debug_log(f"Compiling source: {file_path}")

    # STEP 2: PARSE
    dialect = dialect_for(file_path)
    program = parse(source_code, dialect, filename=file_path)

    # STEP 3: REWRITE DEFERRED BINDINGS
    try:
        transform = DeferTransform(filename=file_path, marker=config.marker, diagnostics=diagnostics)
        transformed = transform.run(program)
    except RecursionError as e:
        raise DeferCompileError(
            message=f"Transformation error: {e}",
            filename=file_path,
            suggestion="The file nests too deeply to transform",
        ) from e

    # STEP 4: GENERATE CODE (+ SOURCE MAP)
    code, source_map = generate(
        program,
        filename=file_path,
        source=source_code,
        indent=config.indent,
        source_maps=config.source_maps,
        output_name=output_name,
    )
    debug_log(f"Compiled {file_path}: {transform.rewritten_blocks} block(s) rewritten")

    return CompileResult(
        filename=file_path,
        code=code,
        source_map=source_map,
        transformed=transformed,
        diagnostics=diagnostics.records[start:],
    )


def transform_file(file_path, source_code=None, config: Optional[DeferConfig] = None,
                   diagnostics: Optional[Diagnostics] = None, output_name=None) -> Optional[CompileResult]:
    """Compile `file_path` if the selection policy accepts it, else return None."""
    if config is None:
        config = load_config()
    if not is_eligible(file_path, config):
        debug_log(f"Skipping {file_path}: not eligible")
        return None
    return compile_source(file_path, source_code, config=config, diagnostics=diagnostics,
                          output_name=output_name)
