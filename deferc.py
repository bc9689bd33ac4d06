import argparse
import asyncio
import json
import os
import sys
from concurrent.futures import ProcessPoolExecutor

from compiler import compile_source
from defercore.config import CONFIG_FILE, load_config, write_default_config
from defercore.diagnostics import Diagnostics, error, is_verbose, log, set_verbose
from defercore.errors import DeferCompileError
from defercore.selection import is_eligible

OUTPUT_DIR = "defer_out"


def fail(message):
    error(message)
    sys.exit(1)


def get_config(args):
    try:
        return load_config(args.config)
    except DeferCompileError as e:
        fail(f"Invalid configuration:\n{e}")


def find_sources(source, config):
    """List the eligible files at `source` (a file or a directory tree)."""
    if os.path.isfile(source):
        return [source] if is_eligible(source, config) else []
    found = []
    for root, dirs, files in os.walk(source):
        dirs[:] = sorted(d for d in dirs if d not in config.exclude_dirs)
        for name in sorted(files):
            path = os.path.join(root, name)
            if is_eligible(path, config):
                found.append(path)
    return found


def output_path(source_root, path, output_dir):
    if os.path.isfile(source_root):
        relative = os.path.basename(path)
    else:
        relative = os.path.relpath(path, source_root)
    return os.path.join(output_dir, relative)


def _compile_job(path, config, output_name, verbose):
    """
    Compile one file in a worker process.

    Returns (result, records, message): the diagnostics travel back as
    records, and a failure as its rendered message.
    """
    set_verbose(verbose)
    diagnostics = Diagnostics()
    try:
        result = compile_source(path, None, config, diagnostics, output_name)
        return result, diagnostics.records, None
    except DeferCompileError as e:
        return None, diagnostics.records, str(e)


async def compile_many(paths, config, jobs, targets=None):
    """
    Compile every path, spreading the files over `jobs` worker processes.

    Parsing and rewriting are CPU bound, so files run in separate processes
    rather than threads. With one job everything runs in this process.
    Returns a list of (path, result, diagnostics, error message) tuples in
    input order.
    """
    targets = targets or {}
    verbose = is_verbose()

    def job_args(path):
        output_name = os.path.basename(targets[path]) if path in targets else None
        return path, config, output_name, verbose

    if jobs <= 1 or len(paths) <= 1:
        outcomes = [_compile_job(*job_args(path)) for path in paths]
    else:
        loop = asyncio.get_running_loop()
        with ProcessPoolExecutor(max_workers=min(jobs, len(paths))) as executor:
            outcomes = await asyncio.gather(
                *(loop.run_in_executor(executor, _compile_job, *job_args(path)) for path in paths))

    results = []
    for path, (result, records, message) in zip(paths, outcomes):
        diagnostics = Diagnostics()
        diagnostics.extend(records)
        results.append((path, result, diagnostics, message))
    return results


def write_output(result, target):
    os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
    code = result.code
    if result.source_map is not None:
        map_file = target + ".map"
        with open(map_file, "w", encoding="utf-8") as f:
            json.dump(result.source_map, f)
        code += f"//# sourceMappingURL={os.path.basename(map_file)}\n"
    with open(target, "w", encoding="utf-8") as f:
        f.write(code)


def cmd_build(args):
    config = get_config(args)
    if not os.path.exists(args.source):
        fail(f"'{args.source}' is neither a file nor directory")

    sources = find_sources(args.source, config)
    if not sources:
        fail(f"No eligible files found in '{args.source}'")

    output_dir = args.output or OUTPUT_DIR
    targets = {path: output_path(args.source, path, output_dir) for path in sources}
    log(f"Building {len(sources)} file(s) into {output_dir}...")

    results = asyncio.run(compile_many(sources, config, args.jobs, targets))

    failures = 0
    transformed = 0
    for path, result, diagnostics, exc in results:
        diagnostics.flush()
        if exc is not None:
            error(f"Failed to compile {path}:{exc}")
            failures += 1
            continue
        write_output(result, targets[path])
        if result.transformed:
            transformed += 1
            log(f"  {path} -> {targets[path]} (rewritten)")
        else:
            log(f"  {path} -> {targets[path]}")

    log(f"Done: {len(sources) - failures} built, {transformed} rewritten, {failures} failed.")
    if failures:
        sys.exit(1)


def cmd_print(args):
    config = get_config(args)
    config = config.model_copy(update={"source_maps": False})
    diagnostics = Diagnostics(echo=True)

    try:
        if args.filename is None or args.filename == "-":
            result = compile_source("<stdin>", sys.stdin.read(), config=config, diagnostics=diagnostics)
        else:
            result = compile_source(args.filename, config=config, diagnostics=diagnostics)
    except DeferCompileError as e:
        fail(f"Compilation Failed:\n{e}")

    sys.stdout.write(result.code)


def cmd_check(args):
    config = get_config(args)
    if not os.path.exists(args.source):
        fail(f"'{args.source}' is neither a file nor directory")
    sources = find_sources(args.source, config)
    if not sources:
        fail(f"No eligible files found in '{args.source}'")

    results = asyncio.run(compile_many(sources, config, args.jobs))

    failures = 0
    warnings = 0
    for path, result, diagnostics, exc in results:
        diagnostics.flush()
        if exc is not None:
            error(f"{path}:{exc}")
            failures += 1
            continue
        count = sum(1 for d in result.diagnostics if d.level == "warning")
        warnings += count
        status = "rewritten" if result.transformed else "unchanged"
        log(f"{path}: {status}, {count} warning(s)")

    log(f"Checked {len(sources)} file(s): {warnings} warning(s), {failures} error(s).")
    if failures or (args.strict and warnings):
        sys.exit(1)


def cmd_init(args):
    if os.path.exists(CONFIG_FILE) and not args.force:
        fail(f"{CONFIG_FILE} already exists (use --force to overwrite)")
    write_default_config(CONFIG_FILE)
    log(f"Created {CONFIG_FILE}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="deferc: rewrite deferred bindings into continuation calls")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output (sent to stderr)")
    parser.add_argument("--config", help=f"Config file (default: {CONFIG_FILE} or ~/.deferc/config.json)")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Transform a file or directory into an output directory")
    build.add_argument("source", help="Source file or directory")
    build.add_argument("--output", help=f"Output directory (default: {OUTPUT_DIR})")
    build.add_argument("--jobs", type=int, default=os.cpu_count() or 1, help="Files compiled at once")

    printer = subparsers.add_parser("print", help="Transform one file and print the result")
    printer.add_argument("filename", nargs="?", default="-", help="File to transform (default: read from stdin)")

    check = subparsers.add_parser("check", help="Transform without writing and report diagnostics")
    check.add_argument("source", help="Source file or directory")
    check.add_argument("--strict", action="store_true", help="Exit with status 1 when any warning is reported")
    check.add_argument("--jobs", type=int, default=os.cpu_count() or 1, help="Files compiled at once")

    init = subparsers.add_parser("init", help=f"Write a default {CONFIG_FILE}")
    init.add_argument("--force", action="store_true", help="Overwrite an existing config file")

    args = parser.parse_args(argv)
    set_verbose(args.verbose)

    if args.command == "build": cmd_build(args)
    elif args.command == "print": cmd_print(args)
    elif args.command == "check": cmd_check(args)
    elif args.command == "init": cmd_init(args)
    else: parser.print_help()


if __name__ == "__main__":
    main()
