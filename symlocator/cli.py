"""Command-line interface for symlocator.

This module provides the main CLI entry point and command implementations
for locating portable PDBs and source-link files of .NET binaries.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .cache import SymbolCache
from .exceptions import PEParseError
from .locator import SymbolLocator
from .logging_config import setup_logging, log_info, log_error
from .models import SymbolFileResult
from .pe_parsing import read_debug_directory
from .portable_pdb import validate_checksums
from .progress import ProgressBar
from .symbol_server import compute_symbol_index


def cmd_index(binaries: list[Path]) -> int:
    """Print the symbol index of each binary."""
    status = 0
    for binary in binaries:
        try:
            directory = read_debug_directory(binary)
        except (PEParseError, OSError) as e:
            log_error(f"{binary}: {e}")
            status = 1
            continue

        if directory.codeview is None:
            log_error(f"{binary}: no portable CodeView entry")
            status = 1
            continue

        print(f"{binary}: {compute_symbol_index(directory.codeview)}")
        for checksum in directory.checksums:
            print(f"    {checksum.algorithm_name}:{checksum.digest.hex()}")
    return status


async def _resolve_all(
    locator: SymbolLocator,
    binaries: list[Path],
    *,
    allow_remote_servers: bool,
    show_progress: bool,
) -> dict[Path, SymbolFileResult]:
    """Resolve all binaries concurrently, in completion order."""

    async def resolve_one(binary: Path) -> tuple[Path, SymbolFileResult]:
        result = await locator.locate_symbol_file_for_binary(
            binary, allow_remote_servers=allow_remote_servers
        )
        return binary, result

    results: dict[Path, SymbolFileResult] = {}
    with ProgressBar(len(binaries), enabled=show_progress) as progress:
        for next_done in asyncio.as_completed([resolve_one(b) for b in binaries]):
            binary, result = await next_done
            results[binary] = result
            progress.update(found=result.success)
    return results


def cmd_resolve(
    binaries: list[Path],
    *,
    cache_dir: Path | None,
    servers: list[str] | None,
    allow_remote_servers: bool,
    show_progress: bool,
) -> int:
    """Resolve the portable PDB of each binary to a local file."""
    locator = SymbolLocator(cache_dir=cache_dir, servers=servers)
    results = asyncio.run(_resolve_all(
        locator,
        binaries,
        allow_remote_servers=allow_remote_servers,
        show_progress=show_progress,
    ))

    missing = 0
    for binary in binaries:
        result = results[binary]
        if result.success:
            origin = " (cached)" if result.from_cache else ""
            print(f"{binary} -> {result.path}{origin}")
        else:
            missing += 1
            print(f"{binary}: {result.failure.value}")

    if missing:
        log_info(f"{missing} of {len(binaries)} symbol files could not be resolved")
        return 1
    return 0


def cmd_verify(binary: Path, pdb: Path) -> int:
    """Check a local PDB against the checksum entries of a binary."""
    try:
        directory = read_debug_directory(binary)
        pdb_data = bytearray(pdb.read_bytes())
    except (PEParseError, OSError) as e:
        log_error(str(e))
        return 1

    if not directory.checksums:
        log_error(f"{binary} has no PDB checksum entries")
        return 1

    if validate_checksums(pdb_data, directory.checksums):
        print(f"{pdb}: checksum OK")
        return 0

    print(f"{pdb}: checksum MISMATCH")
    return 2


def cmd_source(url: str, relative_path: str, *, cache_dir: Path | None) -> int:
    """Fetch a source-link document into the cache."""
    locator = SymbolLocator(cache_dir=cache_dir)
    result = asyncio.run(locator.locate_source_file(url, relative_path))
    if result.success:
        print(result.path)
        return 0

    log_error(f"{url}: {result.failure.value}")
    return 1


def cmd_clear_cache(*, cache_dir: Path | None) -> int:
    """Delete all cached files."""
    cache = SymbolCache(cache_dir)
    deleted = cache.clear()
    log_info(f"Deleted {deleted} cached file(s) from {cache.root}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for symlocator CLI.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        prog="symlocator",
        description="Locate portable PDBs and source-link files for .NET binaries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the symbol server key of an assembly
  symlocator index bin/Release/MyLib.dll

  # Download PDBs for several assemblies into the default cache
  symlocator resolve bin/Release/*.dll

  # Only use a private symbol server, into a custom cache
  symlocator --cache-dir ./symbols resolve MyLib.dll --server https://symbols.example.com/

  # Check a local PDB against the checksums recorded in the assembly
  symlocator verify MyLib.dll MyLib.pdb
        """,
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging output",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all non-error output",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        help="Symbol cache directory (default: SYMLOCATOR_CACHE or the platform default)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    index_parser = commands.add_parser("index", help="Print symbol index of binaries")
    index_parser.add_argument("binaries", nargs="+", type=Path, metavar="BINARY")

    resolve_parser = commands.add_parser("resolve", help="Resolve PDBs of binaries")
    resolve_parser.add_argument("binaries", nargs="+", type=Path, metavar="BINARY")
    resolve_parser.add_argument(
        "--server",
        action="append",
        dest="servers",
        metavar="URL",
        help="Symbol server base URL; repeat for several (default: SYMLOCATOR_SERVERS or public servers)",
    )
    resolve_parser.add_argument(
        "--no-remote",
        action="store_true",
        help="Only use the local cache, never query symbol servers",
    )
    resolve_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar display",
    )

    verify_parser = commands.add_parser("verify", help="Validate a PDB against a binary")
    verify_parser.add_argument("binary", type=Path)
    verify_parser.add_argument("pdb", type=Path)

    source_parser = commands.add_parser("source", help="Fetch a source-link file")
    source_parser.add_argument("url")
    source_parser.add_argument("relative_path")

    commands.add_parser("clear-cache", help="Delete all cached files")

    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, quiet=args.quiet)

    if args.command == "index":
        return cmd_index(args.binaries)
    if args.command == "resolve":
        return cmd_resolve(
            args.binaries,
            cache_dir=args.cache_dir,
            servers=args.servers,
            allow_remote_servers=not args.no_remote,
            show_progress=not args.no_progress and not args.quiet,
        )
    if args.command == "verify":
        return cmd_verify(args.binary, args.pdb)
    if args.command == "source":
        return cmd_source(args.url, args.relative_path, cache_dir=args.cache_dir)
    return cmd_clear_cache(cache_dir=args.cache_dir)


if __name__ == "__main__":
    sys.exit(main())
