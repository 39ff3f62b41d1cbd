"""Main CLI entry point for the xmltool command-line tool.

Fixes malformed XML exports and audits well-formed XML. Given a directory,
either command walks it recursively and processes every file with an XML
extension.

Examples:
    xmltool fix bad.xml > good.xml
    xmltool audit good.xml
    xmltool fix DIR_CONTAINING_BAD_XML_FILES --outdir ~/Good
    xmltool audit ~/Good --html > report.html
"""

import argparse
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from io import BytesIO
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from xmltool import __version__
from xmltool.audit import AuditError, BaseAudit, TagAudit, XMLAudit
from xmltool.repair import repair_file
from xmltool.shared.config import ConfigError, XMLToolConfig
from xmltool.shared.logging import configure_logging, get_logger
from xmltool.shared.result import RepairResult

logger = get_logger(__name__, component="cli")


class UsageError(Exception):
    """Raised when the command line asks for something inconsistent."""


def load_config(path: Optional[Path]) -> XMLToolConfig:
    """Load a JSON configuration file, or the defaults when no file is given."""
    if path is None:
        return XMLToolConfig.default()
    return XMLToolConfig.from_json(path.read_text(encoding="utf-8"))


def find_xml_files(
    root: Path,
    extensions: Sequence[str] = (".xml",),
    exclude: Optional[Path] = None,
) -> Iterator[Path]:
    """Find XML files under root, recursively and in sorted order.

    Args:
        root: Directory to walk
        extensions: File extensions to accept, compared case-sensitively
        exclude: Directory whose contents are skipped, typically the output
            directory of a fix run placed inside root

    Yields:
        Paths of matching files
    """
    excluded = exclude.resolve() if exclude is not None else None
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in extensions:
            continue
        if excluded is not None and excluded in path.resolve().parents:
            continue
        yield path


def mirror_path(root: Path, path: Path, outdir: Path) -> Path:
    """Map a file under root to the same relative location under outdir."""
    return outdir / path.relative_to(root)


def fix_file(in_path: Path, out_path: Path, config: XMLToolConfig) -> RepairResult:
    """Repair one file into out_path, creating parent directories as needed."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return repair_file(in_path, out_path, config=config)


def report_result(path: Path, result: RepairResult) -> None:
    """Log the repair summary of one file."""
    logger.info("Fixed file", extra={"document": str(path), **result.summary()})


def fix_directory(
    root: Path,
    outdir: Path,
    config: XMLToolConfig,
    workers: Optional[int] = None,
) -> int:
    """Repair every XML file under root into a mirrored tree under outdir.

    Files are repaired in parallel worker processes unless workers is 1. The
    first failure cancels the outstanding work and is raised.

    Returns:
        Number of files repaired
    """
    jobs: List[Tuple[Path, Path]] = [
        (path, mirror_path(root, path, outdir))
        for path in find_xml_files(root, config.global_.file_extensions, exclude=outdir)
    ]
    if not jobs:
        return 0

    if workers == 1 or len(jobs) == 1:
        for in_path, out_path in jobs:
            report_result(in_path, fix_file(in_path, out_path, config))
        return len(jobs)

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(fix_file, in_path, out_path, config): in_path
            for in_path, out_path in jobs
        }
        try:
            for future in as_completed(futures):
                report_result(futures[future], future.result())
        except Exception:
            for future in futures:
                future.cancel()
            raise

    return len(jobs)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="xmltool",
        description=(
            "Clean up generic XML files generated by databases, "
            "and audit XML files by counting the occurrence of elements"
        ),
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fix command
    fix_parser = subparsers.add_parser("fix", help="Fix malformed XML file(s)")
    fix_parser.add_argument(
        "path",
        type=Path,
        help="XML file, or directory walked recursively for XML files"
    )
    fix_parser.add_argument(
        "--outdir", "-d",
        type=Path,
        help="Output directory; required when PATH is a directory"
    )
    fix_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file for a single input file (default: stdout)"
    )
    fix_parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of parallel workers for a directory"
    )

    # Audit command
    audit_parser = subparsers.add_parser("audit", help="Audit well-formed XML file(s)")
    audit_parser.add_argument(
        "path",
        type=Path,
        help="XML file, or directory walked recursively for XML files"
    )
    audit_parser.add_argument(
        "--html",
        action="store_true",
        help="Output audit results as HTML"
    )
    audit_parser.add_argument(
        "--tags", "-t",
        nargs="+",
        metavar="NAME",
        help="List the contents of these (non-nested) tags instead of counting all tags"
    )

    # Global options
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Configuration file path (JSON)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    return parser


def cmd_fix(args: argparse.Namespace, config: XMLToolConfig) -> int:
    """Handle fix command."""
    workers = args.workers if args.workers is not None else config.global_.max_workers
    if workers is not None and workers <= 0:
        raise UsageError("--workers must be a positive number")

    if args.path.is_dir():
        if args.outdir is None:
            raise UsageError("If PATH is a directory, --outdir must be given")
        if args.output is not None:
            raise UsageError("--output applies to a single file; use --outdir")
        count = fix_directory(args.path, args.outdir, config, workers)
        if not args.quiet:
            print(f"Fixed {count} files into {args.outdir}", file=sys.stderr)
        return 0

    if args.output is not None:
        result = repair_file(args.path, args.output, config=config)
    elif args.outdir is not None:
        result = fix_file(args.path, args.outdir / args.path.name, config)
    else:
        # Buffered so that a failed repair prints nothing
        buffer = BytesIO()
        result = repair_file(args.path, sink=buffer, config=config)
        sys.stdout.buffer.write(buffer.getvalue())
        sys.stdout.buffer.flush()
    report_result(args.path, result)
    return 0


def cmd_audit(args: argparse.Namespace, config: XMLToolConfig) -> int:
    """Handle audit command."""
    audit: BaseAudit
    if args.tags:
        audit = TagAudit(*args.tags, config=config.audit)
    else:
        audit = XMLAudit(config.audit)

    if args.path.is_dir():
        for path in find_xml_files(args.path, config.global_.file_extensions):
            audit.add_file(path)
    else:
        audit.add_file(args.path)

    sys.stdout.write(audit.render(html=args.html))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        0 on success, 1 when a file cannot be read, written or audited,
        2 on command-line misuse
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        return 2

    try:
        config = load_config(args.config)
    except (OSError, ConfigError) as e:
        print(f"xmltool: error: invalid configuration: {e}", file=sys.stderr)
        return 2

    # Set up logging verbosity
    if args.verbose:
        configure_logging("DEBUG")
    elif args.quiet:
        configure_logging("ERROR")
    else:
        configure_logging(config.global_.logging_level)

    # Route to appropriate command handler
    try:
        if args.command == "fix":
            return cmd_fix(args, config)
        return cmd_audit(args, config)

    except UsageError as e:
        print(f"xmltool: error: {e}", file=sys.stderr)
        return 2

    except AuditError as e:
        print(f"xmltool: error auditing xml: {e}", file=sys.stderr)
        return 1

    except OSError as e:
        print(f"xmltool: error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
