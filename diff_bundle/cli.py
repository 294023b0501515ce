import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .bundle import Bundle
from .exceptions import DiffBundleError
from .logging_utils import configure_logging, logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="diff-bundle",
        description="Parse diffs into bundles and render them back as patches.",
    )
    p.add_argument("--context", type=int, default=None, help="Context lines kept around each change")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    sub = p.add_subparsers(dest="cmd", required=True)

    patch = sub.add_parser("patch", help="Render a diff as a patch git apply accepts.")
    patch.add_argument("file", type=Path, nargs="?", help="Diff file (default: stdin)")

    unified = sub.add_parser("unified", help="Render the text changes of a diff as a unified diff.")
    unified.add_argument("file", type=Path, nargs="?", help="Diff file (default: stdin)")

    show = sub.add_parser("show", help="List the classified changes of a diff.")
    show.add_argument("file", type=Path, nargs="?", help="Diff file (default: stdin)")

    export = sub.add_parser("export", help="Render the changes between two commits as a patch.")
    export.add_argument("base", help="Base commit")
    export.add_argument("head", help="Head commit")
    export.add_argument("--repo", type=Path, default=Path("."), help="Repository path (default: .)")

    return p


def _read_input(path: Optional[Path]) -> str:
    if path is None:
        raw = sys.stdin.buffer.read()
    else:
        raw = path.read_bytes()
    return raw.decode("utf-8", "surrogateescape")


def _write_output(text: str) -> None:
    sys.stdout.buffer.write(text.encode("utf-8", "surrogateescape"))
    sys.stdout.flush()


def _describe(bundle: Bundle) -> str:
    rows = []
    for change in bundle:
        row = f"{change.kind.value:<10} {change.file_type.value:<6} {change.current_path}"
        if change.kind.is_here:
            row += f" (from {change.old_path})"
        elif change.away_paths:
            row += f" (to {', '.join(change.away_paths)})"
        rows.append(row + "\n")
    return "".join(rows)


def run(args: argparse.Namespace) -> None:
    if args.cmd == "export":
        # Imported here so that git is only required for this command
        from .repository import GitRepository

        bundle = GitRepository(str(args.repo)).load_bundle(args.base, args.head)
        _write_output(bundle.to_git_patch(args.context))
        return

    bundle = Bundle.from_diff(_read_input(args.file))
    if args.cmd == "patch":
        _write_output(bundle.to_git_patch(args.context))
    elif args.cmd == "unified":
        _write_output(bundle.to_unified_diff(args.context))
    elif args.cmd == "show":
        _write_output(_describe(bundle))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)

    try:
        run(args)
    except DiffBundleError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
