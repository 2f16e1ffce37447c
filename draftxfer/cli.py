"""Command line entry point: the ``journal`` subcommand and dispatch."""

from __future__ import annotations

import argparse
import enum
import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, TextIO

from .journal import Journal, JournalFileDiff
from .journal_ops import diff_journals

log = logging.getLogger(__name__)

PROG = "draft"


class OutputFormat(enum.Enum):
    STANDARD = "standard"
    CSV = "csv"


@dataclass
class JournalOptions:
    """What the journal subcommand was asked to do."""

    journals: list[str] = field(default_factory=list)
    format: OutputFormat = OutputFormat.STANDARD
    dump_info: bool = False
    dump_hashes: bool = False
    dump_birthdate: bool = False
    diff: bool = False


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        raise SystemExit(1)


def _journal_parser() -> _Parser:
    parser = _Parser(
        prog=f"{PROG} journal",
        description="Inspect and compare hash journals.",
    )
    parser.add_argument(
        "-d", "--dump", action="append", default=[], metavar="TYPE",
        help="types: birthdate, hashes, info")
    parser.add_argument(
        "-D", "--diff", action="store_true",
        help="diff the specified journal files - requires exactly 2 journal arguments.")
    parser.add_argument(
        "-f", "--format", action="append", default=[], metavar="FORMAT",
        help="formats: standard (default), csv")
    parser.add_argument("journals", nargs="*", metavar="JOURNAL")
    return parser


def parse_journal_options(argv: Optional[Sequence[str]] = None) -> JournalOptions:
    """Parse the arguments that follow ``journal``; exits on misuse."""
    parser = _journal_parser()
    args = parser.parse_args(list(sys.argv[2:] if argv is None else argv))

    opts = JournalOptions()

    for kind in args.dump:
        if kind == "birthdate":
            opts.dump_birthdate = True
        elif kind == "hashes":
            opts.dump_hashes = True
        elif kind == "info":
            opts.dump_info = True
        else:
            print(f"error: cannot dump '{kind}'", file=sys.stderr)

    for name in args.format:
        try:
            opts.format = OutputFormat(name)
        except ValueError:
            print(f"error: cannot output in '{name}' format", file=sys.stderr)

    opts.diff = args.diff

    if not args.journals:
        parser.print_usage(sys.stdout)
        raise SystemExit(1)

    if opts.diff and len(args.journals) != 2:
        print("diff option (-D) requires exactly 2 journal file arguments.",
              file=sys.stderr)
        raise SystemExit(1)

    opts.journals = list(args.journals)

    log.info("journals (%d):", len(opts.journals))
    for path in opts.journals:
        log.info("\t%s", path)

    return opts


def _dump_birthdate(journal: Journal, opts: JournalOptions, out: TextIO) -> None:
    nsec = journal.creation_date()
    if opts.format is OutputFormat.STANDARD:
        out.write(f"journal creation date: {nsec}\n")
    else:
        out.write("# journal creation date\n")
        out.write(f"{nsec}\n")


def _dump_hashes(journal: Journal, opts: JournalOptions, out: TextIO) -> None:
    for rec in journal:
        if opts.format is OutputFormat.STANDARD:
            out.write(f"{rec.file_id} @ {rec.offset} for {rec.size}: {rec.hash:#016x}\n")
        else:
            out.write(f"{rec.file_id}, {rec.offset}, {rec.size}, {rec.hash}\n")


def _dump_file_info(journal: Journal, opts: JournalOptions, out: TextIO) -> None:
    info = journal.file_info()
    if opts.format is OutputFormat.STANDARD:
        for item in info:
            st = item.status
            out.write(f"{item.id}: {st.mode:o}\t{st.uid}\t{st.gid}\t{st.size}\t{item.path}\n")
    else:
        out.write("# file_id, mode, uid, gid, size, path\n")
        for item in info:
            st = item.status
            out.write(f"{item.id}, {st.mode}, {st.uid}, {st.gid}, {st.size}, {item.path}\n")


def _dump_diff(diff: JournalFileDiff, opts: JournalOptions, out: TextIO) -> None:
    if not diff.diffs:
        out.write("\t(no differences to display)\n")
        return

    if opts.format is OutputFormat.STANDARD:
        for d in diff.diffs:
            if bool(d.hash_a) != bool(d.hash_b):
                out.write(f"only in {'ours' if d.hash_a else 'theirs'}: ")
            out.write(
                f"file {d.file_id} @ block offset {d.offset} for {d.size}, "
                f"us: {d.hash_a:#016x} them: {d.hash_b:#016x}\n")
    else:
        out.write("file_id, block offset, size, us (base 16), them (base 16)\n")
        for d in diff.diffs:
            out.write(f"{d.file_id}, {d.offset}, {d.size}, {d.hash_a:016x}, {d.hash_b:016x}\n")


def _process_journal(path: str, opts: JournalOptions, out: TextIO) -> int:
    with Journal(path) as journal:
        if opts.dump_birthdate:
            _dump_birthdate(journal, opts, out)
        if opts.dump_info:
            _dump_file_info(journal, opts, out)
        if opts.dump_hashes:
            _dump_hashes(journal, opts, out)
    return 0


def _diff_journals(opts: JournalOptions, out: TextIO) -> int:
    if len(opts.journals) < 2:
        print("diff requires exactly 2 journal files.", file=sys.stderr)
        return 1

    with Journal(opts.journals[0]) as journal_a, Journal(opts.journals[1]) as journal_b:
        _dump_diff(diff_journals(journal_a, journal_b), opts, out)
    return 0


def journal_command(argv: Optional[Sequence[str]] = None) -> int:
    """Run the journal subcommand; returns the number of failed steps."""
    opts = parse_journal_options(argv)
    out = sys.stdout

    status = sum(_process_journal(path, opts, out) for path in opts.journals)

    if opts.diff:
        status += _diff_journals(opts, out)

    return status


_SUBCOMMANDS: dict[str, Callable[[Optional[Sequence[str]]], int]] = {
    "journal": journal_command,
}


def _usage() -> None:
    print(f"usage: {PROG} <subcmd> [options...]")
    print("  subcmds:")
    for name in sorted(_SUBCOMMANDS):
        print(f"    {name}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Dispatch to a subcommand; ``argv`` excludes the program name."""
    args = list(sys.argv[1:] if argv is None else argv)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")

    if not args or args[0] not in _SUBCOMMANDS:
        _usage()
        return 1

    try:
        return _SUBCOMMANDS[args[0]](args[1:])
    except Exception as exc:
        log.error("exception: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())