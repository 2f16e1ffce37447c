# draftxfer

Building blocks for bulk file mirroring:

- append-only journals of per-block hashes, with cursors for walking them;
- comparison of two journals;
- pooled I/O buffers;
- wire headers for the transfer protocol;
- transfer statistics and a bandwidth estimate;
- a readiness poller and a small thread executor.

Linux is the intended platform. The journal code uses `os.pread` and
`os.pwrite`, and the poller prefers `epoll`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## The `draftxfer` command

The first argument names a subcommand. Running the command with no
arguments, or with an unknown subcommand, prints the list of subcommands and
exits with status 1. At present the only subcommand is `journal`.

```
draftxfer
```

### `draftxfer journal`

```
draftxfer journal [-d TYPE]... [-D] [-f FORMAT] JOURNAL [JOURNAL ...]
```

- `-d`, `--dump TYPE`: print part of each named journal. `TYPE` is
  `birthdate`, `info` or `hashes`. The option may be given more than once.
  An unknown type prints an error and is ignored.
- `-D`, `--diff`: compare two journals. Exactly two journal files must be
  given.
- `-f`, `--format FORMAT`: `standard` (the default) or `csv`. An unknown
  format prints an error and is ignored.
- `-h`, `--help`: show help.

At least one journal file is required. Examples:

```
draftxfer journal --dump info run.draft
draftxfer journal --dump hashes run.draft
draftxfer journal --dump birthdate run.draft
draftxfer journal --dump hashes --format csv run.draft
draftxfer journal --diff ours.draft theirs.draft
```

What each dump prints:

- `birthdate`: the journal's creation time, in nanoseconds since the Unix
  epoch.
- `info`: one line per file, giving its id, its mode (octal in standard
  format), uid, gid, size and path.
- `hashes`: one line per record, giving the file id, offset, size and hash.

The diff lists every block whose hashes differ. A block found in only one
journal is reported with the other side's hash as 0. In standard format such
a line starts with `only in ours:` or `only in theirs:`. When the journals
match, the diff prints `(no differences to display)`.

Any exception raised while a subcommand runs is logged, and the command
exits with status 1.

## Library use

```python
from draftxfer.journal import FileInfo, FileStatus, Journal, Whence
from draftxfer.journal_ops import diff_journals

info = [FileInfo(path="foo", status=FileStatus(mode=0o644, size=84), id=0)]
journal = Journal.create("run.draft", info)   # the file must not exist yet
journal.write_hash(0, 512, 512, 0x1122334455667788)
print(journal.hash_count())                   # 1

with Journal("run.draft") as reader:          # opened read-only
    print(reader.file_info(), reader.creation_date())
    for record in reader:
        print(record.file_id, record.offset, record.size, hex(record.hash))

    cursor = reader.cursor()
    cursor.seek(-1, Whence.END)
    print(cursor.hash_record())

diff = diff_journals(Journal("a.draft"), Journal("b.draft"))
for d in diff.diffs:
    print(d.file_id, d.offset, d.size, d.hash_a, d.hash_b)
```

If a journal file's header is malformed, or its magic is wrong, `Journal(path)`
raises `ValueError`. `Journal.begin()` and `Journal.end()` return
`CursorIter` objects. These support `+=`, `-=`, `+`, `-` and `==`, and their
`record()` method raises `IndexError` past the end. A `Cursor` that has become
invalid stays invalid under relative seeks. Seek with `Whence.SET` or
`Whence.END` to make it valid again.

### Other modules

- `draftxfer.buffer`:
  - `Buffer` is a resizable owned byte block.
  - `FreeList` hands out slot indices last-in first-out.
  - `BufferPool` holds fixed-size chunks. `get(timeout)` returns a
    `PooledBuffer`, which is empty on timeout or once the pool is closed.
  - A `PooledBuffer` goes back to its pool on `release()` or at the end of a
    `with` block.
- `draftxfer.protocol`:
  - `Frame` is the 24-byte control header.
  - `ChunkHeader` is the data header, padded to 4096 bytes.
  - Both have `pack()` and `unpack()`, and `unpack()` checks the magic
    number.
- `draftxfer.stats`:
  - `Stats` holds the counters.
  - `StatsManager` keeps one global set of counters and one set per file.
  - `BandwidthMonitor` keeps a smoothed rate and an ETA.
  - `stats_manager()` and `stats(file_id)` give access to the process-wide
    manager.
- `draftxfer.timer`: `ScopedTimer` is a context manager. At exit it calls
  its callback with the elapsed seconds.
- `draftxfer.pollset`: `PollSet` calls a callback for each descriptor that
  becomes ready. A callback that returns a false value removes its
  descriptor.
- `draftxfer.executor`: `ThreadExecutor` runs each runnable on its own
  thread. It calls the runnable's `run_once(stop_event)` repeatedly until it
  returns a false value, raises, or the executor is cancelled.
  `Options.DO_FINALIZE` gives a runnable one last call after cancellation.

## What this package does not do

This package has no network file transfer: there is no send or receive
command, and there are no sessions, readers, writers or hashers that move
data. It cannot build a journal by hashing a directory tree, and it cannot
verify a journal against files on disk. It reads journals, writes records
into them, and compares them.