import os
import time

import pytest

from draftxfer.journal import (
    FILE_MAGIC,
    FileInfo,
    FileStatus,
    HashRecord,
    Journal,
    Whence,
)


def default_record(idx=0):
    return HashRecord(hash=idx, offset=512 * (idx + 1), size=512, file_id=0)


def setup_journal(path, count=0, hash_offset=0, file_id=0):
    journal = Journal.create(path, [])
    for i in range(count):
        rec = default_record(i)
        journal.write_hash(file_id, rec.offset, rec.size, rec.hash + hash_offset)
    return journal


@pytest.fixture
def jpath(tmp_path):
    return tmp_path / "journal.draft"


def test_ctor_empty_info(jpath):
    Journal.create(jpath, [])
    assert jpath.exists()
    size = jpath.stat().st_size
    assert size > 0
    assert size % 512 == 0


def test_file_starts_with_magic(jpath):
    Journal.create(jpath, [])
    assert jpath.read_bytes()[:8] == FILE_MAGIC == b"DRAFTJF "


def test_single_hash_write(jpath):
    j = Journal.create(jpath, [])
    j.write_hash(0, 512, 512, 0x1122334455667788)
    assert j.hash_count() == 1
    assert list(j) == [HashRecord(0x1122334455667788, 512, 512, 0)]


def test_hash_count(jpath):
    j = Journal.create(jpath, [])
    assert j.hash_count() == 0
    j.write_hash(0, 512, 512, 0x1122334455667788)
    assert j.hash_count() == 1
    j.write_hash(0, 1024, 512, 0x1122334455667788)
    assert j.hash_count() == 2


def test_open_readonly_missing(jpath):
    with pytest.raises(FileNotFoundError):
        Journal(jpath)


def test_open_readonly_bad_magic(jpath):
    jpath.write_bytes(b"NOTDRAFT" + bytes(600))
    with pytest.raises(ValueError):
        Journal(jpath)


def test_open_readonly_empty_file(jpath):
    jpath.write_bytes(b"")
    with pytest.raises(ValueError):
        Journal(jpath)


def test_create_existing_fails(jpath):
    Journal.create(jpath, [])
    with pytest.raises(FileExistsError):
        Journal.create(jpath, [])


def test_open_readonly(jpath):
    j = Journal.create(jpath, [])
    j.write_hash(0, 512, 512, 0x1122334455667788)

    j2 = Journal(jpath)
    assert j2.hash_count() == 1

    j.write_hash(0, 1024, 512, 0x1122334455667788)
    assert j2.hash_count() == 2


def test_write_readonly_info(jpath):
    info = FileInfo(
        path="foo",
        target_suffix="",
        status=FileStatus(mode=0o644, uid=1000, gid=1000, dev=0,
                          blk_size=512, blk_count=1, size=84),
        id=42,
    )
    j = Journal.create(jpath, [info])
    j.write_hash(0, 512, 512, 0x1122334455667788)

    j2 = Journal(jpath)
    read = j2.file_info()
    assert len(read) == 1
    info0 = read[0]
    assert info0.path == "foo"
    assert info0.target_suffix == ""
    assert info0.status.mode == 0o644
    assert info0.status.uid == 1000
    assert info0.status.gid == 1000
    assert info0.status.dev == 0
    assert info0.status.blk_size == 512
    assert info0.status.blk_count == 1
    assert info0.status.size == 84
    assert info0.id == 42


def test_creation_date(jpath):
    before = time.time_ns()
    j = Journal.create(jpath, [])
    after = time.time_ns()
    assert before <= j.creation_date() <= after
    assert Journal(jpath).creation_date() == j.creation_date()


def test_rename(tmp_path, jpath):
    j = setup_journal(jpath, 2)
    target = tmp_path / "moved.draft"
    j.rename(target)
    assert j.path == os.fspath(target)
    assert not jpath.exists()
    assert Journal(target).hash_count() == 2
    assert [r.offset for r in j] == [512, 1024]


def test_hash_record_pack_round_trip():
    rec = HashRecord(0x1122334455667788, 4096, 512, 7)
    data = rec.pack()
    assert len(data) == 32
    assert HashRecord.unpack(data) == rec


def test_hash_record_bad_file_id():
    with pytest.raises(ValueError):
        HashRecord(0, 0, 0, 1 << 16).pack()


# Cursor


def test_cursor_no_hash(jpath):
    j = Journal.create(jpath, [])
    c = j.cursor()
    assert not c.valid()

    c.seek(1)
    assert not c.valid()
    c.seek(-2)
    assert not c.valid()
    c.seek(0, Whence.SET)
    assert not c.valid()
    c.seek(0, Whence.END)
    assert not c.valid()
    c.seek(1, Whence.END)
    assert not c.valid()
    c.seek(-1, Whence.SET)
    assert not c.valid()


def test_cursor_seek(jpath):
    j = Journal.create(jpath, [])
    c = j.cursor()
    assert not c.valid()

    j.write_hash(0, 512, 512, 0x1122334455667788)
    assert not c.valid()

    c.seek(0, Whence.SET)
    assert c.valid()
    c.seek(-1, Whence.END)
    assert c.valid()
    c.seek(-1, Whence.SET)
    assert not c.valid()
    c.seek(-1, Whence.END)
    assert c.valid()
    c.seek(-1, Whence.CURRENT)
    assert not c.valid()
    c.seek(1, Whence.CURRENT)
    assert not c.valid()


def test_cursor_eventual_hash(jpath):
    j = Journal.create(jpath, [])
    c = j.cursor()
    assert not c.valid()

    j.write_hash(0, 512, 512, 0x1122334455667788)
    assert not c.valid()

    c.seek(0, Whence.SET)
    assert c.valid()
    c.seek(0, Whence.END)
    assert not c.valid()
    c.seek(0, Whence.SET)
    assert c.valid()


def test_cursor_record(jpath):
    j = setup_journal(jpath)
    c = j.cursor()
    assert not c.valid()
    assert c.hash_record() is None

    hash0 = default_record(0)
    hash1 = default_record(1)

    j.write_record(hash0)
    assert c.seek(0, Whence.SET).valid()
    assert c.hash_record() == hash0

    j.write_record(hash1)
    assert c.seek(1).hash_record() is not None
    assert c.hash_record() == hash1

    c.seek(0, Whence.SET)
    assert c.hash_record() == hash0

    c.seek(0, Whence.END)
    assert c.hash_record() is None

    c.seek(-1, Whence.END)
    assert c.hash_record() == hash1
    assert c.position() == 1


# Iterator


def test_iterator_begin_end(jpath):
    journal = setup_journal(jpath, 1)
    hash0 = default_record(0)

    first = journal.begin()
    assert first.record().hash == hash0.hash

    last = journal.end()
    with pytest.raises(IndexError):
        last.record()

    first -= 1
    assert first == last


def test_iterator_range(jpath):
    count = 5
    journal = setup_journal(jpath, count)
    offsets = [rec.offset for rec in journal]
    assert offsets == [(i + 1) * 512 for i in range(count)]


def test_iterator_empty(jpath):
    journal = setup_journal(jpath)
    assert list(journal) == []
    assert journal.begin() == journal.end()


def test_iterator_inc_dec(jpath):
    hash0 = default_record(0)
    hash1 = default_record(1)
    journal = setup_journal(jpath, 2)

    it = journal.begin()
    last = journal.end()
    assert it.record().hash == hash0.hash

    it += 1
    assert it.record().hash == hash1.hash
    it -= 1
    assert it.record().hash == hash0.hash
    it += 1
    assert it.record().hash == hash1.hash
    it += 1
    assert it == last

    old = it.copy()
    it -= 1
    assert old == last
    assert not it == last
    assert it.record().hash == hash1.hash

    old = it.copy()
    it += 1
    assert not old == last
    assert it == last
    assert old.record().hash == hash1.hash
    with pytest.raises(IndexError):
        it.record()


def test_iterator_seek_op(jpath):
    journal = setup_journal(jpath, 6)
    it = journal.begin()
    last = journal.end()

    assert it.record().hash == default_record(0).hash

    it += 5
    assert it != last
    assert it.record().hash == default_record(5).hash

    it -= 5
    assert it != last
    assert it.record().hash == default_record(0).hash

    it += 2
    assert it.record().hash == default_record(2).hash
    it -= 1
    assert it.record().hash == default_record(1).hash

    it += -1
    assert it.record().hash == default_record(0).hash
    it -= -1
    assert it.record().hash == default_record(1).hash


def test_iterator_add_sub_copy(jpath):
    journal = setup_journal(jpath, 3)
    it = journal.begin()
    later = it + 2
    assert later.record().hash == 2
    assert it.record().hash == 0
    assert (later - 1).record().hash == 1
    assert later.record().hash == 2


def test_iterator_seek_invalid(jpath):
    journal = setup_journal(jpath, 6)
    it = journal.begin()
    last = journal.end()
    assert it.record().hash == default_record(0).hash

    it += 100
    assert it == last

    it = journal.begin()
    it -= 100
    assert it == last

    it = journal.begin()
    it += -100
    assert it == last

    it = journal.begin()
    it -= -100
    assert it == last