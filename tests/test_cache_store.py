"""Tests for the on-disk archive cache."""
import pytest

from gitter.cache import CacheStore
from gitter.cache.store import parse_archive_name
from gitter.core.errors import GitterIOError
from gitter.forge import parse_repository

HELLO = parse_repository("octocat/Hello-World")


@pytest.fixture
def store(tmp_path):
    return CacheStore(tmp_path / "cache")


class TestCachePath:
    """Tests for cache path derivation."""

    def test_cache_path_layout(self, store, tmp_path):
        path = store.cache_path(HELLO, "abc123")

        assert path == tmp_path / "cache" / "octocat_Hello-World-abc123.tar.gz"

    def test_cache_path_is_pure(self, store, tmp_path):
        """Same inputs give the same path and nothing is created on disk."""
        assert store.cache_path(HELLO, "abc123") == store.cache_path(HELLO, "abc123")
        assert not (tmp_path / "cache").exists()

    def test_distinct_revisions_give_distinct_paths(self, store):
        assert store.cache_path(HELLO, "abc123") != store.cache_path(HELLO, "ABC123")
        assert store.cache_path(HELLO, "abc123") != store.cache_path(HELLO, "def456")

    def test_archive_name_parses_back(self, store):
        path = store.cache_path(HELLO, "abc123")

        assert parse_archive_name(path.name) == ("octocat", "Hello-World", "abc123")

    @pytest.mark.parametrize("revision", ["v1-old", "../../etc", "a/b", "", "abc.123"])
    def test_revision_that_cannot_round_trip_is_rejected(self, store, revision):
        """
        Given: A revision with a separator or path characters
        When: Saving it to the cache
        Then: ValueError is raised and nothing is written that eviction could not find
        """
        with pytest.raises(ValueError):
            store.save(b"old", HELLO, revision)

        assert not store.cache_root.exists() or list(store.cache_root.iterdir()) == []

    @pytest.mark.parametrize("name", ["notes.txt", "noowner.tar.gz", "o_norev.tar.gz", ".gitter-x.tmp"])
    def test_unrelated_files_do_not_parse(self, name):
        assert parse_archive_name(name) is None


class TestSaveAndExists:
    """Tests for save / exists."""

    def test_exists_without_cache_root(self, store):
        """A missing cache root means a missing entry, not an error."""
        assert store.exists(HELLO, "abc123") is False

    def test_save_then_exists_and_read_back(self, store):
        data = b"\x1f\x8b fake archive bytes"

        path = store.save(data, HELLO, "abc123")

        assert store.exists(HELLO, "abc123")
        assert path == store.cache_path(HELLO, "abc123")
        assert path.read_bytes() == data

    def test_save_overwrites_same_revision(self, store):
        store.save(b"first", HELLO, "abc123")
        store.save(b"second", HELLO, "abc123")

        assert store.cache_path(HELLO, "abc123").read_bytes() == b"second"

    def test_save_leaves_no_temporary_files(self, store):
        store.save(b"data", HELLO, "abc123")

        assert [p.name for p in store.cache_root.iterdir()] == ["octocat_Hello-World-abc123.tar.gz"]

    def test_save_into_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = CacheStore(blocker / "cache")

        with pytest.raises(GitterIOError) as exc_info:
            store.save(b"data", HELLO, "abc123")

        assert exc_info.value.path is not None


class TestEviction:
    """Tests for stale entry eviction."""

    def test_evict_then_save_keeps_single_entry(self, store):
        store.save(b"old", HELLO, "aaa111")
        store.save(b"older", HELLO, "bbb222")

        removed = store.evict_stale(HELLO)
        store.save(b"new", HELLO, "ccc333")

        remaining = sorted(p.name for p in store.cache_root.glob("octocat_Hello-World-*"))
        assert remaining == ["octocat_Hello-World-ccc333.tar.gz"]
        assert len(removed) == 2

    def test_evict_keeps_requested_revision(self, store):
        store.save(b"old", HELLO, "aaa111")
        store.save(b"new", HELLO, "ccc333")

        store.evict_stale(HELLO, keep="ccc333")

        assert store.exists(HELLO, "ccc333")
        assert not store.exists(HELLO, "aaa111")

    def test_evict_respects_name_boundary(self, store):
        """Evicting foo must not touch foo2 or foo-bar."""
        foo = parse_repository("octocat/foo")
        foo2 = parse_repository("octocat/foo2")
        foo_bar = parse_repository("octocat/foo-bar")
        other_owner = parse_repository("octocat2/foo")
        for ref in (foo, foo2, foo_bar, other_owner):
            store.save(b"x", ref, "abc123")

        store.evict_stale(foo)

        assert not store.exists(foo, "abc123")
        assert store.exists(foo2, "abc123")
        assert store.exists(foo_bar, "abc123")
        assert store.exists(other_owner, "abc123")

    def test_evict_without_cache_root(self, store):
        assert store.evict_stale(HELLO) == []

    def test_evict_ignores_foreign_files(self, store):
        store.cache_root.mkdir(parents=True)
        notes = store.cache_root / "octocat_Hello-World-notes.txt"
        notes.write_text("keep me")

        store.evict_stale(HELLO)

        assert notes.exists()

    def test_eviction_failure_is_not_fatal(self, store, monkeypatch):
        store.save(b"a", HELLO, "aaa111")
        store.save(b"b", HELLO, "bbb222")
        locked = store.cache_path(HELLO, "aaa111")

        original_unlink = type(locked).unlink

        def flaky_unlink(self, *args, **kwargs):
            if self == locked:
                raise PermissionError(13, "Permission denied", str(self))
            return original_unlink(self, *args, **kwargs)

        monkeypatch.setattr(type(locked), "unlink", flaky_unlink)

        removed = store.evict_stale(HELLO)

        assert removed == [store.cache_path(HELLO, "bbb222")]
        assert locked.exists()


class TestEntriesAndClear:
    """Tests for listing and clearing the cache."""

    def test_entries_lists_parsed_archives(self, store):
        other = parse_repository("pallets/click")
        store.save(b"12345", HELLO, "abc123")
        store.save(b"1", other, "def456")

        entries = store.entries()

        assert [(e.repository, e.revision) for e in entries] == [
            ("octocat/Hello-World", "abc123"),
            ("pallets/click", "def456"),
        ]
        assert entries[0].size_bytes == 5

    def test_entries_filtered_by_repository(self, store):
        store.save(b"1", HELLO, "abc123")
        store.save(b"1", parse_repository("pallets/click"), "def456")

        assert [e.name for e in store.entries(HELLO)] == ["Hello-World"]

    def test_clear_all(self, store):
        store.save(b"1", HELLO, "abc123")
        store.save(b"1", parse_repository("pallets/click"), "def456")

        removed = store.clear()

        assert len(removed) == 2
        assert store.entries() == []
