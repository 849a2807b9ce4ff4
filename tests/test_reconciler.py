import os

import pytest

from rsr import resolv_conf
from rsr.reconciler import Reconciler
from rsr.resolv_conf import ResolvConfError, ResolvConfWriteError
from rsr.state import ResolverState, ServerOrigin


def _nameservers(path):
    with open(path, encoding="utf-8") as f:
        return [line.split()[1] for line in f if line.startswith("nameserver")]


def test_first_tick_writes_managed_copy(paths, write_file):
    ext, managed = paths
    write_file(ext, "nameserver 1.1.1.1\n")
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)

    rec.tick()

    assert _nameservers(managed) == ["1.1.1.1"]


def test_tick_skips_write_when_nothing_changed(paths, write_file):
    ext, managed = paths
    write_file(ext, "nameserver 1.1.1.1\n")
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)
    rec.tick()
    first = os.stat(managed).st_ino

    rec.tick()

    # A rewrite would have renamed a new inode into place.
    assert os.stat(managed).st_ino == first


def test_tick_recreates_deleted_managed_copy(paths, write_file):
    ext, managed = paths
    write_file(ext, "nameserver 1.1.1.1\n")
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)
    rec.tick()

    os.unlink(managed)
    rec.tick()

    assert _nameservers(managed) == ["1.1.1.1"]


def test_tick_picks_up_external_edits(paths, write_file):
    ext, managed = paths
    write_file(ext, "nameserver 1.1.1.1\n")
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)
    rec.tick()

    write_file(ext, "nameserver 9.9.9.9\nnameserver 1.1.1.1\n")
    rec.tick()

    assert _nameservers(managed) == ["9.9.9.9", "1.1.1.1"]


def test_external_symlink_to_managed_copy_does_not_loop(paths, write_file):
    ext, managed = paths
    st = ResolverState()
    rec = Reconciler(st, resolv_conf_path=ext, managed_path=managed)
    rec.load_fallback("8.8.8.8")
    rec.tick()
    os.symlink(managed, ext)

    generation = st.generation
    rec.tick()
    rec.tick()

    assert st.generation == generation
    assert [s.origin for s in st.servers] == [ServerOrigin.FALLBACK]
    assert _nameservers(managed) == ["8.8.8.8"]


def test_load_fallback_skips_invalid_tokens():
    st = ResolverState()
    rec = Reconciler(st, resolv_conf_path="/nonexistent", managed_path="/nonexistent")

    assert rec.load_fallback("8.8.8.8 bogus 2001:4860:4860::8888") == 2
    assert [s.server_string for s in st.servers] == ["8.8.8.8", "2001:4860:4860::8888"]
    assert st.active_server is st.servers[0]


def test_reload_propagates_read_errors(paths):
    ext, managed = paths
    os.mkdir(ext)
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)

    with pytest.raises(ResolvConfError):
        rec.reload()

    # tick() swallows it (already logged) and still writes
    rec.tick()
    assert os.path.exists(managed)


def test_failed_write_is_retried_on_next_tick(paths, write_file, monkeypatch):
    ext, managed = paths
    write_file(ext, "nameserver 1.1.1.1\n")
    rec = Reconciler(ResolverState(), resolv_conf_path=ext, managed_path=managed)

    real_replace = os.replace

    def boom(src, dst):
        raise OSError(5, "Input/output error")

    monkeypatch.setattr(resolv_conf.os, "replace", boom)
    with pytest.raises(ResolvConfWriteError):
        rec.tick()
    assert not os.path.exists(managed)

    monkeypatch.setattr(resolv_conf.os, "replace", real_replace)
    rec.tick()
    assert _nameservers(managed) == ["1.1.1.1"]
