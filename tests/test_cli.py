import uuid

from symlocator.cli import main
from tests.builders import build_pe, build_portable_pdb, checksum_entry, portable_codeview_entry

IDENTIFIER = uuid.UUID("12345678-1234-1234-1234-123456789ABC")


def test_index_command(tmp_path, capsys):
    binary = tmp_path / "Foo.dll"
    binary.write_bytes(build_pe([portable_codeview_entry(IDENTIFIER, "Foo.pdb")]))

    assert main(["-q", "index", str(binary)]) == 0
    assert "foo.pdb/12345678123412341234123456789ABCFFFFFFFF/foo.pdb" in capsys.readouterr().out


def test_index_command_without_codeview(tmp_path):
    binary = tmp_path / "Native.dll"
    binary.write_bytes(build_pe([]))
    assert main(["-q", "index", str(binary)]) == 1


def test_verify_command(tmp_path, capsys):
    pdb = build_portable_pdb()
    binary = tmp_path / "Foo.dll"
    binary.write_bytes(build_pe([
        portable_codeview_entry(IDENTIFIER, "Foo.pdb"),
        checksum_entry(pdb.checksum()),
    ]))
    good = tmp_path / "good.pdb"
    good.write_bytes(pdb.data)
    bad = tmp_path / "bad.pdb"
    bad.write_bytes(pdb.data[:-1] + b"\xff")

    assert main(["-q", "verify", str(binary), str(good)]) == 0
    assert main(["-q", "verify", str(binary), str(bad)]) == 2
    assert "MISMATCH" in capsys.readouterr().out


def test_resolve_from_cache_only(tmp_path, capsys):
    binary = tmp_path / "Foo.dll"
    binary.write_bytes(build_pe([portable_codeview_entry(IDENTIFIER, "Foo.pdb")]))
    cache_dir = tmp_path / "cache"
    args = ["-q", "--cache-dir", str(cache_dir), "resolve", "--no-remote", "--no-progress", str(binary)]

    assert main(args) == 1
    assert "remote_disabled" in capsys.readouterr().out

    cached = cache_dir / "foo.pdb" / "12345678123412341234123456789ABCFFFFFFFF" / "foo.pdb"
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"pdb")
    assert main(args) == 0
    assert "(cached)" in capsys.readouterr().out


def test_clear_cache_command(tmp_path):
    cache_dir = tmp_path / "cache"
    (cache_dir / "a").mkdir(parents=True)
    (cache_dir / "a" / "b.pdb").write_bytes(b"x")
    assert main(["-q", "--cache-dir", str(cache_dir), "clear-cache"]) == 0
    assert not (cache_dir / "a" / "b.pdb").exists()
