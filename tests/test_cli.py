import pytest

from semlakit.cli import KEY_ENV_VAR, decrypt_main, encrypt_main, main

KEY_BYTES = bytes(range(32))


@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "base.key"
    path.write_bytes(KEY_BYTES)
    return str(path)


@pytest.fixture
def base(tmp_path):
    directory = tmp_path / "lib"
    directory.mkdir()
    return directory


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return str(path)


def test_round_trip_top_level_file(tmp_path, base, key_file):
    clear = _write(tmp_path / "clear" / "a.mo", b"model A end A;\n")
    assert encrypt_main([KEY_FILE := "--key-file", key_file, clear, "a.moc", str(base)]) == 0
    encrypted = (base / "a.moc").read_bytes()
    assert b"model A" not in encrypted

    out = tmp_path / "a.out"
    assert decrypt_main([KEY_FILE, key_file, str(base), "a.moc", str(out)]) == 0
    assert out.read_bytes() == b"model A end A;\n"


def test_round_trip_package_hierarchy(tmp_path, base, key_file):
    top = _write(tmp_path / "src" / "package.mo", b"package Lib end Lib;")
    sub = _write(tmp_path / "src" / "sub" / "package.mo", b"package Sub end Sub;")
    model = _write(tmp_path / "src" / "sub" / "model.mo", b"model M end M;" * 40)
    opts = ["--key-file", key_file]

    assert encrypt_main(opts + [top, "package.moc", str(base)]) == 0
    assert encrypt_main(opts + [sub, "sub/package.moc", str(base)]) == 0
    assert encrypt_main(opts + [model, "sub/model.moc", str(base)]) == 0

    out_model = tmp_path / "model.out"
    assert decrypt_main(opts + [str(base), "sub/model.moc", str(out_model)]) == 0
    assert out_model.read_bytes() == b"model M end M;" * 40

    out_sub = tmp_path / "sub.out"
    assert decrypt_main(opts + [str(base), "sub/package.moc", str(out_sub)]) == 0
    assert out_sub.read_bytes() == b"package Sub end Sub;"

    out_top = tmp_path / "top.out"
    assert decrypt_main(opts + [str(base), "package.moc", str(out_top)]) == 0
    assert out_top.read_bytes() == b"package Lib end Lib;"


def test_wrong_key_fails_and_removes_output(tmp_path, base, key_file):
    clear = _write(tmp_path / "c.mo", b"secret model")
    assert encrypt_main(["--key-file", key_file, clear, "c.moc", str(base)]) == 0

    other = tmp_path / "other.key"
    other.write_bytes(bytes(32))
    out = tmp_path / "c.out"
    assert decrypt_main(["--key-file", str(other), str(base), "c.moc", str(out)]) == 1
    assert not out.exists()
    assert (base / "c.moc").exists()


def test_key_from_environment(tmp_path, base, monkeypatch):
    monkeypatch.setenv(KEY_ENV_VAR, KEY_BYTES.hex())
    clear = _write(tmp_path / "e.mo", b"env keyed")
    assert encrypt_main([clear, "e.moc", str(base)]) == 0
    out = tmp_path / "e.out"
    assert decrypt_main([str(base), "e.moc", str(out)]) == 0
    assert out.read_bytes() == b"env keyed"


def test_without_basedir_strips_trailing_c(tmp_path, key_file):
    clear = _write(tmp_path / "in" / "d.mo", b"no basedir")
    target = tmp_path / "d.moc"
    assert encrypt_main(["--key-file", key_file, clear, str(target)]) == 0
    written = tmp_path / "d.mo"
    assert written.exists()
    assert not target.exists()

    out = tmp_path / "d.out"
    assert decrypt_main(["--key-file", key_file, str(tmp_path), "d.mo", str(out)]) == 0
    assert out.read_bytes() == b"no basedir"


@pytest.mark.parametrize("args", [[], ["only-one"], ["a", "b", "c", "d"]])
def test_encrypt_usage_errors(args, key_file, capsys):
    assert encrypt_main(["--key-file", key_file] + args) == 1
    assert "Usage:" in capsys.readouterr().err


@pytest.mark.parametrize("args", [[], ["a"], ["a", "b"]])
def test_decrypt_usage_errors(args, key_file, capsys):
    assert decrypt_main(["--key-file", key_file] + args) == 1
    assert "Usage:" in capsys.readouterr().err


def test_encrypt_missing_input(tmp_path, base, key_file, capsys):
    missing = str(tmp_path / "missing.mo")
    assert encrypt_main(["--key-file", key_file, missing, "x.moc", str(base)]) == 1
    assert "for reading" in capsys.readouterr().err
    assert not (base / "x.moc").exists()


def test_decrypt_missing_input(tmp_path, base, key_file, capsys):
    out = tmp_path / "none.out"
    assert decrypt_main(["--key-file", key_file, str(base), "none.moc", str(out)]) == 1
    assert "for reading" in capsys.readouterr().err


def test_missing_key_is_reported(tmp_path, base, monkeypatch, capsys):
    monkeypatch.delenv(KEY_ENV_VAR, raising=False)
    clear = _write(tmp_path / "k.mo", b"data")
    assert encrypt_main([clear, "k.moc", str(base)]) == 1
    assert KEY_ENV_VAR in capsys.readouterr().err


def test_bad_key_length(tmp_path, base, capsys):
    short = tmp_path / "short.key"
    short.write_bytes(b"abcd")
    clear = _write(tmp_path / "s.mo", b"data")
    assert encrypt_main(["--key-file", str(short), clear, "s.moc", str(base)]) == 1
    assert "32 bytes" in capsys.readouterr().err


def test_main_dispatches(tmp_path, base, key_file):
    clear = _write(tmp_path / "m.mo", b"dispatched")
    assert main(["encrypt", "--key-file", key_file, clear, "m.moc", str(base)]) == 0
    out = tmp_path / "m.out"
    assert main(["decrypt", "--key-file", key_file, str(base), "m.moc", str(out)]) == 0
    assert out.read_bytes() == b"dispatched"
    assert main(["other"]) == 1