import json

import pytest

import featdoc


MANIFEST = """\
[features]
#! Runtime
## Enables the async runtime
tokio = ["dep:tokio"]
"""

DOCS = "# Docs\n[//]: # (FEATURE_FLAGS_START)\n[//]: # (FEATURE_FLAGS_END)\n"

EXPECTED = (
    "# Docs\n[//]: # (FEATURE_FLAGS_START)\n"
    "Runtime\n\n- `tokio` - Enables the async runtime\n\n"
    "[//]: # (FEATURE_FLAGS_END)\n"
)


@pytest.fixture
def crate(tmp_path):
    (tmp_path / "Cargo.toml").write_text(MANIFEST, encoding="utf-8")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "docs.md").write_text(DOCS, encoding="utf-8")
    return tmp_path


def test_default_command_updates_silently(crate, capsys):
    assert featdoc.main(["--root", str(crate)]) == 0
    assert (crate / "src" / "docs.md").read_text(encoding="utf-8") == EXPECTED
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_update_verbose_reports_status(crate, capsys):
    assert featdoc.main(["--root", str(crate), "--verbose", "update"]) == 0
    assert "updated" in capsys.readouterr().err

    assert featdoc.main(["--root", str(crate), "--verbose", "update"]) == 0
    assert "unchanged" in capsys.readouterr().err


def test_root_detected_from_working_directory(crate, monkeypatch):
    nested = crate / "src" / "nested"
    nested.mkdir()
    monkeypatch.chdir(nested)
    assert featdoc.main([]) == 0
    assert (crate / "src" / "docs.md").read_text(encoding="utf-8") == EXPECTED


def test_check_reports_stale_docs(crate, capsys):
    assert featdoc.main(["--root", str(crate), "check"]) == 1
    assert "out of date" in capsys.readouterr().err
    assert (crate / "src" / "docs.md").read_text(encoding="utf-8") == DOCS

    featdoc.main(["--root", str(crate)])
    assert featdoc.main(["--root", str(crate), "check"]) == 0


def test_show_text(crate, capsys):
    assert featdoc.main(["--root", str(crate), "show"]) == 0
    assert capsys.readouterr().out == "Runtime\n\n- `tokio` - Enables the async runtime\n"


def test_show_json(crate, capsys):
    assert featdoc.main(["--root", str(crate), "show", "--format", "json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data == {"Runtime": {"tokio": "Enables the async runtime"}}


def test_fatal_error_is_reported(crate, capsys):
    (crate / "Cargo.toml").write_text("[package]\n", encoding="utf-8")
    assert featdoc.main(["--root", str(crate)]) == 1
    assert "error: missing '[features]' section" in capsys.readouterr().err
    assert (crate / "src" / "docs.md").read_text(encoding="utf-8") == DOCS


def test_missing_docs_file_is_reported(crate, capsys):
    (crate / "src" / "docs.md").unlink()
    assert featdoc.main(["--root", str(crate)]) == 1
    assert capsys.readouterr().err.startswith("error:")


def test_config_overrides_paths(crate):
    (crate / ".featdoc.toml").write_text('docs = "README.md"\n', encoding="utf-8")
    (crate / "README.md").write_text(DOCS, encoding="utf-8")

    assert featdoc.main(["--root", str(crate)]) == 0
    assert (crate / "README.md").read_text(encoding="utf-8") == EXPECTED
    assert (crate / "src" / "docs.md").read_text(encoding="utf-8") == DOCS


def test_config_defaults_when_missing(tmp_path):
    config = featdoc.Config.load(tmp_path / ".featdoc.toml")
    assert config == featdoc.Config()


@pytest.mark.parametrize("body", ['docs = 3\n', 'manifest = ""\n', "docs = [\n"])
def test_invalid_config_raises(tmp_path, body):
    path = tmp_path / ".featdoc.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(featdoc.ConfigError):
        featdoc.Config.load(path)


def test_undetected_root_is_silent_unless_verbose(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(featdoc.RepoContext, "detect_root", staticmethod(lambda start: None))
    monkeypatch.chdir(tmp_path)

    assert featdoc.RepoContext().root == tmp_path.resolve()
    assert capsys.readouterr().err == ""

    featdoc.RepoContext(verbose=True)
    assert "warning: no Cargo.toml found" in capsys.readouterr().err


def test_detect_root_walks_up(tmp_path):
    (tmp_path / "Cargo.toml").write_text("[package]\n", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert featdoc.RepoContext.detect_root(nested) == tmp_path.resolve()
