"""Tests for emassist.config."""

from emassist.config import EmAssistConfig, _apply, _read_toml, load_config


# ---------------------------------------------------------------------------
# _read_toml
# ---------------------------------------------------------------------------


def test_read_toml_success(tmp_path):
    toml_file = tmp_path / "test.toml"
    toml_file.write_text("[tool.emassist]\nport = 9000\n", encoding="utf-8")
    result = _read_toml(toml_file)
    assert result == {"tool": {"emassist": {"port": 9000}}}


def test_read_toml_missing_file(tmp_path):
    assert _read_toml(tmp_path / "nonexistent.toml") == {}


def test_read_toml_invalid_utf8(tmp_path):
    bad_file = tmp_path / "bad.toml"
    bad_file.write_bytes(b"\x80\x81\x82")
    assert _read_toml(bad_file) == {}


def test_read_toml_invalid_syntax(tmp_path):
    bad_file = tmp_path / "bad.toml"
    bad_file.write_text("port = = 3\n", encoding="utf-8")
    assert _read_toml(bad_file) == {}


# ---------------------------------------------------------------------------
# _apply
# ---------------------------------------------------------------------------


def test_apply_empty_dict():
    cfg = EmAssistConfig()
    _apply(cfg, {})
    assert cfg == EmAssistConfig()


def test_apply_known_key():
    cfg = EmAssistConfig()
    _apply(cfg, {"suggestion_timeout": 30.0})
    assert cfg.suggestion_timeout == 30.0


def test_apply_unknown_key_ignored():
    cfg = EmAssistConfig()
    _apply(cfg, {"unknown_option": 999})
    assert cfg == EmAssistConfig()


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


def test_defaults():
    cfg = EmAssistConfig()
    assert cfg.transport == "stdio"
    assert cfg.port == 8001
    assert cfg.suggestion_timeout == 120.0
    assert cfg.serialize_per_path is False


def test_load_config_defaults_when_no_files(tmp_path):
    assert load_config(project_root=tmp_path) == EmAssistConfig()


def test_load_config_reads_pyproject_toml(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[tool.emassist]\ntransport = 'http'\nport = 9100\n", encoding="utf-8"
    )
    cfg = load_config(project_root=tmp_path)
    assert cfg.transport == "http"
    assert cfg.port == 9100
    assert cfg.host == "127.0.0.1"


def test_load_config_pyproject_without_section(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[tool.pytest]\naddopts = '-q'\n", encoding="utf-8"
    )
    assert load_config(project_root=tmp_path) == EmAssistConfig()


def test_load_config_local_overrides_pyproject(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[tool.emassist]\nmax_workers = 2\nmodel = 'old-model'\n",
        encoding="utf-8",
    )
    (tmp_path / ".emassist.toml").write_text("model = 'new-model'\n", encoding="utf-8")
    cfg = load_config(project_root=tmp_path)
    assert cfg.max_workers == 2
    assert cfg.model == "new-model"


def test_load_config_uses_cwd_when_no_root(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".emassist.toml").write_text(
        "serialize_per_path = true\n", encoding="utf-8"
    )
    assert load_config().serialize_per_path is True
