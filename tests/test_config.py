import pytest

from src.sitebuild.config import DEFAULTS, check_roots, deep_merge, load_config
from src.sitebuild.errors import ConfigError


def test_missing_default_config_falls_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SITEBUILD_CONFIG", raising=False)
    params = load_config()
    assert params["project"]["dev_root"] == "tmp"
    assert params["project"]["prod_root"] == "build"
    assert params["serve"]["port"] == 3000


def test_yaml_overrides_are_deep_merged(tmp_path):
    cfg = tmp_path / "site.yaml"
    cfg.write_text("project:\n  prod_root: dist\nserve:\n  port: 8080\n", encoding="utf-8")
    params = load_config(cfg)
    assert params["project"]["prod_root"] == "dist"
    assert params["project"]["dev_root"] == "tmp"
    assert params["serve"]["port"] == 8080
    assert params["serve"]["host"] == DEFAULTS["serve"]["host"]


def test_explicit_missing_config_is_an_error(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml_is_a_config_error(tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("project: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(cfg)


@pytest.mark.parametrize(
    "dev, prod",
    [("out", "out"), ("out", "out/prod"), ("out/dev", "out")],
)
def test_overlapping_output_roots_rejected(tmp_path, monkeypatch, dev, prod):
    monkeypatch.chdir(tmp_path)
    params = deep_merge(DEFAULTS, {"project": {"dev_root": dev, "prod_root": prod}})
    with pytest.raises(ConfigError, match="disjoint"):
        check_roots(params)


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1}}
    merged = deep_merge(base, {"a": {"c": 2}})
    assert merged == {"a": {"b": 1, "c": 2}}
    assert base == {"a": {"b": 1}}
