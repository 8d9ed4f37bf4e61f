import yaml

from epaper import config


def test_defaults_are_complete() -> None:
    merged = config.get_config()
    for section in ("paths", "supabase", "article_source", "rendering", "daily_edition", "archive", "web_server"):
        assert section in merged
    assert config.DEFAULT_CONFIG["article_source"]["recency_days"] == 7
    assert config.DEFAULT_CONFIG["paths"]["public_url_prefix"] == "/generated-epapers"


def test_env_credentials_and_generic_keys() -> None:
    env = {
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_KEY": "anon",
        "SUPABASE_SERVICE_ROLE_KEY": "service",
        "EPAPER_PORT": "9000",
        "EPAPER_OUTPUT_DIR": "/srv/public",
        "EPAPER_ARTICLE_SOURCE__RECENCY_DAYS": "3",
        "EPAPER_ARCHIVE__RECORD_EDITIONS": "true",
        "EPAPER_UNKNOWN__KEY": "ignored",
        "HOME": "/root",
    }
    loaded = config.load_env_config(env)

    assert loaded["supabase"] == {"url": "https://project.supabase.co", "key": "service"}
    assert loaded["web_server"]["port"] == 9000
    assert loaded["paths"]["output_dir"] == "/srv/public"
    assert loaded["article_source"]["recency_days"] == 3
    assert loaded["archive"]["record_editions"] is True
    assert "unknown" not in loaded


def test_coerce_env_value() -> None:
    assert config.coerce_env_value("False") is False
    assert config.coerce_env_value("12") == 12
    assert config.coerce_env_value("0.5") == 0.5
    assert config.coerce_env_value("traditional") == "traditional"


def test_args_override(tmp_path) -> None:
    custom = tmp_path / "custom.yaml"
    custom.write_text(yaml.safe_dump({"daily_edition": {"layout": "modern"}}), encoding="utf-8")

    loaded = config.load_args_config([
        "--config", str(custom), "--output-dir", "/tmp/out", "--port", "8181",
        "--recency-days", "2", "generate", "--title", "x",
    ])

    assert loaded["daily_edition"]["layout"] == "modern"
    assert loaded["paths"]["output_dir"] == "/tmp/out"
    assert loaded["web_server"]["port"] == 8181
    assert loaded["article_source"]["recency_days"] == 2


def test_deep_update_merges_nested_sections() -> None:
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    config.deep_update(base, {"a": {"y": 3}, "c": 4})
    assert base == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_deep_set_creates_path() -> None:
    target = {}
    config.deep_set(target, ["rendering", "truncation_suffix"], "…")
    assert target == {"rendering": {"truncation_suffix": "…"}}


def test_missing_yaml_returns_none(tmp_path) -> None:
    assert config.load_yaml_config(tmp_path / "absent.yaml") is None
