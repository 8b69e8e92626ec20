"""
Тесты загрузки и проверки конфигурации.
"""

import json
from pathlib import Path

import pytest
import yaml

from i18n_pilot.config import ProjectConfig, config_from_dict, find_config, load_config, save_config
from i18n_pilot.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TRANSLATOR_API_KEY", "BAIDU_APPID", "BAIDU_SECRET"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self, tmp_path: Path) -> None:
        config = config_from_dict({}, root=tmp_path)
        assert config.source_language == "zh-CN"
        assert config.target_languages == ["en"]
        assert config.api.provider == "google"
        assert config.api.batch_size == 50
        assert config.memory.threshold == 0.7
        assert config.locales_dir == tmp_path / "src" / "locales"
        assert config.memory_path == tmp_path / ".translator" / "memory.db"
        assert config.glossary.enabled is False
        assert config.glossary_path == tmp_path / ".translator" / "glossary.yaml"


class TestConfigFromDict:
    """Значения из файла поверх умолчаний."""

    def test_sections_merged(self, tmp_path: Path) -> None:
        config = config_from_dict({
            "source_language": "zh-cn",
            "target_languages": "ja",
            "api": {"provider": "deepl", "batch_size": 10},
            "output": {"dir": "i18n"},
        }, root=tmp_path)
        assert config.source_language == "zh-CN"
        assert config.target_languages == ["ja"]
        assert config.api.provider == "deepl"
        assert config.api.batch_size == 10
        assert config.api.retries == 3
        assert config.locales_dir == tmp_path / "i18n"

    def test_secrets_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRANSLATOR_API_KEY", "k")
        monkeypatch.setenv("BAIDU_APPID", "app")
        config = config_from_dict({}, root=tmp_path)
        assert config.api.api_key == "k"
        assert config.api.app_id == "app"
        assert "api_key" not in config.to_dict()["api"]

    def test_unknown_keys_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        config = config_from_dict({"api": {"colour": "red"}, "extra": 1}, root=tmp_path)
        assert config.api.provider == "google"
        assert "api.colour" in caplog.text

    @pytest.mark.parametrize("data", [
        {"api": {"provider": "babelfish"}},
        {"api": {"batch_size": 0}},
        {"memory": {"threshold": 1.5}},
        {"output": {"format": "xml"}},
        {"extract": {"key_style": "uuid"}},
        {"extract": {"script": "runic"}},
        {"replace": {"function": "not valid"}},
        {"target_languages": []},
        {"api": "google"},
        {"glossary": {"entries": "API"}},
    ])
    def test_invalid(self, tmp_path: Path, data) -> None:
        with pytest.raises(ConfigError):
            config_from_dict(data, root=tmp_path)


class TestConfigFiles:
    def test_find_config_upwards(self, tmp_path: Path) -> None:
        (tmp_path / ".translatorrc.yaml").write_text("target_languages: [ja]\n", encoding="utf-8")
        nested = tmp_path / "src" / "views"
        nested.mkdir(parents=True)
        assert find_config(nested) == (tmp_path / ".translatorrc.yaml").resolve()

        config = load_config(start=nested)
        assert config.target_languages == ["ja"]
        assert config.root == tmp_path.resolve()

    def test_json_config(self, tmp_path: Path) -> None:
        path = tmp_path / ".translatorrc.json"
        path.write_text(json.dumps({"target_languages": ["fr"]}), encoding="utf-8")
        assert load_config(path).target_languages == ["fr"]

    def test_no_config_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(start=tmp_path)
        assert config.config_path is None
        assert config.root == tmp_path

    def test_broken_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / ".translatorrc.yaml"
        path.write_text("api: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml")

    def test_save_and_reload(self, tmp_path: Path) -> None:
        config = ProjectConfig(root=tmp_path, target_languages=["en", "ja"])
        config.api.api_key = "secret"
        path = save_config(config, tmp_path / ".translatorrc.yaml")

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["target_languages"] == ["en", "ja"]
        assert "api_key" not in data["api"]
        assert load_config(path).target_languages == ["en", "ja"]
