"""Tests for settings persistence."""

import json

import pytest

from btreceipt.escpos import PrinterDialect
from btreceipt.settings import Settings, load_settings, save_settings


class TestSettings:
    """Test settings defaults and conversion."""

    def test_defaults(self):
        settings = Settings()
        assert settings.dialect is PrinterDialect.GENERIC
        assert settings.line_width == 32
        assert settings.mtu == 512
        assert settings.chunk_delay == 0.1
        assert settings.strict_encoding is False

    def test_from_dict_ignores_unknown_keys(self):
        settings = Settings.from_dict({"mtu": 180, "colour": "red"})
        assert settings.mtu == 180

    def test_from_dict_parses_dialect(self):
        assert Settings.from_dict({"dialect": "STAR"}).dialect is PrinterDialect.STAR

    def test_from_dict_rejects_unknown_dialect(self):
        with pytest.raises(ValueError):
            Settings.from_dict({"dialect": "citizen-x"})

    def test_to_dict_is_json_ready(self):
        data = Settings(dialect=PrinterDialect.EPSON).to_dict()
        assert data["dialect"] == "epson"
        assert Settings.from_dict(json.loads(json.dumps(data))) == Settings(dialect=PrinterDialect.EPSON)


class TestLoadSettings:
    """Test reading settings from the config directory."""

    def test_missing_file_gives_defaults(self, config_dir):
        assert load_settings() == Settings()

    def test_save_then_load(self, config_dir):
        save_settings(Settings(store_name="Acme", write_timeout=5.0))

        loaded = load_settings()

        assert loaded.store_name == "Acme"
        assert loaded.write_timeout == 5.0
        assert (config_dir / "settings.json").exists()

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        save_settings(Settings(line_width=48), path)
        assert load_settings(path).line_width == 48

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]", '{"dialect": "citizen-x"}'])
    def test_invalid_file_gives_defaults(self, config_dir, content):
        config_dir.mkdir(parents=True)
        (config_dir / "settings.json").write_text(content)

        assert load_settings() == Settings()
