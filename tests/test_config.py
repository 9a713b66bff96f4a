"""
Tests for Settings.
"""

from livegen.config import Settings


class TestSettings:
    def test_model_chain(self):
        assert Settings(primary_model="a", fallback_model="b").model_chain() == ["a", "b"]
        assert Settings(primary_model="a", fallback_model="a").model_chain() == ["a"]
        assert Settings(primary_model="a", fallback_model="").model_chain() == ["a"]
        assert Settings(primary_model="a", fallback_model="b",
                        fallback_enabled=False).model_chain() == ["a"]

    def test_headers(self):
        assert "Authorization" not in Settings().headers()
        assert Settings(api_key="k").headers()["Authorization"] == "Bearer k"

    def test_from_env_flags(self, monkeypatch):
        monkeypatch.setenv("LIVEGEN_FALLBACK", "off")
        monkeypatch.setenv("LIVEGEN_TEMPLATES", "0")
        s = Settings.from_env()
        assert s.fallback_enabled is False
        assert s.templates_enabled is False

    def test_from_env_defaults_and_overrides(self, monkeypatch):
        monkeypatch.delenv("LIVEGEN_FALLBACK", raising=False)
        monkeypatch.delenv("LIVEGEN_TEMPLATES", raising=False)
        s = Settings.from_env(primary_model="x", debounce_ms=5)
        assert s.fallback_enabled is True
        assert s.templates_enabled is True
        assert s.primary_model == "x"
        assert s.debounce_ms == 5

    def test_retry_delays_stored_as_tuple(self):
        assert Settings(retry_delays=[1, 2]).retry_delays == (1, 2)
