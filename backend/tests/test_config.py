from finchat.config import DEFAULT_ORACLE_MODELS, Settings


def test_list_settings_accept_comma_separated_env(monkeypatch):
    monkeypatch.setenv("ORACLE_MODELS", "model-a, model-b")
    monkeypatch.setenv("ALLOW_ORIGINS", "https://app.example.com,https://admin.example.com")

    settings = Settings()

    assert settings.oracle_models == ["model-a", "model-b"]
    assert settings.allow_origins == ["https://app.example.com", "https://admin.example.com"]


def test_list_settings_accept_json_env(monkeypatch):
    monkeypatch.setenv("ORACLE_MODELS", '["model-a", "model-b"]')

    assert Settings().oracle_models == ["model-a", "model-b"]


def test_oracle_models_default_when_unset(monkeypatch):
    monkeypatch.delenv("ORACLE_MODELS", raising=False)

    assert Settings().oracle_models == DEFAULT_ORACLE_MODELS
