import pytest

from xclocalizer.configuration import LocalizerConfig, load_config
from xclocalizer.errors import TranslationProviderConfigurationError


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    for name in LocalizerConfig.model_fields:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


def test_missing_sources_raise_configuration_error(tmp_path):
    with pytest.raises(TranslationProviderConfigurationError, match="No configuration sources"):
        load_config(app_dir=tmp_path)


def test_layers_apply_in_order(tmp_path, isolated_environment, monkeypatch):
    user_config = isolated_environment / ".xclocalizer.yaml"
    user_config.write_text(
        "LLM_PROVIDER: openai\nOPENAI_API_KEY: sk-from-yaml\nXCLOCALIZER_CONCURRENCY: 2\n",
        encoding="utf-8",
    )
    (tmp_path / ".env").write_text(
        "XCLOCALIZER_CONCURRENCY=3\nXCLOCALIZER_BATCH_SIZE=20\n", encoding="utf-8"
    )
    monkeypatch.setenv("XCLOCALIZER_BATCH_SIZE", "25")

    loaded = load_config(app_dir=tmp_path, overrides={"XCLOCALIZER_MODEL": "gpt-5-nano-2025-08-07"})
    settings = loaded.model

    assert settings.LLM_PROVIDER == "openai"
    assert settings.api_key() == "sk-from-yaml"
    assert settings.XCLOCALIZER_CONCURRENCY == 3
    assert settings.XCLOCALIZER_BATCH_SIZE == 25
    assert settings.XCLOCALIZER_MODEL == "gpt-5-nano-2025-08-07"
    assert loaded.sources["XCLOCALIZER_CONCURRENCY"] == "env:.env:XCLOCALIZER_CONCURRENCY"
    assert loaded.sources["XCLOCALIZER_BATCH_SIZE"] == "env:process:XCLOCALIZER_BATCH_SIZE"
    assert loaded.sources["OPENAI_API_KEY"].startswith("file:")


def test_provider_synonyms_and_term_lists(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "Gemini")
    monkeypatch.setenv("GOOGLE_API_KEY", "AIza-test")
    monkeypatch.setenv("XCLOCALIZER_PROTECTED_TERMS", "Acme, CloudSync,,")
    monkeypatch.setenv("XCLOCALIZER_LOG_LEVEL", "DEBUG")

    settings = load_config(app_dir=tmp_path).model

    assert settings.LLM_PROVIDER == "google"
    assert settings.XCLOCALIZER_PROTECTED_TERMS == ["Acme", "CloudSync"]
    assert settings.XCLOCALIZER_LOG_LEVEL == "debug"
    assert settings.provider_options()["api_key"] == "AIza-test"


def test_missing_api_key_is_reported(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "anthropic")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "   ")

    with pytest.raises(TranslationProviderConfigurationError) as excinfo:
        load_config(app_dir=tmp_path)

    assert "ANTHROPIC_API_KEY is required" in str(excinfo.value)


def test_incomplete_azure_settings_are_listed(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "azure")
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "key")

    with pytest.raises(TranslationProviderConfigurationError) as excinfo:
        load_config(app_dir=tmp_path)

    message = str(excinfo.value)
    assert "AZURE_OPENAI_ENDPOINT" in message
    assert "AZURE_OPENAI_DEPLOYMENT_NAME" in message


def test_out_of_range_values_name_their_source(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "echo")
    (tmp_path / "config.yaml").write_text("XCLOCALIZER_CONCURRENCY: 50\n", encoding="utf-8")

    with pytest.raises(TranslationProviderConfigurationError) as excinfo:
        load_config(app_dir=tmp_path)

    message = str(excinfo.value)
    assert message.startswith("Configuration validation errors detected:")
    assert "XCLOCALIZER_CONCURRENCY" in message
    assert "config.yaml" in message


def test_bedrock_settings_reach_provider_options(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "aws-bedrock")
    monkeypatch.setenv("AWS_BEARER_TOKEN_BEDROCK", "bedrock-key")
    monkeypatch.setenv("AWS_REGION", "eu-central-1")

    options = load_config(app_dir=tmp_path).model.provider_options()

    assert options["api_key"] == "bedrock-key"
    assert options["region"] == "eu-central-1"


def test_bedrock_requires_bearer_token(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "bedrock")

    with pytest.raises(TranslationProviderConfigurationError, match="AWS_BEARER_TOKEN_BEDROCK"):
        load_config(app_dir=tmp_path)
