"""Layered configuration loader for xclocalizer.

Sources, later ones winning: YAML files (home, then the working directory),
a ``.env`` file in the working directory, then the process environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from .errors import TranslationProviderConfigurationError
from .providers import normalise_provider_name
from .structures import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONCURRENCY,
    MAX_BATCH_SIZE,
    MAX_CONCURRENCY,
    MIN_BATCH_SIZE,
    MIN_CONCURRENCY,
)

APP_NAME = "xclocalizer"

ProviderName = Literal[
    "anthropic", "openai", "azure_openai", "google", "github", "bedrock", "echo"
]


class LocalizerConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    LLM_PROVIDER: ProviderName = Field(
        default="anthropic",
        description="Large language model provider selection.",
    )
    ANTHROPIC_API_KEY: Optional[SecretStr] = None
    OPENAI_API_KEY: Optional[SecretStr] = None
    GOOGLE_API_KEY: Optional[SecretStr] = None
    GITHUB_TOKEN: Optional[SecretStr] = None
    AZURE_OPENAI_API_KEY: Optional[SecretStr] = None
    AWS_BEARER_TOKEN_BEDROCK: Optional[SecretStr] = None
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_API_VERSION: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT_NAME: Optional[str] = None
    AWS_REGION: Optional[str] = None

    XCLOCALIZER_MODEL: Optional[str] = None
    XCLOCALIZER_CONCURRENCY: int = Field(
        default=DEFAULT_CONCURRENCY, ge=MIN_CONCURRENCY, le=MAX_CONCURRENCY
    )
    XCLOCALIZER_BATCH_SIZE: int = Field(
        default=DEFAULT_BATCH_SIZE, ge=MIN_BATCH_SIZE, le=MAX_BATCH_SIZE
    )
    XCLOCALIZER_PROTECTED_TERMS: List[str] = Field(default_factory=list)
    XCLOCALIZER_CALL_TIMEOUT: Optional[float] = Field(default=None, gt=0)
    XCLOCALIZER_MAX_RETRIES: int = Field(default=0, ge=0)
    XCLOCALIZER_PROVIDER_DEBUG: bool = False
    XCLOCALIZER_LOG_LEVEL: Literal["off", "info", "debug"] = "info"

    @model_validator(mode="before")
    @classmethod
    def _normalise_inputs(cls, data: Any) -> Any:
        if isinstance(data, dict):
            # Blank environment values mean "unset".
            data = {
                key: value
                for key, value in data.items()
                if not (isinstance(value, str) and not value.strip())
            }
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                data["LLM_PROVIDER"] = normalise_provider_name(raw_value)
            level = data.get("XCLOCALIZER_LOG_LEVEL")
            if isinstance(level, str):
                data["XCLOCALIZER_LOG_LEVEL"] = level.strip().lower()
        return data

    @field_validator("XCLOCALIZER_PROTECTED_TERMS", mode="before")
    @classmethod
    def _split_terms(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [term.strip() for term in value.split(",") if term.strip()]
        return value

    def api_key(self) -> Optional[str]:
        """Return the credential for the selected provider, if any."""

        secret = {
            "anthropic": self.ANTHROPIC_API_KEY,
            "openai": self.OPENAI_API_KEY,
            "google": self.GOOGLE_API_KEY,
            "github": self.GITHUB_TOKEN,
            "azure_openai": self.AZURE_OPENAI_API_KEY,
            "bedrock": self.AWS_BEARER_TOKEN_BEDROCK,
        }.get(self.LLM_PROVIDER)
        return secret.get_secret_value() if secret is not None else None

    def provider_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``providers.build_provider``."""

        return {
            "api_key": self.api_key(),
            "model": self.XCLOCALIZER_MODEL,
            "azure_endpoint": self.AZURE_OPENAI_ENDPOINT,
            "azure_api_version": self.AZURE_OPENAI_API_VERSION,
            "azure_deployment": self.AZURE_OPENAI_DEPLOYMENT_NAME,
            "region": self.AWS_REGION,
            "debug": self.XCLOCALIZER_PROVIDER_DEBUG,
        }


@dataclass(frozen=True)
class LoadedConfig:
    """Validated settings plus the source each value came from."""

    model: LocalizerConfig
    sources: Dict[str, str] = field(default_factory=dict)


def discover_yaml_paths(app_dir: Path) -> List[Path]:
    home = Path.home()
    candidates = [
        home / ".config" / APP_NAME / "config.yaml",
        home / f".{APP_NAME}.yaml",
        app_dir / "config.yaml",
    ]
    return [path for path in candidates if path.is_file()]


def _load_discovered_yaml(app_dir: Path, sources: Dict[str, str]) -> Dict[str, Any]:
    """Load YAML configuration files in discovery order."""

    result: Dict[str, Any] = {}
    for path in discover_yaml_paths(app_dir):
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise TranslationProviderConfigurationError(
                f"Configuration file {path} could not be read: {exc}"
            ) from exc
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise TranslationProviderConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        for key, value in parsed.items():
            result[str(key)] = value
            sources[str(key)] = f"file:{path}"
    return result


def _merge_env_sources(target: Dict[str, Any], *, app_dir: Path, sources: Dict[str, str]) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(LocalizerConfig.model_fields)

    def merge_values(values: Mapping[str, Optional[str]], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            target[key] = value
            sources[key] = f"env:{source_prefix}:{key}"

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path), source_prefix=".env")

    merge_values(dict(os.environ), source_prefix="process")


def _validate_provider_settings(settings: LocalizerConfig) -> None:
    provider = settings.LLM_PROVIDER
    errors: List[str] = []

    required = {
        "anthropic": "ANTHROPIC_API_KEY",
        "openai": "OPENAI_API_KEY",
        "google": "GOOGLE_API_KEY",
        "github": "GITHUB_TOKEN",
        "bedrock": "AWS_BEARER_TOKEN_BEDROCK",
    }
    if provider in required and not settings.api_key():
        errors.append(
            f"{required[provider]} is required when LLM_PROVIDER is '{provider}'."
        )
    elif provider == "azure_openai":
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": settings.api_key(),
                "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
                "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
                "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            }.items()
            if not value
        ]
        if missing:
            errors.append(
                "The following Azure OpenAI settings must be provided when "
                f"LLM_PROVIDER is 'azure_openai': {', '.join(missing)}."
            )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(
    entries: Sequence[Mapping[str, Any]],
    sources: Mapping[str, str],
) -> str:
    details: List[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part not in {None, ""})
        message = str(entry.get("msg") or "Invalid value")
        source = sources.get(location.split(".")[0]) if location else None
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def load_config(
    app_dir: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LoadedConfig:
    """Load every configuration layer, apply ``overrides`` and validate."""

    base_dir = app_dir or Path.cwd()
    sources: Dict[str, str] = {}
    combined = _load_discovered_yaml(base_dir, sources)
    _merge_env_sources(combined, app_dir=base_dir, sources=sources)
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        combined[key] = value
        sources[key] = f"override:{key}"

    if not combined:
        raise TranslationProviderConfigurationError(
            "No configuration sources were found. Provide settings via a home YAML "
            "file, a local config.yaml, a .env file, or environment variables."
        )

    try:
        model = LocalizerConfig.model_validate(combined)
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.errors(), sources)
        ) from exc
    _validate_provider_settings(model)
    return LoadedConfig(model=model, sources=sources)

