import json
import logging

import pytest

from xclocalizer import cli
from xclocalizer.configuration import LocalizerConfig
from xclocalizer.logger import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def isolated_run(monkeypatch, tmp_path):
    for name in LocalizerConfig.model_fields:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XCLOCALIZER_LOG_LEVEL", "off")
    monkeypatch.chdir(tmp_path)
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


def _write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_derive_output_path_appends_languages(tmp_path):
    source = tmp_path / "Localizable.xcstrings"

    derived = cli.derive_output_path(source, ["fr", "pt-BR", "zh Hans"])

    assert derived.name == "Localizable_fr_pt-BR_zh-Hans.xcstrings"


def test_catalog_round_trip_with_echo_provider(tmp_path, capsys):
    source = _write_json(
        tmp_path / "Localizable.xcstrings",
        {
            "sourceLanguage": "en",
            "version": "1.0",
            "strings": {
                "hello": {
                    "localizations": {
                        "en": {"stringUnit": {"state": "translated", "value": "Hello"}}
                    }
                }
            },
        },
    )

    exit_code = cli.main([str(source), "-t", "fr", "-t", "de", "-p", "echo", "-v"])

    assert exit_code == 0
    written = json.loads((tmp_path / "Localizable_fr_de.xcstrings").read_text(encoding="utf-8"))
    localizations = written["strings"]["hello"]["localizations"]
    assert list(localizations) == ["de", "en", "fr"]
    assert localizations["fr"]["stringUnit"] == {"state": "translated", "value": "Hello"}
    output = capsys.readouterr().out
    assert "Translation completed: 2 of 2 items translated." in output
    assert "fr: hello" in output


def test_listing_translation_writes_new_locale(tmp_path):
    source = _write_json(
        tmp_path / "listing.json",
        {
            "sourceLocale": "en-US",
            "localizations": {
                "en-US": {"title": "Weather", "shortDescription": "Forecasts at a glance"}
            },
        },
    )
    target = tmp_path / "out" / "listing-de.json"

    exit_code = cli.main(
        [str(source), "-t", "de-DE", "--store", "googleplay", "-p", "echo", "-o", str(target)]
    )

    assert exit_code == 0
    written = json.loads(target.read_text(encoding="utf-8"))
    assert written["localizations"]["de-DE"] == {
        "title": "Weather",
        "shortDescription": "Forecasts at a glance",
    }


def test_json_without_store_is_rejected(tmp_path, capsys):
    source = _write_json(tmp_path / "listing.json", {"localizations": {}})

    assert cli.main([str(source), "-t", "fr", "-p", "echo"]) == 1
    assert "store type" in capsys.readouterr().out


def test_existing_output_requires_force(tmp_path, capsys):
    source = _write_json(tmp_path / "Localizable.xcstrings", {"strings": {}})
    existing = tmp_path / "Localizable_fr.xcstrings"
    existing.write_text("{}", encoding="utf-8")

    assert cli.main([str(source), "-t", "fr", "-p", "echo"]) == 1
    assert "already exists" in capsys.readouterr().out
    assert existing.read_text(encoding="utf-8") == "{}"

    assert cli.main([str(source), "-t", "fr", "-p", "echo", "-f"]) == 0


def test_missing_credentials_fail_before_translating(tmp_path, capsys):
    source = _write_json(tmp_path / "Localizable.xcstrings", {"strings": {}})

    assert cli.main([str(source), "-t", "fr", "-p", "openai"]) == 1
    assert "OPENAI_API_KEY is required" in capsys.readouterr().out
