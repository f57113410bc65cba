"""Command line interface for the xclocalizer translator."""

from __future__ import annotations

import argparse
import asyncio
import json
import pathlib
import re
import sys
from typing import Iterable, Optional, Tuple

from .configuration import LocalizerConfig, load_config
from .documents import (
    STORE_FIELDS,
    detect_document_type,
    normalise_catalog,
    normalise_listing,
    serialise_catalog,
)
from .errors import (
    InvalidArgument,
    LocalizerError,
    OverwriteRefusedError,
    TranslationProviderConfigurationError,
    UnsupportedFileTypeError,
)
from .logger import configure_logging
from .providers import build_provider
from .structures import RunConfig, RunProgress, RunSummary
from .translator import translate_catalog, translate_listing, validate_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xclocalizer",
        description=(
            "Translate Xcode string catalogs (.xcstrings) and app store listings with LLM providers."
        ),
    )
    parser.add_argument(
        "input_file",
        help="Path to the .xcstrings catalog or .json listing record to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        action="append",
        dest="target_languages",
        required=True,
        help="Destination language or locale code. Repeat for several languages.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language codes.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider (anthropic, openai, azure_openai, google, github, bedrock, echo).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model identifier.",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        help="Maximum simultaneous provider calls (1-10).",
    )
    parser.add_argument(
        "-b",
        "--batch-size",
        type=int,
        help="Texts per provider call (1-30).",
    )
    parser.add_argument(
        "--protect",
        action="append",
        default=[],
        metavar="TERM",
        help="Brand or app name that must stay untranslated. Repeatable.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-call deadline in seconds (default: none).",
    )
    parser.add_argument(
        "--retries",
        type=int,
        help="Retries per failed batch (default: 0).",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Translate every catalog key, not only keys missing a target language.",
    )
    parser.add_argument(
        "--store",
        choices=sorted(STORE_FIELDS),
        help="Listing type for .json inputs.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, languages: Iterable[str]) -> pathlib.Path:
    addition = "_".join(sanitise_language_for_filename(language) for language in languages)
    candidate = f"{input_path.stem}_{addition or 'translated'}{input_path.suffix}"
    return input_path.with_name(candidate)


def build_run_config(args: argparse.Namespace, settings: LocalizerConfig) -> RunConfig:
    """Combine CLI flags with configured defaults; flags win."""

    concurrency = args.concurrency if args.concurrency is not None else settings.XCLOCALIZER_CONCURRENCY
    batch_size = args.batch_size if args.batch_size is not None else settings.XCLOCALIZER_BATCH_SIZE
    return RunConfig.clamped(
        concurrency=concurrency,
        batch_size=batch_size,
        protected_terms=set(settings.XCLOCALIZER_PROTECTED_TERMS) | set(args.protect),
        target_languages=tuple(args.target_languages),
        call_timeout=args.timeout if args.timeout is not None else settings.XCLOCALIZER_CALL_TIMEOUT,
        max_retries=args.retries if args.retries is not None else settings.XCLOCALIZER_MAX_RETRIES,
    )


def make_progress_printer(verbose: bool):
    def on_progress(progress: RunProgress) -> None:
        if progress.error:
            print(f"  {progress.current_label}: {progress.error}")
        elif verbose:
            print(f"  {progress.current_label}")

    return on_progress


def execute_translation(args: argparse.Namespace) -> Tuple[int, Optional[RunSummary], Optional[str]]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(args.input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(args.output).expanduser().resolve()
        if args.output
        else derive_output_path(input_path, args.target_languages)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=args.force)
        document_type = detect_document_type(input_path, args.store)
    except (FileNotFoundError, OverwriteRefusedError, UnsupportedFileTypeError) as exc:
        return 1, None, str(exc)
    except LocalizerError as exc:
        return 1, None, str(exc)

    overrides = {
        "LLM_PROVIDER": args.provider,
        "XCLOCALIZER_MODEL": args.model,
        "XCLOCALIZER_PROVIDER_DEBUG": True if args.debug_provider else None,
    }
    try:
        settings = load_config(overrides=overrides).model
        configure_logging(
            "debug" if settings.XCLOCALIZER_PROVIDER_DEBUG else settings.XCLOCALIZER_LOG_LEVEL
        )
        provider = build_provider(settings.LLM_PROVIDER, **settings.provider_options())
        config = build_run_config(args, settings)
        document = json.loads(input_path.read_text(encoding="utf-8"))
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except (InvalidArgument, ValueError) as exc:
        return 1, None, f"Invalid input: {exc}"

    on_progress = make_progress_printer(args.verbose)
    try:
        if document_type == "catalog":
            catalog = normalise_catalog(document)
            outcome = asyncio.run(
                translate_catalog(
                    catalog,
                    config,
                    provider=provider,
                    on_progress=on_progress,
                    only_missing=not args.all,
                )
            )
            rendered = serialise_catalog(catalog)
        else:
            record = normalise_listing(document)
            outcome = asyncio.run(
                translate_listing(
                    record,
                    STORE_FIELDS[document_type],
                    config,
                    provider=provider,
                    on_progress=on_progress,
                )
            )
            rendered = json.dumps(record, ensure_ascii=False, indent=2)
    except LocalizerError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(rendered + "\n", encoding="utf-8")

    summary = outcome.summary
    if summary.is_total_failure:
        return 1, summary, f"Every item failed to translate. Output written to {output_path}."
    return 0, summary, f"Output written to {output_path}."


def print_summary(summary: RunSummary) -> None:
    """Output a friendly report once processing completes."""

    print(f"\n{summary.completion_message()}")
    print(
        "  Items:           "
        f"{summary.success_count} translated / {summary.total} total "
        f"({summary.failure_count} kept original text)"
    )
    for language in summary.success_by_language:
        print(
            f"  {language:<16} {summary.success_by_language[language]} ok, "
            f"{summary.failure_by_language.get(language, 0)} failed"
        )
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.errors:
        print("  Notes:")
        for error in summary.errors:
            print(f"    - {error.target_language}: {error.key}: {error.error}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    exit_code, summary, message = execute_translation(args)
    if summary:
        print_summary(summary)
    if message:
        print(message)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
