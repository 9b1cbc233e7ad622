"""
CLI main entry point.
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..extraction import StatementExtractor
from ..llm_client import ConfigurationError, LLMError
from ..schemas import ContentType, RawStatementInput
from ..service import StatementIngestionService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_UPSTREAM = 2

SPREADSHEET_SUFFIXES = {".csv": ",", ".tsv": "\t"}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="statement-ingest",
        description="Extract expenses from bank statements and flag duplicate transactions",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Extract expenses from a statement file")
    parse_parser.add_argument("file", type=Path, help="CSV/TSV export or extracted PDF text")
    parse_parser.add_argument(
        "--type",
        dest="content_type",
        choices=[t.value for t in ContentType],
        help="Content type (default: inferred from file suffix)",
    )
    parse_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write JSON result to this file instead of stdout",
    )

    # duplicates command
    dup_parser = subparsers.add_parser(
        "duplicates", help="Flag duplicate transactions in a JSON export"
    )
    dup_parser.add_argument(
        "file",
        type=Path,
        help='JSON array of transactions, or {"expenses": [...]}',
    )

    # prompt command
    prompt_parser = subparsers.add_parser(
        "prompt", help="Print the extraction request(s) without calling the service"
    )
    prompt_parser.add_argument("file", type=Path, help="CSV/TSV export or extracted PDF text")
    prompt_parser.add_argument(
        "--type",
        dest="content_type",
        choices=[t.value for t in ContentType],
        help="Content type (default: inferred from file suffix)",
    )

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    # check-config command
    subparsers.add_parser("check-config", help="Validate configuration")

    return parser


def infer_content_type(path: Path, explicit: str | None = None) -> ContentType:
    """Content type from the explicit flag or the file suffix."""
    if explicit:
        return ContentType(explicit)
    if path.suffix.lower() in SPREADSHEET_SUFFIXES:
        return ContentType.SPREADSHEET
    return ContentType.PDF


def read_statement(path: Path, content_type: ContentType) -> RawStatementInput:
    """Read a decoded statement file.

    CSV/TSV files become cell rows; other files are read as text and, in
    spreadsheet mode, split into one row per line.
    """
    text = path.read_text(encoding="utf-8-sig")
    if content_type == ContentType.PDF:
        return RawStatementInput.from_text(text)

    delimiter = SPREADSHEET_SUFFIXES.get(path.suffix.lower())
    if delimiter is None:
        return RawStatementInput.from_rows(text.splitlines())
    return RawStatementInput.from_rows(list(csv.reader(text.splitlines(), delimiter=delimiter)))


def read_transactions(path: Path) -> list[dict]:
    """Read stored transactions from a JSON export."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("expenses", [])
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of transactions")
    return data


def _emit(payload: dict, output: Path | None = None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        print(f"✓ Wrote {output}")


def cmd_parse(
    config: Config,
    file: Path,
    content_type: str | None = None,
    output: Path | None = None,
) -> int:
    """Extract expenses from a statement file."""
    kind = infer_content_type(file, content_type)
    try:
        raw = read_statement(file, kind)
    except (OSError, UnicodeDecodeError) as e:
        print(f"❌ Could not read statement: {e}")
        return EXIT_CONFIG

    try:
        with StatementIngestionService(config) as service:
            result = service.parse_statement(raw)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return EXIT_CONFIG
    except LLMError as e:
        print(f"❌ Extraction failed: {e}")
        return EXIT_UPSTREAM

    _emit(result.to_dict(), output)
    if result.rejected_count:
        logger.info("%d extracted records were rejected", result.rejected_count)
    return EXIT_OK


def cmd_duplicates(config: Config, file: Path) -> int:
    """Flag duplicate transactions in a JSON export."""
    try:
        records = read_transactions(file)
    except (OSError, ValueError) as e:
        print(f"❌ Could not read transactions: {e}")
        return EXIT_CONFIG

    try:
        with StatementIngestionService(config) as service:
            result = service.detect_duplicates(records)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        return EXIT_CONFIG
    except (KeyError, TypeError, ValueError) as e:
        print(f"❌ Invalid transaction record: {e}")
        return EXIT_CONFIG
    except LLMError as e:
        print(f"❌ Duplicate check failed: {e}")
        return EXIT_UPSTREAM

    _emit(result.to_dict())
    return EXIT_OK


def cmd_prompt(config: Config, file: Path, content_type: str | None = None) -> int:
    """Print the composed extraction request(s); no network access."""
    kind = infer_content_type(file, content_type)
    try:
        raw = read_statement(file, kind)
    except (OSError, UnicodeDecodeError) as e:
        print(f"❌ Could not read statement: {e}")
        return EXIT_CONFIG

    extractor = StatementExtractor(config)
    requests = extractor.compose_requests(extractor.normalize(raw))
    _emit({"requests": [r.to_payload(config.llm.model) for r in requests]})
    return EXIT_OK


def cmd_init_config(config_path: Path, force: bool = False) -> int:
    """Write a default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return EXIT_CONFIG
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return EXIT_OK


def cmd_check_config(config: Config) -> int:
    """Validate configuration."""
    errors = config.validate()
    if errors:
        print("❌ Configuration problems:")
        for error in errors:
            print(f"  - {error}")
        return EXIT_CONFIG

    print("✓ Configuration OK")
    print(f"  Model:          {config.llm.model}")
    print(f"  Endpoint:       {config.llm.base_url}")
    print(f"  PII redaction:  {'on' if config.privacy.redact_pii else 'off'}")
    print(f"  External calls: {'disabled' if config.extraction.disable_external else 'enabled'}")
    return EXIT_OK


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return EXIT_CONFIG

    # Route to command
    if parsed.command == "parse":
        return cmd_parse(config, parsed.file, parsed.content_type, parsed.output)
    elif parsed.command == "duplicates":
        return cmd_duplicates(config, parsed.file)
    elif parsed.command == "prompt":
        return cmd_prompt(config, parsed.file, parsed.content_type)
    elif parsed.command == "check-config":
        return cmd_check_config(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
