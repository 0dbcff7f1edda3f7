"""
Command-line interface for statement imports.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .category_manager import CategoryManager, FileLoadingError
from .classifier import DEFAULT_PAUSE_SECONDS, CategoryClassifier
from .classifier_client import DEFAULT_MODEL, DEFAULT_TIMEOUT, OpenAIClassifierClient
from .detector import UnsupportedFormatError
from .importer import StatementImporter
from .models import (
    ColumnMappingConfig,
    Delimiter,
    Encoding,
    IncompleteMappingError,
    SourceFile,
)
from .output_formatter import SummaryFormatter, TransactionFormatter
from .store import JsonTransactionStore, StoreError
from .taxonomy import DEFAULT_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_STORE_FILE = "transactions.json"
DEFAULT_API_KEY_ENV = "OPENAI_API_KEY"

DELIMITER_NAMES = {
    "comma": Delimiter.COMMA,
    "semicolon": Delimiter.SEMICOLON,
    "pipe": Delimiter.PIPE,
    "tab": Delimiter.TAB,
}


class FileSavingError(Exception):
    """Exception raised when a file cannot be saved."""


def load_config(config_file: str | None) -> dict:
    """Load CLI configuration from JSON file."""
    if not config_file:
        return {}

    config_path = Path(config_file)
    if not config_path.exists():
        logger.debug(f"CLI config file {config_file} does not exist")
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            config = json.load(f)
        logger.debug(f"Loaded CLI config from {config_file}")
        return config
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON in CLI config file {config_file}: {e}")
        return {}
    except OSError as e:
        logger.warning(f"Failed to load CLI config from {config_file}: {e}")
        return {}


def save_config(config_file: str, config: dict) -> None:
    """Save CLI configuration to JSON file."""
    try:
        config_path = Path(config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)
        logger.info(f"CLI configuration saved to {config_file}")
    except OSError as e:
        logger.error(f"Failed to save CLI config to {config_file}: {e}")
        raise FileSavingError(
            f"Failed to save CLI config to {config_file}: {e}",
        ) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import bank statements (CSV, XLSX, OFX, PDF) and categorize transactions",
    )

    parser.add_argument(
        "file",
        help="Path to the statement file",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    parser.add_argument(
        "--config",
        help="Path to CLI configuration file (store, rules, taxonomy, model settings, default mapping)",
    )

    parser.add_argument(
        "--detect-only",
        action="store_true",
        help="Only detect the file format and suggest a column mapping",
    )

    parser.add_argument(
        "--save-mapping",
        action="store_true",
        help="Store the effective column mapping as default_mapping in the CLI config",
    )

    mapping_group = parser.add_argument_group("column mapping (CSV and XLSX)")
    mapping_group.add_argument(
        "--delimiter",
        choices=sorted(DELIMITER_NAMES),
        help="Field delimiter",
    )
    mapping_group.add_argument(
        "--encoding",
        choices=[e.value for e in Encoding],
        help="Text encoding",
    )
    mapping_group.add_argument(
        "--no-headers",
        action="store_true",
        help="The first row holds data, not column names",
    )
    mapping_group.add_argument("--date-column", type=int, help="Zero-based date column")
    mapping_group.add_argument(
        "--description-column",
        type=int,
        help="Zero-based description column",
    )
    mapping_group.add_argument("--amount-column", type=int, help="Zero-based amount column")
    mapping_group.add_argument("--type-column", type=int, help="Zero-based type column")

    parser.add_argument("--account-id", help="Bank account the statement belongs to")
    parser.add_argument("--card-id", help="Credit card the statement belongs to")

    parser.add_argument(
        "--no-classify",
        action="store_true",
        help="Skip the external classifier; only keyword overrides apply",
    )

    parser.add_argument(
        "--show-transactions",
        action="store_true",
        help="List every imported transaction after the summary",
    )

    return parser


def build_importer(config: dict, classify: bool = True) -> StatementImporter:
    """Wire store, taxonomy, overrides and classifier from CLI config."""
    taxonomy_file = config.get("taxonomy_file")
    taxonomy = Taxonomy.load(Path(taxonomy_file)) if taxonomy_file else DEFAULT_TAXONOMY

    rules_file = config.get("rules_file")
    category_manager = CategoryManager(
        Path(rules_file) if rules_file else None,
        taxonomy=taxonomy,
    )

    client = None
    if classify:
        api_key_env = config.get("api_key_env", DEFAULT_API_KEY_ENV)
        api_key = os.environ.get(api_key_env)
        if api_key:
            client = OpenAIClassifierClient(
                api_key,
                taxonomy,
                model=config.get("model", DEFAULT_MODEL),
                base_url=config.get("base_url"),
                timeout=float(config.get("request_timeout", DEFAULT_TIMEOUT)),
            )
        else:
            logger.warning(
                f"{api_key_env} is not set, transactions will only get keyword overrides",
            )

    classifier = CategoryClassifier(
        client,
        taxonomy,
        category_manager,
        pause_seconds=float(config.get("pause_seconds", DEFAULT_PAUSE_SECONDS)),
    )
    store = JsonTransactionStore(Path(config.get("store_file", DEFAULT_STORE_FILE)))
    return StatementImporter(store, classifier)


def build_mapping(
    args: argparse.Namespace,
    config: dict,
    detected: ColumnMappingConfig | None,
) -> ColumnMappingConfig | None:
    """
    Combine detected mapping, configured default and command-line overrides.

    Command-line options win over ``default_mapping`` from the config, which
    wins over the detected draft.
    """
    if detected is None:
        return None

    mapping = detected
    if config.get("default_mapping"):
        mapping = ColumnMappingConfig.from_dict(config["default_mapping"])

    changes = {}
    if args.delimiter:
        changes["delimiter"] = DELIMITER_NAMES[args.delimiter]
    if args.encoding:
        changes["encoding"] = Encoding(args.encoding)
    if args.no_headers:
        changes["has_headers"] = False
    for column in ("date_column", "description_column", "amount_column", "type_column"):
        value = getattr(args, column)
        if value is not None:
            changes[column] = value

    return mapping.replace(**changes) if changes else mapping


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
    )

    config = load_config(args.config)

    try:
        source_file = SourceFile.from_path(args.file)
    except OSError as e:
        logger.error(f"Error reading file: {e}")
        sys.exit(1)

    try:
        importer = build_importer(config, classify=not args.no_classify)
    except (OSError, ValueError, FileLoadingError, StoreError) as e:
        logger.error(f"Error loading configuration: {e}")
        sys.exit(1)

    try:
        detection = importer.detect(source_file)
    except UnsupportedFormatError as e:
        logger.error(f"Error detecting file format: {e}")
        sys.exit(1)

    mapping = build_mapping(args, config, detection.mapping)

    if args.save_mapping and mapping is not None:
        if not args.config:
            logger.error("Error: --save-mapping requires --config")
            sys.exit(1)
        config["default_mapping"] = mapping.to_dict()
        try:
            save_config(args.config, config)
        except FileSavingError:
            sys.exit(1)

    if args.detect_only:
        logger.info(f"Format: {detection.file_format.value}")
        if mapping is not None:
            logger.info(json.dumps(mapping.to_dict(), indent=2))
            missing = mapping.missing_columns()
            if missing:
                logger.warning(f"Mapping is incomplete, missing: {', '.join(missing)}")
        return

    try:
        result = importer.run(
            source_file,
            mapping=mapping,
            account_id=args.account_id,
            card_id=args.card_id,
        )
    except IncompleteMappingError as e:
        logger.error(f"{e}. Set the missing columns with --date-column etc.")
        sys.exit(1)

    taxonomy = importer.classifier.taxonomy
    logger.info(SummaryFormatter(taxonomy=taxonomy).format_summary(result))

    if args.show_transactions and result.transactions:
        logger.info("\n" + "=" * 50 + "\n")
        logger.info(TransactionFormatter().format_transactions(result.transactions))

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
