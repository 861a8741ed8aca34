#!/usr/bin/env python3
"""
Directory Import Planner

Reads a spreadsheet export (CSV), maps every row to directory attributes and
compares the result with the live directory. The output is the ordered list
of actions an applier would need to perform: OU and group creation, user
creation/move/update, orphan deletion and empty-OU cleanup.

Nothing is written to the directory. The plan is saved as JSON or CSV.
"""

import argparse
import json
import logging
import os
import sys

import pandas as pd
from dotenv import load_dotenv

from directory.facade.directory_facade import DirectoryFacade
from importer.config import ImporterConfig
from importer.config_store import ImportConfigStore
from importer.exceptions import ImportConfigError
from importer.import_analyzer import ImportAnalyzer
from importer.models.import_config import DEFAULT_DOMAIN, ImportConfig

logger = logging.getLogger(__name__)


def setup_logging(log_dir: str, verbose: bool = False) -> None:
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(os.path.join(log_dir, "plan_import.log")),
            logging.StreamHandler(sys.stdout),
        ],
    )


def load_import_config(args, settings: dict) -> ImportConfig:
    """
    Load the mapping configuration from a JSON file or the saved store.

    A configuration still on the built-in placeholder domain takes the
    IMPORT_DEFAULT_DOMAIN setting instead.
    """
    if args.config_json:
        with open(args.config_json, "r", encoding="utf-8") as f:
            config = ImportConfig.from_dict(json.load(f))
    else:
        store = ImportConfigStore(args.config_store or settings["config_store"])
        config = store.get(args.config_id)
        if config is None:
            raise ImportConfigError(f"No saved import configuration with id '{args.config_id}'")

    if config.default_domain == DEFAULT_DOMAIN and settings.get("default_domain"):
        config.default_domain = settings["default_domain"]
    return config


def read_rows(path: str, delimiter: str) -> list:
    """Read every cell as text; empty cells stay empty strings."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False, sep=delimiter or ";")
    logger.info(f"Read {len(df)} rows and {len(df.columns)} columns from {path}")
    return df.to_dict(orient="records")


def write_plan(analysis, output: str, output_format: str) -> None:
    if output_format == "csv":
        analysis.to_dataframe().to_csv(output, index=False)
    else:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(analysis.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info(f"Plan written to {output}")


def main():
    """
    Main function to plan a directory import from the command line.
    """
    parser = argparse.ArgumentParser(
        description="Plan the import of a spreadsheet into the directory (read-only)"
    )
    parser.add_argument("--input", required=True, help="CSV file to import")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--config-json", help="JSON file holding the import configuration")
    source.add_argument("--config-id", help="Id of a saved import configuration")
    parser.add_argument(
        "--config-store",
        help="Saved configuration document (default: IMPORT_CONFIG_STORE)",
    )
    parser.add_argument("--output", default="import_plan.json", help="Plan output file")
    parser.add_argument(
        "--format", choices=["json", "csv"], default="json", help="Plan output format"
    )
    parser.add_argument(
        "--scan-container",
        action="append",
        default=[],
        help="OU to check for empty-object cleanup (repeatable)",
    )
    parser.add_argument(
        "--max-concurrent",
        type=int,
        help="Maximum concurrent directory queries (default: IMPORT_MAX_CONCURRENT_QUERIES)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    load_dotenv()
    settings = ImporterConfig.get_config()
    setup_logging(settings["log_dir"], args.verbose)

    try:
        config = load_import_config(args, settings)

        rows = read_rows(args.input, config.csv_delimiter)

        with DirectoryFacade(ImporterConfig.get_ldap_config()) as directory:
            analyzer = ImportAnalyzer(
                directory,
                max_concurrent_queries=args.max_concurrent or settings["max_concurrent_queries"],
            )
            analysis = analyzer.analyze_sync(rows, config, args.scan_container)

        write_plan(analysis, args.output, args.format)

        summary = analysis.summary
        print(f"\n📊 Import Plan Summary:")
        print(f"   Rows analyzed: {summary.total_rows}")
        print(f"   OUs to create: {summary.create_ou_count}")
        print(f"   Groups to create: {summary.create_group_count}")
        print(f"   Users to create: {summary.create_user_count}")
        print(f"   Users to update: {summary.update_user_count}")
        print(f"   Users to move: {summary.move_user_count}")
        print(f"   Users to delete: {summary.delete_user_count}")
        print(f"   OUs to delete: {summary.delete_ou_count}")
        print(f"   Groups to delete: {summary.delete_group_count}")
        print(f"   Rows needing correction: {summary.error_count}")
        print(f"   Diagnostics: {summary.diagnostic_count}")
        print(f"\n✅ Plan saved to {args.output}\n")

    except Exception as e:
        logger.error(f"Import planning failed: {e}", exc_info=True)
        print(f"❌ Import planning failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
