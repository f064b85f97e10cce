"""
Command-line interface for the CSV record mapper.

Reads CSV files through a JSON mapping and prints the bound records as
JSON lines.
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from pydantic import ValidationError

from csv_record_mapper.config_models import CsvConfiguration, MappingConfig
from csv_record_mapper.csv_reader import CsvReader
from csv_record_mapper.exceptions import CsvMapperError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def _to_json(record) -> str:
    return json.dumps(dataclasses.asdict(record), default=str, ensure_ascii=False)


def main(argv=None, out: Optional[TextIO] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code: 0 = success, 1 = fatal error, 2 = some records were skipped
    """
    parser = argparse.ArgumentParser(
        description="Bind CSV records to a declared mapping and print them as JSON lines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  csv-record-mapper --mapping mapping.json data.csv
  csv-record-mapper --mapping mapping.json --config csv.json --continue-on-error a.csv b.csv
        """
    )
    parser.add_argument("--mapping", required=True, type=Path, help="Mapping JSON file")
    parser.add_argument("--config", type=Path, help="CSV configuration JSON file")
    parser.add_argument("input_files", nargs="+", type=Path, help="Input CSV files")
    parser.add_argument("--encoding", default="utf-8", help="Input encoding")
    parser.add_argument("--continue-on-error", action="store_true",
                        help="Skip records that fail to parse or bind")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")

    args = parser.parse_args(argv)
    logging.getLogger().setLevel(args.log_level)
    out = out or sys.stdout

    try:
        mapping = MappingConfig.from_json_file(args.mapping)
        configuration = CsvConfiguration.from_json_file(args.config) if args.config else CsvConfiguration()
        if args.continue_on_error:
            configuration = configuration.model_copy(update={"continue_on_error": True})
        table = mapping.to_class_map().build()
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except (ValidationError, CsvMapperError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    total_failed = 0
    for input_file in args.input_files:
        logger.info(f"Reading {input_file}")
        try:
            with open(input_file, "r", encoding=args.encoding, newline="") as f:
                reader = CsvReader(f, configuration)
                for record in reader.get_records(table):
                    out.write(_to_json(record) + "\n")
        except FileNotFoundError as e:
            logger.error(f"File not found: {e}")
            return 1
        except CsvMapperError as e:
            logger.error(f"{input_file}: {e}")
            return 1

        stats = reader.stats
        total_failed += stats.failed_records
        logger.info(
            f"{input_file}: {stats.bound_records:,} bound, {stats.failed_records:,} failed, "
            f"{stats.skipped_records:,} blank ({stats.records_per_second:.0f} records/sec)"
        )

    if total_failed:
        logger.warning(f"Total Failed: {total_failed:,} records")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
