"""
Delimited text parser for health record CSV files.

Provides encoding detection and tolerant row parsing. Every cell is returned
as text; typing and validation happen in the importer against the record's
field schema.
"""

import io
import logging
from pathlib import Path

import pandas as pd

from healthpod.utils.exceptions import ParsingError
from healthpod.utils.parameters import CSVConfig

logger = logging.getLogger(__name__)


class CSVParser:
    """
    Parser for health record CSV files.

    Rows are returned as lists of strings, header row included. Malformed
    rows never abort the parse: short rows are padded with empty cells and
    over-long rows are truncated to the header width.
    """

    def __init__(self, csv_config: CSVConfig) -> None:
        """
        Initialize CSV parser.

        Args:
            csv_config: CSV parsing configuration.
        """
        self.csv_config = csv_config

    def _detect_encoding(self, file_path: Path) -> str:
        """
        Detect file encoding.

        Args:
            file_path: Path to CSV file.

        Returns:
            Detected encoding.
        """
        for encoding in self.csv_config.encodings:
            try:
                with open(file_path, encoding=encoding) as f:
                    f.read()
                logger.debug(f"Detected encoding: {encoding}")
                return encoding
            except (UnicodeDecodeError, LookupError):
                continue

        logger.warning("Encoding detection failed, using utf-8")
        return "utf-8"

    def read_text(self, file_path: Path) -> str:
        """
        Read the whole file as text.

        Raises:
            ParsingError: If the file cannot be read.
        """
        try:
            encoding = self._detect_encoding(file_path)
            with open(file_path, encoding=encoding, errors="replace") as f:
                return f.read()
        except OSError as e:
            raise ParsingError(f"Failed to read CSV file {file_path}: {e}") from e

    @staticmethod
    def _keep_bad_line(bad_line: list[str]) -> list[str]:
        logger.warning(f"Malformed CSV row with {len(bad_line)} cells, extra cells dropped")
        return bad_line

    def parse_text(self, content: str) -> list[list[str]]:
        """
        Parse CSV text into rows of strings.

        Args:
            content: CSV text.

        Returns:
            All non-blank rows, header row first. Empty for empty input.

        Raises:
            ParsingError: If the text cannot be parsed at all.
        """
        if not content.strip():
            return []

        try:
            df = pd.read_csv(
                io.StringIO(content),
                header=None,
                dtype=str,
                sep=self.csv_config.delimiter,
                quotechar=self.csv_config.quotechar,
                keep_default_na=False,
                na_filter=False,
                skip_blank_lines=True,
                engine="python",
                on_bad_lines=self._keep_bad_line,
            )
        except pd.errors.EmptyDataError:
            return []
        except (pd.errors.ParserError, ValueError) as e:
            raise ParsingError(f"Failed to parse CSV content: {e}") from e

        rows = [
            [value if isinstance(value, str) else "" for value in row]
            for row in df.itertuples(index=False, name=None)
        ]

        logger.debug(f"Parsed {len(rows)} CSV rows")
        return rows

    def parse(self, file_path: Path) -> list[list[str]]:
        """
        Parse a CSV file into rows of strings.

        Raises:
            ParsingError: If the file cannot be read or parsed.
        """
        return self.parse_text(self.read_text(file_path))
