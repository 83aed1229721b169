import logging
from pathlib import Path
from typing import Callable

from extrato.csv_parser import parse_advanced_csv, parse_basic_csv
from extrato.errors import FileParseError
from extrato.excel_parser import parse_excel
from extrato.models import DialectInfo, FileType, ParseOptions, ParseResult
from extrato.pdf_parser import parse_pdf
from extrato.registry import DialectRegistry, file_type_for, registry as default_registry

logger = logging.getLogger(__name__)

Strategy = Callable[[Path, ParseOptions | None], ParseResult]

# Generic fallbacks per file type, in the order they are tried after a dialect.
GENERIC_STRATEGIES: dict[FileType, list[tuple[str, Strategy]]] = {
    FileType.CSV: [("advanced_csv", parse_advanced_csv), ("basic_csv", parse_basic_csv)],
    FileType.EXCEL: [("generic_excel", parse_excel)],
    FileType.PDF: [("generic_pdf", parse_pdf)],
}


def build_chain(file_type: FileType, dialect: DialectInfo | None = None) -> list[tuple[str, Strategy]]:
    chain = []
    if dialect is not None:
        chain.append((dialect.key, dialect.parse))
    chain.extend(GENERIC_STRATEGIES[file_type])
    return chain


def run_chain(
    chain: list[tuple[str, Strategy]], file_path: Path, options: ParseOptions | None = None,
) -> ParseResult:
    """Try strategies in order; the first result with transactions wins.

    A strategy that raises hands over to the next one. When none produces a
    transaction, the first result that did not raise is returned so its row
    errors reach the caller. Only an all-raising chain is fatal.
    """
    first_result: ParseResult | None = None
    failures: list[str] = []
    for name, strategy in chain:
        try:
            result = strategy(file_path, options)
        except Exception as exc:
            logger.warning("Parser %s failed on %s: %s", name, file_path.name, exc)
            failures.append(f"{name}: {exc}")
            continue
        result.parser = result.parser or name
        if result.transactions:
            logger.info("Parser %s extracted %d transactions", name, len(result.transactions))
            return result
        logger.info("Parser %s found no transactions", name)
        if first_result is None:
            first_result = result
    if first_result is not None:
        return first_result
    raise FileParseError("Could not parse file: " + "; ".join(failures))


def parse_statement(
    file_path: Path,
    filename: str | None = None,
    options: ParseOptions | None = None,
    registry: DialectRegistry | None = None,
) -> ParseResult:
    """Detect the bank dialect and parse, falling back to the generic parsers."""
    file_path = Path(file_path)
    registry = registry or default_registry
    filename = filename or file_path.name
    file_type = file_type_for(filename, file_path)
    try:
        dialect = registry.detect(file_path, filename)
    except Exception as exc:
        logger.warning("Dialect detection failed on %s: %s", filename, exc)
        dialect = None
    return run_chain(build_chain(file_type, dialect), file_path, options)
