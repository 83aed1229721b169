import logging
from pathlib import Path

from extrato.dialects import BUILTIN_DIALECTS
from extrato.encoding import read_text
from extrato.excel_parser import OLE_MAGIC, ZIP_MAGIC, preview_lines
from extrato.models import DialectInfo, FileType, ParseOptions

logger = logging.getLogger(__name__)

PREVIEW_LINES = 10

EXTENSIONS = {
    ".csv": FileType.CSV,
    ".txt": FileType.CSV,
    ".xls": FileType.EXCEL,
    ".xlsx": FileType.EXCEL,
    ".pdf": FileType.PDF,
}


def file_type_for(filename: str | Path, file_path: Path | None = None) -> FileType:
    """File type from the extension, falling back to magic bytes."""
    file_type = EXTENSIONS.get(Path(filename).suffix.lower())
    if file_type is not None:
        return file_type
    if file_path is not None:
        with open(file_path, "rb") as f:
            head = f.read(8)
        if head.startswith(b"%PDF"):
            return FileType.PDF
        if head.startswith(OLE_MAGIC) or head.startswith(ZIP_MAGIC):
            return FileType.EXCEL
    return FileType.CSV


def read_preview(file_path: Path, file_type: FileType, count: int = PREVIEW_LINES) -> list[str]:
    """First lines a recognizer looks at; spreadsheet rows are joined with ';'."""
    if file_type == FileType.PDF:
        return []
    if file_type == FileType.EXCEL:
        return preview_lines(file_path, count)
    return read_text(file_path).splitlines()[:count]


class DialectRegistry:
    """Ordered list of dialects; the first recognizer that accepts a file wins."""

    def __init__(self, dialects: list[DialectInfo] | None = None):
        self._dialects: list[DialectInfo] = []
        for info in dialects or []:
            self.register(info)

    def register(self, info: DialectInfo) -> None:
        for i, existing in enumerate(self._dialects):
            if existing.key == info.key:
                self._dialects[i] = info
                return
        self._dialects.append(info)

    def get_by_key(self, key: str) -> DialectInfo | None:
        return next((d for d in self._dialects if d.key == key), None)

    def list_all(self) -> list[DialectInfo]:
        return list(self._dialects)

    def supported_banks(self) -> list[str]:
        return [d.name for d in self._dialects]

    def match(self, filename_hint: str | None, first_lines: list[str], file_type: FileType | None = None) -> DialectInfo | None:
        for info in self._dialects:
            if file_type is not None and file_type not in info.file_types:
                continue
            try:
                if info.can_parse(filename_hint, first_lines):
                    return info
            except Exception as exc:
                logger.debug("Recognizer %s failed: %s", info.key, exc)
        return None

    def detect(self, file_path: Path, filename_hint: str | None = None) -> DialectInfo | None:
        file_path = Path(file_path)
        filename_hint = filename_hint or file_path.name
        file_type = file_type_for(filename_hint, file_path)
        info = self.match(filename_hint, read_preview(file_path, file_type), file_type)
        logger.info("Detected dialect for %s: %s", filename_hint, info.key if info else "none")
        return info

    def probe(self, file_path: Path, filename_hint: str | None = None, options: ParseOptions | None = None) -> list[dict]:
        """Run every recognizer, and every accepting parser, against one file."""
        file_path = Path(file_path)
        filename_hint = filename_hint or file_path.name
        file_type = file_type_for(filename_hint, file_path)
        first_lines = read_preview(file_path, file_type)
        report = []
        for info in self._dialects:
            entry = {"key": info.key, "name": info.name, "matches": False,
                     "transactions": 0, "errors": 0, "error": None}
            report.append(entry)
            if file_type not in info.file_types:
                continue
            try:
                entry["matches"] = bool(info.can_parse(filename_hint, first_lines))
                if entry["matches"]:
                    result = info.parse(file_path, options)
                    entry["transactions"] = len(result.transactions)
                    entry["errors"] = len(result.errors)
            except Exception as exc:
                entry["error"] = str(exc)
        return report


def default_registry() -> DialectRegistry:
    return DialectRegistry(BUILTIN_DIALECTS)


registry = default_registry()
