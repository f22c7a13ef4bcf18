from __future__ import annotations


class SheetImportError(Exception):
    """Base class for whole-batch import failures."""


class UnsupportedFormatError(SheetImportError):
    def __init__(self, filename: str, accepted: tuple[str, ...] = (".xlsx", ".xls", ".csv")):
        self.filename = filename
        self.accepted = accepted
        super().__init__(f"Unsupported file format '{filename}'. Use {', '.join(a.upper() for a in accepted)}.")


class MalformedSheetError(SheetImportError):
    """The decoder could not read the workbook; the original exception is chained."""


class EmptyResultError(SheetImportError):
    def __init__(self, valid_row_count: int = 0, duplicate_row_count: int = 0):
        self.valid_row_count = valid_row_count
        self.duplicate_row_count = duplicate_row_count
        super().__init__(
            f"No valid rows found (valid={valid_row_count}, duplicates={duplicate_row_count})."
        )
