"""Delimited-text and spreadsheet rendering of report tables.

The writer performs no aggregation or number formatting: it renders rows a
builder already produced, in a fixed order shared by every report export.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

BOM = "\ufeff"
CSV_MEDIA_TYPE = "text/csv;charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True, slots=True)
class CsvTable:
    """Array-of-rows report table with optional metadata and totals rows."""

    header: Sequence[object]
    rows: Sequence[Sequence[object]] = ()
    metadata: Sequence[Sequence[object]] = ()
    totals: Sequence[object] = field(default_factory=tuple)

    def iter_rows(self) -> Iterator[Sequence[object]]:
        """metadata → blank → header → data → blank → totals."""

        yield from self.metadata
        yield ()
        yield self.header
        yield from self.rows
        yield ()
        yield self.totals


def _stringify(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def _render_row(row: Sequence[object]) -> str:
    # A CRLF terminator makes the writer quote fields holding either character.
    line = io.StringIO()
    writer = csv.writer(line, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow([_stringify(value) for value in row])
    return line.getvalue()[: -len("\r\n")]


def serialize_csv(table: CsvTable) -> str:
    """Render a BOM-prefixed CSV document.

    Fields containing a comma, a double quote or a line break are wrapped in
    quotes with inner quotes doubled; every other field is written as is.
    """

    buffer = io.StringIO()
    buffer.write(BOM)
    for row in table.iter_rows():
        buffer.write(_render_row(row))
        buffer.write("\n")
    return buffer.getvalue()


def encode_csv(table: CsvTable) -> bytes:
    return serialize_csv(table).encode("utf-8")


def serialize_xlsx(table: CsvTable, *, sheet_title: str = "reporte") -> bytes:
    """Write the same row sequence into a single-sheet workbook."""

    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:31]
    for row in table.iter_rows():
        sheet.append([_stringify(value) for value in row])

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()
