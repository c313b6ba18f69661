"""
Streaming XER reader.

An XER export is a tab-delimited text file::

    ERMHDR  <version>  <export date>  ...
    %T      TASK
    %F      task_id  task_code  task_name ...
    %R      1001     A1000      Mobilize  ...
    %E

The reader yields one XerTable per %T block. A table's rows are pulled from
the underlying stream while the caller iterates them, so only one line is
held in memory at a time. Moving on to the next table drains whatever rows
the caller left unread.
"""
import io
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from xer_engine.errors import InvalidFileSignatureError, MalformedRowError

logger = logging.getLogger(__name__)

HEADER_MARKER = "ERMHDR"
TABLE_MARKER = "%T"
FIELDS_MARKER = "%F"
ROW_MARKER = "%R"
END_MARKER = "%E"


@dataclass(frozen=True)
class XerHeader:
    """Parsed ERMHDR line."""
    version: Optional[str] = None
    export_date: Optional[str] = None
    fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class XerRow:
    line_number: int
    values: Tuple[str, ...]


@dataclass
class XerTable:
    """One %T block: table name, %F column headers and a lazy row iterator."""
    name: str
    fields: Tuple[str, ...]
    rows: Iterator[XerRow] = field(repr=False)
    line_number: int = 0

    def records(self) -> Iterator[Tuple[int, dict]]:
        """Iterate rows as (line_number, {column: value}) pairs."""
        for row in self.rows:
            yield row.line_number, dict(zip(self.fields, row.values))


Line = Tuple[int, List[str]]


class XerReader:
    """
    Lazy reader over an XER byte stream.

    The reader is single-pass: iterate it once, or build a new reader over a
    fresh stream to read again.

    Attributes:
        header: Parsed ERMHDR line, available once iteration has started
        ended_cleanly: True once the %E marker has been read
    """

    def __init__(
        self,
        stream: Union[BinaryIO, bytes],
        encoding: str = "utf-8-sig",
        require_header: bool = True,
    ):
        if isinstance(stream, (bytes, bytearray)):
            stream = io.BytesIO(stream)
        self._stream = stream
        self._encoding = encoding
        self._require_header = require_header
        self._lines: Optional[Iterator[Line]] = None
        self._pending: Optional[Line] = None
        self._active_rows: Optional[Iterator[XerRow]] = None
        self._started = False
        self.header: Optional[XerHeader] = None
        self.ended_cleanly = False

    def __iter__(self) -> Iterator[XerTable]:
        return self.tables()

    # =========================================================================
    # Line Source
    # =========================================================================

    def _read_lines(self) -> Iterator[Line]:
        if isinstance(self._stream, io.TextIOBase):
            text = self._stream
            owned = False
        else:
            text = io.TextIOWrapper(self._stream, encoding=self._encoding, errors="replace", newline=None)
            owned = True
        try:
            for line_number, raw in enumerate(text, start=1):
                line = raw.rstrip("\n")
                if not line.strip():
                    continue
                yield line_number, line.split("\t")
        finally:
            # Leave the caller's stream open
            if owned and not text.closed:
                text.detach()

    def _next_line(self) -> Optional[Line]:
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line
        return next(self._lines, None)

    def _push_back(self, line: Line) -> None:
        self._pending = line

    def _read_header(self) -> None:
        first = self._next_line()
        if first is None:
            if self._require_header:
                raise InvalidFileSignatureError("")
            return

        parts = first[1]
        if parts[0].lstrip("\ufeff").strip() == HEADER_MARKER:
            self.header = XerHeader(
                version=parts[1] if len(parts) > 1 else None,
                export_date=parts[2] if len(parts) > 2 else None,
                fields=tuple(parts[1:]),
            )
            return

        if self._require_header:
            raise InvalidFileSignatureError("\t".join(parts))
        self._push_back(first)

    # =========================================================================
    # Tables
    # =========================================================================

    def tables(self) -> Iterator[XerTable]:
        """Yield each table in file order."""
        if self._started:
            raise RuntimeError("XerReader can only be iterated once")
        self._started = True
        self._lines = self._read_lines()
        try:
            self._read_header()
            yield from self._iter_tables()
        finally:
            self._lines.close()

    def _iter_tables(self) -> Iterator[XerTable]:
        while True:
            if self._active_rows is not None:
                for _ in self._active_rows:
                    pass
                self._active_rows = None

            line = self._next_line()
            if line is None:
                return

            line_number, parts = line
            marker = parts[0]
            if marker == END_MARKER:
                self.ended_cleanly = True
                return
            if marker != TABLE_MARKER:
                logger.debug(f"Ignoring line {line_number} outside a table: {marker!r}")
                continue

            name = parts[1].strip() if len(parts) > 1 else ""
            fields = self._read_fields()
            self._active_rows = self._rows(name, fields)
            yield XerTable(name=name, fields=fields, rows=self._active_rows, line_number=line_number)

    def _read_fields(self) -> Tuple[str, ...]:
        line = self._next_line()
        if line is None:
            return ()
        if line[1][0] == FIELDS_MARKER:
            return tuple(line[1][1:])
        self._push_back(line)
        return ()

    def _rows(self, table: str, fields: Tuple[str, ...]) -> Iterator[XerRow]:
        expected = len(fields)
        while True:
            line = self._next_line()
            if line is None:
                return

            line_number, parts = line
            marker = parts[0]
            if marker == ROW_MARKER:
                values = parts[1:]
                if len(values) != expected:
                    raise MalformedRowError(table, line_number, expected, len(values))
                yield XerRow(line_number, tuple(values))
            elif marker in (TABLE_MARKER, END_MARKER):
                self._push_back(line)
                return
            else:
                logger.debug(f"Ignoring line {line_number} in table {table}: {marker!r}")

