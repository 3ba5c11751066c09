"""
Todo File Source

Reads task declarations from plain-text todo files (or stdin) and decodes
them into agenda records.

Entry syntax:
    [TODO|DONE] name: [(A|B|C)] description [due:YYYY-MM-DD] [deps:a,b,c]

Lines starting with whitespace continue the previous entry. Blank lines end
an entry and lines starting with '#' are comments.
"""

import re
import sys
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional, Iterable, Tuple

from agenda import TaskRecord
from dates import parse_day_number

STDIN = '-'

STATUS_RE = re.compile(r'^(TODO|DONE)\s+')
NAME_RE = re.compile(r'^([^\s:]+):')
PRIORITY_RE = re.compile(r'^\(([ABC])\)')
TRAILING_TOKEN_RE = re.compile(r'(\S+)$')

PROP_DUE = 'due'
PROP_DEPS = 'deps'


class TodoFileError(ValueError):
    """A todo entry that cannot be decoded"""

    def __init__(self, message: str, filename: Optional[str] = None, line_number: Optional[int] = None):
        self.filename = filename
        self.line_number = line_number
        location = filename or '<stdin>'
        if line_number is not None:
            location = f"{location}:{line_number}"
        super().__init__(f"{location}: {message}")


class TodoFileSource:
    """Source of task records backed by todo files"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize todo file source

        Args:
            config: The 'todo' section of the configuration
        """
        self.config = config or {}
        self.logger = logging.getLogger("TodoAgenda.TodoFile")
        self.encoding = self.config.get('encoding', 'utf-8')
        self.errors = 0

    def read(self, paths: Optional[List[str]] = None) -> List[TaskRecord]:
        """
        Read task records from every path (stdin when none are given)

        Each path becomes its own scope when more than one is read, so that
        equally named tasks in different files stay distinct.

        Args:
            paths: Files to read; '-' stands for stdin

        Returns:
            List of decoded task records, in input order
        """
        if not paths:
            paths = [STDIN]

        records = []
        for path in paths:
            scope = path if len(paths) > 1 else None
            records.extend(self.read_source(path, scope))

        self.logger.info(f"Read {len(records)} task entries from {len(paths)} source(s)")
        return records

    def read_source(self, path: str, scope: Optional[str] = None) -> List[TaskRecord]:
        """
        Read task records from a single file or stdin

        Malformed entries and unreadable files are logged, counted in
        self.errors and skipped.
        """
        if path == STDIN:
            return self.parse_lines(sys.stdin, scope, filename=None)

        file_path = Path(path).expanduser()
        if not file_path.exists():
            self.logger.error(f"Todo file not found: {file_path}")
            self.errors += 1
            return []

        self.logger.debug(f"Reading todo file: {file_path}")
        try:
            with open(file_path, 'r', encoding=self.encoding) as f:
                return self.parse_lines(f, scope, filename=path)
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Error reading todo file {file_path}: {e}")
            self.errors += 1
            return []

    def parse_lines(self, lines: Iterable[str], scope: Optional[str] = None,
                    filename: Optional[str] = None) -> List[TaskRecord]:
        """Decode the entries found in an iterable of lines"""
        records = []
        for line_number, text in self._join_entries(lines):
            try:
                records.append(self.parse_entry(text, scope, filename, line_number))
            except TodoFileError as e:
                self.logger.warning(str(e))
                self.errors += 1
        return records

    def _join_entries(self, lines: Iterable[str]) -> Iterable[Tuple[int, str]]:
        """Fold continuation lines into their entry; yield (first line number, text)"""
        start = None
        parts: List[str] = []

        for line_number, line in enumerate(lines, 1):
            line = line.rstrip('\r\n')
            if not line.strip():
                if parts:
                    yield start, ' '.join(parts)
                start, parts = None, []
                continue
            if line[0].isspace() and parts:
                parts.append(line.strip())
                continue
            if parts:
                yield start, ' '.join(parts)
            if line.startswith('#'):
                start, parts = None, []
                continue
            start, parts = line_number, [line.strip()]

        if parts:
            yield start, ' '.join(parts)

    def parse_entry(self, text: str, scope: Optional[str] = None,
                    filename: Optional[str] = None, line_number: Optional[int] = None) -> TaskRecord:
        """
        Decode one task entry

        Args:
            text: Entry text with continuation lines already folded in
            scope: Scope the task (and its dependencies) belong to

        Returns:
            Decoded TaskRecord

        Raises:
            TodoFileError: if the entry has no 'name:' token
        """
        line = text.strip()

        done = False
        status_match = STATUS_RE.match(line)
        if status_match:
            done = status_match.group(1) == 'DONE'
            line = line[status_match.end():]

        name_match = NAME_RE.match(line)
        if not name_match:
            raise TodoFileError("missing task name", filename, line_number)
        name = name_match.group(1)
        line = line[name_match.end():].lstrip()

        priority = 'B'
        priority_match = PRIORITY_RE.match(line)
        if priority_match:
            priority = priority_match.group(1)
            line = line[priority_match.end():].lstrip()

        due = None
        dependency_names: List[str] = []

        # Properties are the trailing prop:value tokens
        line = line.rstrip()
        while line:
            token_match = TRAILING_TOKEN_RE.search(line)
            token = token_match.group(1)
            if ':' not in token:
                break
            line = line[:token_match.start()].rstrip()

            prop, value = token.split(':', 1)
            if prop == PROP_DUE:
                try:
                    due = parse_day_number(value)
                except ValueError:
                    self._warn(f"improper time format: {value}", filename, line_number)
            elif prop == PROP_DEPS:
                # tokens are scanned right to left
                dependency_names[:0] = [dep for dep in value.split(',') if dep]
            else:
                self._warn(f"unknown property \"{prop}\"", filename, line_number)

        description = line.strip() or name

        return TaskRecord(
            scope=scope,
            name=name,
            description=description,
            priority=priority,
            due=due,
            done=done,
            dependency_names=dependency_names
        )

    def _warn(self, message: str, filename: Optional[str], line_number: Optional[int]) -> None:
        location = filename or '<stdin>'
        if line_number is not None:
            location = f"{location}:{line_number}"
        self.logger.warning(f"{location}: {message}")
