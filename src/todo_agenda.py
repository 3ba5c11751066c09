#!/usr/bin/env python3
"""
TodoAgenda

Prints the tasks that can be worked on now, most urgent first:
1. Reads task entries from todo files (or stdin)
2. Builds the dependency graph and rejects cycles/undefined tasks
3. Propagates deadlines and priorities to prerequisites
4. Hides tasks that are done or blocked by unfinished prerequisites
"""

import sys
import copy
import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional

from agenda import Agenda, AgendaError, DisplayRecord


DEFAULT_CONFIG: Dict[str, Any] = {
    'todo': {
        'files': [],
        'encoding': 'utf-8',
        'overdue_as_done': False,
        'long_format': False,
    },
    'logging': {
        'level': 'WARNING',
    },
}


class TodoAgenda:
    """
    Command-line agenda: wires the todo file source to the Agenda engine
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize TodoAgenda with configuration"""
        self.logger = self._setup_logging()
        self.project_root = self._detect_project_root()
        self.config = self._load_config(config_path)

        level = self.config['logging'].get('level', 'WARNING')
        self.logger.setLevel(getattr(logging, str(level).upper(), logging.WARNING))

        from sources import TodoFileSource

        self._source = TodoFileSource(self.config['todo'])
        self.agenda = Agenda()

        self.logger.info("✅ TodoAgenda initialized successfully")

    def _setup_logging(self) -> logging.Logger:
        """Setup logging for the agenda"""
        logger = logging.getLogger("TodoAgenda")

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - TodoAgenda - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(logging.WARNING)

        return logger

    def _detect_project_root(self) -> Path:
        """Detect project root directory"""
        current_path = Path(__file__).resolve()

        # Look for project markers
        for parent in current_path.parents:
            if (parent / 'pyproject.toml').exists() or (parent / 'config').is_dir():
                return parent

        # Fallback
        return Path.cwd()

    def _load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file, merged over the defaults

        A missing default config is fine; a missing explicit one is not.
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if config_path is None:
            path = self.project_root / 'config' / 'config.yaml'
            if not path.exists():
                self.logger.debug(f"No config at {path}, using defaults")
                return config
        else:
            path = Path(config_path).expanduser()
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")

        for section, values in loaded.items():
            if section in DEFAULT_CONFIG and not isinstance(values, dict):
                raise ValueError(f"Config section '{section}' must be a mapping: {path}")
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        return config

    # ==================== Core Methods ====================

    @property
    def errors(self) -> int:
        """Number of malformed entries and unreadable files seen so far"""
        return self._source.errors

    def load(self, paths: Optional[List[str]] = None) -> int:
        """
        Read task entries into the agenda

        Args:
            paths: Todo files to read (default: config todo.files, else stdin)

        Returns:
            Number of entries ingested
        """
        if not paths:
            paths = [str(Path(p).expanduser()) for p in self.config['todo'].get('files') or []]

        records = self._source.read(paths)
        for record in records:
            self.agenda.ingest(record)

        self.logger.info(f"Loaded {len(records)} entries ({len(self.agenda.tasks)} tasks)")
        return len(records)

    def next_tasks(self, today: int, overdue_as_done: Optional[bool] = None) -> List[DisplayRecord]:
        """
        Rank the tasks that are ready to be worked on

        Args:
            today: Today's day number
            overdue_as_done: Treat passed deadlines as done (default from config)

        Raises:
            AgendaError: on cyclic or undefined dependencies
        """
        if overdue_as_done is None:
            overdue_as_done = bool(self.config['todo'].get('overdue_as_done'))

        return self.agenda.compute(today, overdue_as_done=overdue_as_done)


def format_record(record: DisplayRecord, long_format: bool = False, show_scope: bool = False) -> str:
    """
    Render a ranked task as one output line

    Long format: (A) [scope: ]description[ due:YYYY-MM-DD]
    """
    if not long_format:
        return record.description

    line = f"({record.priority_letter}) "
    if show_scope and record.scope:
        line += f"{record.scope}: "
    line += record.description
    if record.due_date:
        line += f" due:{record.due_date}"
    return line


# ==================== CLI Interface ====================

def main(argv: Optional[List[str]] = None):
    """CLI entry point"""
    import argparse
    from dates import parse_day_number, today_day_number

    parser = argparse.ArgumentParser(
        description="TodoAgenda: print the next tasks to work on"
    )
    parser.add_argument(
        'files',
        nargs='*',
        help="Todo files to read ('-' for stdin; default: config or stdin)"
    )
    parser.add_argument(
        '-d', '--overdue-as-done',
        action='store_true',
        default=None,
        help='Consider tasks whose deadline has passed as done'
    )
    parser.add_argument(
        '-l', '--long',
        action='store_true',
        default=None,
        help='Show priority, file and due date of each task'
    )
    parser.add_argument(
        '-T', '--today',
        metavar='YYYY-MM-DD',
        help='Use this date as today'
    )
    parser.add_argument(
        '--config',
        help='Path to config file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)

    try:
        app = TodoAgenda(config_path=args.config)
    except Exception as e:
        print(f"❌ Failed to initialize TodoAgenda: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        app.logger.setLevel(logging.DEBUG)

    if args.today:
        try:
            today = parse_day_number(args.today)
        except ValueError:
            print(f"❌ Improper argument date: {args.today}", file=sys.stderr)
            return 1
    else:
        today = today_day_number()

    long_format = args.long
    if long_format is None:
        long_format = bool(app.config['todo'].get('long_format'))

    app.load(args.files)

    try:
        records = app.next_tasks(today, overdue_as_done=args.overdue_as_done)
    except AgendaError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    show_scope = any(record.scope for record in records)
    for record in records:
        print(format_record(record, long_format=long_format, show_scope=show_scope))

    return 0 if app.errors == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
