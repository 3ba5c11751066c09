#!/usr/bin/env python3
"""
todo-agenda CLI

Prints the tasks that can be worked on now, most urgent first. Tasks that
are done, or blocked by an unfinished dependency, are not shown.

Usage:
    ./todo-agenda.py [-d] [-l] [-T YYYY-MM-DD] [file...]

Examples:
    # Next tasks from a single todo file
    ./todo-agenda.py ~/todo.txt

    # Long format, tasks from several projects, with overdue tasks hidden
    ./todo-agenda.py -l -d work/todo.txt home/todo.txt

    # What will be next on a given day
    ./todo-agenda.py -T 2024-03-01 ~/todo.txt

Todo file syntax:
    [TODO|DONE] name: [(A|B|C)] description [due:YYYY-MM-DD] [deps:a,b,c]
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from todo_agenda import main

if __name__ == '__main__':
    sys.exit(main())
