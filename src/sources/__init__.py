"""
Task sources that decode text into agenda records
"""

from .todo_file import TodoFileSource, TodoFileError

__all__ = ['TodoFileSource', 'TodoFileError']
