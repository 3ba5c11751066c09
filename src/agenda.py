"""
Agenda

Dependency-aware ranking of tasks:
1. Interns tasks by (scope, name) and records their prerequisites
2. Orders tasks so that prerequisites come before their dependents
3. Rejects cyclic and undefined dependencies
4. Propagates deadlines and priorities from dependents to prerequisites
5. Ranks unblocked, unfinished tasks by urgency (lower = sooner)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from dates import format_day_number

DEFAULT_DAYS = 8  # tasks without a deadline are due in about a week
PRIORITIES = {'A': +1, 'B': 0, 'C': -1}
PRIORITY_LETTERS = {value: letter for letter, value in PRIORITIES.items()}


def calc_urgency(due_distance: int, priority: int) -> int:
    """
    Urgency of a task: sign(d) * floor(log2(|d|)) - priority

    The logarithm is taken by repeated right shift, so distances of 0 and
    1 day have magnitude 0. Lower values are more urgent.

    Example:
        no deadline (8 days), priority B = 3 - 0 = 3
        due in 2 days, priority C        = 1 + 1 = 2
        overdue by 10 days, priority B   = -3 - 0 = -3
    """
    magnitude = 0
    n = abs(due_distance) >> 1
    while n:
        magnitude += 1
        n >>= 1
    if due_distance < 0:
        magnitude = -magnitude
    return magnitude - priority


DEFAULT_URGENCY = calc_urgency(DEFAULT_DAYS, 0)


class VisitState(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    FINISHED = 2


class AgendaError(Exception):
    """Fatal inconsistency in the task graph"""


class CyclicDependencyError(AgendaError):
    """Tasks depend on each other in a cycle"""

    def __init__(self, task: 'Task', cycle: List['Task']):
        self.task = task
        self.cycle = cycle
        path = ' -> '.join(t.label for t in cycle)
        super().__init__(f"{task.label}: cyclic dependency between tasks ({path})")


class UndefinedReferenceError(AgendaError):
    """A task was named as a dependency but never declared"""

    def __init__(self, task: 'Task'):
        self.task = task
        super().__init__(f"task \"{task.label}\" mentioned but not defined")


@dataclass
class TaskRecord:
    """Decoded task declaration handed over by a task source"""
    scope: Optional[str]
    name: str
    description: str = ''
    priority: str = 'B'  # A, B, C
    due: Optional[int] = None  # day number
    done: bool = False
    dependency_names: List[str] = None

    def __post_init__(self):
        if self.dependency_names is None:
            self.dependency_names = []
        if self.priority not in PRIORITIES:
            raise ValueError(f"Unknown priority: {self.priority!r}")


@dataclass(eq=False)
class Task:
    """Node of the dependency graph"""
    index: int
    scope: Optional[str]
    name: str
    description: str = ''
    priority: int = 0
    due: Optional[int] = None
    done: bool = False
    defined: bool = False
    dependencies: List[int] = None

    # Recomputed by every Agenda.compute() call
    effective_priority: int = 0
    due_distance: int = DEFAULT_DAYS
    has_deadline: bool = False
    completed: bool = False
    urgency: int = DEFAULT_URGENCY
    state: VisitState = VisitState.UNVISITED

    def __post_init__(self):
        if self.dependencies is None:
            self.dependencies = []

    @property
    def label(self) -> str:
        return f"{self.scope}: {self.name}" if self.scope else self.name

    def reset(self, today: int, overdue_as_done: bool) -> None:
        """Initialise run state from the declared fields"""
        self.effective_priority = self.priority
        self.has_deadline = self.due is not None
        self.due_distance = self.due - today if self.has_deadline else DEFAULT_DAYS
        self.completed = self.done or (overdue_as_done and self.due_distance < 0)
        self.urgency = DEFAULT_URGENCY
        self.state = VisitState.UNVISITED


@dataclass(frozen=True)
class DisplayRecord:
    """Ranked task as handed to the printer"""
    description: str
    priority_letter: str
    due_date: Optional[str] = None
    scope: Optional[str] = None
    name: str = ''


class Agenda:
    """
    Task registry and urgency ranking engine

    Tasks live in a flat list (the arena) and refer to their prerequisites
    by index. Declaration order is the order tasks were first mentioned.
    """

    def __init__(self):
        self.logger = logging.getLogger("TodoAgenda.Agenda")
        self.tasks: List[Task] = []
        self._index: Dict[Tuple[Optional[str], str], int] = {}

    # ==================== Registry ====================

    def intern(self, scope: Optional[str], name: str) -> int:
        """
        Get the task for (scope, name), creating an undefined one if needed

        Returns:
            Index of the task in self.tasks
        """
        key = (scope, name)
        index = self._index.get(key)
        if index is None:
            index = len(self.tasks)
            self.tasks.append(Task(index=index, scope=scope, name=name))
            self._index[key] = index
        return index

    def find(self, scope: Optional[str], name: str) -> Optional[Task]:
        """Look up a task without creating it"""
        index = self._index.get((scope, name))
        return self.tasks[index] if index is not None else None

    def declare(
        self,
        index: int,
        description: str,
        priority: int = 0,
        due: Optional[int] = None,
        done: bool = False,
        dependency_names: Optional[List[str]] = None
    ) -> Task:
        """
        Fill in a task's fields and add its dependency edges

        Re-declaring a task overwrites its fields; dependency edges
        accumulate across declarations.

        Args:
            index: Task returned by intern()
            dependency_names: Names of prerequisites, resolved in the task's scope

        Returns:
            The declared Task
        """
        task = self.tasks[index]
        if task.defined:
            self.logger.debug(f"Re-declaring task '{task.label}'")

        task.description = description
        task.priority = priority
        task.due = due
        task.done = done
        task.defined = True

        for name in dependency_names or []:
            dep = self.intern(task.scope, name)
            if dep not in task.dependencies:
                task.dependencies.append(dep)

        return task

    def ingest(self, record: TaskRecord) -> Task:
        """Register or update a task from a decoded record"""
        index = self.intern(record.scope, record.name)
        return self.declare(
            index,
            description=record.description.strip() or record.name,
            priority=PRIORITIES[record.priority],
            due=record.due,
            done=record.done,
            dependency_names=record.dependency_names
        )

    # ==================== Computation ====================

    def compute(self, today: int, overdue_as_done: bool = False) -> List[DisplayRecord]:
        """
        Rank the tasks that can be worked on now

        Args:
            today: Today's day number
            overdue_as_done: Treat tasks whose deadline has passed as done

        Returns:
            Display records of unblocked, unfinished tasks, most urgent first

        Raises:
            UndefinedReferenceError: a dependency was never declared
            CyclicDependencyError: the dependencies contain a cycle
        """
        self.check_defined()

        for task in self.tasks:
            task.reset(today, overdue_as_done)

        order = self.sequence()
        self.propagate(order)
        ranked = self.rank()

        self.logger.info(f"Ranked {len(ranked)} ready tasks (of {len(self.tasks)})")
        return [self._display(task) for task in ranked]

    def check_defined(self) -> None:
        """Fail on tasks that were only mentioned as dependencies"""
        for task in self.tasks:
            if not task.defined:
                raise UndefinedReferenceError(task)

    def sequence(self) -> List[int]:
        """
        Topologically sort the tasks

        Depth-first search in declaration order with an explicit stack;
        each task is appended after all of its prerequisites.

        Returns:
            Task indices, prerequisites before dependents

        Raises:
            CyclicDependencyError: if a prerequisite is reached while in progress
        """
        order: List[int] = []

        for root in self.tasks:
            if root.state is not VisitState.UNVISITED:
                continue

            root.state = VisitState.IN_PROGRESS
            stack = [(root, iter(root.dependencies))]

            while stack:
                task, edges = stack[-1]
                for index in edges:
                    prereq = self.tasks[index]
                    if prereq.state is VisitState.IN_PROGRESS:
                        path = [t for t, _ in stack]
                        cycle = path[path.index(prereq):] + [prereq]
                        raise CyclicDependencyError(prereq, cycle)
                    if prereq.state is VisitState.UNVISITED:
                        prereq.state = VisitState.IN_PROGRESS
                        stack.append((prereq, iter(prereq.dependencies)))
                        break
                else:
                    task.state = VisitState.FINISHED
                    order.append(task.index)
                    stack.pop()

        return order

    def propagate(self, order: List[int]) -> None:
        """
        Compute urgencies, pushing deadlines and priorities to prerequisites

        Walks the order from dependents to prerequisites. A prerequisite
        inherits a deadline one day before its dependent's (the nearest
        deadline wins) and at least its dependent's priority.
        """
        for index in reversed(order):
            task = self.tasks[index]
            task.urgency = calc_urgency(task.due_distance, task.effective_priority)

            for dep in task.dependencies:
                prereq = self.tasks[dep]
                if task.has_deadline:
                    if not prereq.has_deadline or task.due_distance <= prereq.due_distance:
                        prereq.due_distance = task.due_distance - 1
                    prereq.has_deadline = True
                if task.effective_priority > prereq.effective_priority:
                    prereq.effective_priority = task.effective_priority

            self.logger.debug(
                f"Urgency for '{task.label}': "
                f"days={task.due_distance}, priority={task.effective_priority} -> {task.urgency}"
            )

    def is_blocked(self, task: Task) -> bool:
        """A task is blocked while any of its prerequisites is unfinished"""
        return any(not self.tasks[dep].completed for dep in task.dependencies)

    def rank(self) -> List[Task]:
        """Unfinished, unblocked tasks sorted by urgency (stable, declaration order on ties)"""
        ready = [
            task for task in self.tasks
            if not task.completed and not self.is_blocked(task)
        ]
        ready.sort(key=lambda t: t.urgency)
        return ready

    def _display(self, task: Task) -> DisplayRecord:
        return DisplayRecord(
            description=task.description,
            priority_letter=PRIORITY_LETTERS[task.effective_priority],
            due_date=format_day_number(task.due),
            scope=task.scope,
            name=task.name
        )
