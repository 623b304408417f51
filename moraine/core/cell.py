"""
Cell: a value that becomes available asynchronously.

Cells are how resource outputs travel between stages. A cell is either
already resolved, still pending, or failed. Transformations (``map``,
``combine``) never wait: they register a continuation on the input cells and
return a new cell immediately. Failures travel through every derived cell so
a broken upstream resource can never turn into a placeholder value further
down the pipeline.

Example:
    endpoint = cluster["endpoint"]
    url = endpoint.map(lambda host: f"https://{host}")

    # Read by value only where a coroutine is allowed to suspend
    value = await url
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")


class CellStateError(Exception):
    """Raised when a settled cell is resolved or failed a second time."""
    pass


class CellState(Enum):
    """Lifecycle states of a cell."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class Cell(Generic[T]):
    """
    Container for a value that is known now or later.

    Once a cell leaves the PENDING state it never changes again. Callbacks
    registered while pending run in registration order when the cell
    settles; callbacks registered afterwards run immediately.
    """

    def __init__(self, label: str | None = None):
        """
        Create a pending cell.

        Args:
            label: Optional description used in repr and log messages
        """
        self.label = label
        self._state = CellState.PENDING
        self._value: Any = None
        self._error: BaseException | None = None
        self._callbacks: list[Callable[["Cell[T]"], None]] = []

    # Construction helpers

    @classmethod
    def of(cls, value: T, label: str | None = None) -> "Cell[T]":
        """Create a cell that is already resolved."""
        cell: Cell[T] = cls(label)
        cell.resolve(value)
        return cell

    @classmethod
    def failed(cls, error: BaseException, label: str | None = None) -> "Cell[Any]":
        """Create a cell that has already failed with ``error``."""
        cell: Cell[Any] = cls(label)
        cell.fail(error)
        return cell

    @classmethod
    def from_awaitable(cls, awaitable: Awaitable[T], label: str | None = None) -> "Cell[T]":
        """
        Wrap a coroutine or future in a cell.

        The awaitable is scheduled on the running event loop, so this must be
        called from code running inside that loop.

        Args:
            awaitable: Coroutine, task or future producing the value
            label: Optional description

        Returns:
            Cell that settles when the awaitable finishes
        """
        cell: Cell[T] = cls(label)
        future = asyncio.ensure_future(awaitable)

        def _settle(done: asyncio.Future) -> None:
            if done.cancelled():
                cell.fail(asyncio.CancelledError(f"{cell!r} was cancelled"))
            elif done.exception() is not None:
                cell.fail(done.exception())
            else:
                cell.resolve(done.result())

        future.add_done_callback(_settle)
        return cell

    @classmethod
    def all(cls, *cells: "Cell[Any]", label: str | None = None) -> "Cell[tuple]":
        """
        Combine any number of cells into one cell holding a tuple.

        The result resolves after every input has resolved, and fails with
        the first failure observed among the inputs.
        """
        result: Cell[tuple] = cls(label)
        if not cells:
            result.resolve(())
            return result

        remaining = [len(cells)]

        def _on_input(_: "Cell[Any]") -> None:
            if result.settled:
                return
            for cell in cells:
                if cell.state is CellState.FAILED:
                    result.fail(cell.error)
                    return
            remaining[0] -= 1
            if remaining[0] == 0:
                result.resolve(tuple(cell.value for cell in cells))

        for cell in cells:
            cell.add_callback(_on_input)
        return result

    @classmethod
    def from_input(cls, value: Any, label: str | None = None) -> "Cell[Any]":
        """
        Resolve every cell nested inside a plain structure.

        Dicts, lists and tuples are walked recursively. The returned cell
        holds a copy of the structure with each nested cell replaced by its
        value.

        Example:
            props = Cell.from_input({"namespace": ns["name"], "replicas": 1})
            # resolves to {"namespace": "apps-1a2b", "replicas": 1}
        """
        if isinstance(value, Cell):
            return value.map(lambda inner: inner, label=label)

        found: list[Cell[Any]] = []
        _collect_cells(value, found)
        if not found:
            return cls.of(value, label)

        def _rebuild(values: tuple) -> Any:
            lookup = {id(cell): resolved for cell, resolved in zip(found, values)}
            return _substitute(value, lookup)

        return cls.all(*found).map(_rebuild, label=label)

    # State

    @property
    def state(self) -> CellState:
        return self._state

    @property
    def settled(self) -> bool:
        """True once the cell has resolved or failed."""
        return self._state is not CellState.PENDING

    @property
    def resolved(self) -> bool:
        return self._state is CellState.RESOLVED

    @property
    def value(self) -> T:
        """
        The resolved value.

        Raises:
            CellStateError: If the cell is still pending
            Exception: The original failure if the cell failed
        """
        if self._state is CellState.PENDING:
            raise CellStateError(f"{self!r} has not resolved yet")
        if self._state is CellState.FAILED:
            raise self._error
        return self._value

    @property
    def error(self) -> BaseException | None:
        return self._error

    def resolve(self, value: T) -> None:
        """Settle the cell with a value."""
        if self.settled:
            raise CellStateError(f"{self!r} is already {self._state.value}")
        self._value = value
        self._state = CellState.RESOLVED
        self._run_callbacks()

    def fail(self, error: BaseException) -> None:
        """Settle the cell with an error."""
        if self.settled:
            raise CellStateError(f"{self!r} is already {self._state.value}")
        self._error = error
        self._state = CellState.FAILED
        self._run_callbacks()

    def add_callback(self, callback: Callable[["Cell[T]"], None]) -> None:
        """Run ``callback(cell)`` once the cell settles."""
        if self.settled:
            callback(self)
        else:
            self._callbacks.append(callback)

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    # Combinators

    def map(self, fn: Callable[[T], U], label: str | None = None) -> "Cell[U]":
        """
        Transform the value once it is known.

        If ``fn`` raises, the returned cell fails with that exception. If
        ``fn`` returns a cell, the returned cell follows it.

        Args:
            fn: Function applied to the resolved value
            label: Optional description for the derived cell

        Returns:
            New cell holding ``fn(value)``
        """
        derived: Cell[U] = Cell(label)

        def _apply(source: "Cell[T]") -> None:
            if source.state is CellState.FAILED:
                derived.fail(source.error)
                return
            try:
                result = fn(source.value)
            except Exception as e:
                derived.fail(e)
                return
            if isinstance(result, Cell):
                result.add_callback(derived._follow)
            else:
                derived.resolve(result)

        self.add_callback(_apply)
        return derived

    def combine(
        self,
        other: "Cell[U]",
        fn: Callable[[T, U], V],
        label: str | None = None,
    ) -> "Cell[V]":
        """
        Merge this cell with another one.

        Example:
            address = host.combine(port, lambda h, p: f"{h}:{p}")
        """
        return Cell.all(self, other).map(lambda pair: fn(pair[0], pair[1]), label=label)

    def _follow(self, source: "Cell[Any]") -> None:
        if source.state is CellState.FAILED:
            self.fail(source.error)
        else:
            self.resolve(source.value)

    def __await__(self):
        """Suspend the awaiting coroutine until the cell settles."""
        if not self.settled:
            future = asyncio.get_running_loop().create_future()

            def _wake(_: "Cell[T]") -> None:
                if not future.done():
                    future.set_result(None)

            self.add_callback(_wake)
            yield from future.__await__()
        return self.value

    def __repr__(self) -> str:
        label = f" {self.label!r}" if self.label else ""
        return f"Cell({self._state.value}{label})"


def _collect_cells(value: Any, found: list[Cell[Any]]) -> None:
    if isinstance(value, Cell):
        found.append(value)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_cells(item, found)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_cells(item, found)


def _substitute(value: Any, lookup: dict[int, Any]) -> Any:
    if isinstance(value, Cell):
        return lookup[id(value)]
    if isinstance(value, dict):
        return {key: _substitute(item, lookup) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute(item, lookup) for item in value]
    if isinstance(value, tuple):
        return tuple(_substitute(item, lookup) for item in value)
    return value


def as_cell(value: Any) -> Cell[Any]:
    """Return ``value`` if it already is a cell, otherwise a resolved cell."""
    if isinstance(value, Cell):
        return value
    return Cell.of(value)
