"""A small stopwatch."""

from __future__ import annotations

from time import perf_counter


class TicToc:
    """Measures elapsed wall time in milliseconds since the last tic."""

    def __init__(self) -> None:
        self.tic()

    def tic(self) -> None:
        self._start = perf_counter()

    def toc(self) -> float:
        return (perf_counter() - self._start) * 1000.0