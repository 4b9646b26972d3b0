from __future__ import annotations

import math
import queue
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from barycenter.masspoint import BarycenterError, WeightedPoint
from barycenter.utils import get_logger

logger = get_logger(__name__)

__all__ = [
    "IngestResult",
    "Ingestor",
    "SequentialIngestor",
    "ConcurrentIngestor",
    "InsufficientInputError",
    "MalformedLineError",
    "parse_line",
    "make_ingestor",
    "ingest_file",
]


class InsufficientInputError(BarycenterError):
    """No valid point was parsed from the input."""


class MalformedLineError(BarycenterError, ValueError):
    """Raised in strict mode when at least one line could not be parsed."""


# ---------- Line parsing ----------

_FLOAT = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
_FIELD = rf"[ \t]*({_FLOAT})[ \t]*"
_LINE_RE = re.compile(":".join([_FIELD] * 4))


def parse_line(line: str) -> Optional[WeightedPoint]:
    """Parse ``x:y:z:mass``; returns ``None`` for anything else.

    Out-of-range literals (overflowing to inf) are rejected like non-numeric ones.
    """
    m = _LINE_RE.fullmatch(line.rstrip("\r\n"))
    if m is None:
        return None
    values = [float(g) for g in m.groups()]
    if not all(math.isfinite(v) for v in values):
        return None
    return WeightedPoint(*values)


@dataclass
class IngestResult:
    points: List[WeightedPoint] = field(default_factory=list)
    lines_read: int = 0
    lines_skipped: int = 0
    first_skipped_line: Optional[int] = None

    def record(self, line_no: int, point: Optional[WeightedPoint]) -> None:
        if point is None:
            self.lines_skipped += 1
            if self.first_skipped_line is None or line_no < self.first_skipped_line:
                self.first_skipped_line = line_no
        else:
            self.points.append(point)


# ---------- Ingestors ----------

class Ingestor:
    """Turns an iterable of text lines into an unordered list of points."""

    name = "base"

    def __init__(self, strict: bool = False):
        self.strict = strict

    def ingest(self, lines: Iterable[str]) -> IngestResult:
        raise NotImplementedError

    def _finish(self, result: IngestResult) -> IngestResult:
        logger.info(
            "ingest.%s: points=%d skipped=%d lines=%d",
            self.name,
            len(result.points),
            result.lines_skipped,
            result.lines_read,
        )
        if self.strict and result.lines_skipped:
            raise MalformedLineError(
                f"{result.lines_skipped} malformed line(s), first at line {result.first_skipped_line}"
            )
        return result


class SequentialIngestor(Ingestor):
    name = "sequential"

    def ingest(self, lines: Iterable[str]) -> IngestResult:
        result = IngestResult()
        for line_no, line in enumerate(lines, start=1):
            result.record(line_no, parse_line(line))
            result.lines_read = line_no
        return self._finish(result)


_DONE = object()


class ConcurrentIngestor(Ingestor):
    """
    Parses every line on its own pool task. Tasks hand their outcome to the
    single consumer through a bounded queue, so a slow consumer stalls the
    producers only once ``buffer_size`` outcomes are waiting. The producer
    thread joins all tasks before posting one end-of-input marker; everything
    queued before that marker has been delivered when the consumer sees it.
    """

    name = "concurrent"

    def __init__(
        self,
        workers: int = 8,
        buffer_size: int = 128,
        max_in_flight: int = 1024,
        strict: bool = False,
    ):
        super().__init__(strict=strict)
        if workers < 1 or buffer_size < 1 or max_in_flight < 1:
            raise ValueError("workers, buffer_size and max_in_flight must be >= 1")
        self.workers = workers
        self.buffer_size = buffer_size
        self.max_in_flight = max_in_flight

    def ingest(self, lines: Iterable[str]) -> IngestResult:
        channel: "queue.Queue[tuple]" = queue.Queue(maxsize=self.buffer_size)
        slots = threading.BoundedSemaphore(self.max_in_flight)
        failures: List[BaseException] = []

        def parse_into(line_no: int, line: str) -> None:
            try:
                outcome: Any = parse_line(line)
            except Exception as e:  # noqa: BLE001
                outcome = e
            try:
                channel.put((line_no, outcome))
            finally:
                slots.release()

        def produce() -> None:
            read = 0
            try:
                with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="ingest") as pool:
                    for read, line in enumerate(lines, start=1):
                        slots.acquire()
                        pool.submit(parse_into, read, line)
            except BaseException as e:  # noqa: BLE001
                failures.append(e)
            finally:
                channel.put((_DONE, read))

        producer = threading.Thread(target=produce, name="ingest-producer", daemon=True)
        producer.start()

        result = IngestResult()
        while True:
            line_no, outcome = channel.get()
            if line_no is _DONE:
                result.lines_read = outcome
                break
            if isinstance(outcome, BaseException):
                failures.append(outcome)
                continue
            result.record(line_no, outcome)
        producer.join()

        if failures:
            # Reading errors are fatal; nothing parsed so far is returned
            raise failures[0]
        return self._finish(result)


def make_ingestor(ingest_cfg: Dict[str, Any]) -> Ingestor:
    mode = ingest_cfg.get("mode", "concurrent")
    strict = bool(ingest_cfg.get("strict", False))
    if mode == "sequential":
        return SequentialIngestor(strict=strict)
    if mode == "concurrent":
        return ConcurrentIngestor(
            workers=int(ingest_cfg.get("workers", 8)),
            buffer_size=int(ingest_cfg.get("buffer_size", 128)),
            max_in_flight=int(ingest_cfg.get("max_in_flight", 1024)),
            strict=strict,
        )
    raise ValueError(f"Unknown ingest mode: {mode}")


def ingest_file(path: str, ingestor: Ingestor) -> IngestResult:
    """Open ``path`` and ingest it; open/read failures propagate to the caller."""
    # Undecodable bytes end up in a malformed line, which is dropped like any other
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return ingestor.ingest(f)
