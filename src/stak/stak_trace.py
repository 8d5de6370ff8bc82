"""Stak trace watchers.

The VM reports two kinds of line: values written by PRINT and frame events
from CALL and TAILCALL.  The watchers here route each kind to a destination.
"""

import sys
from typing import Any, List, TextIO, Tuple

from stak.stak_vm import StakTraceKind


class StakStreamTraceWatcher:
    """
    Writes execution lines to text streams.

    Program output goes to output_stream.  Frame lines go to frame_stream when
    one is given, otherwise they are interleaved with the output in execution
    order.
    """

    def __init__(self, output_stream: TextIO, frame_stream: TextIO | None = None) -> None:
        self.output_stream = output_stream
        self.frame_stream = frame_stream if frame_stream is not None else output_stream

    def on_trace(self, kind: StakTraceKind, message: str) -> None:
        stream = self.output_stream if kind == StakTraceKind.OUTPUT else self.frame_stream
        try:
            stream.write(message + '\n')

        except OSError as e:
            raise RuntimeError(f"Failed to write {kind.value} line: {e}") from e


class StakStdoutTraceWatcher(StakStreamTraceWatcher):
    """Writes program output to stdout; frame lines to stdout or a given stream."""

    def __init__(self, frame_stream: TextIO | None = None) -> None:
        super().__init__(sys.stdout, frame_stream)


class StakFileTraceWatcher(StakStreamTraceWatcher):
    """
    Writes program output to a file.

    Frame lines go to the same file unless frame_stream is given.  Use as a
    context manager so the file is closed even when the run faults.
    """

    def __init__(self, filepath: str, frame_stream: TextIO | None = None) -> None:
        try:
            self.file = open(filepath, 'w', encoding='utf-8')

        except OSError as e:
            raise RuntimeError(f"Failed to open output file '{filepath}': {e}") from e

        super().__init__(self.file, frame_stream)

    def close(self) -> None:
        self.file.close()

    def __enter__(self) -> 'StakFileTraceWatcher':
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class StakBufferingTraceWatcher:
    """Keeps every line with its kind for programmatic access."""

    def __init__(self) -> None:
        self.traces: List[Tuple[StakTraceKind, str]] = []

    def on_trace(self, kind: StakTraceKind, message: str) -> None:
        self.traces.append((kind, message))

    def get_traces(self) -> List[str]:
        """
        Get all buffered lines.

        Returns:
            Output and frame lines, in emission order
        """
        return [message for _, message in self.traces]

    def get_output(self) -> List[str]:
        """
        Get only the values written by PRINT.

        Returns:
            Program output lines, in emission order
        """
        return [message for kind, message in self.traces if kind == StakTraceKind.OUTPUT]

    def count(self, kind: StakTraceKind) -> int:
        """Number of buffered lines of one kind."""
        return sum(1 for line_kind, _ in self.traces if line_kind == kind)

    def clear(self) -> None:
        self.traces.clear()
