from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Protocol, Sequence

from .parser import (
    CELL_MODULUS,
    AddValue,
    Instruction,
    LoopEnd,
    LoopStart,
    MovePointer,
    Read,
    Source,
    Write,
    parse,
)

logger = logging.getLogger(__name__)

TAPE_SIZE = 30000


class ExecutionError(RuntimeError):
    """Base class for failures raised while executing a program."""


class InputOutputError(ExecutionError):
    """Raised when the byte source or byte sink fails."""


class EndOfInput(InputOutputError):
    """Raised when a program reads past the end of its input."""


class StepLimitExceeded(ExecutionError):
    """Raised when execution exceeds the configured step budget."""


# === I/O collaborators ===


class ByteWriter(Protocol):
    def write_byte(self, value: int) -> None:
        ...


class ByteReader(Protocol):
    def read_byte(self) -> int:
        ...


class BufferWriter:
    """Collects written bytes in memory."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write_byte(self, value: int) -> None:
        self._buffer.append(value)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class BufferReader:
    """Serves bytes from an in-memory buffer, then reports end of input."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytes(data)
        self._position = 0

    def read_byte(self) -> int:
        if self._position >= len(self._data):
            raise EndOfInput("Input exhausted")
        value = self._data[self._position]
        self._position += 1
        return value


class StreamWriter:
    """Writes bytes to a binary stream, flushing on every newline."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def write_byte(self, value: int) -> None:
        try:
            self.stream.write(bytes((value,)))
            if value == 0x0A:
                self.stream.flush()
        except OSError as exc:
            raise InputOutputError(f"Failed to write output: {exc}") from exc

    def flush(self) -> None:
        try:
            self.stream.flush()
        except OSError as exc:
            raise InputOutputError(f"Failed to flush output: {exc}") from exc


class StreamReader:
    """Reads single bytes from a binary stream.

    When ``prompt_writer`` is given, its pending output is flushed before
    every read so a prompt is visible while the program waits for input.
    """

    def __init__(self, stream: BinaryIO, prompt_writer: Optional[StreamWriter] = None) -> None:
        self.stream = stream
        self.prompt_writer = prompt_writer

    def read_byte(self) -> int:
        if self.prompt_writer is not None:
            self.prompt_writer.flush()
        try:
            data = self.stream.read(1)
        except OSError as exc:
            raise InputOutputError(f"Failed to read input: {exc}") from exc
        if not data:
            raise EndOfInput("Input exhausted")
        return data[0]


# === Runtime ===


@dataclass
class Runtime:
    instructions: Sequence[Instruction]
    writer: ByteWriter
    reader: ByteReader
    tape_size: int = TAPE_SIZE

    index: int = field(init=False, default=0)
    pointer: int = field(init=False, default=0)
    steps: int = field(init=False, default=0)
    tape: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.tape_size <= 0:
            raise ValueError("tape_size must be positive")
        self.tape = bytearray(self.tape_size)

    def execute(self, max_steps: Optional[int] = None) -> None:
        """Run until the program counter passes the last instruction.

        A taken jump stores the matching bracket's index, and the usual
        increment then moves past it.
        """
        instructions = self.instructions
        length = len(instructions)
        while self.index < length:
            if max_steps is not None and self.steps >= max_steps:
                raise StepLimitExceeded(
                    f"Program exceeded allowed step count ({max_steps})"
                )
            self._dispatch(instructions[self.index])
            self.steps += 1
            self.index += 1
        logger.debug(
            "Execution finished after %d steps (pointer=%d)", self.steps, self.pointer
        )

    def _dispatch(self, instruction: Instruction) -> None:
        if isinstance(instruction, AddValue):
            self.tape[self.pointer] = (self.tape[self.pointer] + instruction.delta) % CELL_MODULUS
        elif isinstance(instruction, MovePointer):
            self.pointer = (self.pointer + instruction.offset) % self.tape_size
        elif isinstance(instruction, Write):
            self.writer.write_byte(self.tape[self.pointer])
        elif isinstance(instruction, Read):
            self.tape[self.pointer] = self.reader.read_byte() % CELL_MODULUS
        elif isinstance(instruction, LoopStart):
            if self.tape[self.pointer] == 0:
                self.index = instruction.end
        elif isinstance(instruction, LoopEnd):
            if self.tape[self.pointer] != 0:
                self.index = instruction.start
        else:
            raise TypeError(f"Unknown instruction: {instruction!r}")


def execute(runtime: Runtime, max_steps: Optional[int] = None) -> None:
    runtime.execute(max_steps=max_steps)


def run(
    source: Source,
    input_data: bytes = b"",
    *,
    tape_size: int = TAPE_SIZE,
    max_steps: Optional[int] = None,
) -> bytes:
    """Parse and run ``source`` against in-memory input, returning its output."""
    writer = BufferWriter()
    runtime = Runtime(parse(source), writer, BufferReader(input_data), tape_size=tape_size)
    runtime.execute(max_steps=max_steps)
    return writer.getvalue()


__all__ = [
    "BufferReader",
    "BufferWriter",
    "ByteReader",
    "ByteWriter",
    "EndOfInput",
    "ExecutionError",
    "InputOutputError",
    "Runtime",
    "StepLimitExceeded",
    "StreamReader",
    "StreamWriter",
    "TAPE_SIZE",
    "execute",
    "run",
]
