from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

CELL_MODULUS = 256
POINTER_BITS = 64
POINTER_MASK = (1 << POINTER_BITS) - 1

OPERATORS = frozenset(b"+-><.,[]")


class ParseError(Exception):
    def __init__(self, message: str, position: int) -> None:
        super().__init__(message)
        self.position = position


class UnmatchedCloseBracket(ParseError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Unmatched ']' at position {position}", position)


class UnmatchedOpenBracket(ParseError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Unmatched '[' at position {position}", position)


# === Instructions ===


class Instruction:
    pass


@dataclass(frozen=True)
class AddValue(Instruction):
    delta: int


@dataclass(frozen=True)
class MovePointer(Instruction):
    delta: int

    @property
    def offset(self) -> int:
        """Signed displacement encoded by ``delta`` (two's complement)."""
        if self.delta > POINTER_MASK >> 1:
            return self.delta - (POINTER_MASK + 1)
        return self.delta


@dataclass(frozen=True)
class Write(Instruction):
    pass


@dataclass(frozen=True)
class Read(Instruction):
    pass


@dataclass(frozen=True)
class LoopStart(Instruction):
    end: int


@dataclass(frozen=True)
class LoopEnd(Instruction):
    start: int


Source = Union[bytes, bytearray, memoryview, str]


# === Parser ===


def parse(source: Source) -> List[Instruction]:
    """Compile Brainfuck source into a flat instruction list.

    Runs of ``+``/``-`` and ``>``/``<`` are folded into a single
    ``AddValue``/``MovePointer`` carrying the wrapped total. Loop brackets
    are resolved to instruction indices, so ``LoopStart.end`` and
    ``LoopEnd.start`` always point at each other.

    Any byte that is not one of the eight operators is ignored.
    """
    if isinstance(source, str):
        source = source.encode("latin-1", errors="ignore")

    instructions: List[Instruction] = []
    loop_start_stack: List[int] = []
    open_positions: List[int] = []

    for position, char in enumerate(bytes(source)):
        if char not in OPERATORS:
            continue
        last = instructions[-1] if instructions else None

        if char == ord("+") or char == ord("-"):
            step = 1 if char == ord("+") else CELL_MODULUS - 1
            if isinstance(last, AddValue):
                instructions[-1] = AddValue((last.delta + step) % CELL_MODULUS)
            else:
                instructions.append(AddValue(step))
        elif char == ord(">") or char == ord("<"):
            step = 1 if char == ord(">") else POINTER_MASK
            if isinstance(last, MovePointer):
                instructions[-1] = MovePointer((last.delta + step) & POINTER_MASK)
            else:
                instructions.append(MovePointer(step))
        elif char == ord("."):
            instructions.append(Write())
        elif char == ord(","):
            instructions.append(Read())
        elif char == ord("["):
            loop_start_stack.append(len(instructions))
            open_positions.append(position)
            instructions.append(LoopStart(end=0))
        else:
            if not loop_start_stack:
                raise UnmatchedCloseBracket(position)
            start = loop_start_stack.pop()
            open_positions.pop()
            instructions[start] = LoopStart(end=len(instructions))
            instructions.append(LoopEnd(start=start))

    if loop_start_stack:
        raise UnmatchedOpenBracket(open_positions[-1])

    logger.debug(
        "Parsed %d source bytes into %d instructions", len(source), len(instructions)
    )
    return instructions


def to_source(instructions: Iterable[Instruction]) -> str:
    """Render instructions back to Brainfuck text.

    Parsing the result of ``to_source(parse(code))`` gives back
    ``parse(code)``. A zero delta is rendered as a cancelling pair
    (``+-`` or ``><``) so the instruction survives the round trip.
    """
    pieces: List[str] = []
    for instruction in instructions:
        if isinstance(instruction, AddValue):
            delta = instruction.delta % CELL_MODULUS
            if delta == 0:
                pieces.append("+-")
            elif delta <= CELL_MODULUS // 2:
                pieces.append("+" * delta)
            else:
                pieces.append("-" * (CELL_MODULUS - delta))
        elif isinstance(instruction, MovePointer):
            offset = instruction.offset
            if offset == 0:
                pieces.append("><")
            elif offset > 0:
                pieces.append(">" * offset)
            else:
                pieces.append("<" * -offset)
        elif isinstance(instruction, Write):
            pieces.append(".")
        elif isinstance(instruction, Read):
            pieces.append(",")
        elif isinstance(instruction, LoopStart):
            pieces.append("[")
        elif isinstance(instruction, LoopEnd):
            pieces.append("]")
        else:
            raise TypeError(f"Unknown instruction: {instruction!r}")
    return "".join(pieces)


__all__ = [
    "AddValue",
    "CELL_MODULUS",
    "Instruction",
    "LoopEnd",
    "LoopStart",
    "MovePointer",
    "POINTER_MASK",
    "ParseError",
    "Read",
    "UnmatchedCloseBracket",
    "UnmatchedOpenBracket",
    "Write",
    "parse",
    "to_source",
]
