from .parser import (
    AddValue,
    Instruction,
    LoopEnd,
    LoopStart,
    MovePointer,
    ParseError,
    Read,
    UnmatchedCloseBracket,
    UnmatchedOpenBracket,
    Write,
    parse,
    to_source,
)
from .runtime import (
    TAPE_SIZE,
    BufferReader,
    BufferWriter,
    EndOfInput,
    ExecutionError,
    InputOutputError,
    Runtime,
    StepLimitExceeded,
    StreamReader,
    StreamWriter,
    execute,
    run,
)

__all__ = [
    "AddValue",
    "BufferReader",
    "BufferWriter",
    "EndOfInput",
    "ExecutionError",
    "InputOutputError",
    "Instruction",
    "LoopEnd",
    "LoopStart",
    "MovePointer",
    "ParseError",
    "Read",
    "Runtime",
    "StepLimitExceeded",
    "StreamReader",
    "StreamWriter",
    "TAPE_SIZE",
    "UnmatchedCloseBracket",
    "UnmatchedOpenBracket",
    "Write",
    "execute",
    "parse",
    "run",
    "to_source",
]
