from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import BinaryIO, Optional

from .parser import ParseError, parse
from .runtime import ExecutionError, Runtime, StreamReader, StreamWriter


def _read_source(path: str) -> bytes:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_bytes()


def main(
    argv: Optional[list[str]] = None,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
) -> int:
    parser = argparse.ArgumentParser(
        prog="bfvm", description="Run a Brainfuck program against stdin/stdout"
    )
    parser.add_argument("source", help="Path to Brainfuck source file")
    args = parser.parse_args(argv)

    try:
        source = _read_source(args.source)
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    try:
        instructions = parse(source)
    except ParseError as exc:
        print(f"Parse error: {exc}", file=sys.stderr)
        return 1

    writer = StreamWriter(stdout if stdout is not None else sys.stdout.buffer)
    reader = StreamReader(
        stdin if stdin is not None else sys.stdin.buffer, prompt_writer=writer
    )
    runtime = Runtime(instructions, writer, reader)
    try:
        try:
            runtime.execute()
        finally:
            writer.flush()
    except ExecutionError as exc:
        print(f"Runtime error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
