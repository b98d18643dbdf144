from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Tuple

from bfvm.parser import Instruction, parse, to_source

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROGRAMS = 1024


@dataclass(frozen=True)
class ProgramRecord:
    program_id: str
    instructions: Tuple[Instruction, ...]
    normalized: str


class ProgramRegistry:
    """Thread-safe registry of parsed programs.

    Instructions are stored as tuples so concurrent runs can share them.
    Once ``max_programs`` records are held, registering a new program
    evicts the oldest one.
    """

    def __init__(self, max_programs: int = DEFAULT_MAX_PROGRAMS) -> None:
        if max_programs < 1:
            raise ValueError("max_programs must be positive")
        self.max_programs = max_programs
        self._programs: Dict[str, ProgramRecord] = {}
        self._lock = threading.RLock()

    def register(self, code: str) -> ProgramRecord:
        instructions = tuple(parse(code))
        record = ProgramRecord(
            program_id=uuid.uuid4().hex,
            instructions=instructions,
            normalized=to_source(instructions),
        )
        with self._lock:
            self._programs[record.program_id] = record
            while len(self._programs) > self.max_programs:
                oldest = next(iter(self._programs))
                del self._programs[oldest]
                logger.info("Evicted program %s (registry full)", oldest)
        return record

    def get(self, program_id: str) -> ProgramRecord:
        with self._lock:
            try:
                return self._programs[program_id]
            except KeyError as exc:
                raise KeyError(f"Unknown program id: {program_id}") from exc

    def remove(self, program_id: str) -> bool:
        with self._lock:
            return self._programs.pop(program_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._programs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._programs)


__all__ = ["ProgramRecord", "ProgramRegistry"]
