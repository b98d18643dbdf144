from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, validator

from bfvm.parser import (
    AddValue,
    Instruction,
    LoopEnd,
    LoopStart,
    MovePointer,
    ParseError,
    Read,
    Write,
    parse,
    to_source,
)
from bfvm.runtime import (
    TAPE_SIZE,
    BufferReader,
    BufferWriter,
    InputOutputError,
    Runtime,
    StepLimitExceeded,
)

from .registry import ProgramRecord, ProgramRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5_000_000
MAX_STEPS = 50_000_000
MAX_TAPE_SIZE = 1_000_000


def _string_to_input_bytes(data: str) -> bytes:
    return bytes(ord(ch) for ch in data)


def _instruction_to_dict(index: int, instruction: Instruction) -> dict:
    if isinstance(instruction, AddValue):
        return {"index": index, "op": "add", "delta": instruction.delta}
    if isinstance(instruction, MovePointer):
        return {
            "index": index,
            "op": "move",
            "delta": instruction.delta,
            "offset": instruction.offset,
        }
    if isinstance(instruction, Write):
        return {"index": index, "op": "write"}
    if isinstance(instruction, Read):
        return {"index": index, "op": "read"}
    if isinstance(instruction, LoopStart):
        return {"index": index, "op": "loop_start", "end": instruction.end}
    if isinstance(instruction, LoopEnd):
        return {"index": index, "op": "loop_end", "start": instruction.start}
    raise TypeError(f"Unknown instruction: {instruction!r}")


class ProgramSource(BaseModel):
    code: str = ""


class RunOptions(BaseModel):
    input: str = ""
    max_steps: int = Field(default=DEFAULT_MAX_STEPS, ge=1, le=MAX_STEPS)
    tape_size: int = Field(default=TAPE_SIZE, ge=1, le=MAX_TAPE_SIZE)

    @validator("input")
    def validate_input(cls, value: str) -> str:
        if any(ord(ch) > 0xFF for ch in value):
            raise ValueError("input must only contain characters in the range U+0000-U+00FF")
        return value


class RunRequest(RunOptions):
    code: str = ""


class InstructionModel(BaseModel):
    index: int
    op: str
    delta: Optional[int] = None
    offset: Optional[int] = None
    end: Optional[int] = None
    start: Optional[int] = None


class ParseResponse(BaseModel):
    instructions: List[InstructionModel]
    instruction_count: int
    normalized: str


class ProgramPayload(ParseResponse):
    program_id: str


class RunResult(BaseModel):
    output: str
    output_bytes: List[int]
    steps: int
    pointer: int
    instruction_count: int


def _serialize_instructions(instructions: Sequence[Instruction]) -> List[InstructionModel]:
    return [
        InstructionModel(**_instruction_to_dict(index, instruction))
        for index, instruction in enumerate(instructions)
    ]


def _parse_or_422(code: str) -> List[Instruction]:
    try:
        return parse(code)
    except ParseError as exc:
        logger.info("Rejected program: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


def _run_instructions(instructions: Sequence[Instruction], options: RunOptions) -> RunResult:
    writer = BufferWriter()
    runtime = Runtime(
        instructions,
        writer,
        BufferReader(_string_to_input_bytes(options.input)),
        tape_size=options.tape_size,
    )
    try:
        runtime.execute(max_steps=options.max_steps)
    except StepLimitExceeded as exc:
        logger.info("Run aborted after %d steps: %s", runtime.steps, exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except InputOutputError as exc:
        logger.info("Run failed at instruction %d: %s", runtime.index, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    output = writer.getvalue()
    return RunResult(
        output=output.decode("latin-1"),
        output_bytes=list(output),
        steps=runtime.steps,
        pointer=runtime.pointer,
        instruction_count=len(instructions),
    )


def create_app(registry: Optional[ProgramRegistry] = None) -> FastAPI:
    program_registry = registry if registry is not None else ProgramRegistry()
    app = FastAPI(title="bfvm API", version="0.1.0")

    def _build_payload(record: ProgramRecord) -> ProgramPayload:
        return ProgramPayload(
            program_id=record.program_id,
            instructions=_serialize_instructions(record.instructions),
            instruction_count=len(record.instructions),
            normalized=record.normalized,
        )

    def _get_record(program_id: str) -> ProgramRecord:
        try:
            return program_registry.get(program_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post("/api/parse", response_model=ParseResponse)
    def parse_program(payload: ProgramSource) -> ParseResponse:
        instructions = _parse_or_422(payload.code)
        return ParseResponse(
            instructions=_serialize_instructions(instructions),
            instruction_count=len(instructions),
            normalized=to_source(instructions),
        )

    @app.post("/api/run", response_model=RunResult)
    def run_program(payload: RunRequest) -> RunResult:
        instructions = _parse_or_422(payload.code)
        return _run_instructions(instructions, payload)

    @app.post("/api/programs", response_model=ProgramPayload, status_code=status.HTTP_201_CREATED)
    def create_program(payload: ProgramSource) -> ProgramPayload:
        try:
            record = program_registry.register(payload.code)
        except ParseError as exc:
            logger.info("Rejected program: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        return _build_payload(record)

    @app.get("/api/programs/{program_id}", response_model=ProgramPayload)
    def get_program(program_id: str) -> ProgramPayload:
        return _build_payload(_get_record(program_id))

    @app.post("/api/programs/{program_id}/run", response_model=RunResult)
    def run_stored_program(program_id: str, payload: RunOptions) -> RunResult:
        record = _get_record(program_id)
        return _run_instructions(record.instructions, payload)

    @app.delete("/api/programs/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_program(program_id: str) -> Response:
        removed = program_registry.remove(program_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown program id: {program_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
