from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from bfvm import ParseError, parse
from bfvm.webui import ProgramRegistry, create_app
from bfvm.webui.app import MAX_STEPS


HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


class WebUIParseApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app())

    def test_parse_returns_instruction_listing(self) -> None:
        response = self.client.post("/api/parse", json={"code": "++><<>>>[.,]++---"})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["instruction_count"], 7)
        self.assertEqual(payload["normalized"], "++>>[.,]-")
        ops = [item["op"] for item in payload["instructions"]]
        self.assertEqual(
            ops, ["add", "move", "loop_start", "write", "read", "loop_end", "add"]
        )
        self.assertEqual(payload["instructions"][1]["offset"], 2)
        self.assertEqual(payload["instructions"][2]["end"], 5)
        self.assertEqual(payload["instructions"][5]["start"], 2)
        self.assertEqual(payload["instructions"][6]["delta"], 255)

    def test_parse_reports_negative_offset(self) -> None:
        response = self.client.post("/api/parse", json={"code": "<<"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["instructions"][0]["offset"], -2)

    def test_parse_error_is_unprocessable(self) -> None:
        response = self.client.post("/api/parse", json={"code": "]"})
        self.assertEqual(response.status_code, 422, response.text)
        self.assertIn("Unmatched ']'", response.json()["detail"])

    def test_parse_empty_code(self) -> None:
        response = self.client.post("/api/parse", json={})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["instructions"], [])


class WebUIRunApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app())

    def test_run_hello_world(self) -> None:
        response = self.client.post("/api/run", json={"code": HELLO_WORLD})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["output"], "Hello World!\n")
        self.assertEqual(payload["output_bytes"][-1], 10)
        self.assertGreater(payload["steps"], 0)

    def test_run_consumes_input(self) -> None:
        response = self.client.post(
            "/api/run", json={"code": ",[+.,]", "input": "HAL\u0000"}
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["output"], "IBM")

    def test_run_with_small_tape(self) -> None:
        response = self.client.post(
            "/api/run", json={"code": "<+", "tape_size": 8}
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["pointer"], 7)

    def test_step_limit_conflict(self) -> None:
        response = self.client.post("/api/run", json={"code": "+[]", "max_steps": 50})
        self.assertEqual(response.status_code, 409, response.text)
        self.assertIn("detail", response.json())

    def test_exhausted_input_is_bad_request(self) -> None:
        response = self.client.post("/api/run", json={"code": ",", "input": ""})
        self.assertEqual(response.status_code, 400, response.text)
        self.assertIn("Input exhausted", response.json()["detail"])

    def test_run_parse_error(self) -> None:
        response = self.client.post("/api/run", json={"code": "[["})
        self.assertEqual(response.status_code, 422, response.text)

    def test_rejects_input_outside_byte_range(self) -> None:
        response = self.client.post("/api/run", json={"code": ",.", "input": "ā"})
        self.assertEqual(response.status_code, 422, response.text)

    def test_rejects_invalid_tape_size(self) -> None:
        response = self.client.post("/api/run", json={"code": "+", "tape_size": 0})
        self.assertEqual(response.status_code, 422, response.text)

    def test_rejects_step_budget_above_cap(self) -> None:
        response = self.client.post(
            "/api/run", json={"code": "+[]", "max_steps": MAX_STEPS + 1}
        )
        self.assertEqual(response.status_code, 422, response.text)

    def test_accepts_step_budget_at_cap(self) -> None:
        response = self.client.post("/api/run", json={"code": "+.", "max_steps": MAX_STEPS})
        self.assertEqual(response.status_code, 200, response.text)


class WebUIProgramApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = ProgramRegistry()
        self.client = TestClient(create_app(self.registry))

    def _create_program(self, code: str) -> dict:
        response = self.client.post("/api/programs", json={"code": code})
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_create_and_fetch_program(self) -> None:
        created = self._create_program("+[-]")
        self.assertIn("program_id", created)
        self.assertEqual(created["instruction_count"], 4)

        response = self.client.get(f"/api/programs/{created['program_id']}")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), created)

    def test_stored_program_runs_repeatedly(self) -> None:
        created = self._create_program(",+.")
        program_id = created["program_id"]

        first = self.client.post(f"/api/programs/{program_id}/run", json={"input": "a"})
        second = self.client.post(f"/api/programs/{program_id}/run", json={"input": "y"})
        self.assertEqual(first.status_code, 200, first.text)
        self.assertEqual(second.status_code, 200, second.text)
        self.assertEqual(first.json()["output"], "b")
        self.assertEqual(second.json()["output"], "z")

    def test_stored_program_step_limit(self) -> None:
        created = self._create_program("+[]")
        response = self.client.post(
            f"/api/programs/{created['program_id']}/run", json={"max_steps": 3}
        )
        self.assertEqual(response.status_code, 409, response.text)

    def test_create_rejects_unbalanced_program(self) -> None:
        response = self.client.post("/api/programs", json={"code": "[+"})
        self.assertEqual(response.status_code, 422, response.text)
        self.assertEqual(len(self.registry), 0)

    def test_delete_program(self) -> None:
        created = self._create_program(".")
        program_id = created["program_id"]

        deleted = self.client.delete(f"/api/programs/{program_id}")
        self.assertEqual(deleted.status_code, 204, deleted.text)
        missing = self.client.get(f"/api/programs/{program_id}")
        self.assertEqual(missing.status_code, 404, missing.text)
        again = self.client.delete(f"/api/programs/{program_id}")
        self.assertEqual(again.status_code, 404, again.text)

    def test_unknown_program_run(self) -> None:
        response = self.client.post("/api/programs/nope/run", json={})
        self.assertEqual(response.status_code, 404, response.text)


class ProgramRegistryTests(unittest.TestCase):
    def test_register_stores_parsed_instructions(self) -> None:
        registry = ProgramRegistry()
        record = registry.register("++[>+<-]")
        self.assertEqual(list(record.instructions), parse("++[>+<-]"))
        self.assertIsInstance(record.instructions, tuple)
        self.assertIs(registry.get(record.program_id), record)

    def test_register_propagates_parse_error(self) -> None:
        registry = ProgramRegistry()
        with self.assertRaises(ParseError):
            registry.register("]")
        self.assertEqual(len(registry), 0)

    def test_remove_and_clear(self) -> None:
        registry = ProgramRegistry()
        first = registry.register("+")
        registry.register("-")
        self.assertTrue(registry.remove(first.program_id))
        self.assertFalse(registry.remove(first.program_id))
        with self.assertRaises(KeyError):
            registry.get(first.program_id)
        registry.clear()
        self.assertEqual(len(registry), 0)

    def test_oldest_program_evicted_when_full(self) -> None:
        registry = ProgramRegistry(max_programs=2)
        first = registry.register("+")
        second = registry.register("-")
        third = registry.register(".")
        self.assertEqual(len(registry), 2)
        with self.assertRaises(KeyError):
            registry.get(first.program_id)
        self.assertIs(registry.get(second.program_id), second)
        self.assertIs(registry.get(third.program_id), third)

    def test_rejects_non_positive_capacity(self) -> None:
        with self.assertRaises(ValueError):
            ProgramRegistry(max_programs=0)

    def test_evicted_program_is_not_found_over_http(self) -> None:
        client = TestClient(create_app(ProgramRegistry(max_programs=1)))
        first = client.post("/api/programs", json={"code": "+"}).json()
        client.post("/api/programs", json={"code": "-"})
        response = client.get(f"/api/programs/{first['program_id']}")
        self.assertEqual(response.status_code, 404, response.text)


if __name__ == "__main__":
    unittest.main()
