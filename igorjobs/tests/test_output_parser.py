import re
import unittest

from igorjobs.job.diagnostics import (
    JobCompilationError,
    JobPermissionsError,
    JobRuntimeError,
    JobSyntaxError,
)
from igorjobs.job.output_parser import (
    DEFAULT_DESCRIPTORS,
    DiagnosticDescriptor,
    extract_diagnostics,
)


SEPARATOR = "#" * 92

RUNTIME_ERROR_BLOCK = (
    f"ERROR!!! :: {SEPARATOR}\n"
    "ERROR in action number 1\n"
    "of  Step Event0\n"
    "for object obj_player:\n"
    "\n"
    "Variable <unknown_object>.speed_x(100003, -2147483648) not set before reading it.\n"
    " at gml_Object_obj_player_Step_0 (line 3) - x += speed_x;\n"
    f"{SEPARATOR}\n"
    "gml_Object_obj_player_Step_0 (line 3)\n"
    "gml_Script_move@scr_movement (line 10)\n"
)


class TestExtractDiagnostics(unittest.TestCase):
    def test_no_matches(self) -> None:
        output = "Igor.exe /project=game.yyp\n\nCompile started\nFinal Compile...done\n"
        self.assertEqual(extract_diagnostics(output), [])

    def test_empty_text(self) -> None:
        self.assertEqual(extract_diagnostics(""), [])

    def test_single_compilation_error(self) -> None:
        output = "Compile started\nError : something broke\nIgor complete.\n"
        diagnostics = extract_diagnostics(output)
        self.assertEqual(diagnostics, [JobCompilationError("something broke")])

    def test_permission_error(self) -> None:
        output = "Permission Error : Access to the path 'C:\\build' is denied.\n"
        self.assertEqual(
            extract_diagnostics(output),
            [JobPermissionsError("Access to the path 'C:\\build' is denied.")],
        )

    def test_syntax_error_is_not_also_a_compilation_error(self) -> None:
        output = "Error : gml_Object_obj_player_Step_0(4) : malformed assignment\n"
        diagnostics = extract_diagnostics(output)

        self.assertEqual(len(diagnostics), 1)
        record = diagnostics[0]
        assert isinstance(record, JobSyntaxError)
        self.assertEqual(record.script_type, "Object")
        self.assertEqual(record.script, "obj_player_Step_0")
        self.assertEqual(record.line, 5)
        self.assertEqual(record.message, "malformed assignment")
        self.assertEqual(record.location().name, "obj_player")

    def test_runtime_error_block(self) -> None:
        diagnostics = extract_diagnostics("Starting runner\n" + RUNTIME_ERROR_BLOCK)

        self.assertEqual(len(diagnostics), 1)
        record = diagnostics[0]
        assert isinstance(record, JobRuntimeError)
        self.assertEqual(record.object, "obj_player")
        self.assertEqual(record.event, "Step Event0")
        self.assertEqual(record.script, "gml_Object_obj_player_Step_0")
        self.assertEqual(record.line, 3)
        self.assertEqual(len(record.frames), 2)
        self.assertTrue(record.exception.startswith("Variable <unknown_object>.speed_x"))
        self.assertIn("at gml_Object_obj_player_Step_0", record.exception)

    def test_truncated_runtime_block_is_skipped(self) -> None:
        truncated = RUNTIME_ERROR_BLOCK[: RUNTIME_ERROR_BLOCK.index(" at gml_")]
        self.assertEqual(extract_diagnostics(truncated), [])

    def test_truncated_block_does_not_hide_later_errors(self) -> None:
        truncated = RUNTIME_ERROR_BLOCK[: RUNTIME_ERROR_BLOCK.rindex(SEPARATOR)]
        output = truncated + "\nError : late failure\n"
        self.assertEqual(extract_diagnostics(output), [JobCompilationError("late failure")])

    def test_short_separator_is_not_a_runtime_error(self) -> None:
        output = RUNTIME_ERROR_BLOCK.replace(SEPARATOR, "#" * 8)
        self.assertEqual(extract_diagnostics(output), [])

    def test_records_in_stream_order(self) -> None:
        output = (
            "Error : first problem\n"
            + RUNTIME_ERROR_BLOCK
            + "Permission Error : denied\n"
            + "Error : gml_GlobalScript_scr_utils(0) : unexpected symbol\n"
        )
        kinds = [type(record) for record in extract_diagnostics(output)]
        self.assertEqual(
            kinds,
            [JobCompilationError, JobRuntimeError, JobPermissionsError, JobSyntaxError],
        )

    def test_custom_descriptor_builder_can_reject(self) -> None:
        rejecting = DiagnosticDescriptor(
            "never", re.compile(r"^Error : (?P<message>.+)$", re.MULTILINE), lambda _m: None
        )
        self.assertEqual(extract_diagnostics("Error : x\n", [rejecting]), [])

    def test_builder_value_error_is_skipped(self) -> None:
        def broken(_match: "re.Match[str]") -> JobCompilationError:
            raise ValueError("bad match")

        descriptors = [DiagnosticDescriptor("broken", re.compile(r"boom"), broken)]
        descriptors.extend(DEFAULT_DESCRIPTORS)
        self.assertEqual(
            extract_diagnostics("boom\nError : real\n", descriptors),
            [JobCompilationError("real")],
        )

    def test_describe(self) -> None:
        record = extract_diagnostics(RUNTIME_ERROR_BLOCK)[0]
        description = record.describe()
        self.assertIn("On line 3 of script gml_Object_obj_player_Step_0", description)
        self.assertIn("Step Event0 of object obj_player", description)


if __name__ == "__main__":
    unittest.main()
