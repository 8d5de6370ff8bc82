"""Tests for the stak command-line driver."""

import pytest

from stak.stak_cli import main


@pytest.fixture
def program_file(tmp_path, tail_factorial_source):
    path = tmp_path / "factorial.stak"
    path.write_text(tail_factorial_source, encoding="utf-8")
    return path


class TestCLIRun:
    """Test running programs from the command line."""

    def test_runs_program(self, program_file, capsys):
        assert main([str(program_file)]) == 0

        out = capsys.readouterr().out.splitlines()
        assert out[0] == 'Allocate stack frame for function: "factorial"'
        assert out[-1] == "120"

    def test_no_trace(self, program_file, capsys):
        assert main([str(program_file), "--no-trace"]) == 0
        assert capsys.readouterr().out.splitlines() == ["120"]

    def test_dump_ir(self, tmp_path, capsys):
        path = tmp_path / "arith.stak"
        path.write_text("print(2 + 3 * 4);\n", encoding="utf-8")

        assert main([str(path), "--dump-ir"]) == 0
        assert capsys.readouterr().out.splitlines() == ["PUSH 14", "PRINT", "14"]

    def test_dump_ir_without_optimization(self, tmp_path, capsys):
        path = tmp_path / "arith.stak"
        path.write_text("print(2 + 3);\n", encoding="utf-8")

        assert main([str(path), "--dump-ir", "--no-optimize"]) == 0
        assert capsys.readouterr().out.splitlines() == ["PUSH 2", "PUSH 3", "ADD", "PRINT", "5"]

    def test_output_file(self, program_file, tmp_path, capsys):
        out_path = tmp_path / "out.txt"
        assert main([str(program_file), "--output", str(out_path), "--no-trace"]) == 0

        assert capsys.readouterr().out == ""
        assert out_path.read_text(encoding="utf-8") == "120\n"

    def test_config_file(self, program_file, tmp_path, capsys):
        config_path = tmp_path / "stak.yaml"
        config_path.write_text("trace_frames: false\ndump_ir: false\n", encoding="utf-8")

        assert main([str(program_file), "--config", str(config_path)]) == 0
        assert capsys.readouterr().out.splitlines() == ["120"]

    def test_config_disables_validation(self, program_file, tmp_path, capsys):
        config_path = tmp_path / "stak.yaml"
        config_path.write_text("validate: false\ntrace_frames: false\n", encoding="utf-8")

        assert main([str(program_file), "--config", str(config_path)]) == 0
        assert capsys.readouterr().out.splitlines() == ["120"]

    def test_frames_to_stderr(self, program_file, capsys):
        assert main([str(program_file), "--frames-to-stderr"]) == 0

        captured = capsys.readouterr()
        assert captured.out.splitlines() == ["120"]
        frames = captured.err.splitlines()
        assert frames[0] == 'Allocate stack frame for function: "factorial"'
        assert len(frames) == 6

    def test_frames_to_stderr_with_output_file(self, program_file, tmp_path, capsys):
        out_path = tmp_path / "out.txt"
        assert main([str(program_file), "--output", str(out_path), "--frames-to-stderr"]) == 0

        assert out_path.read_text(encoding="utf-8") == "120\n"
        assert len(capsys.readouterr().err.splitlines()) == 6


class TestCLIErrors:
    """Test error reporting and exit codes."""

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.stak")]) == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_parse_error(self, tmp_path, capsys):
        path = tmp_path / "bad.stak"
        path.write_text("print(1)\n", encoding="utf-8")

        assert main([str(path)]) == 1
        err = capsys.readouterr().err
        assert "Error: Expected ';'" in err

    def test_runtime_fault_keeps_output(self, tmp_path, capsys):
        path = tmp_path / "fault.stak"
        path.write_text("print(7);\nthis z = 0;\nprint(1 / z);\n", encoding="utf-8")

        assert main([str(path)]) == 1
        captured = capsys.readouterr()
        assert captured.out.splitlines() == ["7"]
        assert "Division by zero" in captured.err

    def test_call_depth_limit(self, tmp_path, capsys):
        path = tmp_path / "deep.stak"
        path.write_text(
            "fn down(n) { if n == 0 { return 0; } else { return 1 + down(n - 1); } }\nprint(down(50));\n",
            encoding="utf-8"
        )

        assert main([str(path), "--no-trace", "--max-call-depth", "10"]) == 1
        assert "Call stack overflow" in capsys.readouterr().err

    def test_bad_config(self, program_file, tmp_path, capsys):
        config_path = tmp_path / "stak.yaml"
        config_path.write_text("max_call_depth: -1\n", encoding="utf-8")

        assert main([str(program_file), "--config", str(config_path)]) == 1
        assert "max_call_depth" in capsys.readouterr().err

    def test_unreadable_config(self, program_file, tmp_path, capsys):
        assert main([str(program_file), "--config", str(tmp_path)]) == 1
        assert "Cannot read configuration file" in capsys.readouterr().err

    def test_bad_max_call_depth_flag(self, program_file, capsys):
        assert main([str(program_file), "--max-call-depth", "0"]) == 1
        assert "max_call_depth" in capsys.readouterr().err
