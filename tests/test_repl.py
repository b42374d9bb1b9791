import importlib.util
import sys
from pathlib import Path
import uuid
import pytest

def _load_repl_module():
    """Dynamically load the top-level evalshell.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "evalshell.py"
    mod_name = f"evalshell_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

def _isolate(monkeypatch, tmp_path, argv=("evalshell.py",)):
    """Pin argv and point the config at an empty file."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text("", encoding="utf-8")
    monkeypatch.setenv("EVALSHELL_CONFIG", str(cfg))
    monkeypatch.delenv("EVALSHELL_INCLUDES", raising=False)
    monkeypatch.setattr(sys, "argv", list(argv))

def _feed(monkeypatch, repl, lines):
    it = iter(lines)

    async def fake_ainput(prompt: str) -> str:
        # Real readline returns "" at EOF
        return next(it, "")
    monkeypatch.setattr(repl, "ainput", fake_ainput)

@pytest.mark.asyncio
async def test_repl_exit_immediately(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path)
    _feed(monkeypatch, repl, ["exit\n"])

    await repl.main()
    out, err = capsys.readouterr()
    assert "evalshell v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out
    assert "Goodbye" in err

@pytest.mark.asyncio
async def test_repl_prints_output_and_values(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path)
    _feed(monkeypatch, repl, [
        'print("hello from evalshell")\n',
        "1 + 2\n",
        "exit\n",
    ])

    await repl.main()
    out, err = capsys.readouterr()
    assert "hello from evalshell\n" in out
    assert "=> 3\n" in out
    assert "TypeMismatchFailure" not in err

@pytest.mark.asyncio
async def test_repl_errors_print_to_stderr(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path)
    _feed(monkeypatch, repl, [
        "1 + 'a'\n",
        "exit\n",
    ])

    await repl.main()
    out, err = capsys.readouterr()
    assert "evalshell v0.1" in out
    assert "TypeMismatchFailure: TypeError:" in err

@pytest.mark.asyncio
async def test_repl_eof_quits(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path)
    _feed(monkeypatch, repl, [])

    await repl.main()
    out, err = capsys.readouterr()
    assert "evalshell v0.1" in out
    assert "Goodbye" in err

@pytest.mark.asyncio
async def test_repl_throw_up_exits_with_failure(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path)
    _feed(monkeypatch, repl, ["1 / 0\n", "throw-up\n"])

    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    err = capsys.readouterr().err
    assert "Throwing ZeroDivisionError" in err

@pytest.mark.asyncio
async def test_repl_runs_script_file(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    script = tmp_path / "job.py"
    script.write_text("print('from file')\n6 * 7\n", encoding="utf-8")
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(script)))

    await repl.main()
    out = capsys.readouterr().out
    assert "from file\n" in out
    assert "=> 42" in out

@pytest.mark.asyncio
async def test_repl_failing_script_exits_1(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    script = tmp_path / "job.py"
    script.write_text("print('partial')\nraise ValueError('nope')\n", encoding="utf-8")
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(script)))

    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    out, err = capsys.readouterr()
    assert "partial" not in out
    assert "ValueError: nope" in err

@pytest.mark.asyncio
async def test_repl_missing_script_exits_1(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(tmp_path / "nope.py")))

    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    assert "file not found" in capsys.readouterr().err

@pytest.mark.asyncio
async def test_repl_script_with_warning_still_succeeds(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    script = tmp_path / "job.py"
    script.write_text("import warnings\nwarnings.warn('just a note')\n6 * 7\n", encoding="utf-8")
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(script)))

    await repl.main()
    out, err = capsys.readouterr()
    assert "=> 42" in out
    assert "UserWarning: just a note" in err

@pytest.mark.asyncio
async def test_repl_script_exiting_with_zero_succeeds(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    script = tmp_path / "job.py"
    script.write_text("x = 1\nraise SystemExit(0)\n", encoding="utf-8")
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(script)))

    await repl.main()
    assert capsys.readouterr().err == ""

@pytest.mark.asyncio
async def test_repl_script_exiting_with_nonzero_fails(monkeypatch, capsys, tmp_path):
    repl = _load_repl_module()
    script = tmp_path / "job.py"
    script.write_text("raise SystemExit(3)\n", encoding="utf-8")
    _isolate(monkeypatch, tmp_path, argv=("evalshell.py", str(script)))

    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    assert "Exit: 3" in capsys.readouterr().err
