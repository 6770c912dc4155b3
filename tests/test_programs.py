from pathlib import Path

import pytest

from plc import run_program
from plc.__main__ import main

PROGRAMS = Path(__file__).parent / 'programs'


def read_program(name):
    return (PROGRAMS / name).read_text(encoding='utf-8')


def test_program_fibonacci(capsys):
    """Recursive fibonacci printed through string concatenation."""
    result = run_program(read_program('fibonacci.plc'))
    out_lines = capsys.readouterr().out.strip().split('\n')
    assert out_lines[0] == 'fib(0) = 0'
    assert out_lines[-1] == 'fib(9) = 34'
    assert len(out_lines) == 10
    assert result == 55


def test_program_gcd(capsys):
    """Subtraction-based gcd mutating its own parameters."""
    result = run_program(read_program('gcd.plc'))
    assert capsys.readouterr().out.split() == ['6', '1']
    assert result == 21


def test_program_interest(capsys):
    """Decimal arithmetic on module-level fields stays exact."""
    result = run_program(read_program('interest.plc'))
    assert capsys.readouterr().out.strip() == '1157.62500000'
    assert result == 0


def test_cli_runs_program_and_prints_result(capsys):
    main([str(PROGRAMS / 'gcd.plc')])
    assert capsys.readouterr().out.split() == ['6', '1', '21']


def test_cli_writes_debug_file(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    main(['-vvv', str(PROGRAMS / 'gcd.plc')])
    debug = (tmp_path / 'debug.txt').read_text(encoding='utf-8')
    assert '[analyzer] analysis started' in debug
    assert '[interpreter] call gcd(48, 18)' in debug
    assert capsys.readouterr().out.split()[-1] == '21'


def test_cli_prints_tokens(capsys):
    main(['--tokens', str(PROGRAMS / 'gcd.plc')])
    first = capsys.readouterr().out.splitlines()[0]
    assert first == '0\tIDENTIFIER\tDEF'


@pytest.mark.parametrize('name, code, prefix', [
    ('syntax_error.plc', 2, 'Syntax error'),
    ('type_error.plc', 3, 'Analysis error'),
    ('divide_by_zero.plc', 4, 'Runtime error'),
    ('missing.plc', 1, 'Error: file'),
])
def test_cli_exit_codes(name, code, prefix, capsys):
    with pytest.raises(SystemExit) as exc:
        main([str(PROGRAMS / name)])
    assert exc.value.code == code
    assert capsys.readouterr().err.startswith(prefix)


def test_cli_no_analyze_skips_static_checks(capsys):
    main(['--no-analyze', str(PROGRAMS / 'type_error.plc')])
    assert capsys.readouterr().out.strip() == '0'
