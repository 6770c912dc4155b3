import io
import sys
from decimal import Decimal

import pytest

from plc import ast, run_program
from plc.analyzer import Analyzer
from plc.environment import Scope
from plc.errors import PlcRuntimeError
from plc.interpreter import Interpreter, run
from plc.lexer import tokenize
from plc.parser import parse
from plc.types import INTEGER_ITERABLE, NIL_VALUE, PlcObject


def main_returning(expression):
    return f"DEF main(): Integer DO RETURN {expression}; END"


def test_field_returned_from_main():
    tree = parse(tokenize('LET x: Integer = 1; DEF main(): Integer DO RETURN x; END'))
    Analyzer().analyze(tree)
    assert run(tree) == PlcObject(1)


def test_division_by_zero_decimal():
    with pytest.raises(PlcRuntimeError):
        run_program(main_returning('1 / 0.0'), check=False)
    with pytest.raises(PlcRuntimeError, match='division by zero'):
        run_program(main_returning('1.0 / 0.0'), check=False)
    with pytest.raises(PlcRuntimeError, match='division by zero'):
        run_program(main_returning('1 / 0'), check=False)


@pytest.mark.parametrize('expression, expected', [
    ('10 - 4', 6),
    ('3 * 4', 12),
    ('7 / 2', 3),
    ('-7 / 2', -3),
    ('1 + 2 * 3', 7),
    ('(1 + 2) * 3', 9),
    ('2147483647 * 2147483647', 4611686014132420609),
    ('1.0 / 3.0', Decimal('0.3')),
    ('2.5 / 2.0', Decimal('1.2')),
    ('3.5 / 2.0', Decimal('1.8')),
    ('1.5 * 2.0', Decimal('3.00')),
    ('0.1 + 0.2', Decimal('0.3')),
    ('"a" + 1', 'a1'),
    ('1 + "a"', '1a'),
    ('"x" + TRUE', 'xTRUE'),
    ('"n" + NIL', 'nNIL'),
    ('1 < 2', True),
    ('2.5 >= 2.5', True),
    ('"abc" < "abd"', True),
    ("'a' == 'a'", True),
    ('"a" != "b"', True),
    ('1 == 2', False),
    ('1 == TRUE', False),
    ('1 == 1.0', False),
    ("'a' == \"a\"", False),
    ("'a' != \"a\"", True),
])
def test_expressions(expression, expected):
    result = run_program(main_returning(expression), check=False)
    assert result == expected
    assert type(result) is type(expected)


def test_decimal_division_keeps_dividend_scale():
    assert str(run_program(main_returning('10.00 / 4.0'), check=False)) == '2.50'


def test_decimal_arithmetic_is_exact(capsys):
    run_program('''
        DEF main(): Integer DO
            print(1234567890123456789012345.6789 + 0.0001);
            print(0.0000000000000000000000000000001 - 1.0);
            RETURN 0;
        END
    ''')
    assert capsys.readouterr().out.splitlines() == [
        '1234567890123456789012345.6790',
        '-0.' + '9' * 31,
    ]
    nines = '9' * 29
    assert str(run_program(main_returning(f'{nines}.9 * 2.0'), check=False)) == f'1{nines}.80'


@pytest.mark.parametrize('expression', [
    '1 + 1.0',
    '1.0 - 1',
    'TRUE * 2',
    '1 < 1.0',
    "'a' < \"a\"",
    'TRUE < FALSE',
    '1 AND TRUE',
    "'a' + 'b'",
    "'a' + 1",
])
def test_wrong_kind_of_value(expression):
    with pytest.raises(PlcRuntimeError):
        run_program(main_returning(expression), check=False)


def test_and_or_short_circuit():
    # boom is never defined, so evaluating it would fail
    assert run_program(main_returning('FALSE AND boom()'), check=False) is False
    assert run_program(main_returning('TRUE OR boom()'), check=False) is True
    assert run_program(main_returning('TRUE AND FALSE'), check=False) is False
    with pytest.raises(PlcRuntimeError, match='boom/0 is not defined'):
        run_program(main_returning('TRUE AND boom()'), check=False)


def test_print_writes_to_stdout(capsys):
    run_program('''
        DEF main(): Integer DO
            print("hello");
            print(1.50);
            print(TRUE);
            print(NIL);
            print('c');
            RETURN 0;
        END
    ''')
    assert capsys.readouterr().out.splitlines() == ['hello', '1.50', 'TRUE', 'NIL', 'c']


def test_while_loop(capsys):
    result = run_program('''
        DEF main(): Integer DO
            LET i = 0;
            WHILE i < 3 DO
                print(i);
                i = i + 1;
            END
            RETURN i;
        END
    ''')
    assert result == 3
    assert capsys.readouterr().out.splitlines() == ['0', '1', '2']


def test_if_else(capsys):
    run_program('''
        DEF sign(n: Integer): String DO
            IF n < 0 DO RETURN "negative"; ELSE IF n == 0 DO RETURN "zero"; END END
            RETURN "positive";
        END
        DEF main(): Integer DO
            print(sign(-4));
            print(sign(0));
            print(sign(9));
            RETURN 0;
        END
    ''')
    assert capsys.readouterr().out.splitlines() == ['negative', 'zero', 'positive']


def test_return_unwinds_nested_blocks_only_to_the_call():
    result = run_program('''
        DEF find(target: Integer): Integer DO
            LET i = 0;
            WHILE TRUE DO
                IF i == target DO
                    RETURN i * 10;
                END
                i = i + 1;
            END
            RETURN -1;
        END
        DEF main(): Integer DO
            LET a = find(3);
            LET b = find(5);
            RETURN a + b;
        END
    ''')
    assert result == 80


def test_method_without_return_yields_nil(capsys):
    result = run_program('''
        DEF f() DO print(1); END
        DEF main(): Integer DO
            LET r = f();
            print(r);
            RETURN 0;
        END
    ''')
    assert result == 0
    assert capsys.readouterr().out.splitlines() == ['1', 'NIL']


def test_recursion():
    assert run_program('''
        DEF fact(n: Integer): Integer DO
            IF n <= 1 DO RETURN 1; END
            RETURN n * fact(n - 1);
        END
        DEF main(): Integer DO RETURN fact(10); END
    ''') == 3628800


COUNT = '''
    DEF count(n: Integer): Integer DO
        IF n == 0 DO RETURN 0; END
        RETURN 1 + count(n - 1);
    END
    DEF main(): Integer DO RETURN count(%d); END
'''


def test_deep_recursion():
    assert run_program(COUNT % 300) == 300


def test_unbounded_recursion_is_a_runtime_error():
    limit = sys.getrecursionlimit()
    with pytest.raises(PlcRuntimeError, match='maximum call depth exceeded'):
        run_program(COUNT % 100000)
    assert sys.getrecursionlimit() == limit


def test_assignment_mutates_shared_field_cell():
    assert run_program('''
        LET counter: Integer = 0;
        DEF bump() DO counter = counter + 1; END
        DEF main(): Integer DO
            bump();
            bump();
            IF TRUE DO bump(); END
            RETURN counter;
        END
    ''') == 3


def test_methods_close_over_defining_scope():
    assert run_program('''
        LET x: Integer = 1;
        DEF getX(): Integer DO RETURN x; END
        DEF main(): Integer DO
            LET x = 2;
            RETURN getX() * 10 + x;
        END
    ''') == 12


def test_field_without_initializer_is_nil(capsys):
    run_program('''
        LET name: String;
        DEF main(): Integer DO print(name); name = "set"; print(name); RETURN 0; END
    ''')
    assert capsys.readouterr().out.splitlines() == ['NIL', 'set']


def test_block_scopes_are_discarded():
    with pytest.raises(PlcRuntimeError, match='variable t is not defined'):
        run_program('''
            DEF main(): Integer DO
                LET i = 0;
                WHILE i < 1 DO LET t = 1; i = i + 1; END
                RETURN t;
            END
        ''', check=False)


def test_while_iterations_get_fresh_scopes():
    assert run_program('''
        DEF main(): Integer DO
            LET i = 0;
            WHILE i < 3 DO LET t = i; i = i + 1; END
            RETURN i;
        END
    ''') == 3


def test_for_loop_over_host_iterable(capsys):
    scope = Scope()
    scope.define_variable('list', INTEGER_ITERABLE, PlcObject([PlcObject(1), PlcObject(2), PlcObject(3)]))
    tree = parse(tokenize('''
        DEF main(): Integer DO
            LET sum = 0;
            FOR i IN list DO
                print(i);
                sum = sum + i;
            END
            RETURN sum;
        END
    '''))
    Analyzer(scope).analyze(tree)
    runtime = Scope()
    runtime.define_variable('list', None, PlcObject([1, 2, 3]))
    assert Interpreter(runtime).run(tree) == PlcObject(6)
    assert capsys.readouterr().out.splitlines() == ['1', '2', '3']


def test_return_inside_for_body(capsys):
    tree = parse(tokenize('''
        DEF main(): Integer DO
            FOR i IN list DO
                print(i);
                IF i == 2 DO RETURN i * 10; END
            END
            RETURN 0;
        END
    '''))
    runtime = Scope()
    runtime.define_variable('list', None, PlcObject([1, 2, 3]))
    assert Interpreter(runtime).run(tree) == PlcObject(20)
    assert capsys.readouterr().out.splitlines() == ['1', '2']


def test_for_loop_requires_iterable():
    with pytest.raises(PlcRuntimeError, match='iterable'):
        run_program('DEF main(): Integer DO FOR i IN 5 DO print(i); END RETURN 0; END', check=False)


def test_record_fields_and_methods():
    fields = Scope()
    obj = PlcObject('object', fields)
    fields.define_variable('field', None, PlcObject(0))
    fields.define_function('double', 2, [], None, lambda args: PlcObject(args[1].value * 2))
    scope = Scope()
    scope.define_variable('obj', None, obj)
    tree = parse(tokenize('''
        DEF main(): Integer DO
            obj.field = obj.double(21);
            RETURN obj.field;
        END
    '''))
    assert Interpreter(scope).run(tree) == PlcObject(42)
    assert obj.get_field('field').value == PlcObject(42)


def test_undefined_names_at_runtime():
    with pytest.raises(PlcRuntimeError, match='variable y is not defined'):
        run_program(main_returning('y'), check=False)
    with pytest.raises(PlcRuntimeError, match='function f/1 is not defined'):
        run_program(main_returning('f(1)'), check=False)


def test_missing_main_at_runtime():
    with pytest.raises(PlcRuntimeError, match='main/0 is not defined'):
        run_program('DEF other(): Integer DO RETURN 1; END', check=False)


def test_non_boolean_condition_at_runtime():
    with pytest.raises(PlcRuntimeError, match='expected Boolean condition'):
        run_program('DEF main(): Integer DO IF 1 DO RETURN 1; END RETURN 0; END', check=False)


def test_assignment_to_non_access():
    interpreter = Interpreter()
    statement = ast.Assignment(ast.Literal(1), ast.Literal(2))
    with pytest.raises(PlcRuntimeError, match='assignment target'):
        interpreter.execute(statement, interpreter.scope)


def test_return_signal_stays_inside_the_call():
    interpreter = Interpreter()
    tree = parse(tokenize('DEF inner(): Integer DO RETURN 5; END DEF main(): Integer DO inner(); RETURN 7; END'))
    assert interpreter.run(tree) == PlcObject(7)


def test_debug_output():
    out = io.StringIO()
    tree = parse(tokenize('LET x: Integer = 4; DEF main(): Integer DO RETURN x; END'))
    run(tree, debug_level=3, debug_out=out)
    lines = out.getvalue().splitlines()
    assert lines[0] == '[interpreter] execution started'
    assert '[interpreter] field x = 4' in lines
    assert '[interpreter] call main()' in lines
    assert lines[-1] == '[interpreter] main returned 4'


def test_nil_singleton_is_returned_for_nil_literal():
    assert run(parse(tokenize(main_returning('NIL')))) is NIL_VALUE
