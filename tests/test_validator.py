import pytest

from rover_backend.errors import StructuralError
from rover_backend.lexer import tokenize
from rover_backend.validator import is_class_method, validate


def check(source):
    return validate(tokenize(source))


@pytest.mark.parametrize('source', [
    'Do Move()',
    'For i=1:1:5 { Do Move() }',
    'If x=1 { Do Move() }\nElseIf x=2 { Do Turn("left") }\nElse { Quit }',
    'If x=1 { Do Move() } Else { Do Turn("left") }',
    'Set m = {"a": 1, "b": {"c": 2}}',
    'Set m = {\n  "a": 1,\n  "b": 2\n}\nDo Move()',
    'x = 1',
    'While n < 3 { Set n = n + 1 }',
    'ClassMethod Tick(context As %DynamicObject) {\n  Do Move()\n}',
    '',
])
def test_valid_programs(source):
    assert check(source) is True


def test_unclosed_paren_reports_its_index():
    with pytest.raises(StructuralError) as exc:
        check('Do Move(')
    assert exc.value.index == 2
    assert str(exc.value).startswith('Syntax Error at token 2:')


def test_unclosed_paren_at_end_of_line():
    with pytest.raises(StructuralError):
        check('Do Turn("left"\nDo Move()')


def test_unbalanced_braces():
    with pytest.raises(StructuralError) as exc:
        check('If x=1 { Do Move()')
    assert 'Unbalanced braces' in exc.value.reason


def test_unmatched_close_brace():
    with pytest.raises(StructuralError):
        check('Do Move()\n}')


def test_unexpected_close_paren():
    with pytest.raises(StructuralError):
        check('Do Move())')


def test_unknown_leading_identifier():
    with pytest.raises(StructuralError) as exc:
        check('Fly()')
    assert exc.value.index == 0
    assert 'Unknown command' in exc.value.reason


def test_dangling_operator():
    with pytest.raises(StructuralError) as exc:
        check('+ 1')
    assert 'dangling operator' in exc.value.reason


def test_else_without_if():
    with pytest.raises(StructuralError):
        check('Else { Do Move() }')


def test_block_after_non_block_command():
    with pytest.raises(StructuralError):
        check('Do Move() { Quit }')


@pytest.mark.parametrize('source', [
    'For i=1:0:5 { Do Move() }',
    'For i=5:-1:1 { Do Move() }',
])
def test_non_positive_literal_for_step(source):
    with pytest.raises(StructuralError) as exc:
        check(source)
    assert 'step' in exc.value.reason


def test_class_method_without_body():
    with pytest.raises(StructuralError):
        check('ClassMethod Tick(context)')


def test_is_class_method():
    assert is_class_method(tokenize('ClassMethod Tick() { }'))
    assert not is_class_method(tokenize('Do Move()'))
