import pytest

from rover_backend.compiler import (
    MAX_NESTING, Assign, BinaryOp, Call, Do, ForLoop, IfChain, LibCall, Literal,
    MappingLiteral, MethodCall, Name, Quit, UnaryOp, Write, compile_source, describe, generate,
)
from rover_backend.errors import GenerationError, StructuralError
from rover_backend.lexer import tokenize


def body(source):
    return compile_source(source).program.body


def test_for_loop_of_moves():
    assert body('For i=1:1:5 { Do Move() }') == [
        ForLoop('i', Literal(1), Literal(1), Literal(5), [Do(Call('Move', []))]),
    ]


def test_for_loop_default_step():
    loop = body('For i=1:3 { Quit }')[0]
    assert loop.step == Literal(1)
    assert loop.end == Literal(3)


def test_set_from_context_get():
    assert body('Set rover = context.%Get("rover")') == [
        Assign('rover', MethodCall(Name('context'), '_Get', [Literal('rover')])),
    ]


def test_equals_in_condition_is_equality():
    assert body('If x=1 { Do Move() }') == [
        IfChain([(BinaryOp('==', Name('x'), Literal(1)), [Do(Call('Move', []))])]),
    ]


def test_single_turn_call():
    assert body('Do Turn("right")') == [Do(Call('Turn', [Literal('right')]))]


def test_calls_keep_source_order():
    stmts = body('Do Move()\nDo Turn("left"), Move()\nDo Scan()')
    assert [s.call.name for s in stmts] == ['Move', 'Turn', 'Move', 'Scan']


def test_elseif_chain():
    chain = body('If x=1 { Quit }\nElseIf x=2 { Do Move() }\nElse { Do Turn("left") }')[0]
    assert isinstance(chain, IfChain)
    assert len(chain.branches) == 2
    assert chain.branches[1][0] == BinaryOp('==', Name('x'), Literal(2))
    assert chain.else_body == [Do(Call('Turn', [Literal('left')]))]


def test_concatenation_and_write():
    assert body('Write "Fuel: " _ fuel') == [
        Write([BinaryOp('+', Literal('Fuel: '), Name('fuel'))]),
    ]


def test_abbreviated_command_used_as_variable():
    stmts = body('f i=1:1:3 { w i }')
    assert stmts[0].var == 'i'
    assert stmts[0].body == [Write([Name('i')])]


def test_set_comma_list_and_bare_assignment():
    assert body('Set a = 1, b = 2\nc = a') == [
        Assign('a', Literal(1)), Assign('b', Literal(2)), Assign('c', Name('a')),
    ]


def test_mapping_literal_and_library_call():
    stmt = body('Set m = {"k": $Length("abc"), n: 2.5}')[0]
    assert stmt.value == MappingLiteral([
        ('k', LibCall('Length', [Literal('abc')])),
        ('n', Literal(2.5)),
    ])


def test_quit_and_return():
    assert body('Quit') == [Quit()]
    assert body('Return') == [Quit()]


def test_class_method_wrapper():
    routine = compile_source('ClassMethod Tick(ctx As %DynamicObject) {\n  Do ctx.Move()\n}')
    assert routine.context_name == 'ctx'
    assert routine.program.method_name == 'Tick'
    assert routine.program.body == [Do(MethodCall(Name('ctx'), 'Move', []))]


def test_unknown_command_is_rejected_with_allowed_list():
    with pytest.raises(GenerationError) as exc:
        compile_source('Do Fly()')
    assert exc.value.index == 1
    assert 'allowed calls are Move, Turn, Scan, Write, Set' in str(exc.value)


@pytest.mark.parametrize('source', [
    'Set x = context.Fly()',
    'Set x = $Nope(1)',
    'Do 5',
    'Set x = context.%Get',
    'Set x = 1 2',
])
def test_generation_errors(source):
    with pytest.raises(GenerationError):
        compile_source(source)


def test_structural_errors_surface_before_generation():
    with pytest.raises(StructuralError):
        compile_source('Do Move(')


def test_generate_from_tokens():
    routine = generate(tokenize('Do Move()'))
    assert routine.program.body == [Do(Call('Move', []))]


def test_outline_is_plain_data():
    outline = compile_source('For i=1:1:2 { Do Move() }').outline()
    assert outline['context_name'] == 'context'
    loop = outline['body'][0]
    assert loop['type'] == 'ForLoop'
    assert loop['body'][0]['call'] == {'type': 'Call', 'name': 'Move', 'args': []}


@pytest.mark.parametrize('source', [
    'Set x = ' + '(' * 200 + '1' + ')' * 200,
    'Set x = ' + '-' * 500 + '1',
    'Set x = ' + '!' * (MAX_NESTING + 1) + '1',
    'If 1 { ' * 100 + 'Quit' + ' }' * 100,
    'Set x = context' + '.%Get("a")' * 200,
])
def test_nesting_limit(source):
    with pytest.raises(GenerationError) as exc:
        compile_source(source)
    assert 'nesting deeper than' in str(exc.value)


def test_moderate_nesting_compiles():
    assert body('Set x = ' + '(' * 20 + '1' + ')' * 20) == [Assign('x', Literal(1))]
    assert body('Set x = --1') == [Assign('x', UnaryOp('-', UnaryOp('-', Literal(1))))]


def test_long_chain_outline_is_flat():
    stmt = body('Write ' + ' _ '.join(['"a"'] * 600))[0]
    outline = describe(stmt)
    chain = outline['args'][0]
    assert chain['type'] == 'BinaryChain'
    assert chain['ops'] == ['+'] * 599
    assert len(chain['operands']) == 600
    assert chain['operands'][0] == {'type': 'Literal', 'value': 'a'}
