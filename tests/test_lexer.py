from rover_backend.lexer import (
    BLOCK_END, BLOCK_START, COLON, COMMAND, EOF, FUNCTION, IDENTIFIER, NEWLINE,
    NUMBER, OPERATOR, PAREN_END, PAREN_START, STRING, Lexer, tokenize,
)


def kinds(tokens):
    return [t.kind for t in tokens]


def test_set_statement():
    tokens = tokenize('Set x = 1')
    assert kinds(tokens) == [COMMAND, IDENTIFIER, OPERATOR, NUMBER, EOF]
    assert [t.value for t in tokens[:4]] == ['set', 'x', '=', '1']


def test_empty_source_is_just_eof():
    tokens = tokenize('')
    assert kinds(tokens) == [EOF]


def test_keywords_are_case_insensitive_and_abbreviations_fold():
    tokens = tokenize('SET s DO d w i ei e f q WHILE')
    assert all(t.kind == COMMAND for t in tokens[:-1])
    assert [t.value for t in tokens[:-1]] == [
        'set', 'set', 'do', 'do', 'write', 'if', 'elseif', 'else', 'for', 'quit', 'while']
    # original spelling is kept
    assert tokens[1].text == 's'


def test_string_escape():
    tok = tokenize('"say \\"hi\\""')[0]
    assert tok.kind == STRING
    assert tok.value == 'say "hi"'
    assert tok.text == '"say \\"hi\\""'


def test_comments_are_dropped_newlines_kept():
    tokens = tokenize('Do Move() // go\n# note\nQuit')
    assert kinds(tokens) == [
        COMMAND, IDENTIFIER, PAREN_START, PAREN_END, NEWLINE, NEWLINE, COMMAND, EOF]


def test_underscore_is_concatenation():
    tokens = tokenize('"a" _ "b"')
    assert tokens[1].kind == OPERATOR
    assert tokens[1].value == '+'
    assert tokens[1].text == '_'


def test_percent_and_dollar_names():
    tokens = tokenize('context.%Get("rover") $Piece')
    assert tokens[0].kind == IDENTIFIER
    assert tokens[1].value == '.'
    assert tokens[2].kind == IDENTIFIER and tokens[2].value == '%Get'
    assert tokens[-2].kind == FUNCTION and tokens[-2].value == 'Piece'


def test_percent_command_word_is_not_a_command():
    tok = tokenize('%Set')[0]
    assert tok.kind == IDENTIFIER


def test_two_character_operators():
    tokens = tokenize('a <= b != c == d >= e')
    assert [t.value for t in tokens if t.kind == OPERATOR] == ['<=', '!=', '==', '>=']


def test_punctuation():
    tokens = tokenize('For i=1:2:9 { }')
    assert COLON in kinds(tokens)
    assert kinds(tokens)[-3:] == [BLOCK_START, BLOCK_END, EOF]


def test_positions_and_indices():
    tokens = tokenize('Set x\nQuit')
    quit_tok = tokens[3]
    assert quit_tok.value == 'quit'
    assert (quit_tok.line, quit_tok.col) == (2, 1)
    assert [t.index for t in tokens] == list(range(len(tokens)))


def test_unknown_characters_are_recorded_and_skipped():
    lexer = Lexer('Do Move() @')
    tokens = lexer.tokenize()
    assert kinds(tokens) == [COMMAND, IDENTIFIER, PAREN_START, PAREN_END, EOF]
    assert len(lexer.anomalies) == 1
    assert lexer.anomalies[0].char == '@'
    assert lexer.anomalies[0].col == 11


def test_decimal_number():
    tok = tokenize('1.5')[0]
    assert tok.kind == NUMBER and tok.value == '1.5'
