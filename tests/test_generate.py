from decimal import Decimal

import pytest

from keepersim.config import Blocks, RunBook, Upkeep
from keepersim.generate import (
    SimulatedUpkeep,
    TokenType,
    calc_from_tokens,
    evaluate_constant,
    generate_eligibles,
    generate_simulated_upkeeps,
    operate,
    tokenize,
)


def test_generate_simulated_upkeeps():
    rb = RunBook(
        block_cadence=Blocks(genesis=128_943_862, duration=10),
        upkeeps=[Upkeep(count=15, start_id=200, generate_func="24x - 3", offset_func="3x - 4")],
    )
    generated = generate_simulated_upkeeps(rb)
    assert len(generated) == 15
    assert [u.id for u in generated] == list(range(201, 216))


def test_generate_eligibles():
    up = SimulatedUpkeep(id=1)
    generate_eligibles(up, 9, 50, "4x + 5")
    assert up.eligible_at == [14, 18, 22, 26, 30, 34, 38, 42, 46]


@pytest.mark.parametrize(
    "a, b, op, expected",
    [(1, 4, "+", 5), (3, 4, "*", 12), (4, 2, "-", 2)],
)
def test_operate(a, b, op, expected):
    assert operate(Decimal(a), Decimal(b), op) == Decimal(expected)


def test_operate_unknown_operator_is_zero():
    assert operate(Decimal(6), Decimal(3), "/") == Decimal(0)


def test_tokenize_inserts_implied_multiplication():
    tokens = tokenize("4x + 5")
    assert [t.value for t in tokens] == ["4", "*", "x", "+", "5"]
    assert [t.type for t in tokens] == [
        TokenType.NUMBER,
        TokenType.OPERATION,
        TokenType.LETTER,
        TokenType.OPERATION,
        TokenType.NUMBER,
    ]


def test_tokenize_leading_negative_number():
    tokens = tokenize("-3 + x")
    assert tokens[0].type is TokenType.NUMBER
    assert tokens[0].value == "-3"


def test_tokenize_rejects_unknown_character():
    with pytest.raises(ValueError):
        tokenize("3 $ 4")


def test_evaluate_constant_uses_precedence():
    assert evaluate_constant(tokenize("2 + 3 * 4")) == 14.0
    assert evaluate_constant(tokenize("(2 + 3) * 4")) == 20.0


def test_evaluate_constant_with_variable_is_none():
    assert evaluate_constant(tokenize("3x - 4")) is None


def test_calc_from_tokens_is_left_to_right():
    assert calc_from_tokens(tokenize("2 + 3 * x"), 4) == Decimal(20)


def test_constant_generate_function_rejected():
    with pytest.raises(ValueError, match="simple value unsupported"):
        generate_eligibles(SimulatedUpkeep(id=1), 0, 10, "5")


def test_constant_offset_sets_absolute_genesis():
    rb = RunBook(
        block_cadence=Blocks(genesis=90, duration=20),
        upkeeps=[Upkeep(count=1, start_id=0, generate_func="5x + 1", offset_func="100")],
    )
    (upkeep,) = generate_simulated_upkeeps(rb)
    assert upkeep.eligible_at == [101, 106]


def test_missing_genesis_raises():
    rb = RunBook(upkeeps=[Upkeep(count=1, start_id=0, generate_func="x", offset_func="x")])
    with pytest.raises(ValueError):
        generate_simulated_upkeeps(rb)