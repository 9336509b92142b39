"""Generation of simulated upkeeps and the blocks at which they become eligible."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import IntEnum
from typing import Any

from keepersim.config import RunBook


@dataclass
class SimulatedUpkeep:
    """An upkeep, the blocks it is eligible at and its performs by block number."""

    id: int
    eligible_at: list[int] = field(default_factory=list)
    performs: dict[str, Any] = field(default_factory=dict)


class TokenType(IntEnum):
    SPACE = 1
    LETTER = 2
    NUMBER = 3
    OPERATION = 4
    LPAREN = 5
    RPAREN = 6


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str


_OPERATORS = "+-*/^%"
_VALUE_TYPES = (TokenType.NUMBER, TokenType.LETTER, TokenType.RPAREN)
_OPERAND_STARTS = (TokenType.NUMBER, TokenType.LETTER, TokenType.LPAREN)


def _append(tokens: list[Token], token: Token) -> None:
    # a value directly followed by another value is an implied multiplication
    if tokens and tokens[-1].type in _VALUE_TYPES and token.type in _OPERAND_STARTS:
        tokens.append(Token(TokenType.OPERATION, "*"))
    tokens.append(token)


def _expects_operand(tokens: list[Token]) -> bool:
    return not tokens or tokens[-1].type in (TokenType.OPERATION, TokenType.LPAREN)


def _is_number_char(ch: str) -> bool:
    return ch.isdigit() or ch == "."


def tokenize(expression: str) -> list[Token]:
    """Split an arithmetic expression such as "4x + 5" into tokens.

    Spaces are dropped and implied multiplications ("4x") get an explicit
    "*" token. Raises ValueError on characters that have no meaning.
    """
    tokens: list[Token] = []
    pos = 0
    length = len(expression)
    while pos < length:
        ch = expression[pos]
        if ch.isspace():
            pos += 1
            continue

        negative_literal = (
            ch == "-"
            and _expects_operand(tokens)
            and pos + 1 < length
            and _is_number_char(expression[pos + 1])
        )
        if _is_number_char(ch) or negative_literal:
            end = pos + 1
            while end < length and _is_number_char(expression[end]):
                end += 1
            text = expression[pos:end]
            try:
                Decimal(text)
            except InvalidOperation:
                raise ValueError(f"invalid number {text!r} in {expression!r}") from None
            _append(tokens, Token(TokenType.NUMBER, text))
            pos = end
            continue

        if ch.isalpha():
            end = pos + 1
            while end < length and expression[end].isalpha():
                end += 1
            _append(tokens, Token(TokenType.LETTER, expression[pos:end]))
            pos = end
            continue

        if ch in _OPERATORS:
            tokens.append(Token(TokenType.OPERATION, ch))
        elif ch == "(":
            _append(tokens, Token(TokenType.LPAREN, ch))
        elif ch == ")":
            tokens.append(Token(TokenType.RPAREN, ch))
        else:
            raise ValueError(f"unexpected character {ch!r} in {expression!r}")
        pos += 1
    return tokens


class _ConstantParser:
    """Evaluates a variable-free token list with the usual precedence rules."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> float:
        value = self._expression()
        if self._pos != len(self._tokens):
            raise ValueError(f"unexpected token {self._tokens[self._pos].value!r}")
        return value

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _take_op(self, ops: str) -> str | None:
        token = self._peek()
        if token is not None and token.type is TokenType.OPERATION and token.value in ops:
            self._pos += 1
            return token.value
        return None

    def _expression(self) -> float:
        value = self._term()
        while (op := self._take_op("+-")) is not None:
            rhs = self._term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def _term(self) -> float:
        value = self._power()
        while (op := self._take_op("*/%")) is not None:
            rhs = self._power()
            if op == "*":
                value *= rhs
                continue
            if rhs == 0:
                raise ValueError("division by zero")
            value = value / rhs if op == "/" else math.fmod(value, rhs)
        return value

    def _power(self) -> float:
        base = self._unary()
        if self._take_op("^") is None:
            return base
        exponent = self._power()
        try:
            result = base**exponent
        except (OverflowError, ZeroDivisionError) as exc:
            raise ValueError(f"cannot raise {base} to {exponent}") from exc
        if isinstance(result, complex):
            raise ValueError(f"cannot raise {base} to {exponent}")
        return result

    def _unary(self) -> float:
        if self._take_op("-") is not None:
            return -self._unary()
        if self._take_op("+") is not None:
            return self._unary()
        return self._primary()

    def _primary(self) -> float:
        token = self._peek()
        if token is None:
            raise ValueError("unexpected end of expression")
        self._pos += 1
        if token.type is TokenType.NUMBER:
            return float(token.value)
        if token.type is TokenType.LPAREN:
            value = self._expression()
            closing = self._peek()
            if closing is None or closing.type is not TokenType.RPAREN:
                raise ValueError("missing closing parenthesis")
            self._pos += 1
            return value
        raise ValueError(f"unexpected token {token.value!r}")


def evaluate_constant(tokens: list[Token]) -> float | None:
    """Return the value of an expression without variables, else None."""
    if not tokens or any(token.type is TokenType.LETTER for token in tokens):
        return None
    return _ConstantParser(tokens).parse()


def operate(a: Decimal, b: Decimal, op: str) -> Decimal:
    """Apply "+", "*" or "-" to a and b; any other operator gives zero."""
    if op == "+":
        return a + b
    if op == "*":
        return a * b
    if op == "-":
        return a - b
    return Decimal(0)


def calc_from_tokens(tokens: list[Token], x: int) -> Decimal:
    """Evaluate tokens strictly left to right with x bound to the variable "x"."""
    value = Decimal(0)
    action = "+"
    for token in tokens:
        if token.type in (TokenType.LETTER, TokenType.NUMBER):
            if token.value == "x":
                operand = Decimal(x)
            elif token.type is TokenType.NUMBER:
                operand = Decimal(token.value)
            else:
                operand = Decimal(0)
            value = operate(value, operand, action)
        elif token.type is TokenType.OPERATION:
            action = token.value
    return value


def generate_eligibles(upkeep: SimulatedUpkeep, genesis: int, limit: int, func: str) -> None:
    """Append to upkeep.eligible_at every positive genesis + func(i) below limit."""
    tokens = tokenize(func)
    if evaluate_constant(tokens) is not None:
        raise ValueError("simple value unsupported")
    if not tokens:
        raise ValueError("eligibility function is empty")

    step = 0
    next_value = 0
    while next_value < limit:
        if next_value > 0:
            upkeep.eligible_at.append(next_value)
        value = calc_from_tokens(tokens, step)
        next_value = genesis + int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        step += 1


def generate_simulated_upkeeps(runbook: RunBook) -> list[SimulatedUpkeep]:
    """Create every upkeep described by the run book with its eligible blocks."""
    blocks = runbook.block_cadence
    if blocks.genesis is None:
        raise ValueError("run book has no genesis block")
    limit = blocks.genesis + blocks.duration

    generated: list[SimulatedUpkeep] = []
    for batch in runbook.upkeeps:
        if batch.start_id is None:
            raise ValueError("upkeep batch has no start id")
        tokens = tokenize(batch.offset_func)
        constant = evaluate_constant(tokens)

        for y in range(1, batch.count + 1):
            upkeep = SimulatedUpkeep(id=batch.start_id + y)
            if constant is not None:
                genesis = int(constant)
            else:
                genesis = blocks.genesis + int(calc_from_tokens(tokens, y))
            generate_eligibles(upkeep, genesis, limit, batch.generate_func)
            generated.append(upkeep)

    return generated