import re
from dataclasses import dataclass
from typing import List, Optional

from .conditions import CardCondition, ConditionNode, Location, LogicCondition, LogicType, Operator

NAME_CHAR_RE = re.compile(r"[A-Za-z0-9\-',.&:!?\"]")
NUMBER_RE = re.compile(r"(\d+)([+-]?)(?=\s)")
OPERATOR_RE = re.compile(r"(AND|OR)(?=\s|\(|\)|$)")
LOCATION_RE = re.compile(r"IN\s+((?i:hand|deck))\b")


class ParseError(ValueError):
    pass


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    pos: int


def _starts_stop_word(text: str, i: int) -> bool:
    return bool(OPERATOR_RE.match(text, i) or LOCATION_RE.match(text, i))


def _read_name(text: str, i: int) -> int:
    """
    Returns the index just past the card name starting at i.
    A name runs over name characters and spaces and stops before a parenthesis,
    an illegal character, or a space-separated AND / OR / IN <location>.
    """
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            if _starts_stop_word(text, i + 1):
                break
            i += 1
            continue
        if not NAME_CHAR_RE.match(ch):
            break
        i += 1
    return i


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]

        if ch in "()":
            tokens.append(Token("paren", ch, i))
            i += 1
            continue

        if ch.isspace():
            i += 1
            continue

        m = OPERATOR_RE.match(text, i)
        if m:
            tokens.append(Token("operator", m.group(1), i))
            i = m.end()
            continue

        last = tokens[-1] if tokens else None
        if last is None or last.type != "number":
            m = NUMBER_RE.match(text, i)
            if m:
                tokens.append(Token("number", m.group(0), i))
                i = m.end()
                continue

            m = LOCATION_RE.match(text, i)
            if m:
                tokens.append(Token("location", m.group(1).upper(), i))
                i = m.end()
                continue

        if NAME_CHAR_RE.match(ch):
            end = _read_name(text, i)
            value = re.sub(r"\s+", " ", text[i:end]).strip()
            tokens.append(Token("name", value, i))
            i = end
            continue

        raise ParseError(f"Illegal character {ch!r} at position {i}")

    return tokens


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.current = 0

    def peek(self) -> Optional[Token]:
        if self.current < len(self.tokens):
            return self.tokens[self.current]
        return None

    def advance(self) -> Token:
        token = self.tokens[self.current]
        self.current += 1
        return token

    def parse(self) -> ConditionNode:
        if not self.tokens:
            raise ParseError("Empty condition")
        node = self.expression()
        token = self.peek()
        if token is not None:
            if token.type == "paren" and token.value == ")":
                raise ParseError(f"Unexpected closing parenthesis at position {token.pos}")
            raise ParseError(f"Unexpected token {token.value!r} at position {token.pos}")
        return node

    def expression(self) -> ConditionNode:
        left = self.term()
        while True:
            token = self.peek()
            if token is None or token.type != "operator":
                return left
            self.advance()
            right = self.term()
            left = LogicCondition(type=LogicType(token.value), left=left, right=right)

    def location(self) -> Location:
        token = self.peek()
        if token is None or token.type != "location":
            return Location.HAND
        self.advance()
        return Location(token.value)

    def term(self) -> ConditionNode:
        token = self.peek()
        if token is None:
            raise ParseError("Unexpected end of condition")

        if token.type == "number":
            self.advance()
            name = self.peek()
            if name is None or name.type != "name":
                raise ParseError(f"Expected card name after {token.value!r} at position {token.pos}")
            self.advance()
            sign = token.value[-1]
            if sign == "+":
                operator = Operator.AT_LEAST
            elif sign == "-":
                operator = Operator.NO_MORE
            else:
                operator = Operator.EXACTLY
            count = int(token.value.rstrip("+-"))
            return CardCondition(name.value, count, operator, self.location())

        if token.type == "name":
            self.advance()
            return CardCondition(token.value, 1, Operator.AT_LEAST, self.location())

        if token.type == "paren" and token.value == "(":
            self.advance()
            closing = self.peek()
            if closing is not None and closing.type == "paren" and closing.value == ")":
                raise ParseError(f"Empty parentheses at position {token.pos}")
            node = self.expression()
            closing = self.peek()
            if closing is None or closing.type != "paren" or closing.value != ")":
                raise ParseError(f"Expected closing parenthesis for position {token.pos}")
            self.advance()
            if isinstance(node, LogicCondition):
                node = LogicCondition(node.type, node.left, node.right, parenthesized=True)
            return node

        if token.type == "paren":
            raise ParseError(f"Unexpected closing parenthesis at position {token.pos}")
        raise ParseError(f"Unexpected {token.type} {token.value!r} at position {token.pos}")


def parse_tokens(tokens: List[Token]) -> ConditionNode:
    return _Parser(tokens).parse()


def parse_condition(text: str) -> ConditionNode:
    return parse_tokens(tokenize(text))
