"""Parser for studio schema definition files.

Schema files are written as JavaScript/TypeScript modules whose interesting
part is a tree of object literals wrapped in helper calls such as
``defineType({...})``. This module tokenizes the source and parses values
with a small recursive descent parser:

- object and array literals become ``dict`` and ``list``
- strings, numbers, ``true``/``false``/``null`` become Python scalars
- bare identifiers become :class:`Identifier`
- calls become :class:`Expression` with their callee and parsed arguments
- functions, arrow functions and any other expression are captured as
  :class:`Expression` holding the original source text

Anything outside the object-literal subset is skipped by bracket matching,
so imports, type annotations and function bodies never need to be
understood.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
import logging

from ..errors import DefinitionParseError

logger = logging.getLogger(__name__)


STRING = "string"
TEMPLATE = "template"
NUMBER = "number"
REGEX = "regex"
IDENT = "ident"
PUNCT = "punct"
EOF = "eof"

# Longest first
OPERATORS = [
    "===", "!==", "...", "**=", "<<=", ">>=", "&&=", "||=", "??=",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
]
SINGLE_PUNCT = set("{}[]()<>,;:.?!=+-*/%&|^~@#")

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")", "]", "}"}
TERMINATORS = {",", ";", ")", "]", "}"}

# Tokens after which a slash starts a regular expression
REGEX_PRECEDERS = {"(", ",", "=", ":", "[", "!", "&", "|", "?", "{", "}", ";",
                   "&&", "||", "??", "=>", "==", "===", "!=", "!=="}


@dataclass(frozen=True)
class Token:
    """A lexical token with its source offsets."""
    kind: str
    value: Any
    start: int
    end: int

    def is_punct(self, value: str) -> bool:
        return self.kind == PUNCT and self.value == value


@dataclass(frozen=True)
class Identifier:
    """A bare identifier used as a value, e.g. an imported icon."""
    name: str


@dataclass
class Expression:
    """A value that is not a literal.

    ``callee`` and ``args`` are set for calls such as
    ``defineField({...})``. ``is_function`` marks arrow functions and
    methods, whose bodies are kept only as ``source`` text.
    """
    source: str
    callee: Optional[str] = None
    args: List[Any] = field(default_factory=list)
    is_function: bool = False


def tokenize(source: str) -> List[Token]:
    """Split source text into tokens, dropping whitespace and comments.

    Raises:
        DefinitionParseError: On an unterminated string, template or comment.
    """
    tokens: List[Token] = []
    i = 0
    length = len(source)

    while i < length:
        ch = source[i]

        if ch.isspace():
            i += 1
            continue

        if source.startswith("//", i):
            newline = source.find("\n", i)
            i = length if newline == -1 else newline + 1
            continue

        if source.startswith("/*", i):
            close = source.find("*/", i + 2)
            if close == -1:
                raise DefinitionParseError("Unterminated comment", i)
            i = close + 2
            continue

        if ch in ("'", '"'):
            value, end = _read_string(source, i)
            tokens.append(Token(STRING, value, i, end))
            i = end
            continue

        if ch == "`":
            end = _skip_template(source, i)
            tokens.append(Token(TEMPLATE, source[i + 1:end - 1], i, end))
            i = end
            continue

        if ch.isdigit() or (ch == "." and i + 1 < length and source[i + 1].isdigit()):
            end = i
            while end < length and (source[end].isalnum() or source[end] in "._"):
                end += 1
            tokens.append(Token(NUMBER, _parse_number(source[i:end]), i, end))
            i = end
            continue

        if ch.isalpha() or ch in "_$":
            end = i
            while end < length and (source[end].isalnum() or source[end] in "_$"):
                end += 1
            tokens.append(Token(IDENT, source[i:end], i, end))
            i = end
            continue

        if ch == "/" and _regex_allowed(tokens):
            end = _skip_regex(source, i)
            tokens.append(Token(REGEX, source[i:end], i, end))
            i = end
            continue

        for op in OPERATORS:
            if source.startswith(op, i):
                tokens.append(Token(PUNCT, op, i, i + len(op)))
                i += len(op)
                break
        else:
            if ch not in SINGLE_PUNCT:
                raise DefinitionParseError(f"Unexpected character {ch!r}", i)
            tokens.append(Token(PUNCT, ch, i, i + 1))
            i += 1

    tokens.append(Token(EOF, None, length, length))
    return tokens


def _read_string(source: str, start: int) -> Tuple[str, int]:
    quote = source[start]
    chars = []
    i = start + 1
    escapes = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
    while i < len(source):
        ch = source[i]
        if ch == "\\" and i + 1 < len(source):
            nxt = source[i + 1]
            chars.append(escapes.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(chars), i + 1
        if ch == "\n":
            break
        chars.append(ch)
        i += 1
    raise DefinitionParseError("Unterminated string literal", start)


def _skip_template(source: str, start: int) -> int:
    """Offset just past the closing backtick of a template literal."""
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1
        if source.startswith("${", i):
            i = _skip_substitution(source, i + 2)
            continue
        i += 1
    raise DefinitionParseError("Unterminated template literal", start)


def _skip_substitution(source: str, start: int) -> int:
    depth = 1
    i = start
    while i < len(source):
        ch = source[i]
        if ch in ("'", '"'):
            _, i = _read_string(source, i)
            continue
        if ch == "`":
            i = _skip_template(source, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise DefinitionParseError("Unterminated template substitution", start)


def _regex_allowed(tokens: List[Token]) -> bool:
    if not tokens:
        return True
    last = tokens[-1]
    if last.kind == PUNCT:
        return last.value in REGEX_PRECEDERS
    return last.kind == IDENT and last.value in ("return", "typeof", "case")


def _skip_regex(source: str, start: int) -> int:
    i = start + 1
    in_class = False
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            break
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            i += 1
            while i < len(source) and source[i].isalpha():
                i += 1
            return i
        i += 1
    raise DefinitionParseError("Unterminated regular expression", start)


def _parse_number(text: str) -> Any:
    cleaned = text.replace("_", "")
    try:
        if cleaned.lower().startswith(("0x", "0o", "0b")):
            return int(cleaned, 0)
        if any(c in cleaned for c in ".eE"):
            return float(cleaned)
        return int(cleaned)
    except ValueError:
        return cleaned


class DefinitionParser:
    """Recursive descent parser over a token list."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.pos = 0

    # Token helpers

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != EOF:
            self.pos += 1
        return token

    def at(self, value: str) -> bool:
        return self.peek().is_punct(value)

    def expect(self, value: str) -> Token:
        token = self.peek()
        if not token.is_punct(value):
            raise DefinitionParseError(
                f"Expected {value!r} but found {token.value!r}", token.start
            )
        return self.advance()

    @property
    def last_end(self) -> int:
        return self.tokens[self.pos - 1].end if self.pos > 0 else 0

    def at_terminator(self) -> bool:
        token = self.peek()
        return token.kind == EOF or (token.kind == PUNCT and token.value in TERMINATORS)

    # Skipping

    def skip_balanced(self) -> int:
        """Consume a bracketed group starting at the current opener."""
        opener = self.advance()
        stack = [OPENERS[opener.value]]
        while stack:
            token = self.advance()
            if token.kind == EOF:
                raise DefinitionParseError(f"Unbalanced {opener.value!r}", opener.start)
            if token.kind != PUNCT:
                continue
            if token.value in OPENERS:
                stack.append(OPENERS[token.value])
            elif token.value in CLOSERS:
                if token.value != stack.pop():
                    raise DefinitionParseError(
                        f"Mismatched {token.value!r}", token.start
                    )
        return self.last_end

    def skip_expression(self) -> int:
        """Consume tokens up to the next terminator at depth zero."""
        while not self.at_terminator():
            if self.peek().kind == PUNCT and self.peek().value in OPENERS:
                self.skip_balanced()
            else:
                self.advance()
        return self.last_end

    def _find_matching(self, index: int) -> int:
        """Index of the token closing the opener at ``index``, or -1."""
        depth = 0
        for i in range(index, len(self.tokens)):
            token = self.tokens[i]
            if token.kind != PUNCT:
                continue
            if token.value in OPENERS:
                depth += 1
            elif token.value in CLOSERS:
                depth -= 1
                if depth == 0:
                    return i
        return -1

    def _is_arrow_at(self, index: int) -> bool:
        token = self.tokens[index]
        if token.kind == IDENT:
            return self.tokens[index + 1].is_punct("=>") if index + 1 < len(self.tokens) else False
        if not token.is_punct("("):
            return False
        close = self._find_matching(index)
        if close == -1 or close + 1 >= len(self.tokens):
            return False
        after = self.tokens[close + 1]
        if after.is_punct("=>"):
            return True
        if after.is_punct(":"):
            # Return type annotation
            for i in range(close + 2, len(self.tokens)):
                tok = self.tokens[i]
                if tok.is_punct("=>"):
                    return True
                if tok.kind == EOF or (tok.kind == PUNCT and tok.value in TERMINATORS | {"{"}):
                    return False
        return False

    # Values

    def parse_value(self) -> Any:
        """Parse one value, capturing unsupported expressions as source text."""
        start = self.peek().start
        value = self._parse_primary()

        token = self.peek()
        if token.kind == IDENT and token.value in ("as", "satisfies"):
            self.skip_expression()
            return value
        if self.at_terminator():
            return value

        # Operators, ternaries and the like
        end = self.skip_expression()
        return Expression(source=self.source[start:end].strip())

    def _parse_primary(self) -> Any:
        token = self.peek()

        if token.kind == STRING:
            self.advance()
            return token.value
        if token.kind == TEMPLATE:
            self.advance()
            return token.value
        if token.kind == NUMBER:
            self.advance()
            return token.value
        if token.kind == REGEX:
            self.advance()
            return Expression(source=token.value)

        if token.kind == PUNCT:
            if token.value == "{":
                return self.parse_object()
            if token.value == "[":
                return self.parse_array()
            if token.value == "(":
                if self._is_arrow_at(self.pos):
                    return self.parse_arrow()
                end = self.skip_balanced()
                return Expression(source=self.source[token.start:end])
            if token.value in ("-", "+") and self.peek(1).kind == NUMBER:
                self.advance()
                number = self.advance().value
                return -number if token.value == "-" and not isinstance(number, str) else number
            if token.value in ("!", "-", "+", "~"):
                end = self.skip_expression()
                return Expression(source=self.source[token.start:end])
            raise DefinitionParseError(f"Unexpected token {token.value!r}", token.start)

        if token.kind == IDENT:
            return self._parse_identifier()

        raise DefinitionParseError("Unexpected end of input", token.start)

    def _parse_identifier(self) -> Any:
        token = self.peek()
        name = token.value

        literals = {"true": True, "false": False, "null": None, "undefined": None}
        if name in literals:
            self.advance()
            return literals[name]

        if name == "async" and self._is_arrow_at(self.pos + 1):
            self.advance()
            return self.parse_arrow(start=token.start)
        if self._is_arrow_at(self.pos):
            return self.parse_arrow()

        if name == "function":
            self.advance()
            if self.peek().kind == IDENT:
                self.advance()
            if self.at("("):
                self.skip_balanced()
            while not self.at("{") and not self.at_terminator():
                self.advance()
            end = self.skip_balanced() if self.at("{") else self.last_end
            return Expression(source=self.source[token.start:end], is_function=True)

        if name == "new":
            end = self.skip_expression()
            return Expression(source=self.source[token.start:end])

        # Member chain and calls
        self.advance()
        path = [name]
        while self.at(".") or self.at("?."):
            if self.peek(1).kind != IDENT:
                break
            self.advance()
            path.append(self.advance().value)

        if not self.at("("):
            if self.at("["):
                end = self.skip_expression()
                return Expression(source=self.source[token.start:end])
            return Identifier(".".join(path))

        args = self.parse_arguments()
        expression = Expression(
            source=self.source[token.start:self.last_end],
            callee=".".join(path),
            args=args,
        )
        # Chained access after a call, e.g. foo().bar()
        if self.at(".") or self.at("?.") or self.at("(") or self.at("["):
            while self.at(".") or self.at("?.") or self.at("(") or self.at("["):
                if self.at("(") or self.at("["):
                    self.skip_balanced()
                else:
                    self.advance()
                    if self.peek().kind == IDENT:
                        self.advance()
            expression.source = self.source[token.start:self.last_end]
        return expression

    def parse_arguments(self) -> List[Any]:
        self.expect("(")
        args = []
        while not self.at(")"):
            if self.at("..."):
                self.advance()
            args.append(self.parse_value())
            if self.at(","):
                self.advance()
            elif not self.at(")"):
                token = self.peek()
                raise DefinitionParseError(f"Expected ',' or ')' but found {token.value!r}", token.start)
        self.expect(")")
        return args

    def parse_arrow(self, start: Optional[int] = None) -> Expression:
        """Capture an arrow function as opaque source text."""
        begin = self.peek().start if start is None else start
        if self.at("("):
            self.skip_balanced()
        else:
            self.advance()
        while not self.at("=>"):
            if self.peek().kind == EOF:
                raise DefinitionParseError("Expected '=>'", begin)
            if self.peek().kind == PUNCT and self.peek().value in OPENERS:
                self.skip_balanced()
            else:
                self.advance()
        self.expect("=>")
        if self.at("{"):
            end = self.skip_balanced()
        else:
            end = self.skip_expression()
        return Expression(source=self.source[begin:end], is_function=True)

    def parse_object(self) -> dict:
        self.expect("{")
        result: dict = {}

        while not self.at("}"):
            if self.at("..."):
                self.advance()
                spread = self.parse_value()
                if isinstance(spread, dict):
                    result.update(spread)
            else:
                key, value = self._parse_member()
                result[key] = value

            if self.at(","):
                self.advance()
            elif not self.at("}"):
                token = self.peek()
                raise DefinitionParseError(f"Expected ',' or '}}' but found {token.value!r}", token.start)

        self.expect("}")
        return result

    def _parse_member(self) -> Tuple[str, Any]:
        key_token = self.peek()

        if key_token.kind in (IDENT, STRING, NUMBER):
            self.advance()
            key = str(key_token.value)
        elif key_token.is_punct("["):
            end = self.skip_balanced()
            key = self.source[key_token.start:end]
        else:
            raise DefinitionParseError(f"Unexpected token {key_token.value!r} in object", key_token.start)

        # async/get/set method modifiers
        if (key_token.kind == IDENT and key in ("async", "get", "set")
                and self.peek().kind in (IDENT, STRING) and self.peek(1).is_punct("(")):
            key = str(self.advance().value)

        if self.at("?"):
            self.advance()

        if self.at(":"):
            self.advance()
            return key, self.parse_value()

        if self.at("("):
            # Method shorthand
            self.skip_balanced()
            while not self.at("{"):
                if self.peek().kind == EOF:
                    raise DefinitionParseError("Expected method body", key_token.start)
                self.advance()
            end = self.skip_balanced()
            return key, Expression(source=self.source[key_token.start:end], is_function=True)

        if self.at(",") or self.at("}"):
            return key, Identifier(key)

        token = self.peek()
        raise DefinitionParseError(f"Unexpected token {token.value!r} after key {key!r}", token.start)

    def parse_array(self) -> list:
        self.expect("[")
        items: list = []

        while not self.at("]"):
            if self.at(","):
                self.advance()
                continue
            if self.at("..."):
                self.advance()
                spread = self.parse_value()
                if isinstance(spread, list):
                    items.extend(spread)
            else:
                items.append(self.parse_value())

            if self.at(","):
                self.advance()
            elif not self.at("]"):
                token = self.peek()
                raise DefinitionParseError(f"Expected ',' or ']' but found {token.value!r}", token.start)

        self.expect("]")
        return items

    # Module level

    def find_declarations(self, callees: Tuple[str, ...] = ("defineType",)) -> List[Any]:
        """Parse every top-level type declaration in the module.

        A declaration is a call to one of ``callees``, an object literal
        following ``export default``, or an exported constant initialised
        with an object literal.
        """
        declarations = []
        self.pos = 0
        while self.peek().kind != EOF:
            token = self.peek()
            if token.kind == IDENT and token.value in callees and self.peek(1).is_punct("("):
                # Only the call itself; the next statement may follow without a semicolon
                declarations.append(self._parse_primary())
                continue
            if token.kind == IDENT and token.value == "export":
                literal_at = self._exported_literal_offset()
                if literal_at:
                    self.pos += literal_at
                    declarations.append(self.parse_object())
                    continue
            self.advance()
        return declarations

    def _exported_literal_offset(self) -> int:
        """Offset from ``export`` to an exported object literal, or 0."""
        nxt = self.peek(1)
        if nxt.kind != IDENT:
            return 0
        if nxt.value == "default":
            return 2 if self.peek(2).is_punct("{") else 0
        if nxt.value in ("const", "let", "var") and self.peek(2).kind == IDENT:
            offset = 3
            if self.peek(offset).is_punct(":"):
                # Type annotation
                offset += 1
                while self.peek(offset).kind in (IDENT, PUNCT) and not self.peek(offset).is_punct("="):
                    if self.peek(offset).kind == EOF or self.peek(offset).is_punct(";"):
                        return 0
                    offset += 1
            if self.peek(offset).is_punct("=") and self.peek(offset + 1).is_punct("{"):
                return offset + 1
        return 0


def parse_value(source: str) -> Any:
    """Parse a single value from source text.

    Raises:
        DefinitionParseError: If the text is not a well-formed value.
    """
    parser = DefinitionParser(source)
    value = parser.parse_value()
    if parser.at(";"):
        parser.advance()
    if parser.peek().kind != EOF:
        token = parser.peek()
        raise DefinitionParseError(f"Unexpected trailing token {token.value!r}", token.start)
    return value


def unwrap(value: Any, wrappers: Tuple[str, ...]) -> Any:
    """Return the first argument of a wrapper call, or the value itself."""
    while isinstance(value, Expression) and value.callee in wrappers and value.args:
        value = value.args[0]
    return value
