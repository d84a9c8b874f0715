"""
SQL text handling for positional statements.

Callers write positional placeholders as `?` (qmark style); `%s` is accepted
too. Before execution the text is rewritten to the dialect's paramstyle:

- `standardize_placeholders()` - Convert ? <-> %s for the dialect
- `count_placeholders()` - Number of positional placeholders outside literals
- `make_count_query()` - Wrap a SELECT for a total row count ignoring LIMIT/OFFSET

Rewrites are pure functions of the SQL text and are memoized.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

from cachetools import LRUCache, cached

__all__ = [
    'tokenize_sql',
    'standardize_placeholders',
    'count_placeholders',
    'has_placeholders',
    'make_count_query',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    COMMENT = auto()            # -- line or /* block */
    POSITIONAL_PH = auto()      # %s or ?


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


_TOKENIZE = re.compile(r"""
    (?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
""", re.VERBOSE | re.DOTALL)

# Trailing LIMIT/OFFSET clause, matched against SQL with literals masked
_LIMIT_TAIL = re.compile(r"""
    \s+(?:
        LIMIT\s+(?:ALL|\?|%s|\d+)(?:\s*(?:,|\s+OFFSET\s+)\s*(?:\?|%s|\d+))?
        |OFFSET\s+(?:\?|%s|\d+)(?:\s+ROWS?)?
    )\s*;?\s*$
""", re.IGNORECASE | re.VERBOSE)

_TRAILING_SEMICOLON = re.compile(r'\s*;\s*$')


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into comment, literal, placeholder and plain text tokens.
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('comment'):
            ttype = TokenType.COMMENT
        elif match.group('string'):
            ttype = TokenType.STRING_LITERAL
        else:
            ttype = TokenType.POSITIONAL_PH

        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def _dialect_placeholder(dialect: str) -> str:
    return '?' if dialect == 'sqlite' else '%s'


@cached(LRUCache(maxsize=512))
def count_placeholders(sql: str) -> int:
    """Count positional placeholders outside string literals and comments.
    """
    if not sql:
        return 0
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.POSITIONAL_PH)


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any positional placeholders.
    """
    return count_placeholders(sql) > 0 if sql else False


@cached(LRUCache(maxsize=512))
def standardize_placeholders(sql: str, dialect: str = 'postgresql') -> str:
    """Convert positional placeholders to the dialect's paramstyle.

    For psycopg (`%s` style) literal percent signs are doubled, but only when
    the statement carries placeholders: psycopg leaves parameterless SQL alone.
    """
    if not sql or not has_placeholders(sql):
        return sql

    placeholder = _dialect_placeholder(dialect)
    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.POSITIONAL_PH:
            result.append(placeholder)
        elif placeholder == '%s':
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def _strip_comments(sql: str) -> str:
    """Replace each comment with a single space."""
    return ''.join(' ' if t.type == TokenType.COMMENT else t.text for t in tokenize_sql(sql))


def _mask_literals(sql: str) -> str:
    """Replace the content of string literals so keywords inside them never match."""
    parts = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.STRING_LITERAL:
            parts.append(token.text[0] + 'x' * (len(token.text) - 2) + token.text[-1])
        else:
            parts.append(token.text)
    return ''.join(parts)


@cached(LRUCache(maxsize=256))
def make_count_query(sql: str) -> tuple[str, int]:
    """Build a total-row-count statement for a SELECT.

    A trailing LIMIT/OFFSET clause is removed so the count covers every
    matching row. Returns the count SQL and the number of trailing positional
    parameters the removed clause consumed; callers drop that many bound
    values from the end of their parameter list. Comments are dropped from
    the counted statement.
    """
    sql = _strip_comments(sql)
    inner = sql
    dropped = 0

    match = _LIMIT_TAIL.search(_mask_literals(sql))
    if match:
        inner = sql[:match.start()]
        dropped = count_placeholders(sql[match.start():])

    inner = _TRAILING_SEMICOLON.sub('', inner)
    return f'SELECT COUNT(*) AS total_count FROM ({inner}) AS counted_rows', dropped

