"""
Query Translator

Maps a narrow family of single-table SELECT statements onto constrained
store operations (count_records / query_records). This is a bounded
pattern grammar, not a SQL parser:

    SELECT COUNT(*) FROM t [WHERE col = 'v']          -> count_records
    SELECT a, b FROM t [WHERE col = 'v']
        [ORDER BY col [ASC|DESC]] [LIMIT n]           -> query_records
    SELECT COUNT(DISTINCT c) FROM t [WHERE col = 'v'] -> DistinctCount

sqlparse strips comments, checks for a single SELECT statement, finds
JOIN / GROUP BY / HAVING keywords and isolates the WHERE clause, so text
inside string literals never changes the shape of the query. The regex
grammar then runs over the statement with its literals blanked out.

Anything outside the grammar (no FROM table, non-SELECT statements, joins)
raises TranslationError before the store is touched. Parts that are
recognised but cannot be expressed (function columns, extra WHERE
conditions, GROUP BY / HAVING) are dropped and listed in
ConstrainedOperation.dropped. Identifiers and literals are kept verbatim.
"""

import re
from dataclasses import dataclass, field

import sqlparse
from sqlparse.sql import IdentifierList, Statement, Where
from sqlparse.tokens import Keyword, String

from insightbot.models.agent import TranslationError
from insightbot.models.pipeline import ConstrainedOperation, OrderBy, RecordFilter

DEFAULT_LIMIT = 100

_FLAGS = re.IGNORECASE | re.DOTALL

_SELECT_PATTERN = re.compile(r"^\s*select\b", _FLAGS)
_FROM_PATTERN = re.compile(r"\bfrom\s+(?:\"?\w+\"?\.)?\"?(\w+)\"?", _FLAGS)
_COUNT_PATTERN = re.compile(r"\bcount\s*\(", _FLAGS)
_DISTINCT_COUNT_PATTERN = re.compile(r"\bcount\s*\(\s*distinct\b", _FLAGS)
_DISTINCT_COLUMN_PATTERN = re.compile(
    r"\bcount\s*\(\s*distinct\s*\(?\s*(?:\"?\w+\"?\.)?\"?(\w+)\"?", _FLAGS
)
_WHERE_KEYWORD_PATTERN = re.compile(r"^\s*where\b", _FLAGS)
_EQUALITY_PATTERN = re.compile(
    r"^\s*\(?\s*(?:\"?\w+\"?\.)?\"?(\w+)\"?\s*=\s*(?:'([^']*)'|(-?\d+(?:\.\d+)?))", _FLAGS
)
_CONNECTIVE_PATTERN = re.compile(r"\b(?:and|or)\b", _FLAGS)
_ORDER_PATTERN = re.compile(
    r"\border\s+by\s+(?:\"?\w+\"?\.)?\"?(\w+)\"?(?:\s+(asc|desc))?(\s*,)?", _FLAGS
)
_GROUP_PATTERN = re.compile(r"\bgroup\s+by\b", _FLAGS)
_LIMIT_PATTERN = re.compile(r"\blimit\s+(\d+)", _FLAGS)
_EXPRESSION_PATTERN = re.compile(r"\(|\bcase\b|\bwhen\b", _FLAGS)
_PLAIN_COLUMN_PATTERN = re.compile(r"^(?:\"?\w+\"?\.)?\"?(\w+)\"?$")
_DISTINCT_PREFIX_PATTERN = re.compile(r"^distinct\s+", _FLAGS)


@dataclass
class DistinctCount:
    """COUNT(DISTINCT column) over one table, with the filters that could be kept."""

    table: str
    column: str
    filters: list[RecordFilter] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


# ----------------------------------------------------------------------
# sqlparse helpers
# ----------------------------------------------------------------------


def _statements(sql: str) -> list[Statement]:
    cleaned = sqlparse.format(sql, strip_comments=True).strip()
    return [
        statement
        for statement in sqlparse.parse(cleaned)
        if statement.token_first(skip_ws=True, skip_cm=True) is not None
    ]


def _parse(sql: str) -> Statement:
    """Single comment-free SELECT statement, or TranslationError."""
    if not isinstance(sql, str) or not sql.strip():
        raise TranslationError("Empty query")

    statements = _statements(sql)
    if not statements:
        raise TranslationError("Empty query")
    if len(statements) > 1:
        raise TranslationError(
            "Only a single statement can be translated", {"query": sql[:200]}
        )

    statement = statements[0]
    first_token = statement.token_first(skip_ws=True, skip_cm=True)
    if first_token.ttype is not Keyword.DML or first_token.normalized != "SELECT":
        raise TranslationError("Only SELECT statements can be translated", {"query": sql[:200]})
    return statement


def _mask_literals(statement: Statement) -> str:
    """Statement text with every quoted string literal replaced by ''."""
    return "".join(
        "''" if token.ttype in String.Single else token.value for token in statement.flatten()
    )


def _masked(sql: str) -> str:
    if not isinstance(sql, str) or not sql.strip():
        return ""
    return " ".join(_mask_literals(statement) for statement in _statements(sql))


def _keywords(statement: Statement) -> set[str]:
    return {
        " ".join(token.normalized.split()) for token in statement.flatten() if token.is_keyword
    }


def _joins_tables(statement: Statement, keywords: set[str]) -> bool:
    """JOIN keywords anywhere, or a comma-separated table list after the top-level FROM."""
    if any("JOIN" in keyword.split() for keyword in keywords):
        return True
    for index, token in enumerate(statement.tokens):
        if token.ttype is Keyword and token.normalized == "FROM":
            _, target = statement.token_next(index)
            return isinstance(target, IdentifierList)
    return False


def _where_clause(statement: Statement) -> str:
    where = next((token for token in statement.tokens if isinstance(token, Where)), None)
    if where is None:
        return ""
    return _WHERE_KEYWORD_PATTERN.sub("", where.value).strip().rstrip(";").strip()


# ----------------------------------------------------------------------
# Regex grammar (runs on literal-free text)
# ----------------------------------------------------------------------


def _top_level_from(text: str) -> re.Match | None:
    """First FROM that is not nested inside parentheses (e.g. EXTRACT(... FROM col))."""
    for match in _FROM_PATTERN.finditer(text):
        prefix = text[: match.start()]
        if prefix.count("(") == prefix.count(")"):
            return match
    return None


def _table_name(text: str) -> str | None:
    match = _top_level_from(text)
    return match.group(1) if match else None


def _distinct_column(text: str) -> str | None:
    match = _DISTINCT_COLUMN_PATTERN.search(text)
    return match.group(1) if match else None


def is_distinct_count(sql: str) -> bool:
    """True for queries shaped like COUNT(DISTINCT col)."""
    return bool(_DISTINCT_COUNT_PATTERN.search(_masked(sql)))


def is_scalar_count(sql: str) -> bool:
    """True for COUNT(...) queries that return one number (no GROUP BY)."""
    text = _masked(sql)
    return bool(_COUNT_PATTERN.search(text)) and not _GROUP_PATTERN.search(text)


def extract_table(sql: str) -> str | None:
    """Table named after the top-level FROM, or None."""
    return _table_name(_masked(sql))


def extract_distinct_column(sql: str) -> str | None:
    """Column inside COUNT(DISTINCT ...), or None."""
    return _distinct_column(_masked(sql))


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside parentheses."""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _extract_columns(text: str, dropped: list[str]) -> list[str] | None:
    select_match = _SELECT_PATTERN.match(text)
    from_match = _top_level_from(text)
    if not select_match or not from_match:
        return None
    projection = text[select_match.end() : from_match.start()].strip()

    distinct = _DISTINCT_PREFIX_PATTERN.match(projection)
    if distinct:
        dropped.append("DISTINCT")
        projection = projection[distinct.end() :]

    if projection == "*":
        return None

    columns = []
    for part in _split_top_level(projection):
        if part == "*":
            return None
        if _EXPRESSION_PATTERN.search(part):
            dropped.append(f"column expression: {part}")
            continue
        plain = _PLAIN_COLUMN_PATTERN.match(part)
        if plain:
            columns.append(plain.group(1))
            continue
        # "col AS alias" or "col alias": keep the source column
        head = part.split()[0]
        plain = _PLAIN_COLUMN_PATTERN.match(head)
        if plain:
            dropped.append(f"column alias: {part}")
            columns.append(plain.group(1))
        else:
            dropped.append(f"column expression: {part}")
    return columns or None


def _extract_filters(clause: str, dropped: list[str]) -> list[RecordFilter]:
    if not clause:
        return []

    equality = _EQUALITY_PATTERN.match(clause)
    if not equality:
        dropped.append(f"WHERE condition: {clause}")
        return []

    column, quoted, number = equality.groups()
    value = quoted if quoted is not None else number
    remainder = clause[equality.end() :].strip().rstrip(")").strip()
    if remainder and _CONNECTIVE_PATTERN.search(remainder):
        dropped.append(f"WHERE condition: {remainder}")
    return [RecordFilter(column=column, value=value)]


def _scope(sql: str) -> tuple[str, str, list[RecordFilter], list[str]]:
    """Validate a statement and read what every translation shares."""
    statement = _parse(sql)
    text = _mask_literals(statement)

    table = _table_name(text)
    if not table:
        raise TranslationError("Query has no FROM table", {"query": sql[:200]})

    keywords = _keywords(statement)
    if _joins_tables(statement, keywords):
        raise TranslationError("Queries joining tables cannot be translated", {"query": sql[:200]})

    dropped: list[str] = []
    filters = _extract_filters(_where_clause(statement), dropped)
    for clause in ("GROUP BY", "HAVING"):
        if clause in keywords:
            dropped.append(clause)
    return text, table, filters, dropped


def translate(sql: str, default_limit: int = DEFAULT_LIMIT) -> ConstrainedOperation:
    """
    Translate a free-form query into a constrained store operation.

    Args:
        sql: Query text drafted by the QueryAgent
        default_limit: Row cap for scoped reads without LIMIT

    Returns:
        ConstrainedOperation (count_records or query_records)

    Raises:
        TranslationError: If the query is outside the supported grammar
    """
    text, table, filters, dropped = _scope(sql)

    if _COUNT_PATTERN.search(text):
        if _DISTINCT_COUNT_PATTERN.search(text):
            dropped.append("COUNT(DISTINCT ...)")
        return ConstrainedOperation(
            operation="count_records",
            table=table,
            filters=filters,
            dropped=dropped,
        )

    columns = _extract_columns(text, dropped)

    order_by = None
    order_match = _ORDER_PATTERN.search(text)
    if order_match:
        column, direction, more = order_match.groups()
        order_by = OrderBy(column=column, descending=bool(direction and direction.lower() == "desc"))
        if more:
            dropped.append("secondary ORDER BY columns")

    limit_match = _LIMIT_PATTERN.search(text)
    limit = int(limit_match.group(1)) if limit_match else default_limit

    return ConstrainedOperation(
        operation="query_records",
        table=table,
        columns=columns,
        filters=filters,
        order_by=order_by,
        limit=limit,
        dropped=dropped,
    )


def translate_distinct_count(sql: str) -> DistinctCount:
    """
    Read table, column and equality filter of a COUNT(DISTINCT col) query.

    Raises:
        TranslationError: If the query is outside the supported grammar
    """
    text, table, filters, dropped = _scope(sql)

    column = _distinct_column(text)
    if not column:
        raise TranslationError(
            "Could not read table and column of COUNT(DISTINCT ...)", {"query": sql[:200]}
        )
    return DistinctCount(table=table, column=column, filters=filters, dropped=dropped)
