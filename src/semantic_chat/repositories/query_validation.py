"""
Analytical Query Validation Repository.

Static analysis and safe rewriting of DAX query text before it reaches
the semantic model server. Query text is untrusted: it is typed by the
user or suggested by the chat model.

Checks (all run; errors and warnings accumulate in detection order):
1. Empty Check: non-string or blank input is rejected immediately
2. Blocked Patterns: configured performance-hazard regexes reject the query
3. Nested Functions: a configured function nested in itself warns (quadratic blowup)
4. Row Limit: no TOPN/TOP n and no EVALUATE warns
5. SELECT Check: relational SELECT statements are rejected (DAX uses EVALUATE)
6. SQL Keywords: FROM/WHERE/JOIN/GROUP BY/HAVING without FILTER warns
7. Safety Rewrite: unlimited, non-EVALUATE, non-$SYSTEM queries are wrapped in
   TOPN(max_result_rows, ...)

Architecture Notes:
- Pure functions over text, no I/O
- Every threshold, pattern and function list comes from the injected QueryConfig
- validate() never raises; rejection is reported through ValidationResult

Usage:
    validator = QueryValidator(settings.query)
    result = validator.validate("'Sales'")
    if result.is_valid:
        query = validator.sanitize(result.modified_query)
"""

import re
from typing import Any, List, Pattern

from ..config import QueryConfig
from ..config_constants import SYSTEM_CATALOG_MARKER
from ..domain.validation import ResultValidation, ValidationResult
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

# Relational keywords that usually mean SQL was written instead of DAX
SQL_KEYWORDS = ["FROM", "WHERE", "JOIN", "GROUP BY", "HAVING"]

# Presence of FILTER means the keywords above are probably column or table text
SQL_KEYWORD_EXEMPTION = "FILTER"

EVALUATE_RE = re.compile(r"^\s*EVALUATE\b", re.IGNORECASE)
SELECT_RE = re.compile(r"^\s*SELECT\b", re.IGNORECASE)
ROW_LIMIT_RES = (
    re.compile(r"TOPN\s*\(", re.IGNORECASE),
    re.compile(r"TOP\s+\d+", re.IGNORECASE),
)

# Statement terminators; collapsing them defeats statement batching
TERMINATOR_RUN_RE = re.compile(r";+")
TRAILING_TERMINATORS_RE = re.compile(r"[\s;]+$")


def has_evaluate_marker(query: str) -> bool:
    """True if the query starts with the EVALUATE keyword."""
    return bool(EVALUATE_RE.match(query))


def has_row_limit(query: str) -> bool:
    """True if the query contains a TOPN(...) or TOP n construct."""
    return any(pattern.search(query) for pattern in ROW_LIMIT_RES)


class QueryValidator:
    """
    Validator for analytical (DAX) query text.

    Compiles the configured patterns once; instances are cheap to share.
    """

    def __init__(self, config: QueryConfig):
        self.config = config
        self.max_rows = config.max_result_rows
        self.warning_threshold = config.warning_threshold
        self._blocked: List[Pattern[str]] = [
            re.compile(pattern, re.IGNORECASE) for pattern in config.blocked_patterns
        ]
        self._nested: List[tuple[str, Pattern[str]]] = [
            (func, self._nested_function_re(func)) for func in config.dangerous_functions
        ]
        self._sql_keywords: List[tuple[str, Pattern[str]]] = [
            (keyword, re.compile(r"\b" + r"\s+".join(keyword.split()) + r"\b", re.IGNORECASE))
            for keyword in SQL_KEYWORDS
        ]

    @staticmethod
    def _nested_function_re(func: str) -> Pattern[str]:
        """Function name, its opening parenthesis, then the same name before any ')'."""
        name = re.escape(func)
        return re.compile(rf"{name}\s*\([^)]*{name}", re.IGNORECASE)

    def validate(self, query: Any) -> ValidationResult:
        """
        Validate a query and compute its safe rewrite.

        Args:
            query: Raw query text (anything non-string is rejected)

        Returns:
            ValidationResult; modified_query equals the input unless modified
        """
        if not isinstance(query, str) or not query:
            return ValidationResult(is_valid=False, errors=["Query is empty or invalid"])

        trimmed = query.strip()
        if not trimmed:
            return ValidationResult(
                is_valid=False,
                errors=["Query cannot be empty"],
                modified_query=query,
            )

        errors: List[str] = []
        warnings: List[str] = []

        errors.extend(self._check_blocked_patterns(trimmed))
        warnings.extend(self._check_nested_functions(trimmed))

        evaluate = has_evaluate_marker(trimmed)
        limited = has_row_limit(trimmed)

        if not limited and not evaluate:
            warnings.append(
                f"Query does not have a row limit. Consider adding "
                f"TOPN({self.warning_threshold}, ...) to limit results."
            )

        errors.extend(self._check_select(trimmed))
        warnings.extend(self._check_sql_keywords(trimmed))

        modified = False
        modified_query = query
        if not limited and not evaluate and SYSTEM_CATALOG_MARKER not in trimmed.upper():
            modified = True
            modified_query = f"TOPN({self.max_rows}, {trimmed})"
            warnings.append(f"Automatically limited to {self.max_rows} rows for safety.")

        result = ValidationResult(
            is_valid=not errors,
            warnings=warnings,
            errors=errors,
            modified=modified,
            modified_query=modified_query,
        )

        logger.debug(
            "Query validated",
            is_valid=result.is_valid,
            error_count=len(errors),
            warning_count=len(warnings),
            modified=modified,
            trace_id=current_trace_id(),
        )

        return result

    def _check_blocked_patterns(self, query: str) -> List[str]:
        return [
            f"Query contains blocked pattern: {pattern.pattern}. This may cause performance issues."
            for pattern in self._blocked
            if pattern.search(query)
        ]

    def _check_nested_functions(self, query: str) -> List[str]:
        return [
            f"Nested {func} function detected. This may be slow on large datasets."
            for func, pattern in self._nested
            if pattern.search(query)
        ]

    def _check_select(self, query: str) -> List[str]:
        if SELECT_RE.match(query):
            return [
                "Invalid syntax: DAX queries use EVALUATE, not SELECT. "
                "This tool automatically adds EVALUATE for you."
            ]
        return []

    def _check_sql_keywords(self, query: str) -> List[str]:
        if SQL_KEYWORD_EXEMPTION in query.upper():
            return []
        return [
            f"Found SQL keyword '{keyword}'. Make sure you're using DAX syntax, not SQL."
            for keyword, pattern in self._sql_keywords
            if pattern.search(query)
        ]

    def validate_results(self, rows: Any) -> ResultValidation:
        """
        Check a result set for size problems.

        Non-list input passes trivially. A row count equal to the configured
        maximum means the server truncated the result.
        """
        validation = ResultValidation()

        if not isinstance(rows, list):
            return validation

        if len(rows) > self.warning_threshold:
            validation.warnings.append(
                f"Query returned {len(rows)} rows. Large result sets may impact performance."
            )

        if len(rows) >= self.max_rows:
            validation.warnings.append(
                f"Result set was truncated at {self.max_rows} rows. "
                f"Use TOPN() or FILTER to reduce results."
            )

        return validation

    def sanitize(self, query: Any) -> str:
        """
        Collapse runs of ';' into one and strip trailing terminators.

        Idempotent: sanitize(sanitize(q)) == sanitize(q).
        """
        if not isinstance(query, str) or not query:
            return ""

        sanitized = query.strip()
        sanitized = TERMINATOR_RUN_RE.sub(";", sanitized)
        sanitized = TRAILING_TERMINATORS_RE.sub("", sanitized)
        return sanitized
