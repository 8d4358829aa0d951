"""
Formula string helpers.

Airtable formulas use double-quoted string literals. Values interpolated into
a formula must be escaped first; validate_formula() is a heuristic check for
formulas that were not.
"""

import re
from dataclasses import dataclass

# Double quote not preceded by a backslash
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')

_SUSPICIOUS_PATTERNS = (
    # Closing quote followed by ) and a comma: function breakout
    re.compile(r'"\s*\)\s*,'),
    # String concatenation between literals
    re.compile(r'"\s*&\s*"'),
)


@dataclass(frozen=True)
class FormulaValidation:
    is_valid: bool
    warning: str | None = None


def escape_formula_string(value: str | None) -> str:
    """Escape backslashes then double quotes for use inside a formula literal."""
    if not value:
        return ""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def validate_formula(formula: str | None) -> FormulaValidation:
    """
    Flag formulas that look like they contain unescaped user input.

    Not a parser: a valid result does not prove the formula is safe.
    """
    if not formula:
        return FormulaValidation(is_valid=True)

    if len(_UNESCAPED_QUOTE.findall(formula)) % 2 != 0:
        return FormulaValidation(is_valid=False, warning="Formula contains unbalanced quotes")

    for pattern in _SUSPICIOUS_PATTERNS:
        if pattern.search(formula):
            return FormulaValidation(
                is_valid=False, warning="Formula contains suspicious patterns"
            )

    return FormulaValidation(is_valid=True)


def build_safe_find_formula(search_term: str, field_name: str) -> str:
    """Build ``FIND("<term>", {<field>})`` with both parts escaped."""
    return f'FIND("{escape_formula_string(search_term)}", {{{escape_formula_string(field_name)}}})'


def build_safe_equality_formula(field_name: str, value: str) -> str:
    """Build ``{<field>} = "<value>"`` with both parts escaped."""
    return f'{{{escape_formula_string(field_name)}}} = "{escape_formula_string(value)}"'


__all__ = [
    "FormulaValidation",
    "escape_formula_string",
    "validate_formula",
    "build_safe_find_formula",
    "build_safe_equality_formula",
]
