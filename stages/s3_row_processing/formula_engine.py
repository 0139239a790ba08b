"""Row-scoped formula evaluation

Supports numbers, "strings", TRUE/FALSE, cell references, same-row ranges
inside function arguments, + - * /, unary signs, parentheses, comparisons and
the SUM, AVERAGE and IF functions. References resolve by column only: the row
a reference names has already been pinned to the row being processed.
"""

import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from core.exceptions import FormulaEvaluationError
from utils.cells import column_letter_to_index

logger = logging.getLogger(__name__)

Number = Union[int, float]

# parseFloat-style leading number
_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class FormulaEngine:
    """Evaluate one formula against one row of uploaded values."""

    TOKEN_PATTERN = re.compile(
        r'''
        (?P<ws>\s+)
        |(?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
        |(?P<string>"[^"]*")
        |(?P<range>\$?[A-Za-z]+\$?\d+:\$?[A-Za-z]+\$?\d+)
        |(?P<ref>\$?[A-Za-z]+\$?\d+)(?![A-Za-z0-9_(])
        |(?P<op><>|>=|<=|=|>|<|\+|\-|\*|/)
        |(?P<comma>,)
        |(?P<lparen>\()
        |(?P<rparen>\))
        |(?P<name>[A-Za-z_][A-Za-z0-9_.]*)
        |(?P<mismatch>.)
        ''',
        re.VERBOSE,
    )
    REF_PARTS = re.compile(r"\$?([A-Za-z]+)\$?(\d+)")
    COMPARISON_OPS = ("=", "<>", "<", ">", "<=", ">=")
    FUNCTIONS = {"SUM", "AVERAGE", "IF"}

    def evaluate(
        self,
        formula: str,
        row_values: Mapping[str, Any],
        column_headers: Mapping[int, str],
        row_number: int = None,
    ) -> Optional[Number]:
        """Numeric result, or None when the formula cannot be resolved. Never raises."""
        try:
            return self.evaluate_strict(formula, row_values, column_headers)
        except FormulaEvaluationError as e:
            logger.debug("Row %s: formula %r unresolved: %s", row_number, formula, e)
        except (RecursionError, ValueError, TypeError, ArithmeticError) as e:
            logger.warning("Row %s: formula %r failed: %s", row_number, formula, e)
        return None

    def evaluate_strict(
        self,
        formula: str,
        row_values: Mapping[str, Any],
        column_headers: Mapping[int, str],
    ) -> Number:
        """Like evaluate, but raises FormulaEvaluationError on failure"""
        if not isinstance(formula, str) or not formula.strip():
            raise FormulaEvaluationError("Empty formula", formula)

        ast = self.parse(formula)
        result = self._evaluate_ast(ast, row_values, column_headers)

        if isinstance(result, bool) or not isinstance(result, (int, float)):
            raise FormulaEvaluationError(f"Result is not a number: {result!r}", formula)
        if not math.isfinite(result):
            raise FormulaEvaluationError(f"Result is not finite: {result}", formula)
        if isinstance(result, float) and result.is_integer():
            return int(result)
        return result

    # ─────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────

    def parse(self, formula: str) -> Dict[str, Any]:
        expr = formula.strip()
        if expr.startswith("="):
            expr = expr[1:]
        tokens = self._tokenize(expr, formula)
        if not tokens:
            raise FormulaEvaluationError("Empty formula", formula)

        parser = _Parser(tokens, formula, self.COMPARISON_OPS)
        ast = parser.parse_expression()
        if not parser.at_end():
            raise FormulaEvaluationError(
                f"Unexpected token {parser.peek()['value']!r}", formula
            )
        return ast

    def _tokenize(self, expr: str, formula: str) -> List[Dict[str, str]]:
        tokens: List[Dict[str, str]] = []
        for match in self.TOKEN_PATTERN.finditer(expr):
            kind = match.lastgroup
            value = match.group(kind) if kind else ""
            if kind == "ws":
                continue
            if kind == "mismatch":
                raise FormulaEvaluationError(f"Unexpected character {value!r}", formula)
            tokens.append({"type": kind or "", "value": value})
        return tokens

    # ─────────────────────────────────────────────────────────
    # Evaluation
    # ─────────────────────────────────────────────────────────

    def _evaluate_ast(
        self,
        node: Dict[str, Any],
        row_values: Mapping[str, Any],
        column_headers: Mapping[int, str],
    ) -> Any:
        ntype = node.get("type")
        if ntype in ("number", "string", "boolean"):
            return node.get("value")
        if ntype == "reference":
            return self._resolve_column(node["col"], row_values, column_headers)
        if ntype == "range":
            first, last = sorted((node["start_col"], node["end_col"]))
            return [
                self._resolve_column(col, row_values, column_headers)
                for col in range(first, last + 1)
            ]
        if ntype == "unary":
            value = self._to_number(self._evaluate_ast(node["value"], row_values, column_headers))
            return -value if node["operator"] == "-" else value
        if ntype == "binary":
            return self._evaluate_binary(node, row_values, column_headers)
        if ntype == "function":
            return self._evaluate_function(node, row_values, column_headers)
        raise FormulaEvaluationError(f"Unsupported expression: {ntype}")

    def _evaluate_binary(self, node, row_values, column_headers) -> Any:
        op = node["operator"]
        left = self._evaluate_ast(node["left"], row_values, column_headers)
        right = self._evaluate_ast(node["right"], row_values, column_headers)

        if op in self.COMPARISON_OPS:
            if isinstance(left, str) and isinstance(right, str):
                left, right = left.lower(), right.lower()
            else:
                left, right = self._to_number(left), self._to_number(right)
            if op == "=":
                return left == right
            if op == "<>":
                return left != right
            if op == "<":
                return left < right
            if op == ">":
                return left > right
            if op == "<=":
                return left <= right
            return left >= right

        left, right = self._to_number(left), self._to_number(right)
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise FormulaEvaluationError("Division by zero")
        return left / right

    def _evaluate_function(self, node, row_values, column_headers) -> Any:
        name = node["name"]
        args = node["args"]

        if name == "IF":
            # a failing IF degrades to 0 instead of failing the formula
            try:
                if len(args) < 2 or len(args) > 3:
                    raise FormulaEvaluationError("IF takes 2 or 3 arguments")
                condition = self._evaluate_ast(args[0], row_values, column_headers)
                branch = args[1] if self._truthy(condition) else (args[2] if len(args) > 2 else None)
                if branch is None:
                    return 0
                return self._to_number(self._evaluate_ast(branch, row_values, column_headers))
            except (FormulaEvaluationError, ArithmeticError, ValueError, TypeError) as e:
                logger.debug("IF branch degraded to 0: %s", e)
                return 0

        values = self._flatten(
            [self._evaluate_ast(arg, row_values, column_headers) for arg in args]
        )
        if name == "SUM":
            return sum(values)
        if not values:
            raise FormulaEvaluationError("AVERAGE of no values")
        return sum(values) / len(values)

    def _resolve_column(
        self, col: int, row_values: Mapping[str, Any], column_headers: Mapping[int, str]
    ) -> Number:
        header = column_headers.get(col)
        if header is None:
            return 0
        return self._coerce_number(row_values.get(header))

    def _flatten(self, args: List[Any]) -> List[Number]:
        values: List[Number] = []
        for arg in args:
            if isinstance(arg, list):
                values.extend(self._flatten(arg))
            else:
                values.append(self._coerce_number(arg))
        return values

    def _coerce_number(self, value: Any) -> Number:
        """Lenient coercion for cell values: numeric prefix or 0"""
        if isinstance(value, bool) or value is None:
            return 0
        if isinstance(value, (int, float)):
            return value if math.isfinite(value) else 0
        if isinstance(value, str):
            match = _NUMERIC_PREFIX.match(value)
            return float(match.group(0)) if match else 0
        return 0

    def _to_number(self, value: Any) -> Number:
        """Strict coercion for operands"""
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, list):
            raise FormulaEvaluationError("Range used outside of a function")
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise FormulaEvaluationError(f"Text {value!r} used as a number") from None
        raise FormulaEvaluationError(f"Cannot use {value!r} as a number")

    def _truthy(self, value: Any) -> bool:
        if isinstance(value, str):
            return value != ""
        return bool(self._to_number(value))


class _Parser:
    """Recursive descent over the token list, producing dict nodes"""

    def __init__(self, tokens: List[Dict[str, str]], formula: str, comparison_ops: tuple):
        self.tokens = tokens
        self.formula = formula
        self.comparison_ops = comparison_ops
        self.pos = 0

    def peek(self) -> Optional[Dict[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def advance(self) -> Dict[str, str]:
        token = self.peek()
        if token is None:
            raise FormulaEvaluationError("Unexpected end of formula", self.formula)
        self.pos += 1
        return token

    def expect(self, ttype: str) -> Dict[str, str]:
        token = self.advance()
        if token["type"] != ttype:
            raise FormulaEvaluationError(
                f"Expected {ttype}, found {token['value']!r}", self.formula
            )
        return token

    def _is_op(self, *ops: str) -> bool:
        token = self.peek()
        return token is not None and token["type"] == "op" and token["value"] in ops

    def parse_expression(self) -> Dict[str, Any]:
        node = self.parse_additive()
        while self._is_op(*self.comparison_ops):
            op = self.advance()["value"]
            node = {"type": "binary", "operator": op, "left": node, "right": self.parse_additive()}
        return node

    def parse_additive(self) -> Dict[str, Any]:
        node = self.parse_term()
        while self._is_op("+", "-"):
            op = self.advance()["value"]
            node = {"type": "binary", "operator": op, "left": node, "right": self.parse_term()}
        return node

    def parse_term(self) -> Dict[str, Any]:
        node = self.parse_unary()
        while self._is_op("*", "/"):
            op = self.advance()["value"]
            node = {"type": "binary", "operator": op, "left": node, "right": self.parse_unary()}
        return node

    def parse_unary(self) -> Dict[str, Any]:
        if self._is_op("+", "-"):
            op = self.advance()["value"]
            return {"type": "unary", "operator": op, "value": self.parse_unary()}
        return self.parse_primary(in_arguments=False)

    def parse_primary(self, in_arguments: bool) -> Dict[str, Any]:
        token = self.advance()
        ttype, value = token["type"], token["value"]

        if ttype == "number":
            return {"type": "number", "value": float(value)}
        if ttype == "string":
            return {"type": "string", "value": value[1:-1]}
        if ttype == "ref":
            letters, _ = FormulaEngine.REF_PARTS.match(value).groups()
            return {"type": "reference", "value": value.replace("$", "").upper(),
                    "col": column_letter_to_index(letters)}
        if ttype == "range":
            if not in_arguments:
                raise FormulaEvaluationError("Ranges are only allowed in function arguments", self.formula)
            start, end = value.split(":")
            start_letters, _ = FormulaEngine.REF_PARTS.match(start).groups()
            end_letters, _ = FormulaEngine.REF_PARTS.match(end).groups()
            return {"type": "range", "value": value.replace("$", "").upper(),
                    "start_col": column_letter_to_index(start_letters),
                    "end_col": column_letter_to_index(end_letters)}
        if ttype == "lparen":
            node = self.parse_expression()
            self.expect("rparen")
            return node
        if ttype == "name":
            upper = value.upper()
            if upper in ("TRUE", "FALSE") and not self._next_is("lparen"):
                return {"type": "boolean", "value": upper == "TRUE"}
            if upper not in FormulaEngine.FUNCTIONS:
                raise FormulaEvaluationError(f"Unsupported function or name: {value}", self.formula)
            self.expect("lparen")
            return {"type": "function", "name": upper, "args": self.parse_arguments()}

        raise FormulaEvaluationError(f"Unexpected token {value!r}", self.formula)

    def parse_arguments(self) -> List[Dict[str, Any]]:
        args: List[Dict[str, Any]] = []
        if self._next_is("rparen"):
            self.advance()
            return args
        while True:
            args.append(self.parse_argument())
            token = self.advance()
            if token["type"] == "rparen":
                return args
            if token["type"] != "comma":
                raise FormulaEvaluationError(
                    f"Expected , or ) in arguments, found {token['value']!r}", self.formula
                )

    def parse_argument(self) -> Dict[str, Any]:
        token = self.peek()
        if token is not None and token["type"] == "range":
            return self.parse_primary(in_arguments=True)
        return self.parse_expression()

    def _next_is(self, ttype: str) -> bool:
        token = self.peek()
        return token is not None and token["type"] == ttype
