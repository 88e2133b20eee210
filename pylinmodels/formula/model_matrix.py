"""
Model matrix construction from a parsed formula.

Turns a FormulaSpec plus a data table into the numeric design matrix X,
the response y and the metadata that later stages need: column names,
which columns belong to which term (for ANOVA), the factor levels (for
prediction on new data) and which rows survived missing-value removal.

Coding rules follow R's model.matrix():
    - Numeric variables enter as themselves.
    - Factors use treatment contrasts (baseline = first level).
    - A factor in term T is coded with contrasts when T without that
      factor is in the model (the empty term counts iff there is an
      intercept); otherwise it gets one indicator column per level.
    - Rows with a missing value in any variable the formula uses are
      dropped, and unused factor levels are dropped with them.
"""

from __future__ import annotations

import ast
import operator
import re
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray
import pandas as pd

from pylinmodels.core.datasource import DataSource
from pylinmodels.core.exceptions import FormulaError, PyLinModelsError, ValidationError
from pylinmodels.formula._contrasts import (
    as_categorical, is_categorical, encode_full, encode_treatment,
    interaction_columns,
)
from pylinmodels.formula.parser import (
    FormulaSpec, RandomTerm, Term, INTERCEPT, parse_formula, term_label,
)


def _identity(x: Any) -> Any:
    return x


# Functions available inside formula expressions.
_FUNCTIONS: dict[str, Any] = {
    'log': np.log,
    'log2': np.log2,
    'log10': np.log10,
    'log1p': np.log1p,
    'exp': np.exp,
    'sqrt': np.sqrt,
    'abs': np.abs,
    'I': _identity,
    'C': as_categorical,
}

_BINARY_OPS: dict[type, Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
    ast.Mod: operator.mod,
    ast.FloorDiv: operator.floordiv,
}
_UNARY_OPS: dict[type, Any] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_ALLOWED_NODES = (
    ast.Expression, ast.Constant, ast.Name, ast.Load, ast.BinOp, ast.UnaryOp, ast.Call,
    *_BINARY_OPS, *_UNARY_OPS,
)

_IDENT_RE = re.compile(r"(?<![\w.])[A-Za-z_.][\w.]*")


# =====================================================================
# Expression evaluation
# =====================================================================

def _eval_node(node: ast.AST, columns: dict[str, Any], expr: str) -> Any:
    """
    Arithmetic on columns and numbers plus calls to _FUNCTIONS.
    Attribute access, subscripts and every other construct are refused.
    """
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, columns, expr)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        raise FormulaError(f"Only numeric constants are allowed in {expr!r}", formula=expr)
    if isinstance(node, ast.Name):
        if node.id in columns:
            return columns[node.id]
        raise FormulaError(f"{node.id!r} is not a variable in {expr!r}", formula=expr)
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](
            _eval_node(node.left, columns, expr), _eval_node(node.right, columns, expr),
        )
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand, columns, expr))
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
            raise FormulaError(f"Only {sorted(_FUNCTIONS)} can be called in {expr!r}", formula=expr)
        if node.keywords:
            raise FormulaError(f"Keyword arguments are not allowed in {expr!r}", formula=expr)
        args = [_eval_node(arg, columns, expr) for arg in node.args]
        return _FUNCTIONS[node.func.id](*args)
    raise FormulaError(
        f"Unsupported {type(node).__name__} in formula expression {expr!r}", formula=expr,
    )


def evaluate_factor(expr: str, data: DataSource) -> Any:
    """
    Evaluate one factor expression ('x', 'log(x)', 'I(x^2)', 'C(g)').

    Plain column names are looked up directly. Anything else is parsed
    and walked node by node: data columns, numeric constants, arithmetic
    operators and calls to the functions in _FUNCTIONS are the only
    things it may contain. '^' means power.

    Raises:
        FormulaError: If the expression cannot be parsed or uses an
            unsupported construct (attributes, subscripts, lambdas, ...)
        ValidationError: If it names an unknown variable or fails to evaluate
    """
    if expr in data:
        return data[expr]

    columns: dict[str, Any] = {}
    placeholders: dict[str, str] = {}

    def _substitute(m: re.Match) -> str:
        name = m.group()
        if name in data:
            if name not in placeholders:
                placeholders[name] = f"_v{len(placeholders)}"
                columns[placeholders[name]] = _column_value(data[name])
            return placeholders[name]
        return name

    source = _IDENT_RE.sub(_substitute, expr.replace('^', '**'))
    try:
        tree = ast.parse(source, mode='eval')
    except SyntaxError as e:
        raise FormulaError(f"Cannot parse expression {expr!r}", formula=expr) from e

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise FormulaError(
                f"Unsupported {type(node).__name__} in formula expression {expr!r}",
                formula=expr,
            )

    names = {node.id for node in ast.walk(tree) if isinstance(node, ast.Name)}
    unknown = sorted(names - columns.keys() - _FUNCTIONS.keys())
    if unknown:
        raise ValidationError(
            f"Unknown variable(s) {unknown} in {expr!r}. "
            f"Available: {sorted(data.keys())}"
        )

    try:
        with np.errstate(divide='ignore', invalid='ignore'):
            return _eval_node(tree, columns, expr)
    except PyLinModelsError:
        raise
    except Exception as e:
        raise ValidationError(f"Cannot evaluate {expr!r}: {e}") from e


def _column_value(col: Any) -> Any:
    """Numeric columns evaluate as float arrays; labels stay as they are."""
    if isinstance(col, pd.Categorical) or is_categorical(col):
        return col
    return np.asarray(col, dtype=np.float64)


@dataclass(frozen=True)
class _Variable:
    """An evaluated factor expression: either numeric or categorical."""
    values: NDArray[np.floating[Any]] | None
    codes: NDArray[np.integer[Any]] | None
    levels: tuple[Any, ...] | None

    @property
    def is_factor(self) -> bool:
        return self.codes is not None

    def missing(self) -> NDArray[np.bool_]:
        if self.is_factor:
            return self.codes < 0
        return ~np.isfinite(self.values)

    def subset(self, mask: NDArray[np.bool_]) -> _Variable:
        if not self.is_factor:
            return _Variable(self.values[mask], None, None)
        codes = self.codes[mask]
        used = np.unique(codes[codes >= 0])
        remap = np.full(len(self.levels), -1, dtype=np.intp)
        remap[used] = np.arange(len(used))
        new_codes = np.where(codes >= 0, remap[np.maximum(codes, 0)], -1)
        return _Variable(None, new_codes, tuple(self.levels[i] for i in used))


def _to_variable(expr: str, value: Any, n: int, *, force_factor: bool = False) -> _Variable:
    if force_factor or is_categorical(value):
        cat = as_categorical(value)
        if len(cat) != n:
            raise ValidationError(f"{expr}: length {len(cat)} does not match data ({n})")
        return _Variable(None, np.asarray(cat.codes, dtype=np.intp), tuple(cat.categories))

    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(n, float(arr))
    if arr.ndim != 1 or arr.shape[0] != n:
        raise ValidationError(
            f"{expr}: expected a 1D column of length {n}, got shape {arr.shape}"
        )
    return _Variable(arr, None, None)


def _coded_to_levels(expr: str, value: Any, levels: tuple[Any, ...]) -> NDArray[np.intp]:
    """Map new values onto stored factor levels; unseen levels are an error."""
    raw = np.asarray(
        value.astype(object) if isinstance(value, pd.Categorical) else value,
        dtype=object,
    )
    # -1 marks both missing values and levels absent from the fit
    codes = np.asarray(pd.Index(list(levels), dtype=object).get_indexer(raw), dtype=np.intp)
    missing = pd.isna(raw)
    codes[missing] = -1
    unseen = (codes < 0) & ~missing
    if np.any(unseen):
        bad = sorted({str(v) for v in raw[unseen]})
        raise ValidationError(
            f"{expr}: new level(s) {bad} not seen when fitting "
            f"(levels: {[str(lv) for lv in levels]})"
        )
    return codes


# =====================================================================
# Model matrix
# =====================================================================

@dataclass(frozen=True)
class RandomBlock:
    """
    Random-effect columns of one bar, e.g. (1 + x | g).

    Attributes:
        group: Grouping variable name
        group_values: Group label per kept row
        Z: (n, q) columns of the random effects within a group
        column_names: q labels, '(Intercept)' first when present
    """
    group: str
    group_values: NDArray
    Z: NDArray[np.floating[Any]]
    column_names: list[str]


@dataclass(frozen=True)
class ModelMatrix:
    """
    Encoded design matrix with the metadata needed downstream.

    Attributes:
        X: (n, p) float64 design matrix
        y: (n,) response, or None for a one-sided formula
        column_names: p R-style column labels
        term_names: term labels in column order, '(Intercept)' first if present
        term_slices: term label -> column slice in X
        term_df: term label -> number of columns
        factor_levels: factor expression -> level labels (baseline first)
        has_intercept: whether column 0 is the intercept
        row_mask: which rows of the original data were kept
        spec: the parsed formula
        random_blocks: random-effect columns, one per bar
    """
    X: NDArray[np.floating[Any]]
    y: NDArray[np.floating[Any]] | None
    column_names: list[str]
    term_names: list[str]
    term_slices: dict[str, slice]
    term_df: dict[str, int]
    factor_levels: dict[str, list[str]]
    has_intercept: bool
    row_mask: NDArray[np.bool_]
    spec: FormulaSpec
    random_blocks: tuple[RandomBlock, ...] = ()
    _levels: dict[str, tuple[Any, ...]] | None = None
    _codings: dict[Term, tuple[bool, ...]] | None = None

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def response_name(self) -> str | None:
        return self.spec.response

    @property
    def terms(self) -> list[str]:
        """Term labels excluding the intercept."""
        return [t for t in self.term_names if t != '(Intercept)']

    def transform(self, newdata: Any) -> NDArray[np.floating[Any]]:
        """
        Build the fixed-effect design matrix for new data.

        Factor columns reuse the levels seen at fit time, so the columns
        line up with X. Missing values give NaN rows.

        Raises:
            ValidationError: If a factor has a level not seen at fit time,
                or a variable is missing from newdata
        """
        ds = DataSource.build(newdata)
        n = ds.n_observations
        variables: dict[str, _Variable] = {}
        for term in self.spec.terms:
            for expr in term:
                if expr in variables:
                    continue
                value = evaluate_factor(expr, ds)
                if expr in self._levels:
                    codes = _coded_to_levels(expr, value, self._levels[expr])
                    variables[expr] = _Variable(None, codes, self._levels[expr])
                else:
                    if is_categorical(value):
                        raise ValidationError(
                            f"{expr}: was numeric when fitting, got categorical values"
                        )
                    variables[expr] = _to_variable(expr, value, n)

        blocks = [np.ones((n, 1))] if self.has_intercept else []
        for term in self.spec.terms:
            X_term, _ = _term_columns(term, self._codings[term], variables)
            blocks.append(X_term)
        if not blocks:
            return np.empty((n, 0), dtype=np.float64)
        return np.hstack(blocks)


def _term_columns(
    term: Term,
    full_coding: tuple[bool, ...],
    variables: dict[str, _Variable],
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    blocks: list[NDArray] = []
    names: list[list[str]] = []
    for expr, full in zip(term, full_coding):
        var = variables[expr]
        if var.is_factor:
            encode = encode_full if full else encode_treatment
            X_f, levels = encode(var.codes, var.levels)
            blocks.append(X_f)
            names.append([f"{expr}{lv}" for lv in levels])
        else:
            blocks.append(var.values.reshape(-1, 1))
            names.append([expr])
    return interaction_columns(blocks, names)


def _codings(
    terms: tuple[Term, ...],
    intercept: bool,
    variables: dict[str, _Variable],
) -> dict[Term, tuple[bool, ...]]:
    """Full-indicator (True) or contrast (False) coding per factor per term."""
    present = {frozenset(t) for t in terms}
    if intercept:
        present.add(frozenset(INTERCEPT))
    codings: dict[Term, tuple[bool, ...]] = {}
    for term in terms:
        flags = []
        for expr in term:
            margin = frozenset(f for f in term if f != expr)
            flags.append(variables[expr].is_factor and margin not in present)
        codings[term] = tuple(flags)
    return codings


def _response(expr: str, var: _Variable) -> NDArray[np.floating[Any]]:
    if not var.is_factor:
        return var.values
    if len(var.levels) != 2:
        raise ValidationError(
            f"Response {expr!r} is categorical with {len(var.levels)} levels; "
            f"only two-level factors can be used as a response"
        )
    # R: first level is failure (0), second is success (1)
    return np.where(var.codes < 0, np.nan, (var.codes == 1).astype(np.float64))


def build_model_matrix(
    spec: FormulaSpec | str,
    data: Any,
) -> ModelMatrix:
    """
    Build the design matrix (and response) for a formula.

    Args:
        spec: A FormulaSpec or formula text
        data: pandas DataFrame, mapping of columns, DataSource or file path

    Returns:
        ModelMatrix

    Raises:
        FormulaError: If the formula is malformed
        ValidationError: If a variable is unknown, no rows remain after
            dropping missing values, or a factor response has != 2 levels

    Example:
        >>> mm = build_model_matrix('y ~ x + g', df)
        >>> mm.column_names
        ['(Intercept)', 'x', 'gB', 'gC']
    """
    if isinstance(spec, str):
        spec = parse_formula(spec)
    ds = DataSource.build(data)
    n = ds.n_observations

    group_names = {r.group for r in spec.random_terms}
    variables: dict[str, _Variable] = {}
    for expr in spec.variables:
        value = evaluate_factor(expr, ds)
        variables[expr] = _to_variable(expr, value, n, force_factor=expr in group_names)

    missing = np.zeros(n, dtype=bool)
    for var in variables.values():
        missing |= var.missing()
    row_mask = ~missing
    if not np.any(row_mask):
        raise ValidationError("No complete rows remain after removing missing values")
    if np.any(missing):
        variables = {k: v.subset(row_mask) for k, v in variables.items()}
    n_kept = int(np.sum(row_mask))

    y = None
    if spec.response is not None:
        y = _response(spec.response, variables[spec.response])

    codings = _codings(spec.terms, spec.intercept, variables)

    blocks: list[NDArray] = []
    column_names: list[str] = []
    term_names: list[str] = []
    term_slices: dict[str, slice] = {}
    term_df: dict[str, int] = {}
    offset = 0

    if spec.intercept:
        blocks.append(np.ones((n_kept, 1), dtype=np.float64))
        column_names.append('(Intercept)')
        term_names.append('(Intercept)')
        term_slices['(Intercept)'] = slice(0, 1)
        term_df['(Intercept)'] = 1
        offset = 1

    for term in spec.terms:
        X_term, names = _term_columns(term, codings[term], variables)
        label = term_label(term)
        k = X_term.shape[1]
        blocks.append(X_term)
        column_names.extend(names)
        term_names.append(label)
        term_slices[label] = slice(offset, offset + k)
        term_df[label] = k
        offset += k

    X = np.hstack(blocks) if blocks else np.empty((n_kept, 0), dtype=np.float64)

    fixed_factors = {f for term in spec.terms for f in term}
    levels = {
        expr: var.levels for expr, var in variables.items()
        if var.is_factor and expr in fixed_factors
    }

    return ModelMatrix(
        X=X,
        y=y,
        column_names=column_names,
        term_names=term_names,
        term_slices=term_slices,
        term_df=term_df,
        factor_levels={k: [str(lv) for lv in v] for k, v in levels.items()},
        has_intercept=spec.intercept,
        row_mask=row_mask,
        spec=spec,
        random_blocks=tuple(
            _random_block(r, variables) for r in spec.random_terms
        ),
        _levels=levels,
        _codings=codings,
    )


def _random_block(rterm: RandomTerm, variables: dict[str, _Variable]) -> RandomBlock:
    group = variables[rterm.group]
    n = len(group.codes)
    codings = _codings(rterm.terms, rterm.intercept, variables)
    blocks = [np.ones((n, 1), dtype=np.float64)] if rterm.intercept else []
    names = ['(Intercept)'] if rterm.intercept else []
    for term in rterm.terms:
        X_term, term_names = _term_columns(term, codings[term], variables)
        blocks.append(X_term)
        names.extend(term_names)
    labels = np.asarray(group.levels, dtype=object)[group.codes]
    return RandomBlock(
        group=rterm.group,
        group_values=labels,
        Z=np.hstack(blocks),
        column_names=names,
    )
