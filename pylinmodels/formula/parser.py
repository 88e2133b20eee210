"""
R-style model formula parsing.

A formula such as

    y ~ x * g + log(z) - 1 + (1 + x | subject)

is parsed into a FormulaSpec: the response expression, the fixed-effect
terms, the intercept flag and any random-effect bars. A term is an ordered
tuple of factor expressions; the intercept is the empty term ().

Grammar (lowest precedence first):

    formula := [response] '~' sum
    sum     := ['-'] product (('+' | '-') product)*
    product := inter (('*' | '/') inter)*
    inter   := power (':' power)*
    power   := atom ['^' INTEGER]
    atom    := NAME | NAME '(' ... ')' | '0' | '1'
             | '(' sum ')' | '(' sum '|' NAME ')'

Function calls are kept verbatim as factor expressions and evaluated
against the data later (see model_matrix.evaluate_factor).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from itertools import chain

from pylinmodels.core.exceptions import FormulaError

Term = tuple[str, ...]

INTERCEPT: Term = ()

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d*)?)
  | (?P<name>[A-Za-z_.][A-Za-z0-9_.]*)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<op>\*\*|[~+\-*/:^()|,=<>!%&\[\]])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


@dataclass(frozen=True)
class RandomTerm:
    """
    One random-effect bar, e.g. (1 + x | g).

    Attributes:
        terms: Non-intercept terms on the left of the bar
        intercept: Whether the bar includes a random intercept
        group: Grouping variable name on the right of the bar
    """
    terms: tuple[Term, ...]
    intercept: bool
    group: str

    @property
    def labels(self) -> list[str]:
        """R-style column labels of the random effects in this bar."""
        labels = ['(Intercept)'] if self.intercept else []
        labels.extend(term_label(t) for t in self.terms)
        return labels

    def __str__(self) -> str:
        lhs = ' + '.join(['1' if self.intercept else '0'] + [term_label(t) for t in self.terms])
        return f"({lhs} | {self.group})"


@dataclass(frozen=True)
class FormulaSpec:
    """
    Parsed formula.

    Attributes:
        response: Response expression, or None for one-sided formulas
        terms: Fixed-effect terms (intercept excluded), R-ordered
        intercept: Whether the model has an intercept
        random_terms: Random-effect bars
        text: The original formula text
    """
    response: str | None
    terms: tuple[Term, ...]
    intercept: bool
    random_terms: tuple[RandomTerm, ...] = field(default_factory=tuple)
    text: str = ''

    @property
    def term_labels(self) -> list[str]:
        return [term_label(t) for t in self.terms]

    @property
    def variables(self) -> list[str]:
        """Factor expressions used anywhere in the formula, in order of appearance."""
        seen: dict[str, None] = {}
        if self.response is not None:
            seen[self.response] = None
        for term in chain(self.terms, *(r.terms for r in self.random_terms)):
            for factor in term:
                seen.setdefault(factor, None)
        for r in self.random_terms:
            seen.setdefault(r.group, None)
        return list(seen)

    @property
    def has_random(self) -> bool:
        return len(self.random_terms) > 0

    def fixed_only(self) -> FormulaSpec:
        """The same formula with the random-effect bars removed."""
        return FormulaSpec(
            response=self.response,
            terms=self.terms,
            intercept=self.intercept,
            random_terms=(),
            text=self.text,
        )

    def __str__(self) -> str:
        rhs = [term_label(t) for t in self.terms]
        rhs.extend(str(r) for r in self.random_terms)
        body = ' + '.join(rhs) if rhs else ('1' if self.intercept else '0')
        if rhs and not self.intercept:
            body += ' - 1'
        lhs = f"{self.response} " if self.response else ''
        return f"{lhs}~ {body}"


def term_label(term: Term) -> str:
    """R-style label for a term: '(Intercept)', 'x' or 'x:g'."""
    if term == INTERCEPT:
        return '(Intercept)'
    return ':'.join(term)


# =====================================================================
# Tokenizer
# =====================================================================

def tokenize(text: str) -> list[Token]:
    """Split formula text into tokens, recording source positions."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise FormulaError(
                f"Unexpected character {text[pos]!r}", formula=text, position=pos
            )
        kind = m.lastgroup
        if kind != 'ws':
            tokens.append(Token(kind=kind, text=m.group(), pos=pos))
        pos = m.end()
    tokens.append(Token(kind='end', text='', pos=len(text)))
    return tokens


# =====================================================================
# Term algebra
# =====================================================================

class _NoIntercept:
    """Marker produced by a literal 0 on the right-hand side."""

    def __repr__(self) -> str:
        return '0'


_ZERO = _NoIntercept()


def _merge(a: Term, b: Term) -> Term:
    """Interaction of two terms: union of factors, first-appearance order."""
    return a + tuple(f for f in b if f not in a)


def _dedupe(terms: list) -> list:
    out: list = []
    keys: set = set()
    for t in terms:
        key = frozenset(t) if isinstance(t, tuple) else t
        if key not in keys:
            keys.add(key)
            out.append(t)
    return out


def _interact(left: list, right: list, text: str, pos: int) -> list:
    for item in chain(left, right):
        if item is _ZERO or isinstance(item, RandomTerm):
            raise FormulaError(
                "Cannot form an interaction with an intercept marker or random term",
                formula=text, position=pos,
            )
    return _dedupe([_merge(a, b) for a in left for b in right])


# =====================================================================
# Recursive-descent parser
# =====================================================================

class _Parser:

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.i = 0

    # --- token helpers ---

    @property
    def current(self) -> Token:
        return self.tokens[self.i]

    def advance(self) -> Token:
        tok = self.tokens[self.i]
        self.i += 1
        return tok

    def at(self, text: str) -> bool:
        tok = self.current
        return tok.kind == 'op' and tok.text == text

    def expect(self, text: str) -> Token:
        if not self.at(text):
            found = self.current.text or 'end of formula'
            raise FormulaError(
                f"Expected {text!r}, found {found!r}",
                formula=self.text, position=self.current.pos,
            )
        return self.advance()

    def error(self, message: str, tok: Token | None = None) -> FormulaError:
        tok = tok or self.current
        return FormulaError(message, formula=self.text, position=tok.pos)

    # --- grammar ---

    def parse(self) -> FormulaSpec:
        tilde = next(
            (k for k, t in enumerate(self.tokens) if t.kind == 'op' and t.text == '~'),
            None,
        )
        if tilde is None:
            raise FormulaError("Formula must contain '~'", formula=self.text)

        response = None
        if tilde > 0:
            start = self.tokens[0].pos
            end = self.tokens[tilde].pos
            response = self.text[start:end].strip()
            self.i = tilde
        self.expect('~')

        if self.current.kind == 'end':
            raise self.error("Empty right-hand side")

        items, removed = self.parse_sum()
        if self.current.kind != 'end':
            raise self.error(f"Unexpected {self.current.text!r}")

        intercept = True
        fixed: list[Term] = []
        randoms: list[RandomTerm] = []
        for sign, item in chain(((1, it) for it in items), ((-1, it) for it in removed)):
            if item is _ZERO:
                intercept = sign < 0
            elif item == INTERCEPT:
                intercept = sign > 0
            elif isinstance(item, RandomTerm):
                if sign < 0:
                    raise FormulaError("Random terms cannot be removed", formula=self.text)
                randoms.append(item)
            elif sign > 0:
                fixed.append(item)

        removed_keys = {frozenset(t) for t in removed if isinstance(t, tuple)}
        fixed = [t for t in _dedupe(fixed) if frozenset(t) not in removed_keys]
        fixed.sort(key=len)

        return FormulaSpec(
            response=response,
            terms=tuple(fixed),
            intercept=intercept,
            random_terms=tuple(randoms),
            text=self.text,
        )

    def parse_sum(self) -> tuple[list, list]:
        """Returns (added, removed) term lists."""
        added: list = []
        removed: list = []
        if self.at('-'):
            self.advance()
            removed.extend(self.parse_product())
        else:
            added.extend(self.parse_product())
        while self.at('+') or self.at('-'):
            op = self.advance()
            target = added if op.text == '+' else removed
            target.extend(self.parse_product())
        return added, removed

    def parse_product(self) -> list:
        left = self.parse_inter()
        while self.at('*') or self.at('/'):
            op = self.advance()
            right = self.parse_inter()
            if op.text == '*':
                left = _dedupe(left + right + _interact(left, right, self.text, op.pos))
            else:
                # a / b  ==  a + a:b, where a:b uses every factor of a
                outer: Term = ()
                for t in left:
                    if not isinstance(t, tuple):
                        raise self.error("Invalid left operand of '/'", op)
                    outer = _merge(outer, t)
                left = _dedupe(left + _interact([outer], right, self.text, op.pos))
        return left

    def parse_inter(self) -> list:
        left = self.parse_power()
        while self.at(':'):
            op = self.advance()
            right = self.parse_power()
            left = _interact(left, right, self.text, op.pos)
        return left

    def parse_power(self) -> list:
        base = self.parse_atom()
        if self.at('^'):
            op = self.advance()
            tok = self.current
            if tok.kind != 'number' or not tok.text.isdigit() or int(tok.text) < 1:
                raise self.error("Expected a positive integer after '^'")
            self.advance()
            result = list(base)
            for _ in range(int(tok.text) - 1):
                result = _dedupe(result + _interact(result, base, self.text, op.pos))
            return result
        return base

    def parse_atom(self) -> list:
        tok = self.current

        if tok.kind == 'number':
            self.advance()
            if tok.text == '1':
                return [INTERCEPT]
            if tok.text == '0':
                return [_ZERO]
            raise self.error(f"Numeric literal {tok.text!r} is not a term", tok)

        if tok.kind == 'name':
            self.advance()
            if self.at('('):
                end = self._matching_paren(self.i)
                inner_start = self.tokens[self.i].pos
                close = self.tokens[end]
                self.i = end + 1
                inner = self.text[inner_start + 1:close.pos].strip()
                if not inner:
                    raise self.error(f"{tok.text}() needs an argument", tok)
                return [(f"{tok.text}({inner})",)]
            return [(tok.text,)]

        if self.at('('):
            self.advance()
            added, removed = self.parse_sum()
            if self.at('|'):
                self.advance()
                return [self._random_term(added, removed, tok)]
            self.expect(')')
            if removed:
                raise self.error("Term removal is only allowed at the top level", tok)
            return added

        found = tok.text or 'end of formula'
        raise self.error(f"Unexpected {found!r}")

    def _random_term(self, added: list, removed: list, open_tok: Token) -> RandomTerm:
        group_tok = self.current
        if group_tok.kind != 'name':
            raise self.error("Expected a grouping variable after '|'")
        self.advance()
        self.expect(')')

        intercept = True
        terms: list[Term] = []
        for item in added:
            if item is _ZERO:
                intercept = False
            elif item == INTERCEPT:
                intercept = True
            elif isinstance(item, RandomTerm):
                raise self.error("Nested random terms are not supported", open_tok)
            else:
                terms.append(item)
        for item in removed:
            if item == INTERCEPT:
                intercept = False
        if not intercept and not terms:
            raise self.error("Random term has no effects", open_tok)
        terms.sort(key=len)
        return RandomTerm(terms=tuple(terms), intercept=intercept, group=group_tok.text)

    def _matching_paren(self, open_index: int) -> int:
        depth = 0
        for k in range(open_index, len(self.tokens)):
            t = self.tokens[k]
            if t.kind == 'op' and t.text == '(':
                depth += 1
            elif t.kind == 'op' and t.text == ')':
                depth -= 1
                if depth == 0:
                    return k
        raise FormulaError(
            "Unbalanced parentheses",
            formula=self.text, position=self.tokens[open_index].pos,
        )


def parse_formula(text: str) -> FormulaSpec:
    """
    Parse an R-style model formula.

    Args:
        text: Formula such as 'y ~ x + g' or 'y ~ x + (1 | subject)'

    Returns:
        FormulaSpec

    Raises:
        FormulaError: If the formula is malformed

    Examples:
        >>> spec = parse_formula('y ~ x * g')
        >>> spec.term_labels
        ['x', 'g', 'x:g']
        >>> parse_formula('y ~ x - 1').intercept
        False
    """
    if not isinstance(text, str):
        raise TypeError(f"formula must be str, got {type(text).__name__}")
    return _Parser(text).parse()
