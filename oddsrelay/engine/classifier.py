"""
Outcome Classifier.

Maps a raw Kambi outcome to a short canonical bet-type code:

    "1", "X", "2"       match result
    "1H1", "2HX"        half result
    "AH1", "GAH2"       set / game handicap (tennis)
    "1HAH2"             first-half handicap (football)
    "GO", "3HGU"        total games, total games in set 3
    "1HO", "THU"        total goals first half, team total (home) under

Classification is best-effort: labels are matched against per-sport rule
tables, first match wins, and anything unrecognised returns None, which
callers treat as "drop this outcome". Unknown markets are never mapped
to a known code.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from oddsrelay.models.schemas import Criterion, RawOutcome

# Returned when an outcome cannot be classified
REJECT = None


@dataclass(frozen=True)
class LabelContext:
    """Inputs of one classification, pre-normalized."""
    label: str                  # lower-cased English criterion label
    order: tuple
    outcome: RawOutcome
    home_name: str
    away_name: str

    @property
    def order_index(self) -> Optional[int]:
        """The single integral order value, or None."""
        if len(self.order) != 1:
            return None
        value = self.order[0]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if value != int(value):
            return None
        return int(value)


def contains_only_allowed_words(label: str, allowed_words: frozenset[str]) -> bool:
    """True if every whitespace token of ``label`` is in ``allowed_words``."""
    return all(word in allowed_words for word in label.lower().split())


# =============================================================================
# Tennis
# =============================================================================

@dataclass(frozen=True)
class Variant:
    """One concrete shape of a tennis market family."""
    matches: Callable[[str, Optional[int]], bool]
    base_code: Callable[[int], str]
    allowed_words: Optional[Callable[[int], frozenset[str]]] = None


@dataclass(frozen=True)
class Family:
    """
    A tennis market family.

    The first family whose guard matches owns the label. If none of its
    variants accepts the label, the outcome is rejected; later families are
    not consulted.
    """
    name: str
    guard: Callable[[str], bool]
    variants: tuple[Variant, ...]


def _is_set_number(n: Optional[int]) -> bool:
    return n is not None and 1 <= n <= 5


TENNIS_FAMILIES: tuple[Family, ...] = (
    Family(
        name="handicap",
        guard=lambda label: "handicap" in label,
        variants=(
            Variant(
                matches=lambda label, n: "game" in label and n == 0,
                base_code=lambda n: "GAH",
                allowed_words=lambda n: frozenset({"game", "handicap"}),
            ),
            Variant(
                matches=lambda label, n: "set" in label and n == 0,
                base_code=lambda n: "AH",
                allowed_words=lambda n: frozenset({"set", "handicap"}),
            ),
        ),
    ),
    Family(
        name="match_winner",
        guard=lambda label: "match odds" in label or label == "noteringen wedstrijd",
        variants=(
            Variant(
                matches=lambda label, n: n == 0,
                base_code=lambda n: "",
                allowed_words=lambda n: frozenset({"match", "odds", "noteringen", "wedstrijd"}),
            ),
        ),
    ),
    Family(
        name="set_winner",
        guard=lambda label: (
            "set" in label
            and "game" not in label
            and "point" not in label
            and "total" not in label
        ),
        variants=(
            Variant(
                matches=lambda label, n: _is_set_number(n),
                base_code=lambda n: f"{n}H",
                allowed_words=lambda n: frozenset({"set", str(n)}),
            ),
        ),
    ),
    Family(
        name="totals",
        guard=lambda label: "total" in label,
        variants=(
            Variant(
                matches=lambda label, n: "games" in label and n == 0,
                base_code=lambda n: "G",
            ),
            Variant(
                matches=lambda label, n: "sets" in label and n == 0,
                base_code=lambda n: "",
            ),
            Variant(
                matches=lambda label, n: "games" in label and "set" in label and _is_set_number(n),
                base_code=lambda n: f"{n}HG",
            ),
        ),
    ),
)

# Outcome type tag -> code suffix. OT_CROSS is handled separately.
SELECTION_SUFFIX: dict[str, str] = {
    "OT_ONE": "1",
    "OT_HOME": "1",
    "OT_TWO": "2",
    "OT_AWAY": "2",
    "OT_OVER": "O",
    "OT_UNDER": "U",
}


def _tennis_base_code(ctx: LabelContext) -> Optional[str]:
    n = ctx.order_index
    for family in TENNIS_FAMILIES:
        if not family.guard(ctx.label):
            continue
        for variant in family.variants:
            if not variant.matches(ctx.label, n):
                continue
            if variant.allowed_words is not None and not contains_only_allowed_words(
                ctx.label, variant.allowed_words(n)
            ):
                return REJECT
            return variant.base_code(n)
        return REJECT
    return REJECT


def classify_tennis(ctx: LabelContext) -> Optional[str]:
    base = _tennis_base_code(ctx)
    if base is None:
        return REJECT

    outcome_type = ctx.outcome.type
    if outcome_type in SELECTION_SUFFIX:
        return base + SELECTION_SUFFIX[outcome_type]
    # A draw only exists on the match-winner market
    if outcome_type == "OT_CROSS" and base == "":
        return "X"
    return REJECT


# =============================================================================
# Football
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """Label predicate plus the code it produces. First matching rule owns the label."""
    name: str
    matches: Callable[[str], bool]
    code: Callable[[LabelContext], Optional[str]]


TOTAL_GOALS_HALVES = (
    ("1H", ("first half", "1e helft", "1st half")),
    ("2H", ("2nd half", "2e helft")),
)

HANDICAP_HALVES = (
    ("1H", ("1st half", "1e helft", "first half")),
    ("2H", ("2nd half", "2e helft", "second half")),
)


def _half_prefix(label: str, halves) -> str:
    for prefix, markers in halves:
        if any(marker in label for marker in markers):
            return prefix
    return ""


def _over_under(english_label: str) -> Optional[str]:
    text = english_label.lower()
    if "over" in text:
        return "O"
    if "under" in text:
        return "U"
    return None


def _pass_through(prefix: str) -> Callable[[LabelContext], Optional[str]]:
    def code(ctx: LabelContext) -> Optional[str]:
        short = ctx.outcome.short_label
        return prefix + short if short else REJECT
    return code


def _total_goals(ctx: LabelContext) -> Optional[str]:
    prefix = _half_prefix(ctx.label, TOTAL_GOALS_HALVES)
    over_under = _over_under(ctx.outcome.label_in_english)

    if "by" in ctx.label or "door" in ctx.label:
        home = ctx.home_name.lower()
        away = ctx.away_name.lower()
        if home and home in ctx.label:
            team = "H"
        elif away and away in ctx.label:
            team = "A"
        else:
            return REJECT
        return f"{prefix}T{team}{over_under}" if over_under else REJECT

    return prefix + over_under if over_under else REJECT


def _handicap(ctx: LabelContext) -> Optional[str]:
    prefix = _half_prefix(ctx.label, HANDICAP_HALVES)
    participant = ctx.outcome.participant_name.lower()
    if not participant:
        return REJECT
    if participant == ctx.home_name.lower():
        return prefix + "AH1"
    if participant == ctx.away_name.lower():
        return prefix + "AH2"
    return REJECT


FOOTBALL_RULES: tuple[Rule, ...] = (
    Rule("match_result", lambda label: label in ("full time", "1x2"), _pass_through("")),
    Rule("first_half_result", lambda label: label in ("first half 1x2", "half time"), _pass_through("1H")),
    Rule("second_half_result", lambda label: label == "2nd half 1x2", _pass_through("2H")),
    Rule("total_goals", lambda label: "total goals" in label or "asian total" in label, _total_goals),
    # "3-way handicap" is a different market
    Rule("handicap", lambda label: "handicap" in label and "3" not in label, _handicap),
)


def classify_football(ctx: LabelContext) -> Optional[str]:
    for rule in FOOTBALL_RULES:
        if rule.matches(ctx.label):
            return rule.code(ctx)
    return REJECT


# =============================================================================
# Entry point
# =============================================================================

SPORT_CLASSIFIERS: dict[str, Callable[[LabelContext], Optional[str]]] = {
    "tennis": classify_tennis,
    "football": classify_football,
    "soccer": classify_football,
}


def classify(
    outcome: RawOutcome,
    criterion: Optional[Criterion],
    home_name: str,
    away_name: str,
    sport: str,
) -> Optional[str]:
    """
    Classify one outcome of a bet offer.

    Args:
        outcome: The raw outcome (type tag, labels, participant)
        criterion: The bet offer's criterion (English label, order)
        home_name: Home participant as named by the event
        away_name: Away participant as named by the event
        sport: Event sport, any case

    Returns:
        Canonical code, or None when the outcome must be dropped
    """
    if criterion is None:
        return REJECT

    label = criterion.english_label.lower()
    # Sub-range markets ("Total Goals: 2-3") are never classified
    if ":" in label:
        return REJECT

    handler = SPORT_CLASSIFIERS.get(sport.strip().lower())
    if handler is None:
        return REJECT

    return handler(LabelContext(
        label=label,
        order=tuple(criterion.order),
        outcome=outcome,
        home_name=home_name,
        away_name=away_name,
    ))
