"""
Filter Engine Module - Operator query grammar over connection events

Grammar:
    query := term ('+' term)*
    term  := ['!'] (field ':' value | keyword | bareword)

Semantics:
- '+' is AND across terms, a leading '!' negates a single term
- "tcp" / "udp" keywords match the protocol
- field:value matches the named field as a case-insensitive substring
- a bareword matches domain, source or destination as a substring
- anything unrecognised degrades to a bareword; parsing never raises
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .line_parser import Event, Protocol, StructuredEvent, UnstructuredEvent


class TermKind(Enum):
    """How a term is evaluated"""
    PROTOCOL = "protocol"
    FIELD = "field"
    BAREWORD = "bareword"


# Query field name -> event attribute read by _field_text
FIELD_ALIASES = {
    "domain": "domain",
    "host": "domain",
    "sni": "domain",
    "source": "source",
    "src": "source",
    "destination": "destination",
    "dest": "destination",
    "dst": "destination",
    "protocol": "protocol",
    "proto": "protocol",
    "device": "device",
    "org": "org",
    "time": "time",
    "timestamp": "time",
}

PROTOCOL_KEYWORDS = {p.value.lower(): p for p in Protocol}

BAREWORD_FIELDS = ("domain", "source", "destination")


@dataclass(frozen=True)
class FilterTerm:
    """One parsed query term"""
    kind: TermKind
    value: str
    field: Optional[str] = None
    negated: bool = False

    def matches(self, event: Event) -> bool:
        """Evaluate the term, applying negation"""
        return self._evaluate(event) != self.negated

    def _evaluate(self, event: Event) -> bool:
        if isinstance(event, UnstructuredEvent):
            # Only free-text search applies to lines without fields
            if self.kind is TermKind.BAREWORD:
                return self.value in event.raw.lower()
            return False

        if self.kind is TermKind.PROTOCOL:
            return event.protocol.value.lower() == self.value

        if self.kind is TermKind.FIELD:
            return self.value in _field_text(event, self.field)

        return any(self.value in _field_text(event, name) for name in BAREWORD_FIELDS)


@dataclass(frozen=True)
class FilterExpression:
    """Immutable parsed query; an empty expression passes everything"""
    query: str
    terms: Tuple[FilterTerm, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.terms

    def matches(self, event: Event) -> bool:
        """True when every term matches the event"""
        return all(term.matches(event) for term in self.terms)


def _field_text(event: StructuredEvent, field: str) -> str:
    """Lower-cased text of a named field"""
    if field == "protocol":
        value = event.protocol.value
    elif field == "device":
        value = event.device_name or ""
    elif field == "org":
        value = event.destination_org or ""
    elif field == "time":
        value = event.timestamp
    else:
        value = getattr(event, field)
    return value.lower()


def parse_term(fragment: str) -> Optional[FilterTerm]:
    """
    Parse a single query fragment

    Args:
        fragment: Text between '+' separators

    Returns:
        FilterTerm, or None when the fragment is empty
    """
    text = fragment.strip().lower()
    negated = False
    if text.startswith("!"):
        negated = True
        text = text[1:].strip()

    if not text:
        return None

    if text in PROTOCOL_KEYWORDS:
        return FilterTerm(TermKind.PROTOCOL, text, negated=negated)

    # Split at the first colon; unknown prefixes (e.g. "10.0.0.1:443") stay barewords
    name, sep, value = text.partition(":")
    if sep and name.strip() in FIELD_ALIASES:
        return FilterTerm(
            TermKind.FIELD,
            value.strip(),
            field=FIELD_ALIASES[name.strip()],
            negated=negated,
        )

    return FilterTerm(TermKind.BAREWORD, text, negated=negated)


def compile_filter(query: str) -> FilterExpression:
    """Parse a full query string into a FilterExpression"""
    terms = []
    for fragment in (query or "").split("+"):
        term = parse_term(fragment)
        if term is not None:
            terms.append(term)
    return FilterExpression(query=query or "", terms=tuple(terms))


def apply_filter(events: Iterable[Event], expression: FilterExpression) -> List[Event]:
    """Return the events passing the expression, order preserved"""
    if expression.is_empty:
        return list(events)
    return [event for event in events if expression.matches(event)]
