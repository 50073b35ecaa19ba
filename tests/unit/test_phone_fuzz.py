"""Property-based tests for phone and identifier normalization.

Complement the example-based tests in test_phone.py.
"""

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from heartguide.core.phone import normalize_identifier, to_e164

_DIGITS = st.text(alphabet="0123456789", min_size=0, max_size=20)
_SEPARATORS = st.text(alphabet=" -().", min_size=0, max_size=3)

_ANY_TEXT = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=0,
    max_size=50,
)


@settings(max_examples=200)
@given(raw=_ANY_TEXT)
def test_output_is_plus_and_ascii_digits(raw):
    assert re.fullmatch(r"\+[0-9]*", to_e164(raw))


@settings(max_examples=200)
@given(raw=_ANY_TEXT)
def test_idempotent(raw):
    once = to_e164(raw)
    assert to_e164(once) == once


@settings(max_examples=200)
@given(digits=_DIGITS, data=st.data())
def test_separators_ignored(digits, data):
    seps = [data.draw(_SEPARATORS) for _ in digits]
    formatted = "".join(sep + d for sep, d in zip(seps, digits, strict=True))
    assert to_e164(formatted) == to_e164(digits)


@settings(max_examples=100)
@given(local=st.from_regex(r"[A-Za-z0-9._]{1,20}", fullmatch=True))
def test_email_identifiers_lowercased(local):
    normalized = normalize_identifier(f"  {local}@Example.COM ")
    assert normalized == f"{local.lower()}@example.com"
    assert normalize_identifier(normalized) == normalized
