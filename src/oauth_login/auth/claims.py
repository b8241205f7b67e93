"""Claim values returned by identity providers.

ID token claims are JSON, so a claim value is one of a small closed set of
shapes. Extraction and comparison are total over that set: nothing here
casts blindly, and equality never confuses ``True`` with ``1``.
"""

from typing import Any, Mapping, TypeAlias

from pydantic import JsonValue

# str | bool | int | float | None | list[ClaimValue] | dict[str, ClaimValue]
ClaimValue: TypeAlias = JsonValue
Claims: TypeAlias = dict[str, ClaimValue]


def as_claim_value(value: Any) -> ClaimValue:
    """Coerce a decoded JSON value into the claim variant.

    Raises:
        TypeError: Value is not JSON-shaped
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [as_claim_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): as_claim_value(item) for key, item in value.items()}
    raise TypeError(f"unsupported claim value type: {type(value).__name__}")


def as_claims(payload: Mapping[str, Any]) -> Claims:
    """Build a claim set from a decoded token payload."""
    return {str(key): as_claim_value(value) for key, value in payload.items()}


def string_claim(claims: Mapping[str, ClaimValue], name: str) -> str | None:
    """Return the named claim if it is present and a string."""
    value = claims.get(name)
    return value if isinstance(value, str) else None


def claim_matches(actual: ClaimValue, expected: ClaimValue) -> bool:
    """Type-strict equality between a presented claim and a required value.

    Booleans only equal booleans, numbers compare numerically regardless of
    int/float, containers compare element-wise.
    """
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and actual is expected
    if isinstance(expected, (int, float)):
        return isinstance(actual, (int, float)) and actual == expected
    if isinstance(expected, str):
        return isinstance(actual, str) and actual == expected
    if expected is None:
        return actual is None
    if isinstance(expected, list):
        return (
            isinstance(actual, list)
            and len(actual) == len(expected)
            and all(claim_matches(a, e) for a, e in zip(actual, expected))
        )
    if isinstance(expected, dict):
        return (
            isinstance(actual, dict)
            and actual.keys() == expected.keys()
            and all(claim_matches(actual[key], expected[key]) for key in expected)
        )
    return False
