"""Roles: named claim-binding policies and their storage.

A role decides which ID token claims identify the user, which claims must
hold specific values, and what the issued token carries (policies, use
count, lifetimes).
"""

import json
import re
from datetime import timedelta
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from oauth_login.auth.claims import ClaimValue
from oauth_login.auth.storage import Storage
from oauth_login.errors import InvalidRequestError, StorageError

ROLE_PREFIX = "role/"

_NAME_RE = re.compile(r"^\w(?:[\w.-]*\w)?$")
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}


def parse_duration(value: Any) -> timedelta:
    """Parse a duration given as seconds or a Go-style string ("1h30m", "90s").

    Raises:
        ValueError: Malformed or negative duration
    """
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            seconds = 0.0
        elif text.isdigit():
            seconds = float(text)
        else:
            pos = 0
            seconds = 0.0
            for match in _DURATION_RE.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos != len(text):
                raise ValueError(f"invalid duration: {value!r}")
    else:
        raise ValueError(f"invalid duration: {value!r}")

    if seconds < 0:
        raise ValueError(f"duration cannot be negative: {value!r}")
    return timedelta(seconds=int(seconds))


def parse_policies(value: Any) -> list[str]:
    """Normalize a policy list given as a comma-separated string or a list.

    Entries are trimmed, lower-cased, de-duplicated and sorted. "root"
    subsumes every other policy.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        raw = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError(f"policy names must be strings, got {item!r}")
            raw.extend(item.split(","))
    else:
        raise ValueError(f"invalid policies: {value!r}")

    policies = {p.strip().lower() for p in raw if p.strip()}
    if "root" in policies:
        return ["root"]
    return sorted(policies)


def normalize_role_name(name: str) -> str:
    """Lower-case and validate a role name.

    Raises:
        InvalidRequestError: Empty or malformed name
    """
    name = (name or "").strip().lower()
    if not name:
        raise InvalidRequestError("missing role name")
    if not _NAME_RE.match(name):
        raise InvalidRequestError(f"invalid role name: {name!r}")
    return name


class Role(BaseModel):
    """Authorization policy applied to logins that name it."""

    name: str = Field(default="", exclude=True, description="Role name (storage key)")

    # Issued token properties
    policies: list[str] = Field(default_factory=list, description="Policies on the token")
    num_uses: int = Field(default=0, description="Times the token can be used (0 = unlimited)")
    ttl: timedelta = Field(default=timedelta(0), description="Token TTL (0 = system default)")
    max_ttl: timedelta = Field(
        default=timedelta(0), description="Token max TTL (0 = system maximum)"
    )

    # Claim binding
    user_claim: str = Field(default="sub", description="Claim used as the alias name")
    email_claim: str = Field(default="email", description="Optional email claim")
    given_name_claim: str = Field(default="given_name", description="Optional given name claim")
    bound_claims: dict[str, ClaimValue] = Field(
        default_factory=dict, description="Claims that must all match exactly"
    )

    @field_validator("name")
    @classmethod
    def _lower_name(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("policies", mode="before")
    @classmethod
    def _parse_policies(cls, v: Any) -> list[str]:
        return parse_policies(v)

    @field_validator("ttl", "max_ttl", mode="before")
    @classmethod
    def _parse_duration(cls, v: Any) -> timedelta:
        return parse_duration(v)

    @field_validator("bound_claims", mode="before")
    @classmethod
    def _parse_bound_claims(cls, v: Any) -> Any:
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"bound_claims is not valid JSON: {e}") from e
        if not isinstance(v, Mapping):
            raise ValueError("bound_claims must be a JSON object")
        return dict(v)

    @field_serializer("ttl", "max_ttl")
    def _seconds(self, v: timedelta) -> int:
        return int(v.total_seconds())

    @model_validator(mode="after")
    def _check(self) -> "Role":
        if self.num_uses < 0:
            raise ValueError("num_uses cannot be negative")
        if not self.user_claim:
            raise ValueError("a user claim must be defined on the role")
        if self.max_ttl > timedelta(0) and self.ttl > self.max_ttl:
            raise ValueError("ttl should not be greater than max_ttl")
        return self


def build_role(name: str, fields: Mapping[str, Any], base: Role | None = None) -> Role:
    """Validate a role from request fields, optionally merged over an existing role.

    Raises:
        InvalidRequestError: Any field fails validation
    """
    data: dict[str, Any] = base.model_dump() if base is not None else {}
    data.update(fields)
    data["name"] = name
    try:
        return Role.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(_validation_message(e)) from e


def _validation_message(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        msg = detail["msg"].removeprefix("Value error, ")
        loc = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


class RoleStore:
    """CRUD for roles over the storage collaborator.

    Each role lives under its own key, so operations on different roles
    never contend. Concurrent writes to one role resolve last-writer-wins.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def get(self, name: str) -> Role | None:
        name = normalize_role_name(name)
        raw = self.storage.get(ROLE_PREFIX + name)
        if raw is None:
            return None

        try:
            role = Role.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"stored role {name!r} is corrupt: {e}") from e
        role.name = name
        return role

    def save(self, role: Role) -> None:
        name = normalize_role_name(role.name)
        self.storage.put(ROLE_PREFIX + name, role.model_dump_json().encode("utf-8"))

    def delete(self, name: str) -> None:
        self.storage.delete(ROLE_PREFIX + normalize_role_name(name))

    def list(self) -> list[str]:
        return [key for key in self.storage.list(ROLE_PREFIX) if not key.endswith("/")]
