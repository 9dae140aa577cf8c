"""
Logical combinator for validation rule groups.

Two wire formats describe the same thing:

    legacy: {"operator": "or", "rules": [...], "groupMessage": "..."}
    keyed:  {"or": [...]} | {"and": [...]} | {"not": {...}}

Both are normalized at the parse boundary into one canonical payload
(operator + ordered member list). Everything downstream of
normalize_group_payload() only sees the canonical form.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class GroupOperator(str, Enum):
    """Supported logical operators for rule groups."""

    AND = "and"
    OR = "or"
    NOT = "not"


_OPERATOR_VALUES = tuple(o.value for o in GroupOperator)

DEFAULT_GROUP_MESSAGE = "Validation group failed"
DEFAULT_RULE_MESSAGE = "Validation failed"


class GroupLike(Protocol):
    operator: GroupOperator
    rules: Sequence[Any]
    group_message: str | None
    message: str | None
    stop_on_first_error: bool


@dataclass(frozen=True)
class MemberOutcome:
    """Pass/fail of a single group member (rule or nested group)."""

    failed: bool
    message: str | None = None


@dataclass(frozen=True)
class GroupOutcome:
    """Result of combining a group's member outcomes."""

    failed: bool
    message: str | None
    member_messages: tuple[str, ...] = ()


# --- Shape detection (parse boundary only) ---


def is_rule(raw: Any) -> bool:
    """A single validation rule carries a string `type`."""
    return isinstance(raw, dict) and isinstance(raw.get("type"), str)


def is_rule_group(raw: Any) -> bool:
    """Detect either rule group wire format."""
    if not isinstance(raw, dict):
        return False
    if raw.get("operator") in _OPERATOR_VALUES:
        return True
    return any(key in raw for key in _OPERATOR_VALUES) and "type" not in raw


def normalize_group_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize either group wire format into the canonical payload.

    The canonical payload has exactly one operator and a member list.
    A `not` group always ends up with at most one member: several
    members under `not` are wrapped in an implicit `and` group, which is
    what negating "all of them pass" means.

    Args:
        raw: The group as found in the configuration.

    Returns:
        Dict with operator, rules, group_message, message, stop_on_first_error.
    """
    operator, members = _resolve_operator_and_members(raw)

    if operator == GroupOperator.NOT.value and len(members) > 1:
        members = [{"operator": GroupOperator.AND.value, "rules": members}]

    return {
        "operator": operator,
        "rules": members,
        "group_message": raw.get("groupMessage", raw.get("group_message")),
        "message": raw.get("message"),
        "stop_on_first_error": bool(
            raw.get("stopOnFirstError", raw.get("stop_on_first_error", False))
        ),
    }


def _resolve_operator_and_members(raw: dict[str, Any]) -> tuple[str, list[Any]]:
    explicit = raw.get("operator")
    if explicit in _OPERATOR_VALUES:
        members = raw.get("rules")
        if isinstance(members, list):
            return explicit, list(members)
        keyed = raw.get(explicit)
        return explicit, _as_members(keyed)

    for key in (GroupOperator.OR.value, GroupOperator.AND.value, GroupOperator.NOT.value):
        if key in raw:
            return key, _as_members(raw[key])

    return GroupOperator.AND.value, list(raw.get("rules") or [])


def _as_members(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


# --- Combination ---


def combine(operator: GroupOperator, member_failures: Sequence[bool]) -> bool:
    """Decide whether a group failed from its members' failure flags.

    - and: fails if any member failed.
    - or:  fails only if every member failed (and there is at least one).
    - not: fails if its member did NOT fail.

    Empty member lists never fail.

    Returns:
        True if the group failed.
    """
    failed_count = sum(1 for failed in member_failures if failed)
    total = len(member_failures)

    match operator:
        case GroupOperator.AND:
            return failed_count > 0
        case GroupOperator.OR:
            return total > 0 and failed_count == total
        case GroupOperator.NOT:
            return total > 0 and failed_count == 0

    raise ValueError(f"Unsupported group operator: {operator!r}")


def group_failure_message(group: GroupLike, member_messages: Sequence[str]) -> str:
    """groupMessage, else message, else the joined member messages."""
    return (
        group.group_message
        or group.message
        or ", ".join(member_messages)
        or DEFAULT_GROUP_MESSAGE
    )


def evaluate_group(
    group: GroupLike,
    run_member: Callable[[Any], MemberOutcome | None],
) -> GroupOutcome:
    """Evaluate a normalized group.

    `run_member` executes one member (rule or nested group) and returns
    its outcome, or None when the member does not apply. An inapplicable
    member did not fail: under `or` it still counts as a passing member,
    under `and` and `not` it takes no part in the combination. Nested
    groups are expected to recurse back into evaluate_group() from
    inside run_member.

    stop_on_first_error short-circuits `and` groups only: after the first
    failure an `and` group has failed regardless of the remaining members.
    """
    short_circuit = group.stop_on_first_error and group.operator == GroupOperator.AND
    failures: list[bool] = []
    messages: list[str] = []
    skipped = 0

    for member in group.rules:
        outcome = run_member(member)
        if outcome is None:
            skipped += 1
            continue

        failures.append(outcome.failed)
        if outcome.failed:
            messages.append(outcome.message or DEFAULT_RULE_MESSAGE)
            if short_circuit:
                break

    if group.operator == GroupOperator.OR:
        failures.extend([False] * skipped)

    failed = combine(group.operator, failures)
    message = group_failure_message(group, messages) if failed else None
    return GroupOutcome(failed=failed, message=message, member_messages=tuple(messages))
