"""
inspection_kernel.domain.authorization -- Table-driven capability checks.

Responsibility:
    Decide whether an actor may perform an operation.  ``is_allowed`` is a
    pure function of (role set, operation): no hidden state, no I/O, same
    answer on every call.  ``authorize`` layers the resource-scoped rules
    (ownership, self-approval) on top of it.  Every workflow operation
    goes through ``authorize``; no route re-implements role checks.

Architecture position:
    Kernel > Domain.  Pure.  The capability table may be replaced from
    configuration, but is always passed in explicitly.

Invariants:
    - The actor identity is supplied by the caller (ActorContext); this
      module never resolves sessions or tokens.
    - The author of an inspection can never approve or reject it, whatever
      roles they hold.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    ADMIN = "ADMIN"
    REVIEWER = "REVIEWER"
    INSPECTOR = "INSPECTOR"
    SELLER = "SELLER"
    DEALER = "DEALER"


class Operation(str, Enum):
    """Operation tags checked by the capability table."""

    CREATE = "inspection.create"
    LIST = "inspection.list"
    VIEW = "inspection.view"
    EDIT = "inspection.edit"
    DELETE = "inspection.delete"
    SUBMIT = "inspection.submit"
    RESUBMIT = "inspection.resubmit"
    ADD_PHOTO = "inspection.photo.add"
    DELETE_PHOTO = "inspection.photo.delete"
    APPROVE = "inspection.approve"
    REJECT = "inspection.reject"
    EXPORT_PDF = "inspection.export_pdf"
    # Scopes: act on inspections authored by someone else
    VIEW_ANY = "inspection.view_any"
    MANAGE_ANY = "inspection.manage_any"


CapabilityTable = Mapping[str, frozenset[Operation]]

_AUTHOR_OPERATIONS = frozenset({
    Operation.CREATE,
    Operation.LIST,
    Operation.VIEW,
    Operation.EDIT,
    Operation.DELETE,
    Operation.SUBMIT,
    Operation.RESUBMIT,
    Operation.ADD_PHOTO,
    Operation.DELETE_PHOTO,
    Operation.EXPORT_PDF,
})

DEFAULT_CAPABILITIES: dict[str, frozenset[Operation]] = {
    Role.ADMIN.value: frozenset(Operation),
    Role.REVIEWER.value: frozenset({
        Operation.LIST,
        Operation.VIEW,
        Operation.VIEW_ANY,
        Operation.APPROVE,
        Operation.REJECT,
        Operation.EXPORT_PDF,
    }),
    Role.INSPECTOR.value: _AUTHOR_OPERATIONS,
    Role.SELLER.value: frozenset({
        Operation.VIEW,
        Operation.EDIT,
        Operation.DELETE,
        Operation.EXPORT_PDF,
    }),
    Role.DEALER.value: frozenset(),
}

# Operations that judge someone else's work
DECISION_OPERATIONS: frozenset[Operation] = frozenset({
    Operation.APPROVE,
    Operation.REJECT,
})

# Operations that read a single inspection
READ_OPERATIONS: frozenset[Operation] = frozenset({
    Operation.VIEW,
    Operation.EXPORT_PDF,
})


@dataclass(frozen=True)
class ActorContext:
    """Authenticated caller, passed explicitly into every workflow operation."""

    user_id: UUID
    roles: frozenset[str]

    @classmethod
    def of(cls, user_id: UUID, roles: Iterable[str | Role]) -> ActorContext:
        return cls(
            user_id=user_id,
            roles=frozenset(_role_name(r) for r in roles),
        )


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def _role_name(role: str | Role) -> str:
    return role.value if isinstance(role, Role) else str(role).strip().upper()


def granted_operations(
    roles: Iterable[str | Role],
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
) -> frozenset[Operation]:
    """Union of the operations granted to every role in ``roles``."""
    granted: set[Operation] = set()
    for role in roles:
        granted |= capabilities.get(_role_name(role), frozenset())
    return frozenset(granted)


def is_allowed(
    roles: Iterable[str | Role],
    operation: Operation,
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
) -> bool:
    """Pure capability check: does any role in ``roles`` grant ``operation``?"""
    return operation in granted_operations(roles, capabilities)


def check_authorization(
    roles: Iterable[str | Role],
    operation: Operation,
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
) -> AuthorizationDecision:
    """Like ``is_allowed`` but carries a short reason when denied."""
    roles = tuple(roles)
    if not roles:
        return AuthorizationDecision(False, "actor holds no roles")
    if is_allowed(roles, operation, capabilities):
        return AuthorizationDecision(True)
    return AuthorizationDecision(
        False, f"operation '{operation.value}' not granted to actor",
    )


def authorize(
    actor: ActorContext,
    operation: Operation,
    author_id: UUID | None = None,
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
) -> AuthorizationDecision:
    """
    Full check for ``operation`` on an inspection written by ``author_id``.

    ``author_id`` is None for operations that do not target an existing
    inspection (create, list).
    """
    decision = check_authorization(actor.roles, operation, capabilities)
    if not decision:
        return decision
    if author_id is None:
        return decision

    is_author = author_id == actor.user_id
    if operation in DECISION_OPERATIONS:
        if is_author:
            return AuthorizationDecision(False, "self-approval is forbidden")
        return decision

    if is_author:
        return decision
    scope = Operation.VIEW_ANY if operation in READ_OPERATIONS else Operation.MANAGE_ANY
    if is_allowed(actor.roles, scope, capabilities):
        return decision
    return AuthorizationDecision(
        False, "actor may only act on own inspections",
    )


def approval_capable_roles(
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
) -> frozenset[str]:
    """Roles allowed to decide on inspections."""
    return frozenset(
        role for role, ops in capabilities.items() if Operation.APPROVE in ops
    )


def build_capability_table(
    raw: Mapping[str, Iterable[str]],
) -> dict[str, frozenset[Operation]]:
    """
    Build a capability table from ``{role: [operation tag, ...]}``.

    ``"*"`` grants every operation.  Unknown tags raise ValueError.
    """
    table: dict[str, frozenset[Operation]] = {}
    for role, tags in raw.items():
        tags = list(tags or ())
        if "*" in tags:
            table[_role_name(role)] = frozenset(Operation)
            continue
        table[_role_name(role)] = frozenset(Operation(tag) for tag in tags)
    return table
