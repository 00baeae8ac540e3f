"""Role capability lattices and access predicates for entries and projects."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class Capability(str, Enum):
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_MEMBERSHIP = "manage_membership"
    VIEW_ALL_ENTRIES = "view_all_entries"
    VIEW_BILLING = "view_billing"
    EDIT_ANY_ENTRY = "edit_any_entry"
    EDIT_OWN_ENTRY = "edit_own_entry"
    CREATE_ENTRY = "create_entry"
    VIEW_ENTRIES = "view_entries"


class ClientRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class ProjectRole(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"


ALL_CAPABILITIES = frozenset(Capability)
CONTRIBUTOR_CAPABILITIES = frozenset(
    {Capability.CREATE_ENTRY, Capability.EDIT_OWN_ENTRY, Capability.VIEW_ENTRIES}
)
READER_CAPABILITIES = frozenset({Capability.VIEW_ENTRIES})


@dataclass(frozen=True)
class RoleLattice:
    """Ordered roles, highest first, each holding a superset of the next."""

    name: str
    levels: tuple[tuple[str, frozenset[Capability]], ...]
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, int] = {}
        for position, (role, capabilities) in enumerate(self.levels):
            if role in index:
                raise ValueError(f"Duplicate role {role!r} in lattice {self.name!r}.")
            if position > 0 and not capabilities <= self.levels[position - 1][1]:
                raise ValueError(f"Role {role!r} exceeds the capabilities of the role above it.")
            index[role] = position
        object.__setattr__(self, "_index", index)

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(role for role, _ in self.levels)

    def knows(self, role: object) -> bool:
        return _role_name(role) in self._index

    def rank(self, role: object) -> int | None:
        """Position of the role, 0 being the most privileged."""

        return self._index.get(_role_name(role))

    def capabilities(self, role: object) -> frozenset[Capability]:
        position = self.rank(role)
        if position is None:
            return frozenset()
        return self.levels[position][1]

    def grants(self, role: object, capability: Capability) -> bool:
        return capability in self.capabilities(role)


def _role_name(role: object) -> str | None:
    if isinstance(role, Enum):
        role = role.value
    return role if isinstance(role, str) else None


CLIENT_LATTICE = RoleLattice(
    name="client",
    levels=(
        (ClientRole.OWNER.value, ALL_CAPABILITIES),
        (ClientRole.MEMBER.value, CONTRIBUTOR_CAPABILITIES),
    ),
)

PROJECT_LATTICE = RoleLattice(
    name="project",
    levels=(
        (ProjectRole.OWNER.value, ALL_CAPABILITIES),
        (ProjectRole.MANAGER.value, ALL_CAPABILITIES - {Capability.MANAGE_MEMBERSHIP}),
        (ProjectRole.MEMBER.value, CONTRIBUTOR_CAPABILITIES),
        (ProjectRole.VIEWER.value, READER_CAPABILITIES),
    ),
)

LATTICES: dict[str, RoleLattice] = {
    CLIENT_LATTICE.name: CLIENT_LATTICE,
    PROJECT_LATTICE.name: PROJECT_LATTICE,
}

# Client memberships are projected onto project memberships.
CLIENT_TO_PROJECT_ROLE: dict[ClientRole, ProjectRole] = {
    ClientRole.OWNER: ProjectRole.OWNER,
    ClientRole.MEMBER: ProjectRole.MEMBER,
}


class AccessPolicy:
    """Stateless predicates over one lattice; unknown roles are denied."""

    def __init__(self, lattice: RoleLattice = PROJECT_LATTICE) -> None:
        self.lattice = lattice

    def can_manage_project(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.MANAGE_SETTINGS)

    def can_manage_membership(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.MANAGE_MEMBERSHIP)

    def can_view_all_entries(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.VIEW_ALL_ENTRIES)

    def can_view_billing(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.VIEW_BILLING)

    def can_view_entries(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.VIEW_ENTRIES)

    def can_create_entry(self, role: object) -> bool:
        return self.lattice.grants(role, Capability.CREATE_ENTRY)

    def can_edit_entry(
        self,
        role: object,
        requester_id: UUID | str,
        entry_owner_id: UUID | str,
    ) -> bool:
        """Edit and delete share this predicate."""

        if self.lattice.grants(role, Capability.EDIT_ANY_ENTRY):
            return True
        if self.lattice.grants(role, Capability.EDIT_OWN_ENTRY):
            return str(requester_id) == str(entry_owner_id)
        return False


def get_access_policy(lattice_name: str) -> AccessPolicy:
    lattice = LATTICES.get(lattice_name)
    if lattice is None:
        raise ValueError(f"Unknown role lattice {lattice_name!r}.")
    return AccessPolicy(lattice)
