"""
Workflow types (``billsplit_kernel.domain.workflow``).

Pure value objects for state machines whose edges are gated by the role of
the acting party.  The payment request lifecycle is declared with these
types; nothing here knows about payment requests.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* An (from_state, action) pair has at most one edge.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """One legal edge: ``action`` by any role in ``actors`` moves ``from_state`` to ``to_state``.

    ``stamps_completion=True`` marks the edge that records a completion time.
    """
    from_state: str
    to_state: str
    action: str
    actors: frozenset[str]
    stamps_completion: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition.

    Contract: frozen; validated on construction.
    ``terminal_states`` have no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} is not a state"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has an outgoing edge"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate edge for {t.action} from {t.from_state}"
                )
            seen.add(key)

    def actors_for(self, action: str) -> frozenset[str]:
        """Roles that may perform ``action`` from at least one state."""
        roles: set[str] = set()
        for t in self.transitions:
            if t.action == action:
                roles |= t.actors
        return frozenset(roles)

    def find(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def outgoing(self, from_state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == from_state)
