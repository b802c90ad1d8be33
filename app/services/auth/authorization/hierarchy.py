"""
Scope containment index.

User records only carry flat scope codes, so nothing says which district
belongs to which state. ``ScopeIndex`` keeps parent pointers
(district -> state, school -> district, school -> state) built from the
scope rows already stored on users, letting the engine answer "is school X
inside district Y" instead of trusting every STATE or DISTRICT user with
every lower scope.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Set, Tuple

import structlog

logger = structlog.get_logger(__name__)

ScopeRow = Tuple[Optional[str], Optional[str], Optional[str]]


class ScopeIndex:
    """Parent-pointer table of the organizational tree."""

    def __init__(self):
        self._district_state: Dict[str, str] = {}
        self._school_district: Dict[str, str] = {}
        self._school_state: Dict[str, str] = {}
        self._conflicts: Set[str] = set()

    @classmethod
    def from_rows(cls, rows: Iterable[ScopeRow]) -> ScopeIndex:
        """
        Build an index from (state, district, school) triples.

        Args:
            rows: Scope triples, any element may be None

        Returns:
            Populated index
        """
        index = cls()
        for state_code, district_code, school_code in rows:
            index.add(state_code, district_code, school_code)
        return index

    def add(
        self,
        state_code: Optional[str],
        district_code: Optional[str] = None,
        school_code: Optional[str] = None,
    ) -> None:
        """Record the containment implied by one scope triple."""
        if district_code and state_code:
            self._link(self._district_state, district_code, state_code)
        if school_code and district_code:
            self._link(self._school_district, school_code, district_code)
        if school_code and state_code:
            self._link(self._school_state, school_code, state_code)

    def _link(self, table: Dict[str, str], child: str, parent: str) -> None:
        existing = table.get(child)
        if existing is None:
            table[child] = parent
        elif existing != parent:
            # A code claimed by two parents is ambiguous; it is never
            # treated as contained in either.
            self._conflicts.add(child)
            logger.warning("scope_containment_conflict", code=child, parents=[existing, parent])

    def knows_district(self, district_code: str) -> bool:
        return district_code in self._district_state or district_code in self._conflicts

    def knows_school(self, school_code: str) -> bool:
        return (
            school_code in self._school_district
            or school_code in self._school_state
            or school_code in self._conflicts
        )

    def state_of_district(self, district_code: str) -> Optional[str]:
        if district_code in self._conflicts:
            return None
        return self._district_state.get(district_code)

    def district_of_school(self, school_code: str) -> Optional[str]:
        if school_code in self._conflicts:
            return None
        return self._school_district.get(school_code)

    def state_of_school(self, school_code: str) -> Optional[str]:
        if school_code in self._conflicts:
            return None
        state = self._school_state.get(school_code)
        if state is None:
            district = self.district_of_school(school_code)
            if district is not None:
                state = self.state_of_district(district)
        return state

    def district_in_state(self, district_code: str, state_code: Optional[str]) -> bool:
        return state_code is not None and self.state_of_district(district_code) == state_code

    def school_in_district(self, school_code: str, district_code: Optional[str]) -> bool:
        return district_code is not None and self.district_of_school(school_code) == district_code

    def school_in_state(self, school_code: str, state_code: Optional[str]) -> bool:
        return state_code is not None and self.state_of_school(school_code) == state_code

    def __len__(self) -> int:
        return len(self._district_state) + len(self._school_district)
