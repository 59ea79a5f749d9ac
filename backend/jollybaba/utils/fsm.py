from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Used for the inventory sale lifecycle:
    INVENTORY_FSM = TransitionValidator({
        'AVAILABLE': {'SOLD'},
        'SOLD': {'AVAILABLE'},
    }, errors={'AVAILABLE': NotSold, 'SOLD': NotAvailable})
    INVENTORY_FSM.assert_can_transition(current_status, target_status)

Raises the error class registered for the target (BusinessRuleError otherwise).
"""
from typing import Dict, Set, Type, Optional
from jollybaba.errors import BusinessRuleError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', errors: Optional[Dict[str, Type[BusinessRuleError]]] = None):
        self.graph = graph
        self.field_name = field_name
        self.errors = errors or {}

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def sources_for(self, target: str) -> Set[str]:
        """States from which ``target`` is reachable in one step."""
        return {state for state, targets in self.graph.items() if target in targets}

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            error_cls = self.errors.get(target, BusinessRuleError)
            raise error_cls(f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']
