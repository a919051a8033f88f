from __future__ import annotations

from typing import Dict, List, Optional

from ..contracts.v1 import Instance, RegisterRequest


MAIN_ROLE = "main"


class InstanceRegistry:
    """In-memory map of instance id -> Instance for the life of the process.

    Registration is an upsert keyed by id (last write wins). Re-registering an
    id keeps its original position, so "first registered" stays stable.
    Nothing is ever removed.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Instance] = {}

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._instances

    def register(self, req: RegisterRequest) -> Instance:
        inst = Instance.from_registration(req)
        self._instances[inst.id] = inst
        return inst

    def get(self, instance_id: str) -> Optional[Instance]:
        return self._instances.get(instance_id)

    def resolve(self, to: Optional[str] = None) -> Optional[Instance]:
        """Resolve a recipient name; None means not found.

        Empty or "main" picks the first instance whose role is "main";
        anything else must match an id exactly.
        """
        key = (to or "").strip()
        if not key or key == MAIN_ROLE:
            for inst in self._instances.values():
                if inst.role == MAIN_ROLE:
                    return inst
            return None
        return self._instances.get(key)

    def display_name(self, instance_id: str) -> str:
        inst = self._instances.get(instance_id)
        return inst.display_name if inst is not None else instance_id

    def snapshot(self) -> List[Instance]:
        return list(self._instances.values())
