"""In-memory registry of droplet snapshots."""

from typing import Callable, Dict, Optional

from claw_shared.models import Droplet


class DropletRegistry:
    """
    Last known state per droplet id.

    Lives for the lifetime of the owning service. Entries are never evicted;
    writers overwrite whole snapshots and the last write wins.
    """

    def __init__(self):
        self._droplets: Dict[int, Droplet] = {}

    def get(self, droplet_id: int) -> Optional[Droplet]:
        return self._droplets.get(droplet_id)

    def set(self, droplet_id: int, droplet: Droplet) -> None:
        self._droplets[droplet_id] = droplet

    def update(
        self,
        droplet_id: int,
        mutator: Callable[[Droplet], Droplet],
    ) -> Optional[Droplet]:
        """
        Replace an entry with ``mutator(entry)``.

        Args:
            droplet_id: Droplet id
            mutator: Receives the current snapshot and returns the new one

        Returns:
            The stored snapshot, or None if there was no entry
        """
        current = self._droplets.get(droplet_id)
        if current is None:
            return None
        updated = mutator(current)
        self._droplets[droplet_id] = updated
        return updated

    def __contains__(self, droplet_id: object) -> bool:
        return droplet_id in self._droplets

    def __len__(self) -> int:
        return len(self._droplets)
