"""Assign stable integer IDs to unique modified peptide sequences."""

from typing import Dict, Optional, Tuple


class UniqueSequenceRegistry:
    """
    Registry of unique (clean sequence, modification description) combinations.

    IDs are assigned incrementally, starting at `start_id`.
    """

    def __init__(self, start_id: int = 1) -> None:
        self._sequences: Dict[str, int] = {}
        self._next_id = start_id

    def __len__(self) -> int:
        return len(self._sequences)

    def __contains__(self, key: str) -> bool:
        return key in self._sequences

    def clear(self, start_id: int = 1):
        self._sequences = {}
        self._next_id = start_id

    @staticmethod
    def _make_key(sequence: Optional[str], mod_description: Optional[str]) -> str:
        return (sequence or "") + "_" + (mod_description or "")

    def get_or_assign_id(
        self, sequence: Optional[str], mod_description: Optional[str]
    ) -> Tuple[int, bool]:
        """
        Get the ID of a modified sequence, assigning a new ID if it is not known yet.

        Returns
        -------
        unique_seq_id : int
        was_existing : bool
            True if the sequence was already registered.

        """
        key = self._make_key(sequence, mod_description)
        if key in self._sequences:
            return self._sequences[key], True

        unique_seq_id = self._next_id
        self._sequences[key] = unique_seq_id
        self._next_id += 1
        return unique_seq_id, False
