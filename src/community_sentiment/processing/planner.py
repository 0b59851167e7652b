"""Batch planning for provider calls."""

import logging
from typing import List, Sequence

from ..config.settings import ProviderProfile
from .entities import Batch, TextUnit


class BatchPlanner:
    """Slices text units into contiguous, provider-sized batches.

    Contiguous slicing keeps the mapping from a batch-local 1-based index to
    the global unit list a plain offset: ``units[batch.offset + i - 1]``.
    """

    def __init__(self, batch_size: int, max_text_length: int) -> None:
        if batch_size < 1:
            raise ValueError(f'batch_size must be positive, got {batch_size}')
        if max_text_length < 1:
            raise ValueError(f'max_text_length must be positive, got {max_text_length}')
        self.batch_size = batch_size
        self.max_text_length = max_text_length

    @classmethod
    def from_profile(cls, profile: ProviderProfile) -> 'BatchPlanner':
        return cls(profile.batch_size, profile.max_text_length)

    def plan(self, units: Sequence[TextUnit]) -> List[Batch]:
        """Split units into batches of at most ``batch_size`` items.

        Args:
            units: Collected text units in order.

        Returns:
            Batches with 1-based ordinals; empty input gives an empty list.
        """
        batches = [
            Batch(
                items=tuple(units[start:start + self.batch_size]),
                ordinal=ordinal,
                offset=start,
            )
            for ordinal, start in enumerate(range(0, len(units), self.batch_size), start=1)
        ]
        logging.info(
            'Planned %d batches for %d text units (batch size %d)',
            len(batches), len(units), self.batch_size
        )
        return batches

    def truncate(self, text: str) -> str:
        """Cut a text down to at most ``max_text_length`` characters for the prompt."""
        return text[:self.max_text_length]
