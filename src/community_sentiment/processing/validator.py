"""Input validation for post records entering the pipeline."""

from dataclasses import replace
from typing import Any, Dict, List, Union

from .entities import PostRecord, normalize_timestamp
from .exceptions import ValidationError

PostInput = Union[PostRecord, Dict[str, Any]]


class RecordValidator:
    """Validates and normalises post records."""

    @staticmethod
    def validate_record(record: PostInput) -> PostRecord:
        """Validate a single post record.

        Args:
            record: A PostRecord or an upstream JSON dictionary.

        Returns:
            The record as a PostRecord.

        Raises:
            ValidationError: If record validation fails.
        """
        if isinstance(record, dict):
            return PostRecord.from_dict(record)

        if not isinstance(record, PostRecord):
            raise ValidationError(
                f'Record must be a PostRecord or dictionary, got {type(record).__name__}'
            )

        missing_fields = [
            name for name in ('id', 'group_key', 'created_at')
            if getattr(record, name) in (None, '')
        ]
        if missing_fields:
            raise ValidationError(
                f'Missing required fields: {missing_fields}',
                record_id=str(record.id or 'unknown'),
                missing_fields=missing_fields
            )

        try:
            created_at = normalize_timestamp(record.created_at)
        except ValueError as e:
            raise ValidationError(f'Invalid created_at: {e}', record_id=str(record.id)) from e
        if created_at is not record.created_at:
            record = replace(record, created_at=created_at)
        return record

    @staticmethod
    def validate_records(records: List[PostInput]) -> List[PostRecord]:
        """Validate a list of post records.

        Args:
            records: Post records in upstream order.

        Returns:
            The records as PostRecords, order preserved.

        Raises:
            ValidationError: If any record validation fails.
        """
        if not isinstance(records, (list, tuple)):
            raise ValidationError('Records must be a list')

        validated = []
        for i, record in enumerate(records):
            try:
                validated.append(RecordValidator.validate_record(record))
            except ValidationError as e:
                raise ValidationError(
                    f'Error in record at index {i}: {e}',
                    record_id=e.record_id,
                    missing_fields=e.missing_fields
                ) from e
        return validated
