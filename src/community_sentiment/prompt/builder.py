"""Prompt building and template management for the community sentiment pipeline.

This module loads prompt templates shipped with the package (or supplied by
the caller) and renders them with validated placeholder data.

Template expectations:
  * Batch prompts require "num_texts" and "batch_content" placeholders.
  * Insight prompts require "group_key" and "posts_json" placeholders.
  * Framework report prompts require an "analysis_data" placeholder.

Literal braces in templates (e.g. the JSON example) must be doubled.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from string import Formatter
from typing import Any, Callable, ClassVar, Sequence

from ..processing.entities import Batch, PostRecord
from .exceptions import (
    PromptError,
    TemplateNotFoundError,
    PromptBuildError
)

Pathish = str | Path
TEMPLATES_DIR = Path(__file__).parent / 'templates'


class PromptBuilder(ABC):
    """Abstract base class for prompt builders.

    Subclasses name their packaged default template and required fields, and
    implement `build`.
    """

    DEFAULT_ENCODING: ClassVar[str] = "utf-8"
    DEFAULT_TEMPLATE: ClassVar[str] = ""
    REQUIRED_FIELDS: ClassVar[set[str]] = set()

    def __init__(self, template_file: Pathish | None = None) -> None:
        """Initialize the PromptBuilder with a template file.

        Args:
            template_file: Path to the template file. Defaults to the
                packaged template for this builder.
        """
        self.template_file = Path(template_file) if template_file else TEMPLATES_DIR / self.DEFAULT_TEMPLATE
        self.template: str | None = None
        self._load_template()
        self._require_template_fields(
            self._extract_placeholders(self.template), self.REQUIRED_FIELDS, self.template_file
        )

    def _load_template(self) -> None:
        """Load the template from the specified file.

        Raises:
            TemplateNotFoundError: If the template file doesn't exist.
            PromptError: If the template file cannot be read or is empty.
        """
        if not self.template_file.exists():
            raise TemplateNotFoundError(self.template_file)
        if not self.template_file.is_file():
            raise PromptError(
                f'Template path is not a file: {self.template_file}',
                template_file=self.template_file,
                operation='load'
            )

        try:
            self.template = self.template_file.read_text(
                encoding=self.DEFAULT_ENCODING
            )
        except OSError as e:
            raise PromptError(
                f'Error reading template file {self.template_file}: {e}',
                template_file=self.template_file,
                operation='load'
            ) from e

        if not self.template.strip():
            raise PromptError(
                f'Template file is empty: {self.template_file}',
                template_file=self.template_file,
                operation='load'
            )
        logging.debug('Template loaded from %s', self.template_file)

    @staticmethod
    def _extract_placeholders(template: str) -> set[str]:
        """Extracts top-level placeholder names from a format string.

        Args:
          template: The template string using str.format placeholders.

        Returns:
          A set of placeholder field names (root names only).
        """
        fields: set[str] = set()
        for _, field_name, _, _ in Formatter().parse(template):
            if field_name is None:
                continue
            # "a.b[0]" -> "a"
            before_dot, _, _ = field_name.partition(".")
            root, _, _ = before_dot.partition("[")
            if root:
                fields.add(root)
        return fields

    @staticmethod
    def _require_template_fields(
        present: set[str], required: set[str], template_file: Path
    ) -> None:
        """Ensures `required` is a subset of `present` placeholders.

        Raises:
          PromptBuildError: If any required fields are missing.
        """
        missing = required - present
        if missing:
            raise PromptBuildError(
                f"Template is missing required fields: {sorted(missing)}",
                template_file=template_file,
            )

    def _render(self, **fields: Any) -> str:
        try:
            prompt = self.template.format(**fields).strip()
        except (KeyError, ValueError, IndexError) as e:
            raise PromptBuildError(
                f'Template formatting failed: {e}',
                template_file=self.template_file
            ) from e
        if not prompt:
            raise PromptBuildError(
                'Formatted prompt is empty after processing.',
                template_file=self.template_file
            )
        return prompt

    @abstractmethod
    def build(self, *args: Any, **kwargs: Any) -> str:
        """Build a formatted prompt from the template.

        Raises:
            PromptBuildError: If prompt building fails.
        """


class SentimentPromptBuilder(PromptBuilder):
    """Renders the per-batch sentiment prompt.

    Each text is rendered as ``[i] text`` with its 1-based batch index; the
    provider is asked to echo these indices back.
    """

    DEFAULT_TEMPLATE: ClassVar[str] = "batch_prompt.txt"
    REQUIRED_FIELDS: ClassVar[set[str]] = {"num_texts", "batch_content"}

    def build(self, batch: Batch, truncate: Callable[[str], str] | None = None) -> str:
        """Build the prompt for one batch.

        Args:
            batch: Batch whose texts are rendered in order.
            truncate: Optional per-text truncation (the planner's budget).

        Returns:
            Formatted prompt string.

        Raises:
            PromptBuildError: If the batch is empty or formatting fails.
        """
        if not isinstance(batch, Batch):
            raise PromptBuildError(
                f"Expected Batch, got {type(batch).__name__}",
                template_file=self.template_file,
                data_type=type(batch).__name__
            )
        if not batch.items:
            raise PromptBuildError(
                'Batch cannot be empty',
                template_file=self.template_file
            )

        batch_content = self.format_batch_content(
            [unit.content for unit in batch.items], truncate
        )
        prompt = self._render(num_texts=len(batch), batch_content=batch_content)
        logging.debug(
            'Built prompt for batch %d: %d texts (total length: %d)',
            batch.ordinal, len(batch), len(prompt)
        )
        return prompt

    @staticmethod
    def format_batch_content(
            texts: Sequence[str],
            truncate: Callable[[str], str] | None = None
    ) -> str:
        """Number texts as ``[1] ...``, ``[2] ...`` separated by blank lines."""
        sections = []
        for i, text in enumerate(texts, start=1):
            body = truncate(text) if truncate else text
            sections.append(f'[{i}] {body}')
        return '\n\n'.join(sections)


class InsightPromptBuilder(PromptBuilder):
    """Renders the free-text insight prompt for one community."""

    DEFAULT_TEMPLATE: ClassVar[str] = "insight_prompt.txt"
    REQUIRED_FIELDS: ClassVar[set[str]] = {"group_key", "posts_json"}
    TOP_COMMENTS: ClassVar[int] = 5
    BODY_EXCERPT: ClassVar[int] = 1000

    def build(self, group_key: str, posts: Sequence[PostRecord]) -> str:
        """Build the insight prompt for one community's posts.

        Raises:
            PromptBuildError: If there are no posts or formatting fails.
        """
        if not posts:
            raise PromptBuildError(
                f'No posts to summarise for {group_key}',
                template_file=self.template_file
            )
        posts_json = json.dumps(
            [self._post_summary(post) for post in posts], indent=2, ensure_ascii=False
        )
        return self._render(group_key=group_key, posts_json=posts_json)

    @classmethod
    def _post_summary(cls, post: PostRecord) -> dict[str, Any]:
        top_comments = sorted(post.comments, key=lambda c: c.weight, reverse=True)[:cls.TOP_COMMENTS]
        return {
            'title': post.title,
            'content': (post.body or '')[:cls.BODY_EXCERPT],
            'score': post.weight,
            'comments_count': len(post.comments),
            'date': post.created_date.isoformat(),
            'top_comments': [
                {'text': comment.body, 'score': comment.weight} for comment in top_comments
            ],
        }


class FrameworkPromptBuilder(PromptBuilder):
    """Renders the structured community report prompt."""

    DEFAULT_TEMPLATE: ClassVar[str] = "framework_prompt.txt"
    REQUIRED_FIELDS: ClassVar[set[str]] = {"analysis_data"}

    def build(self, analysis_data: dict[str, Any]) -> str:
        """Build the report prompt around the cleaned analysis data.

        Raises:
            PromptBuildError: If the data is not a dictionary or formatting fails.
        """
        if not isinstance(analysis_data, dict):
            raise PromptBuildError(
                f"Expected dict, got {type(analysis_data).__name__}",
                template_file=self.template_file,
                data_type=type(analysis_data).__name__
            )
        return self._render(
            analysis_data=json.dumps(analysis_data, indent=2, ensure_ascii=False, default=str)
        )
