"""When to flush writes during a long enrichment pass.

Commits are durable but not free, so a pass flushes every
``docs_before_flush`` processed items and once more at the end. How often it
flushes only decides how much work a crash can lose; the final index
content is the same either way.
"""

from pydantic import BaseModel, Field

DEFAULT_DOCS_BEFORE_FLUSH = 25000


def should_flush(processed: int, threshold: int) -> bool:
    """Return True when `processed` items complete a batch of `threshold`.

    A threshold of 0 (or less) disables intermediate flushes.
    """
    if threshold <= 0 or processed <= 0:
        return False
    return processed % threshold == 0


class BatchCommitPolicy(BaseModel):
    """Fixed-size batch commit policy.

    Attributes:
        docs_before_flush: Items processed between intermediate commits (0 = final commit only)
    """

    model_config = {"frozen": True}

    docs_before_flush: int = Field(
        DEFAULT_DOCS_BEFORE_FLUSH,
        ge=0,
        description="Commit after every N processed items (0 = final commit only)",
    )

    def should_flush(self, processed: int) -> bool:
        return should_flush(processed, self.docs_before_flush)
