class ExamSlotError(Exception):
    """Base class for all examslot exceptions."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ExamSlotError):
    """Raised when generation settings or host-supplied resource files are invalid."""


class GenerationCancelled(ExamSlotError):
    """Raised at a cancellation point when the caller aborts a run."""
    def __init__(self, processed: int, total: int):
        super().__init__(
            f"generation cancelled after {processed} of {total} groups",
            details={"processed": processed, "total": total},
        )
        self.processed = processed
        self.total = total
