class BoardError(Exception):
    """Base class for errors raised while handling board requests."""


class ValidationError(BoardError):
    """A submission was rejected. The message is shown to the visitor."""


class EmptyField(ValidationError):
    pass


class FieldTooLarge(ValidationError):
    pass


class MalformedSubmission(ValidationError):
    pass


class UnsupportedMediaType(ValidationError):
    pass


class UnsupportedFormat(ValidationError):
    pass


class InvalidImage(ValidationError):
    pass


class StoreError(BoardError):
    """Reading or writing the posts table failed."""


class MediaWriteError(BoardError):
    """Writing an upload to disk failed."""
