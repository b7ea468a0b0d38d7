class DiaryError(Exception):
    """Base class for errors raised by the Dear Diary service."""


class AuthenticationError(DiaryError):
    """No usable owner identity was supplied with the request."""


class UpstreamDataError(DiaryError):
    """The entry store or the analysis cache store could not be read or written."""


class GenerationFailure(DiaryError):
    """The language model call failed or returned content that cannot be used."""

