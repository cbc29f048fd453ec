class BookGeneratorError(Exception):
    """Base class for every failure the book generator reports to the user."""


class ConfigError(BookGeneratorError):
    """Required configuration, such as the API key, is missing."""


class ValidationError(BookGeneratorError):
    """A user-supplied parameter is out of range or malformed."""


class GenerationError(BookGeneratorError):
    """The text-generation backend failed or returned an unusable reply."""


class ParseError(BookGeneratorError):
    """A checkpoint file does not contain a valid book outline."""
