"""Exception hierarchy for the auto-moderation engine."""


class AutoModError(Exception):
    """Base class for errors raised by the auto-moderation engine."""


class RuleConfigurationError(AutoModError, ValueError):
    """A rule definition is malformed.

    Raised for unknown trigger or action types, missing required fields,
    and attempts to change a rule's trigger type after creation.
    """


class RuleImportError(AutoModError):
    """An import bundle does not match the expected shape."""


class ContentClassificationError(AutoModError):
    """The external content classifier returned an unusable response."""
