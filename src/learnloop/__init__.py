"""learnloop: event-triggered spaced-repetition scheduling."""

from learnloop.consts import VERSION

__version__ = VERSION
