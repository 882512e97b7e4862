# -*- coding: utf-8 -*-

class FabError(Exception):
    """Base class for every error raised by the chrfab modules."""


class FormatError(FabError, ValueError):
    """Bad magic, unsupported version, unusable image or malformed string."""


class BoundsError(FabError, EOFError):
    """A reader ran past the end of its data."""
