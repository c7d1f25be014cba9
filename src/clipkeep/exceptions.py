class ClipKeepError(Exception):
    pass


class InvalidRulePatternError(ClipKeepError, ValueError):

    def __init__(self, pattern: str, reason: str = ""):
        self.pattern = pattern
        self.reason = reason
        message = f"Invalid rule pattern {pattern!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotFoundError(ClipKeepError, KeyError):
    pass
