class NonRetryableException(Exception):
    """The task cannot succeed on a retry, e.g. the field encryption key is missing or wrong."""


class AutoRetryException(Exception):
    pass
