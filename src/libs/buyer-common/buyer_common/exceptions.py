# src/libs/buyer-common/buyer_common/exceptions.py


class PublishError(RuntimeError):
    """
    Raised by a MessagePublisher when the broker does not confirm receipt of
    a message (transport error, delivery failure or delivery timeout).

    The gateway never retries on this error; it fails the request.
    """

    def __init__(self, message: str, topic: str):
        super().__init__(message)
        self.topic = topic


class SchemaLoadError(RuntimeError):
    """
    Raised at startup when an action's JSON Schema cannot be found or parsed.
    """
    pass
