"""
Cascade Connect - Domain Exceptions
====================================

Raised by core services; API routers translate them to HTTP errors.
"""


class IntegrationNotConfigured(RuntimeError):
    """A third-party integration is missing credentials."""


class IntegrationError(RuntimeError):
    """A third-party call failed."""


class SmsDeliveryError(IntegrationError):
    pass


class UploadError(IntegrationError):
    pass


class ChannelNotFoundError(LookupError):
    pass


class ChatPermissionError(PermissionError):
    pass


class ChatValidationError(ValueError):
    pass


class ChannelExistsError(ChatValidationError):
    pass


class MessageNotFoundError(LookupError):
    pass
