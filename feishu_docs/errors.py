"""Exception hierarchy shared by the client, converter, and store."""


class FeishuError(Exception):
    """Base class for every error raised by this package."""


class AuthError(FeishuError):
    """The app_id / app_secret exchange for a tenant token failed."""


class ApiError(FeishuError):
    """The open platform answered with a non-zero envelope code."""

    def __init__(self, code, msg, path=""):
        self.code = code
        self.msg = msg
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"API request failed{where}: {msg} (code {code})")


class PermissionDeniedError(ApiError):
    """An ApiError whose code or message says the app lacks access."""


class NotSupportedError(FeishuError):
    """The object type has no content fetcher."""

    def __init__(self, obj_type):
        self.obj_type = obj_type
        super().__init__(f"Unsupported document type: {obj_type}")
