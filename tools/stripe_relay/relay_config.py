import os


class MissingConfigError(RuntimeError):
    """Raised when a required secret or setting is absent at first use."""


class EnvConfig:
    """Read-only view over process environment, read at call time (never cached)."""

    def __init__(self, environ=None):
        self._environ = os.environ if environ is None else environ

    def get(self, name, default=None):
        value = self._environ.get(name)
        if value is None or value == '':
            return default
        return value

    def require(self, name, message=None):
        value = self.get(name)
        if value is None:
            raise MissingConfigError(message or f"Missing required setting: {name}")
        return value

    def get_int(self, name, default):
        value = self.get(name)
        return int(value) if value is not None else default


class StaticConfig(EnvConfig):
    """Dict-backed provider, handy for embedding and tests."""

    def __init__(self, values=None, **kwargs):
        super().__init__(dict(values or {}, **kwargs))
