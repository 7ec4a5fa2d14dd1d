class DataSpecError(Exception):
    """Base class for errors scoped to a single definition or call."""


class ExtractionError(DataSpecError, ValueError):
    """A document lacks the mandatory title anchor."""


class UnsupportedDialectError(DataSpecError, ValueError):
    def __init__(self, dialect: str, supported) -> None:
        self.dialect = dialect
        self.supported = sorted(supported)
        super().__init__(
            f"Unsupported SQL dialect '{dialect}'. Use one of: {', '.join(self.supported)}."
        )


class ConfigError(DataSpecError, ValueError):
    """The project configuration file is unreadable or fails its schema."""


class DefinitionNotFoundError(DataSpecError, FileNotFoundError):
    """A table or metric name does not resolve to a definition file."""
