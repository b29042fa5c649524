"""Custom exceptions for HealthPod."""


class HealthPodError(Exception):
    """Base exception for all HealthPod errors."""

    pass


class ConfigurationError(HealthPodError):
    """Raised when there is a configuration error."""

    pass


class AuthenticationError(HealthPodError):
    """Raised when authentication with the pod fails."""

    pass


class PodClientError(HealthPodError):
    """Raised when pod store operations fail."""

    pass


class PodFileNotFoundError(PodClientError):
    """Raised when a pod file to delete or read does not exist."""

    pass


class ParsingError(HealthPodError):
    """Raised when file parsing fails."""

    pass


class ValidationError(HealthPodError):
    """Raised when data validation fails."""

    pass


class MissingColumnsError(ValidationError):
    """Raised when a CSV header lacks required columns."""

    def __init__(
        self,
        missing: list[str],
        required: list[str],
        optional: list[str],
    ) -> None:
        self.missing = missing
        self.required = required
        self.optional = optional

        required_str = "\n".join(f"- {col}" for col in required)
        optional_str = "\n".join(f"- {col}" for col in optional) or "- (none)"
        super().__init__(
            f"Required columns missing: {', '.join(missing)}\n\n"
            f"The following columns are required:\n{required_str}\n\n"
            f"These columns are optional:\n{optional_str}"
        )


class TimestampFormatError(ValidationError):
    """Raised when a timestamp cannot be parsed."""

    pass


class ExportError(HealthPodError):
    """Raised when exporting records fails."""

    pass
