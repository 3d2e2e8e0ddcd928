class ConfigurationError(Exception):
    """Invalid command line input. Raised before any request is made."""


class InvalidPatternError(ConfigurationError):
    def __init__(self, pattern: str, error: Exception) -> None:
        self.pattern = pattern
        self.error = error
        super().__init__(f"Invalid regex /{pattern}/: {error}")


class FatalRunError(Exception):
    """The repository catalog could not be fetched, nothing can be swept."""


class RepositoryError(Exception):
    def __init__(self, repository: str, message: str) -> None:
        self.repository = repository
        super().__init__(message)
