class PromptForgeError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code: int = 500
    default_message: str = "An unknown error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidUrlError(PromptForgeError):
    status_code = 400
    default_message = "Invalid URL"


class UnsupportedProviderError(PromptForgeError):
    status_code = 400
    default_message = "Only github.com, gitlab.com and bitbucket.org repositories are supported"


class RepoNotFoundError(PromptForgeError):
    status_code = 404
    default_message = "Repository not found. Check the URL and make sure the repository is public."


class RateLimitError(PromptForgeError):
    status_code = 429
    default_message = (
        "Git hosting API rate limit reached. Anonymous requests are throttled; "
        "wait a while (up to an hour) before trying again."
    )


class EmptyImportError(PromptForgeError):
    status_code = 422
    default_message = "No compatible source files were found, or none could be downloaded"


class EmptyResponseError(PromptForgeError):
    status_code = 502
    default_message = (
        "The model returned an empty response. The code may be too complex "
        "or the request was blocked."
    )


class InvalidModelOutputError(PromptForgeError):
    status_code = 502
    default_message = "The model response was not valid JSON for the analysis schema"


class ProviderError(PromptForgeError):
    """Upstream transport, authentication or server failure."""

    status_code = 502
    default_message = "The AI provider request failed"

    def __init__(self, message: str | None = None, *, auth: bool = False):
        super().__init__(message)
        self.auth = auth


class InvalidRequestError(PromptForgeError):
    status_code = 400
    default_message = "Invalid request"


class SessionNotFoundError(PromptForgeError):
    status_code = 404
    default_message = "Session not found"


class ContextNotFoundError(PromptForgeError):
    status_code = 404
    default_message = "Generation context not found"


class ActionInProgressError(PromptForgeError):
    status_code = 409
    default_message = "This action is already running"


class MediaAlreadyGeneratedError(PromptForgeError):
    status_code = 409
    default_message = "Media has already been generated for this context"


class UnknownError(PromptForgeError):
    status_code = 500
    default_message = "Internal server error"
