"""Domain-specific exceptions."""


class FormFillerError(Exception):
    """Base exception for form filler operations."""
    pass


class SpreadsheetReadError(FormFillerError):
    """Raised when an uploaded workbook cannot be opened."""
    pass


class NoWorksheetError(SpreadsheetReadError):
    """Raised when a workbook contains no worksheet."""
    pass


class EmptyExtractionError(FormFillerError):
    """Raised when no form fields could be detected in a sheet."""
    pass


class InferenceError(FormFillerError):
    """Raised when the text-generation service cannot be reached."""
    pass


class EmptyResponseError(InferenceError):
    """Raised when a raw-text generation call returns nothing."""
    pass


class SessionStateError(FormFillerError):
    """Raised when the forward-carried fill session is missing or corrupt."""
    pass


class MasterDataImportError(FormFillerError):
    """Raised when a master data import file yields no entries."""
    pass


class ConfigurationError(FormFillerError):
    """Raised when configuration is invalid."""
    pass


class PersistenceError(FormFillerError):
    """Raised when the master data store rejects a read or write.

    ``reason`` is one of ``permission``, ``connectivity`` or ``unconfigured``.
    """

    PERMISSION = "permission"
    CONNECTIVITY = "connectivity"
    UNCONFIGURED = "unconfigured"

    _MESSAGES = {
        PERMISSION: "Access to your saved master data was denied.",
        CONNECTIVITY: "The master data store could not be reached. Please try again later.",
        UNCONFIGURED: "No master data store is configured on the server.",
    }

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(detail or self.user_message)

    @property
    def user_message(self) -> str:
        return self._MESSAGES.get(self.reason, "Saving master data failed.")
