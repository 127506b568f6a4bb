class VDocumentationError(Exception):
    """Base class for errors raised by vdocumentation."""


class VCenterConnectionError(VDocumentationError, ConnectionError):
    """No usable session to the management server. Aborts the run."""


class SelectorConflict(VDocumentationError, ValueError):
    """More than one selector kind given while the exclusive policy is active."""


class ExportDependencyMissing(VDocumentationError):
    """The spreadsheet writer library is not importable."""


class AdvisoryError(VDocumentationError):
    """An advisory table could not be read or parsed."""


class TaskFailed(VDocumentationError):
    pass


class TaskTimeout(VDocumentationError, TimeoutError):
    pass


class TaskCancelled(VDocumentationError):
    pass
