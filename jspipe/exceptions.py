"""jspipe exception hierarchy.

Every error the pipeline raises on purpose derives from ``JsPipeError`` so a
caller driving many targets can aggregate failures without catching
unrelated exceptions.
"""


class JsPipeError(Exception):
    """Base exception for all jspipe errors."""


class ConfigError(JsPipeError, ValueError):
    """Configuration loading / validation errors."""


class TargetNotFound(JsPipeError, KeyError):
    """A requested build target is absent from the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Could not find target {self.name}"


class BundleFailed(JsPipeError):
    """The bundling engine rejected a build that was not allowed to continue."""

    def __init__(self, dest_filename: str, reason: str = ""):
        self.dest_filename = dest_filename
        self.reason = reason
        super().__init__(f"Could not compile {dest_filename}")


class DependencyDiscoveryFailed(JsPipeError):
    """The metadata build used to find watch dependencies failed."""

    def __init__(self, entry_point: str, reason: str = ""):
        self.entry_point = entry_point
        self.reason = reason
        msg = f"Could not discover dependencies of {entry_point}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SpliceLayoutError(JsPipeError):
    """The wrapper layout does not allow auxiliary content to be spliced in."""


class EngineError(JsPipeError):
    """An external tool (bundler, compressor, optimizer) exited with an error."""

    def __init__(self, tool: str, returncode: int, stderr: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {returncode}"
        super().__init__(f"{tool} failed: {detail}")
