class SubwatchError(Exception):
    """Base class for pipeline errors"""

class CaptureFailure(SubwatchError):
    """Screen region could not be captured"""

class ExtractionFailure(SubwatchError):
    """Text could not be extracted from a captured image"""

class ProviderFailure(SubwatchError):
    """A translation provider failed for one request"""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider

class ProviderTimeout(ProviderFailure):
    """A translation provider did not answer within its time budget"""

    def __init__(self, provider: str, timeout: float):
        super().__init__(provider, f"timed out after {timeout:.1f}s")
        self.timeout = timeout

class NoProviderAvailable(SubwatchError):
    """No translation provider is enabled"""
