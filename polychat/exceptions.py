class PolychatError(Exception):
    """Base class for errors raised by the chat pipeline."""


class NotFoundError(PolychatError):
    pass


class ProviderUnavailableError(PolychatError):
    def __init__(self, provider: str):
        super().__init__(f"Provider {provider} not available")
        self.provider = provider


class ProviderError(PolychatError):
    """The provider call failed before or during streaming."""


class SessionBusyError(PolychatError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} already has a response in progress")
        self.session_id = session_id
