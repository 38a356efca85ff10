from typing import Iterable


class WaitOnCheckError(Exception):
    pass


class CheckNeverRunError(WaitOnCheckError):
    def __init__(
        self, msg: str = "The requested check was never run against this ref, exiting..."
    ):
        super().__init__(msg)


class CheckConclusionNotAllowedError(WaitOnCheckError):
    allowed_conclusions: list

    def __init__(self, allowed_conclusions: Iterable[str]):
        self.allowed_conclusions = list(allowed_conclusions)
        msg = (
            "The conclusion of one or more checks were not allowed. "
            f"Allowed conclusions are: {', '.join(self.allowed_conclusions)}. "
            "This can be configured with the 'allowed-conclusions' param."
        )
        super().__init__(msg)


class ConfigurationError(WaitOnCheckError):
    pass


class TransportError(WaitOnCheckError):
    url: str

    def __init__(self, *args, **kwargs):
        self.url = kwargs.pop("url")
        super().__init__(*args, **kwargs)
