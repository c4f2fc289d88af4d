import re
from abc import ABC, abstractmethod

CODE_PATTERN = re.compile(r"^\d{6}$")


class CodeVerifier(ABC):
    """Decides whether a one-time code is acceptable.

    Swap the implementation to plug in real OTP delivery and checking;
    the session and sync logic only ever call ``verify``.
    """

    @abstractmethod
    def verify(self, code: str) -> bool:
        ...


class DemoCodeVerifier(CodeVerifier):
    """Accepts any well-formed 6-digit code. Not for production."""

    def verify(self, code: str) -> bool:
        return bool(CODE_PATTERN.match(code or ""))


code_verifier: CodeVerifier = DemoCodeVerifier()


def get_code_verifier() -> CodeVerifier:
    return code_verifier
