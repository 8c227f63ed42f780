"""Error matchers for converting raw exceptions to BridgeErrors."""

import json

from .errors import ErrorMatcher, MatchResult


class SpawnErrorMatcher(ErrorMatcher):
    """Matches failures to launch an executable."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (FileNotFoundError, PermissionError, NotADirectoryError))

    def extract(self, error: Exception) -> MatchResult:
        context = {"detail": str(error)}
        filename = getattr(error, "filename", None)
        if filename:
            context["command"] = str(filename)
        return MatchResult(code="SPAWN_FAILURE", context=context, retryable=False)


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, TimeoutError)

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="CALL_TIMEOUT",
            context={"timeout_seconds": "unknown"},
        )


class DecodeErrorMatcher(ErrorMatcher):
    """Matches undecodable message lines."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (json.JSONDecodeError, UnicodeDecodeError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(code="DECODE_FAILURE", context={"detail": str(error)})


class StreamErrorMatcher(ErrorMatcher):
    """Matches closed or broken stdio streams."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (BrokenPipeError, ConnectionResetError, EOFError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="TRANSPORT_FAILURE",
            context={"detail": str(error) or type(error).__name__},
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: Exception) -> bool:
        return True

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="INTERNAL_ERROR",
            context={"detail": f"{type(error).__name__}: {error}"},
            retryable=False,
        )


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: Exception) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        # Unreachable while GenericErrorMatcher is last
        return MatchResult(code="INTERNAL_ERROR", context={"detail": str(error)})

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # JSONDecodeError subclasses ValueError and BrokenPipeError subclasses
        # OSError, so the specific matchers go first.
        self.matchers = [
            SpawnErrorMatcher(),
            TimeoutErrorMatcher(),
            DecodeErrorMatcher(),
            StreamErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
