"""Classification of git failures into sync error kinds."""

from typing import Dict

from ..errors import ErrorKind


def build_error_patterns() -> Dict[str, ErrorKind]:
    """
    Build mapping of git stderr fragments to error kinds.

    Order matters: the first matching pattern wins, so access and spec
    problems are listed before the generic network fragments they can
    contain (``unable to access ... returned error: 403``).
    """
    return {
        # Missing branch on the remote
        "couldn't find remote ref": ErrorKind.INVALID_SPEC,
        "invalid refspec": ErrorKind.INVALID_SPEC,
        "not a valid ref name": ErrorKind.INVALID_SPEC,

        # Authentication and repository access
        "authentication failed": ErrorKind.REPOSITORY_ACCESS,
        "permission denied": ErrorKind.REPOSITORY_ACCESS,
        "could not read username": ErrorKind.REPOSITORY_ACCESS,
        "could not read password": ErrorKind.REPOSITORY_ACCESS,
        "terminal prompts disabled": ErrorKind.REPOSITORY_ACCESS,
        "repository not found": ErrorKind.REPOSITORY_ACCESS,
        "does not appear to be a git repository": ErrorKind.REPOSITORY_ACCESS,
        "returned error: 401": ErrorKind.REPOSITORY_ACCESS,
        "returned error: 403": ErrorKind.REPOSITORY_ACCESS,
        "returned error: 404": ErrorKind.REPOSITORY_ACCESS,
        "host key verification failed": ErrorKind.REPOSITORY_ACCESS,

        # Local repository corruption
        "not a git repository": ErrorKind.CORRUPT_WORKSPACE,
        "corrupt": ErrorKind.CORRUPT_WORKSPACE,
        "bad object": ErrorKind.CORRUPT_WORKSPACE,
        "loose object": ErrorKind.CORRUPT_WORKSPACE,
        "unable to read tree": ErrorKind.CORRUPT_WORKSPACE,
        "index file smaller than expected": ErrorKind.CORRUPT_WORKSPACE,
        "cannot lock ref": ErrorKind.CORRUPT_WORKSPACE,
        ".lock': file exists": ErrorKind.CORRUPT_WORKSPACE,

        # Transient network errors
        "could not resolve host": ErrorKind.NETWORK_UNAVAILABLE,
        "temporary failure in name resolution": ErrorKind.NETWORK_UNAVAILABLE,
        "name or service not known": ErrorKind.NETWORK_UNAVAILABLE,
        "failed to connect": ErrorKind.NETWORK_UNAVAILABLE,
        "couldn't connect to server": ErrorKind.NETWORK_UNAVAILABLE,
        "connection refused": ErrorKind.NETWORK_UNAVAILABLE,
        "connection reset": ErrorKind.NETWORK_UNAVAILABLE,
        "connection timed out": ErrorKind.NETWORK_UNAVAILABLE,
        "operation timed out": ErrorKind.NETWORK_UNAVAILABLE,
        "network is unreachable": ErrorKind.NETWORK_UNAVAILABLE,
        "no route to host": ErrorKind.NETWORK_UNAVAILABLE,
        "the remote end hung up unexpectedly": ErrorKind.NETWORK_UNAVAILABLE,
        "early eof": ErrorKind.NETWORK_UNAVAILABLE,
        "rpc failed": ErrorKind.NETWORK_UNAVAILABLE,
        "tls connection was non-properly terminated": ErrorKind.NETWORK_UNAVAILABLE,
        "gnutls recv error": ErrorKind.NETWORK_UNAVAILABLE,
        "returned error: 429": ErrorKind.NETWORK_UNAVAILABLE,
        "returned error: 500": ErrorKind.NETWORK_UNAVAILABLE,
        "returned error: 502": ErrorKind.NETWORK_UNAVAILABLE,
        "returned error: 503": ErrorKind.NETWORK_UNAVAILABLE,
        "returned error: 504": ErrorKind.NETWORK_UNAVAILABLE,
        "timeout": ErrorKind.NETWORK_UNAVAILABLE,
    }


_ERROR_PATTERNS = build_error_patterns()


def classify_git_error(error_message: str) -> ErrorKind:
    """
    Categorize a git failure by its message.

    Unrecognised failures are treated as non-transient access problems so
    they are reported immediately instead of being retried.
    """
    if not error_message:
        return ErrorKind.REPOSITORY_ACCESS

    error_lower = error_message.lower()
    for pattern, kind in _ERROR_PATTERNS.items():
        if pattern in error_lower:
            return kind

    return ErrorKind.REPOSITORY_ACCESS
