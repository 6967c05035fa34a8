import hashlib
import hmac
import os

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 260000


def hash_password(password: str, *, salt: bytes = None, iterations: int = ITERATIONS) -> str:
    """Hash a password as ``algorithm$iterations$salt$digest``."""
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, digest = stored.split("$")
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations)
    )
    return hmac.compare_digest(candidate.hex(), digest)


def is_safe_redirect(url: str) -> bool:
    # only same-site paths, never "//host" or absolute urls
    return bool(url) and url.startswith("/") and not url.startswith(("//", "/\\"))
