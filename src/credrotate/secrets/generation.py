"""Credential material generation."""

import secrets
import string

PUNCTUATION = "!#$&()*+,-.;<=>?[]^_{|}~"


def generate_password(
    length: int = 32,
    exclude_characters: str = "",
    require_each_class: bool = True,
) -> str:
    """Generate a secure random password.

    Args:
        length: Password length
        exclude_characters: Characters that must not appear
        require_each_class: Include at least one upper, lower, digit and
            punctuation character (classes emptied by exclusions are skipped)

    Returns:
        Random password string

    Raises:
        ValueError: If length is below 8 or exclusions empty the alphabet
    """
    if length < 8:
        raise ValueError("Password length must be at least 8")

    excluded = set(exclude_characters)
    classes = [
        [c for c in charset if c not in excluded]
        for charset in (
            string.ascii_uppercase,
            string.ascii_lowercase,
            string.digits,
            PUNCTUATION,
        )
    ]
    alphabet = [c for charset in classes for c in charset]
    if not alphabet:
        raise ValueError("Excluded characters leave no alphabet to draw from")

    rng = secrets.SystemRandom()

    # Ensure at least one of each required type
    password = [rng.choice(charset) for charset in classes if charset] if require_each_class else []

    # Fill the rest
    password.extend(rng.choice(alphabet) for _ in range(length - len(password)))

    rng.shuffle(password)
    return "".join(password)
