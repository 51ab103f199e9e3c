"""Reference codec for the ``owner/repo#number[ - title]`` key scheme.

A reference is the join key between a table row and a GitHub issue. The
canonical form is ``owner/repo#number``; the verbose form appends the issue
title (``owner/repo#number - title``) for readability inside the table.

Parsing splits on the first ``#`` and then on the first `` - `` after it, so a
title that itself contains `` - `` is preserved and never confuses the number.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import MalformedReference

_TITLE_SEPARATOR = " - "


@dataclass(frozen=True)
class Reference:
    owner: str
    repo: str
    number: int
    title: str | None = None

    def __post_init__(self) -> None:
        if not self.owner or not self.repo:
            raise MalformedReference(f"reference needs owner and repo: {self.owner!r}/{self.repo!r}")
        if self.number <= 0:
            raise MalformedReference(f"reference number must be positive, got {self.number}")

    @property
    def key(self) -> str:
        """Canonical ``owner/repo#number`` form, as written to the table."""
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def match_key(self) -> str:
        """Case-folded ``key``; GitHub owner and repo names are case-insensitive."""
        return self.key.casefold()

    def format(self, verbose: bool = False) -> str:
        if verbose and self.title:
            return f"{self.key}{_TITLE_SEPARATOR}{self.title}"
        return self.key

    def __str__(self) -> str:  # noqa: D401
        return self.key


def parse_reference(text: str) -> Reference:
    """Parse ``owner/repo#number`` (optionally followed by `` - title``).

    Raises ``MalformedReference`` when the ``#`` or ``/`` separators are
    missing, when owner/repo are empty, or when the number is not a positive
    integer.
    """
    if not isinstance(text, str):
        raise MalformedReference(f"reference must be a string, got {type(text).__name__}")
    repolong, sep, tail = text.strip().partition("#")
    if not sep:
        raise MalformedReference(
            f"could not parse reference into repository and issue number: {text!r}"
        )
    if repolong.count("/") != 1:
        raise MalformedReference(f"could not parse reference into owner and repo: {text!r}")
    owner, _, repo = repolong.partition("/")
    owner, repo = owner.strip(), repo.strip()
    if not owner or not repo:
        raise MalformedReference(f"could not parse reference into owner and repo: {text!r}")

    number_text, _, title = tail.partition(_TITLE_SEPARATOR)
    number_text = number_text.strip()
    if not (number_text.isascii() and number_text.isdigit()):
        raise MalformedReference(f"issue number is not numeric in reference {text!r}")
    number = int(number_text)
    if number <= 0:
        raise MalformedReference(f"issue number must be positive in reference {text!r}")
    return Reference(owner=owner, repo=repo, number=number, title=title.strip() or None)


def format_reference(ref: Reference, verbose: bool = False) -> str:
    return ref.format(verbose=verbose)


__all__ = ["Reference", "parse_reference", "format_reference"]
