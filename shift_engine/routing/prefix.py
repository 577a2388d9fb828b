import logging
import re
import secrets
from typing import Iterable, Mapping, Optional

logger = logging.getLogger("uvicorn.error")

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._~-]+$")


class PrefixObfuscator:
    """
    Hands out the mount prefix of each static asset group.

    The prefix is ``{base}{group}/`` unless the group has an override token, or
    randomization is on, in which case the group name is replaced so the
    nature of the bundle is not visible from the URL. Each prefix is computed
    once and memoized, so links and mounts built from it always agree.
    """

    def __init__(
        self,
        base_path: str,
        overrides: Optional[Mapping[str, str]] = None,
        randomize: bool = False,
        reserved: Iterable[str] = (),
        token_bytes: int = 6,
    ):
        self._base_path = base_path
        self._overrides = dict(overrides or {})
        self._randomize = randomize
        self._token_bytes = token_bytes
        self._reserved = set(reserved)
        self._prefixes: dict[str, str] = {}

        for group, token in self._overrides.items():
            if not _SEGMENT_RE.match(token):
                raise ValueError(
                    f"Alternate prefix for '{group}' must be a single path segment: {token!r}"
                )
            if token in self._reserved:
                raise ValueError(
                    f"Alternate prefix for '{group}' collides with a reserved route: {token!r}"
                )
        if len(set(self._overrides.values())) != len(self._overrides):
            raise ValueError(f"Alternate prefixes must be distinct: {self._overrides}")

    def alt_prefix(self, group: str) -> str:
        prefix = self._prefixes.get(group)
        if prefix is None:
            prefix = f"{self._base_path}{self._token_for(group)}/"
            self._prefixes[group] = prefix
            logger.debug(f"[Prefix] Mounted group '{group}' at {prefix}")
        return prefix

    def prefixes(self) -> dict[str, str]:
        return dict(self._prefixes)

    def _token_for(self, group: str) -> str:
        if group in self._overrides:
            token = self._overrides[group]
        elif self._randomize:
            token = secrets.token_hex(self._token_bytes)
            while token in self._taken():
                token = secrets.token_hex(self._token_bytes)
        else:
            token = group
            if token in self._taken():
                raise ValueError(
                    f"Asset group '{group}' collides with a reserved route or another "
                    "group's prefix; configure an override"
                )
        return token

    def _used(self) -> set[str]:
        return {p[len(self._base_path) : -1] for p in self._prefixes.values()}

    def _taken(self) -> set[str]:
        return self._reserved | self._used() | set(self._overrides.values())
