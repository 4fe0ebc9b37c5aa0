"""Backend (CMS) <-> frontend (public site) URL rewriting."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

_scheme_re = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def strip_scheme(url: str) -> str:
    return _scheme_re.sub("", (url or "").strip()).lstrip("/")


def clean_origin(origin: str) -> str:
    return (origin or "").strip().rstrip("/")


def _has_prefix(url: str, origin: str) -> bool:
    """Scheme-less prefix test that stops at a host/path boundary."""
    bare_url, bare_origin = strip_scheme(url), strip_scheme(clean_origin(origin))
    if not bare_origin or not bare_url.startswith(bare_origin):
        return False
    rest = bare_url[len(bare_origin):]
    return rest == "" or rest[0] in "/?#:"


@dataclass(frozen=True)
class DomainMapping:
    backend_origin: str
    frontend_origin: str
    backend_aliases: Tuple[str, ...] = field(default_factory=tuple)
    frontend_aliases: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_config(
        cls,
        backend: Optional[str],
        frontend: Optional[str],
        backend_aliases: Iterable[str] = (),
        frontend_aliases: Iterable[str] = (),
    ) -> "DomainMapping":
        return cls(
            backend_origin=clean_origin(backend or ""),
            frontend_origin=clean_origin(frontend or ""),
            backend_aliases=tuple(clean_origin(a) for a in backend_aliases if a and a.strip()),
            frontend_aliases=tuple(clean_origin(a) for a in frontend_aliases if a and a.strip()),
        )

    @property
    def configured(self) -> bool:
        return bool(self.backend_origin and self.frontend_origin)

    def backend_origins(self) -> Tuple[str, ...]:
        # longest first so "https://cms.example.com/blog" beats "https://cms.example.com"
        origins = {o for o in (self.backend_origin, *self.backend_aliases) if o}
        return tuple(sorted(origins, key=len, reverse=True))

    def frontend_origins(self) -> Tuple[str, ...]:
        origins = {o for o in (self.frontend_origin, *self.frontend_aliases) if o}
        return tuple(sorted(origins, key=len, reverse=True))

    def is_backend(self, url: str) -> bool:
        return bool(url) and any(_has_prefix(url, o) for o in self.backend_origins())

    def is_frontend(self, url: str) -> bool:
        return bool(url) and any(_has_prefix(url, o) for o in self.frontend_origins())

    def to_frontend(self, url: str) -> str:
        """Rewrite a backend URL onto the frontend origin; anything else is returned as-is."""
        if not url or not self.configured or self.is_frontend(url):
            return url
        return self._swap(url, self.backend_origins(), self.frontend_origin)

    def to_backend(self, url: str) -> str:
        if not url or not self.configured or self.is_backend(url):
            return url
        return self._swap(url, self.frontend_origins(), self.backend_origin)

    @staticmethod
    def _swap(url: str, sources: Tuple[str, ...], target: str) -> str:
        for origin in sources:
            if _has_prefix(url, origin):
                rest = strip_scheme(url)[len(strip_scheme(origin)):]
                return target + rest
        return url

    def rewrite_text(self, text: str) -> str:
        """Replace every backend host in ``text`` (e.g. a proxied head fragment) with the frontend host."""
        if not text or not self.configured:
            return text
        target = strip_scheme(self.frontend_origin)
        for origin in self.backend_origins():
            host = strip_scheme(origin)
            text = re.sub(r"(?<![\w.-])" + re.escape(host) + r"(?![\w-])", target, text)
        return text
