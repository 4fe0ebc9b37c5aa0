"""SEO metadata extraction from a Rank Math ``head`` fragment.

The fragment comes from a third-party plugin and is often sparse, so every
field falls back through several sources and, for the focus keyword and the
keyword list, is finally synthesized from the title and description.
Scanning is regex based; callers only depend on ``extract_seo_metadata``.
"""
from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

logger = logging.getLogger(__name__)

_title_re = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
_meta_re = re.compile(r"<meta\b([^>]*)>", re.IGNORECASE)
_link_re = re.compile(r"<link\b([^>]*)>", re.IGNORECASE)
_attr_re = re.compile(r"""([a-zA-Z_:][-\w:.]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_jsonld_re = re.compile(
    r"""<script\b[^>]*type\s*=\s*["']application/ld\+json["'][^>]*>(.*?)</script\s*>""",
    re.IGNORECASE | re.DOTALL,
)
_word_split_re = re.compile(r"\s+")
_non_word_re = re.compile(r"[^\w\s]")

FOCUS_KEYWORD_META = (
    "rankmath-focus-keyword",
    "rank-math-focus-keyword",
    "focus-keyword",
    "focus_keyword",
)

# Focus keyword hints found in inline scripts / JSON, most specific first.
FOCUS_KEYWORD_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r'"focus_kw"[:\s]*"([^"]+)"',
        r'"focuskw"[:\s]*"([^"]+)"',
        r'"rank_math_focus_keyword"[:\s]*"([^"]+)"',
        r'"rankmath_focus_keyword"[:\s]*"([^"]+)"',
        r'"focus[_-]?keyword"[:\s]*"([^"]+)"',
        r'"target[_-]?keyword"[:\s]*"([^"]+)"',
        r'focus[_-]?keyword["\'\s]*[:=]["\'\s]*"([^"\'<>\n]+)"',
        r'target[_-]?keyword["\'\s]*[:=]["\'\s]*"([^"\'<>\n]+)"',
        r'focusKeyword["\'\s]*[:=]["\'\s]*"([^"\'<>\n]+)"',
        r'targetKeyword["\'\s]*[:=]["\'\s]*"([^"\'<>\n]+)"',
    )
]
_placeholder_words = ("placeholder", "example")

# Indonesian filler words common in tutorial titles, plus English ones.
STOPWORDS = frozenset({
    "cara", "dengan", "untuk", "dari", "yang", "pada", "dalam", "menggunakan",
    "paling", "terbaik", "tutorial", "langkah", "panduan", "telah", "membahas",
    "adalah", "dapat", "akan", "ini", "itu", "kita", "dan", "atau", "juga",
    "the", "and", "for", "with", "how", "what", "your", "this", "that", "from",
    "are", "you", "best", "guide",
})

TITLE_MIN_LEN = 3
DESCRIPTION_MIN_LEN = 5
MAX_KEYWORDS = 8
TITLE_KEYWORDS = 5
DESCRIPTION_KEYWORDS = 3


@dataclass
class OpenGraph:
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None


@dataclass
class TwitterCard:
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    card: Optional[str] = None


@dataclass
class SEOMetadata:
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    focus_keyword: Optional[str] = None
    canonical_url: Optional[str] = None
    robots: Optional[str] = None
    image: Optional[str] = None
    open_graph: OpenGraph = field(default_factory=OpenGraph)
    twitter: TwitterCard = field(default_factory=TwitterCard)
    structured_data: List[Any] = field(default_factory=list)
    # names of fields synthesized from other fields rather than read from markup
    derived: List[str] = field(default_factory=list)
    # field name -> tag/attribute it was read from
    sources: Dict[str, str] = field(default_factory=dict)

    def is_derived(self, name: str) -> bool:
        return name in self.derived

    @property
    def keywords_text(self) -> str:
        return ", ".join(self.keywords)

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.description or self.canonical_url or self.image or self.structured_data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_url(raw: str, base_url: str = "") -> Tuple[Optional[str], Optional[str]]:
    """Return ``(absolute_url, error)``; relative paths are joined onto ``base_url``."""
    raw = (raw or "").strip()
    if not raw:
        return None, "URL is empty"
    if raw.startswith("/") and not raw.startswith("//"):
        if not base_url:
            return None, "relative URL without a site URL"
        raw = urljoin(base_url.rstrip("/") + "/", raw.lstrip("/"))
    elif not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", raw):
        raw = "https://" + raw.lstrip("/")
    p = urlparse(raw)
    if not p.scheme or not p.netloc:
        return None, "not a valid URL"
    return raw, None


def _attrs(tag_body: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for m in _attr_re.finditer(tag_body):
        name = m.group(1).lower()
        if name not in out:
            value = m.group(2) if m.group(2) is not None else m.group(3)
            out[name] = html.unescape(value)
    return out


def parse_meta_tags(head_html: str) -> Dict[str, str]:
    """Map meta ``name``/``property``/``http-equiv`` to ``content``; first occurrence wins."""
    tags: Dict[str, str] = {}
    for m in _meta_re.finditer(head_html or ""):
        attrs = _attrs(m.group(1))
        if "content" not in attrs:
            continue
        key = attrs.get("name") or attrs.get("property") or attrs.get("http-equiv")
        if not key:
            continue
        key = key.strip().lower()
        content = attrs["content"].strip()
        if key not in tags and content:
            tags[key] = content
    return tags


def parse_links(head_html: str) -> Dict[str, str]:
    """Map each ``rel`` value to the first ``href`` carrying it."""
    links: Dict[str, str] = {}
    for m in _link_re.finditer(head_html or ""):
        attrs = _attrs(m.group(1))
        href = (attrs.get("href") or "").strip()
        if not href:
            continue
        for rel in (attrs.get("rel") or "").lower().split():
            links.setdefault(rel, href)
    return links


def extract_title(head_html: str) -> Optional[str]:
    m = _title_re.search(head_html or "")
    if m:
        title = html.unescape(m.group(1)).strip()
        if title:
            return title
    return None


def get_structured_data(head_html: str) -> List[Any]:
    blocks: List[Any] = []
    for m in _jsonld_re.finditer(head_html or ""):
        raw = m.group(1).strip()
        if not raw:
            continue
        try:
            blocks.append(json.loads(raw))
        except ValueError as e:
            logger.debug("[RankMath] skipping unparseable JSON-LD block: %s", e)
    return blocks


def _iter_nodes(structured: Iterable[Any]):
    for block in structured:
        if isinstance(block, list):
            yield from _iter_nodes(block)
        elif isinstance(block, dict):
            yield block
            graph = block.get("@graph")
            if isinstance(graph, list):
                yield from _iter_nodes(graph)


def _keyword_from_structured(structured: List[Any]) -> Optional[str]:
    for node in _iter_nodes(structured):
        kw = node.get("keywords")
        if isinstance(kw, str):
            first = kw.split(",")[0].strip()
            if first:
                return first
        elif isinstance(kw, list) and kw:
            first = str(kw[0]).strip()
            if first:
                return first
        rank_math = node.get("rankMath")
        if isinstance(rank_math, dict) and rank_math.get("focusKeyword"):
            return str(rank_math["focusKeyword"]).strip()
    return None


def extract_focus_keyword_from_content(head_html: str) -> Optional[str]:
    for pattern in FOCUS_KEYWORD_PATTERNS:
        m = pattern.search(head_html or "")
        if not m:
            continue
        keyword = m.group(1).strip()
        if keyword and not any(w in keyword.lower() for w in _placeholder_words):
            return keyword
    return None


def tokenize(text: Optional[str], min_len: int) -> List[str]:
    """Lowercased content words of ``text``: punctuation, stopwords and short tokens removed."""
    if not text:
        return []
    words = _word_split_re.split(_non_word_re.sub(" ", text.lower()))
    return [w for w in words if len(w) >= min_len and w not in STOPWORDS]


def fallback_focus_keyword(title: Optional[str], description: Optional[str]) -> Optional[str]:
    words = tokenize(title, TITLE_MIN_LEN)
    if words:
        return " ".join(words[:3])
    words = tokenize(description, DESCRIPTION_MIN_LEN)
    if words:
        return " ".join(words[:2])
    return None


def generate_keywords(title: Optional[str], description: Optional[str], focus_keyword: Optional[str]) -> List[str]:
    keywords: List[str] = []

    def add(word: str) -> None:
        if word and word not in keywords and len(keywords) < MAX_KEYWORDS:
            keywords.append(word)

    if focus_keyword:
        add(focus_keyword.strip().lower())
    for word in tokenize(title, TITLE_MIN_LEN)[:TITLE_KEYWORDS]:
        add(word)
    for word in tokenize(description, DESCRIPTION_MIN_LEN)[:DESCRIPTION_KEYWORDS]:
        add(word)
    return keywords


def _first(*candidates: Tuple[str, Optional[str]]) -> Tuple[Optional[str], Optional[str]]:
    for source, value in candidates:
        if value:
            return value, source
    return None, None


def extract_seo_metadata(head_html: Optional[str], domains=None) -> SEOMetadata:
    """Normalize a head fragment into ``SEOMetadata``.

    ``domains`` is an optional ``DomainMapping``; when given, canonical and
    ``og:url`` links are moved from the CMS host to the public host.
    Malformed or empty input gives an empty result, never an exception.
    """
    if not head_html or not isinstance(head_html, str):
        return SEOMetadata()
    try:
        return _extract(head_html, domains)
    except Exception:
        logger.exception("[RankMath] extraction failed, returning empty metadata")
        return SEOMetadata()


def _extract(head_html: str, domains) -> SEOMetadata:
    meta = parse_meta_tags(head_html)
    links = parse_links(head_html)
    structured = get_structured_data(head_html)
    rewrite = domains.to_frontend if domains is not None else (lambda u: u)

    seo = SEOMetadata(structured_data=structured)

    seo.title, src = _first(
        ("title", extract_title(head_html)),
        ("meta:title", meta.get("title")),
        ("og:title", meta.get("og:title")),
        ("twitter:title", meta.get("twitter:title")),
    )
    if src:
        seo.sources["title"] = src

    seo.description, src = _first(
        ("meta:description", meta.get("description")),
        ("og:description", meta.get("og:description")),
    )
    if src:
        seo.sources["description"] = src

    canonical = links.get("canonical")
    if canonical:
        seo.canonical_url = rewrite(canonical)
        seo.sources["canonical_url"] = "link:canonical"

    seo.robots = meta.get("robots")

    seo.open_graph = OpenGraph(
        title=meta.get("og:title"),
        description=meta.get("og:description"),
        image=meta.get("og:image"),
        type=meta.get("og:type"),
        url=rewrite(meta["og:url"]) if meta.get("og:url") else None,
    )
    seo.twitter = TwitterCard(
        title=meta.get("twitter:title"),
        description=meta.get("twitter:description"),
        image=meta.get("twitter:image"),
        card=meta.get("twitter:card"),
    )

    seo.image, src = _first(
        ("og:image", meta.get("og:image")),
        ("twitter:image", meta.get("twitter:image")),
        ("meta:thumbnail", meta.get("thumbnail")),
        ("meta:featured-image", meta.get("featured-image")),
        ("link:image", links.get("image")),
        ("meta:image", meta.get("image")),
    )
    if src:
        seo.sources["image"] = src

    focus, src = _first(
        *(("meta:" + name, meta.get(name)) for name in FOCUS_KEYWORD_META),
        ("inline", extract_focus_keyword_from_content(head_html)),
        ("json-ld", _keyword_from_structured(structured)),
    )
    if focus:
        seo.focus_keyword = focus
        seo.sources["focus_keyword"] = src
    else:
        seo.focus_keyword = fallback_focus_keyword(seo.title, seo.description)
        if seo.focus_keyword:
            seo.derived.append("focus_keyword")

    explicit = meta.get("keywords") or meta.get("keyword")
    if explicit:
        seo.keywords = [k.strip() for k in explicit.split(",") if k.strip()]
        seo.sources["keywords"] = "meta:keywords"
    else:
        seo.keywords = generate_keywords(seo.title, seo.description, seo.focus_keyword)
        if seo.keywords:
            seo.derived.append("keywords")

    return seo
