from unittest.mock import MagicMock

import pytest

from headless.utils.urls import DomainMapping
from metadata import (
    SEOMetadata,
    extract_seo_metadata,
    generate_keywords,
    normalize_url,
    tokenize,
)

FULL_HEAD = """
<title>Cara Setup VPS WordPress Terbaik - IndexOf</title>
<meta name="description" content="Panduan setup VPS untuk WordPress &amp; Nginx"/>
<meta name="robots" content="follow, index, max-snippet:-1"/>
<link rel="canonical" href="https://cms.example.com/setup-vps/" />
<meta property="og:type" content="article" />
<meta property="og:title" content="Setup VPS WordPress" />
<meta property="og:description" content="OG description" />
<meta property="og:url" content="https://cms.example.com/setup-vps/" />
<meta property="og:image" content="https://cms.example.com/wp-content/uploads/vps.png" />
<meta name="twitter:card" content="summary_large_image" />
<meta name="twitter:title" content="Twitter title" />
<meta name="twitter:image" content="https://cms.example.com/wp-content/uploads/tw.png" />
<script type="application/ld+json" class="rank-math-schema">
{"@context":"https://schema.org","@graph":[{"@type":"BlogPosting","headline":"Setup VPS","keywords":"setup vps, nginx"}]}
</script>
"""


@pytest.fixture
def domains():
    return DomainMapping.from_config("https://cms.example.com", "https://www.example.com")


class TestExtraction:
    def test_full_head(self, domains):
        seo = extract_seo_metadata(FULL_HEAD, domains)
        assert seo.title == "Cara Setup VPS WordPress Terbaik - IndexOf"
        assert seo.description == "Panduan setup VPS untuk WordPress & Nginx"
        assert seo.robots == "follow, index, max-snippet:-1"
        assert seo.canonical_url == "https://www.example.com/setup-vps/"
        assert seo.open_graph.url == "https://www.example.com/setup-vps/"
        assert seo.open_graph.type == "article"
        assert seo.twitter.card == "summary_large_image"
        assert seo.image == "https://cms.example.com/wp-content/uploads/vps.png"
        assert seo.sources["image"] == "og:image"
        assert seo.focus_keyword == "setup vps"
        assert seo.sources["focus_keyword"] == "json-ld"
        assert len(seo.structured_data) == 1
        assert not seo.is_derived("focus_keyword")

    def test_title_falls_back_to_og_title(self):
        seo = extract_seo_metadata('<meta property="og:title" content="Only OG">')
        assert seo.title == "Only OG"
        assert seo.sources["title"] == "og:title"

    def test_title_priority(self):
        head = '<meta name="twitter:title" content="TW"><meta property="og:title" content="OG"><meta name="title" content="Meta">'
        assert extract_seo_metadata(head).title == "Meta"
        assert extract_seo_metadata('<meta name="twitter:title" content="TW">').title == "TW"

    def test_description_falls_back_to_og(self):
        seo = extract_seo_metadata('<meta property="og:description" content="From OG">')
        assert seo.description == "From OG"

    def test_attribute_order_does_not_matter(self):
        seo = extract_seo_metadata("<meta content='Reversed' name='description'>")
        assert seo.description == "Reversed"

    def test_first_occurrence_wins(self):
        head = '<meta name="description" content="first"><meta name="description" content="second">'
        assert extract_seo_metadata(head).description == "first"

    def test_image_fallback_chain(self):
        assert extract_seo_metadata('<meta name="twitter:image" content="tw.png">').image == "tw.png"
        assert extract_seo_metadata('<meta name="thumbnail" content="th.png">').image == "th.png"
        seo = extract_seo_metadata('<link rel="image" href="link.png">')
        assert seo.image == "link.png"
        assert seo.sources["image"] == "link:image"

    def test_bad_json_ld_block_is_skipped(self):
        head = (
            '<script type="application/ld+json">{not json}</script>'
            '<script type="application/ld+json">{"@type":"WebPage"}</script>'
        )
        assert extract_seo_metadata(head).structured_data == [{"@type": "WebPage"}]


class TestFocusKeyword:
    def test_meta_tag(self):
        head = '<title>Judul</title><meta name="rank-math-focus-keyword" content="docker compose">'
        seo = extract_seo_metadata(head)
        assert seo.focus_keyword == "docker compose"
        assert seo.sources["focus_keyword"] == "meta:rank-math-focus-keyword"

    def test_inline_script(self):
        head = '<title>Judul</title><script>var rm = {"focus_keyword":"ssl gratis"};</script>'
        assert extract_seo_metadata(head).focus_keyword == "ssl gratis"

    def test_placeholder_values_rejected(self):
        head = '<title>Install Nginx Ubuntu</title><script>{"focus_keyword":"example keyword"}</script>'
        seo = extract_seo_metadata(head)
        assert seo.focus_keyword == "install nginx ubuntu"
        assert seo.is_derived("focus_keyword")

    def test_structured_data_keyword_list(self):
        head = '<script type="application/ld+json">{"@type":"Article","keywords":["cloudflare","dns"]}</script>'
        assert extract_seo_metadata(head).focus_keyword == "cloudflare"

    def test_rank_math_node(self):
        head = '<script type="application/ld+json">[{"rankMath":{"focusKeyword":"cdn"}}]</script>'
        assert extract_seo_metadata(head).focus_keyword == "cdn"

    def test_derived_from_indonesian_title(self):
        seo = extract_seo_metadata("<title>Cara Setup VPS WordPress Terbaik</title>")
        assert seo.focus_keyword == "setup vps wordpress"
        assert seo.keywords == ["setup vps wordpress", "setup", "vps", "wordpress"]
        assert seo.derived == ["focus_keyword", "keywords"]

    def test_derived_from_description_when_title_has_no_words(self):
        seo = extract_seo_metadata('<meta name="description" content="Panduan lengkap membangun server pribadi">')
        assert seo.focus_keyword == "lengkap membangun"
        assert seo.keywords == ["lengkap membangun", "lengkap", "membangun", "server"]

    def test_four_letter_description_words_are_dropped(self):
        seo = extract_seo_metadata('<meta name="description" content="Cara baru buat blog cepat sekali">')
        assert seo.focus_keyword == "cepat sekali"
        assert "blog" not in seo.keywords


class TestKeywords:
    def test_explicit_keywords_meta(self):
        seo = extract_seo_metadata('<title>T</title><meta name="keywords" content="vps, nginx , ,ssl">')
        assert seo.keywords == ["vps", "nginx", "ssl"]
        assert not seo.is_derived("keywords")
        assert seo.keywords_text == "vps, nginx, ssl"

    def test_generated_keywords_are_deduplicated_and_capped(self):
        kws = generate_keywords(
            "Server server backup database linux ubuntu nginx apache",
            "Monitoring logging alerting metrics",
            "server",
        )
        assert kws[0] == "server"
        assert len(kws) == len(set(kws)) <= 8

    def test_tokenize(self):
        assert tokenize("Cara Setup VPS, dengan Docker!", 3) == ["setup", "vps", "docker"]
        assert tokenize("VPS murah", 4) == ["murah"]
        assert tokenize(None, 3) == []


class TestRobustness:
    @pytest.mark.parametrize("head", [None, "", "   ", "<<<>>>", 42])
    def test_garbage_gives_empty_result(self, head):
        seo = extract_seo_metadata(head)
        assert isinstance(seo, SEOMetadata)
        assert seo.is_empty

    def test_never_raises(self):
        broken = MagicMock()
        broken.to_frontend.side_effect = RuntimeError("boom")
        seo = extract_seo_metadata('<link rel="canonical" href="https://x.test/">', broken)
        assert seo.is_empty

    def test_idempotent(self, domains):
        assert extract_seo_metadata(FULL_HEAD, domains).to_dict() == extract_seo_metadata(FULL_HEAD, domains).to_dict()


class TestNormalizeUrl:
    def test_relative_path_joined_to_site(self):
        assert normalize_url("/setup-vps/", "https://www.example.com/") == ("https://www.example.com/setup-vps/", None)

    def test_bare_host_gets_https(self):
        assert normalize_url("www.example.com/a") == ("https://www.example.com/a", None)

    def test_errors(self):
        assert normalize_url("")[1] == "URL is empty"
        assert normalize_url("/x")[1] is not None
