import pytest

from pagebundle.references import (
    ABSOLUTE_PATH,
    ESCAPES_BUNDLE,
    MISSING_ASSET,
    OUTSIDE_ASSET_DIR,
    UNREADABLE_ENTRY,
    check_bundle,
    check_content_root,
    find_references,
    rewrite_local_urls,
    unreferenced_assets,
)


class TestFindReferences:
    def test_markdown_image(self):
        refs = find_references("intro\n\n![alt](images/shot.png)\n")
        assert [(r.url, r.kind, r.line) for r in refs] == [
            ("images/shot.png", "markdown-image", 3)
        ]

    def test_image_with_title(self):
        refs = find_references('![alt](images/a.png "A title")')
        assert refs[0].path == "images/a.png"

    def test_html_and_shortcode_src(self):
        md = '<img src="images/a.png">\n{{< figure src="images/b.png" >}}\n'
        assert [(r.path, r.kind) for r in find_references(md)] == [
            ("images/a.png", "html-src"),
            ("images/b.png", "html-src"),
        ]

    def test_links_only_into_asset_dir(self):
        md = "[pdf](images/paper.pdf) [post](../other-post/) [here](./images/x.zip)"
        assert [r.path for r in find_references(md)] == [
            "images/paper.pdf",
            "./images/x.zip",
        ]

    def test_href_into_asset_dir(self):
        md = '<a href="images/big.png">big</a> <a href="/about/">about</a>'
        refs = find_references(md)
        assert [(r.path, r.kind) for r in refs] == [("images/big.png", "html-href")]

    def test_ignores_external(self):
        md = (
            "![x](https://example.com/a.png) ![y](data:image/png;base64,AAAA) "
            "![z](//cdn.example.com/z.png) [m](mailto:a@b.c) [t](#top)"
        )
        assert find_references(md) == []

    def test_ignores_code(self):
        md = "```md\n![x](images/in-fence.png)\n```\n`![y](images/inline.png)`\n![z](images/real.png)\n"
        refs = find_references(md)
        assert [(r.path, r.line) for r in refs] == [("images/real.png", 5)]

    def test_path_strips_query_and_decodes(self):
        (ref,) = find_references("![x](images/my%20shot.png?v=2#frag)")
        assert ref.path == "images/my shot.png"

    def test_custom_asset_dir(self):
        refs = find_references("[f](assets/f.pdf) [g](images/g.pdf)", asset_dir_name="assets")
        assert [r.path for r in refs] == ["assets/f.pdf"]

    def test_reference_style_image(self):
        md = "![diagram][fig1]\n\n[fig1]: images/diagram.png \"Diagram\"\n"
        refs = find_references(md)
        assert [(r.path, r.kind, r.line) for r in refs] == [
            ("images/diagram.png", "link-definition", 3)
        ]

    def test_shortcut_and_collapsed_image_labels(self):
        md = "![Logo] ![Chart][]\n\n[logo]: logo.svg\n[chart]: <chart.png>\n"
        assert [r.path for r in find_references(md)] == ["logo.svg", "chart.png"]

    def test_definitions_for_pages_are_not_assets(self):
        md = "See [the old post][old].\n\n[old]: ../2024-01-01-old/\n[home]: /about.html\n"
        assert find_references(md) == []

    def test_definition_for_a_file_is_an_asset(self):
        md = "Grab [the paper][p].\n\n[p]: paper.pdf\n"
        assert [r.path for r in find_references(md)] == ["paper.pdf"]


class TestCheckBundle:
    def test_clean_bundle(self, make_bundle):
        bundle = make_bundle(body="![a](images/shot.png)\n", assets=["images/shot.png"])
        assert check_bundle(bundle) == []

    def test_missing_asset_scenario(self, make_bundle):
        bundle = make_bundle(body="![alt](images/shot.png)\n")
        (issue,) = check_bundle(bundle)
        assert issue.code == MISSING_ASSET
        assert issue.reference.path == "images/shot.png"
        assert "images/shot.png" in str(issue)

    @pytest.mark.parametrize(
        "body, code",
        [
            ("![a](/images/shot.png)", ABSOLUTE_PATH),
            ("![a](../other/images/shot.png)", ESCAPES_BUNDLE),
            ("![a](cover.png)", OUTSIDE_ASSET_DIR),
            ("![a](images/../cover.png)", OUTSIDE_ASSET_DIR),
        ],
    )
    def test_issue_codes(self, make_bundle, body, code):
        bundle = make_bundle(body=body + "\n", assets=["cover.png"])
        assert [i.code for i in check_bundle(bundle)] == [code]

    def test_nested_asset(self, make_bundle):
        bundle = make_bundle(
            body="![a](images/2025/shot.png)\n", assets=["images/2025/shot.png"]
        )
        assert check_bundle(bundle) == []

    def test_check_content_root(self, content_root, make_bundle):
        make_bundle("2025-11-01-ok", body="![a](images/a.png)", assets=["images/a.png"])
        make_bundle("2025-11-02-broken", body="![a](images/a.png)\n![b](images/b.png)")
        issues = check_content_root(content_root)
        assert [(i.bundle.name, i.reference.path) for i in issues] == [
            ("2025-11-02-broken", "images/a.png"),
            ("2025-11-02-broken", "images/b.png"),
        ]

    def test_reference_style_missing_and_absolute(self, make_bundle):
        bundle = make_bundle(
            body="![a][one] ![b][two]\n\n[one]: images/gone.png\n[two]: /images/b.png\n"
        )
        assert [(i.code, i.reference.path) for i in check_bundle(bundle)] == [
            (MISSING_ASSET, "images/gone.png"),
            (ABSOLUTE_PATH, "/images/b.png"),
        ]

    def test_check_content_root_reports_unreadable_entry(self, content_root, make_bundle):
        make_bundle("2025-11-01-ok", body="![a](images/a.png)", assets=["images/a.png"])
        bad = make_bundle("2025-11-02-latin1")
        bad.entry_path.write_bytes("---\ntitle: Café\n---\n".encode("latin-1"))
        (issue,) = check_content_root(content_root)
        assert issue.code == UNREADABLE_ENTRY
        assert issue.bundle.name == "2025-11-02-latin1"
        assert "not valid UTF-8" in issue.message


class TestUnreferencedAssets:
    def test_reports_unused(self, make_bundle):
        bundle = make_bundle(
            body="![a](images/used.png)\n",
            assets=["images/used.png", "images/unused.png", "images/.gitkeep"],
        )
        assert [p.name for p in unreferenced_assets(bundle)] == ["unused.png"]


class TestRewriteLocalUrls:
    def test_rewrites_outside_fences(self):
        md = "![a](old.png)\n```\n![b](old.png)\n```\n<img src=\"old.png\">\n![c](https://x/old.png)\n"
        out = rewrite_local_urls(md, lambda url: "images/new.png" if url == "old.png" else None)
        assert out == (
            "![a](images/new.png)\n```\n![b](old.png)\n```\n"
            "<img src=\"images/new.png\">\n![c](https://x/old.png)\n"
        )

    def test_rewrites_link_definitions(self):
        md = "![p][p]\n\n[p]: pic.png\n"
        out = rewrite_local_urls(md, lambda url: "images/pic.png")
        assert out == "![p][p]\n\n[p]: images/pic.png\n"

    def test_url_that_also_appears_in_attribute_name(self):
        out = rewrite_local_urls('<img src="s">', lambda url: "images/s.png")
        assert out == '<img src="images/s.png">'

    def test_url_that_also_appears_in_alt_text(self):
        md = "![see (a.png here](a.png)"
        out = rewrite_local_urls(md, lambda url: "images/a.png")
        assert out == "![see (a.png here](images/a.png)"
