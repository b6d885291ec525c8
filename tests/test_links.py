from dove.config import ChangeFreq, RiskLevel, UtmParams
from dove.links import (
    DEFAULT_CATEGORY,
    NetMode,
    external_categories,
    normalize_display,
    project_links,
    resolve_icon_for_detail,
    resolve_icon_for_page,
    risk_meta,
)

GROUPS = [
    {
        "name": "Public",
        "category": "Web",
        "links": [
            {"name": "Site", "url": "https://site.test", "intranet": "http://site.lan"},
            {"name": "Wiki", "intranet": "http://wiki.lan"},
        ],
    },
    {"name": "Lan only", "links": [{"name": "NAS", "intranet": "http://nas.lan"}]},
    {"name": "Misc", "links": [{"name": "Blog", "url": "https://blog.test", "desc": "Notes"}]},
]


def test_external_projection_keeps_only_links_with_url(make_config):
    projection = project_links(make_config(GROUPS), NetMode.EXTERNAL)
    assert [group.name for group in projection.groups] == ["Public", "Misc"]
    assert projection.categories == ["Web", DEFAULT_CATEGORY]
    assert [link.name for link in projection.groups[0].links] == ["Site"]
    assert [detail.slug for detail in projection.details] == ["site", "blog"]
    assert projection.groups[1].links[0].desc == "Notes"


def test_external_hrefs_point_at_detail_pages(make_config):
    config = make_config(GROUPS)
    with_pages = project_links(config, NetMode.EXTERNAL, intermediate_pages=True, base_path="team")
    direct = project_links(config, NetMode.EXTERNAL, intermediate_pages=False)
    assert with_pages.groups[0].links[0].href == "/team/go/site/"
    assert direct.groups[0].links[0].href == "https://site.test"


def test_intranet_projection_prefers_intranet_url(make_config):
    projection = project_links(make_config(GROUPS), NetMode.INTRANET)
    hrefs = [link.href for group in projection.groups for link in group.links]
    assert hrefs == ["http://site.lan", "http://wiki.lan", "http://nas.lan", "https://blog.test"]
    assert projection.details == []


def test_external_categories_skip_intranet_only_groups(make_config):
    assert external_categories(make_config(GROUPS)) == ["Web", DEFAULT_CATEGORY]


def test_details_fall_back_to_site_defaults(make_config):
    config = make_config(
        [
            {
                "name": "G",
                "links": [
                    {"name": "A", "url": "https://a.test"},
                    {
                        "name": "B",
                        "url": "https://b.test",
                        "risk": "high",
                        "utm": {"source": "link"},
                        "lastmod": "2024-05-01",
                        "changefreq": "daily",
                        "priority": 0.9,
                    },
                ],
            }
        ],
        redirect={"delay_seconds": 3, "default_risk": "medium", "utm": {"source": "site"}},
        sitemap={"default_changefreq": "monthly", "default_priority": 0.4, "lastmod": "2024-01-01"},
    )
    a, b = project_links(config, NetMode.EXTERNAL).details

    assert a.risk is RiskLevel.MEDIUM
    assert a.delay_seconds == 3
    assert a.utm == UtmParams(source="site")
    assert (a.lastmod, a.changefreq, a.priority) == ("2024-01-01", ChangeFreq.MONTHLY, 0.4)

    assert b.risk is RiskLevel.HIGH
    assert b.utm == UtmParams(source="link")
    assert (b.lastmod, b.changefreq, b.priority) == ("2024-05-01", ChangeFreq.DAILY, 0.9)
    assert b.host == "b.test"


def test_details_without_site_defaults(make_config):
    (detail,) = project_links(make_config([{"name": "G", "links": [{"name": "A", "url": "https://a.test"}]}]),
                              NetMode.EXTERNAL).details
    assert detail.risk is RiskLevel.LOW
    assert detail.delay_seconds == 0
    assert detail.utm is None
    assert detail.lastmod is None


def test_display_resolution(make_config):
    config = make_config(
        [
            {"name": "A", "category": "Tools", "links": [{"name": "a", "url": "https://a.test"}]},
            {"name": "B", "category": "Tools", "display": "文本", "links": [{"name": "b", "url": "https://b.test"}]},
            {"name": "C", "category": "Other", "links": [{"name": "c", "url": "https://c.test"}]},
        ],
        category_display={"Tools": "compact"},
        default_category_display="list",
    )
    displays = [group.display for group in project_links(config, NetMode.EXTERNAL).groups]
    assert displays == ["compact", "text", "list"]


def test_normalize_display_unknown_falls_back():
    assert normalize_display(" 简洁 ") == "compact"
    assert normalize_display("fancy") == "standard"


def test_icon_paths_per_page():
    assert resolve_icon_for_page("assets/icons/i_1.png", "") == "assets/icons/i_1.png"
    assert resolve_icon_for_page("assets/icons/i_1.png", "../") == "../assets/icons/i_1.png"
    assert resolve_icon_for_page("/assets/a.png", "../") == "../assets/a.png"
    assert resolve_icon_for_page("https://a.test/i.png", "../") == "https://a.test/i.png"
    assert resolve_icon_for_detail("/assets/icons/i_1.png") == "../../assets/icons/i_1.png"
    assert resolve_icon_for_detail("data:image/png;base64,AA") == "data:image/png;base64,AA"


def test_intranet_icons_get_parent_prefix(make_config):
    config = make_config([{"name": "G", "links": [{"name": "A", "intranet": "http://a.lan", "icon": "assets/a.png"}]}])
    projection = project_links(config, NetMode.INTRANET)
    assert projection.groups[0].links[0].icon == "../assets/a.png"


def test_risk_meta():
    assert risk_meta(None) == ("low", "低风险")
    assert risk_meta(RiskLevel.HIGH) == ("high", "高风险")
