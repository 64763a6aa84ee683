from shopify_commerce_feed.text import strip_markup


def test_strip_markup_removes_tags_and_collapses_whitespace():
    html = "<p>Soft&nbsp;cotton <strong>t-shirt</strong></p>\n<ul><li>Machine   wash</li></ul>"
    assert strip_markup(html) == "Soft cotton t-shirt Machine wash"


def test_strip_markup_decodes_fixed_entity_set():
    html = "Fish &amp; Chips &quot;fresh&quot; &#39;n&#39; &lt;hot&gt;"
    assert strip_markup(html) == "Fish & Chips \"fresh\" 'n' <hot>"


def test_strip_markup_leaves_other_entities_alone():
    assert strip_markup("&copy; 2024 &eacute;t&eacute;") == "&copy; 2024 &eacute;t&eacute;"


def test_strip_markup_empty_input():
    assert strip_markup(None) == ""
    assert strip_markup("") == ""
    assert strip_markup("<br/><br/>") == ""
