from pathmarks.paths import is_within, join_folder_path, normalize_path, rebase, split_path


def test_split_path_returns_parent_and_leaf():
    assert split_path("/A/B/C") == ("/A/B", "C", True)
    assert split_path("/A") == ("/", "A", True)
    assert split_path("/") == ("/", "", True)


def test_split_path_without_slash_is_not_ok():
    assert split_path("A") == ("", "", False)
    assert split_path("") == ("", "", False)


def test_join_folder_path_adds_single_separator():
    assert join_folder_path("/", "A") == "/A"
    assert join_folder_path("/A", "B") == "/A/B"
    assert join_folder_path("/A/", "B") == "/A/B"


def test_join_folder_path_collapses_leading_double_slash():
    assert join_folder_path("//", "A") == "/A"
    assert join_folder_path("", "A") == "/A"


def test_join_and_split_agree():
    parent, name, ok = split_path(join_folder_path("/Work/Docs", "Python"))
    assert ok
    assert (parent, name) == ("/Work/Docs", "Python")


def test_normalize_path():
    assert normalize_path("  /A//B/ ") == "/A/B"
    assert normalize_path("A/B") == "/A/B"
    assert normalize_path("/") == "/"
    assert normalize_path("///") == "/"
    assert normalize_path("") == ""
    assert normalize_path("   ") == ""
    assert normalize_path("/ Work / Docs/") == "/Work/Docs"
    assert normalize_path("/A/ /B") == "/A/B"


def test_is_within_is_segment_aware():
    assert is_within("/A/B", "/A")
    assert is_within("/A", "/A")
    assert not is_within("/AB", "/A")
    assert not is_within("/A/B2", "/A/B")
    assert is_within("/anything", "/")


def test_rebase_replaces_only_the_leading_folder():
    assert rebase("/A/B", "/A/B", "/A/X") == "/A/X"
    assert rebase("/A/B/C/D", "/A/B", "/Z") == "/Z/C/D"
    assert rebase("/A/Bob", "/A/B", "/A/X") == "/A/Bob"
