import pytest
from pathlib import Path
from unittest.mock import patch
from rifler.core.errors import PathTraversalError, PatternSyntaxError, ValidationError
from rifler.core.search.models import SearchOptions, SearchRequest, SearchResponse, SearchResult
from rifler.core.search.service import SearchService
from rifler.core.traversal import TraversalEngine


@pytest.fixture
def project(workspace):
    (workspace / "src").mkdir()
    (workspace / "src" / "main.py").write_text("import token\nprint(token)\n")
    (workspace / "src" / "util.py").write_text("def helper():\n    return 'token'\n")
    (workspace / "docs").mkdir()
    (workspace / "docs" / "guide.md").write_text("The token is documented here.\n")
    (workspace / "node_modules" / "pkg").mkdir(parents=True)
    (workspace / "node_modules" / "pkg" / "index.js").write_text("const token = 1;\n")
    return workspace


def paths_of(response):
    return {Path(r.path) for r in response}


def test_search_service_contract(project):
    service = SearchService([str(project)])

    response = service.search(SearchRequest(query="token"))

    assert isinstance(response, SearchResponse)
    assert len(response) == 4
    assert all(isinstance(r, SearchResult) for r in response)
    assert not response.limit_reached
    assert paths_of(response) == {
        project / "src" / "main.py",
        project / "src" / "util.py",
        project / "docs" / "guide.md",
    }

    for r in response:
        assert r.line >= 0
        assert 0 <= r.preview_match_range.start < r.preview_match_range.end <= len(r.preview)
        assert r.preview[r.preview_match_range.start:r.preview_match_range.end].lower() == "token"


def test_results_are_ordered_within_file(project):
    service = SearchService([str(project)])
    response = service.search(SearchRequest(
        query="token", scope="file", scope_path=str(project / "src" / "main.py")
    ))
    assert [(r.line, r.character) for r in response] == [(0, 7), (1, 6)]


def test_literal_search_does_not_treat_dot_as_wildcard(workspace):
    (workspace / "a.txt").write_text("a.b\naxb\n")
    service = SearchService([str(workspace)])

    response = service.search(SearchRequest(query="a.b"))
    assert [(r.line, r.preview) for r in response] == [(0, "a.b")]


def test_whole_word_search(workspace):
    (workspace / "t.py").write_text("testing = 1\ntest = 2\n")
    service = SearchService([str(workspace)])

    response = service.search(SearchRequest(query="test", options=SearchOptions(whole_word=True)))
    assert [r.line for r in response] == [1]


def test_file_scope_returns_only_target(project):
    target = project / "src" / "util.py"
    service = SearchService([str(project)])

    response = service.search(SearchRequest(query="token", scope="file", scope_path=str(target)))

    assert len(response) == 1
    assert all(Path(r.path) == target for r in response)
    assert response[0].relative_path == str(Path("src") / "util.py")
    assert response[0].file_name == "util.py"


def test_directory_scope_excludes_outside_occurrences(project):
    service = SearchService([str(project)])

    response = service.search(SearchRequest(query="documented", scope="directory", scope_path=str(project / "src")))
    assert len(response) == 0

    response = service.search(SearchRequest(query="token", scope="directory", scope_path=str(project / "docs")))
    assert paths_of(response) == {project / "docs" / "guide.md"}


def test_cap_yields_exactly_cap_with_at_least_indicator(workspace):
    for i in range(5):
        (workspace / f"f{i}.txt").write_text("hit\n" * 10)
    service = SearchService([str(workspace)])

    response = service.search(SearchRequest(query="hit", max_results=25))

    assert len(response) == 25
    assert response.limit_reached
    assert response.count_label == "at least 25"


def test_configured_cap_applies_when_request_has_none(workspace):
    (workspace / "f.txt").write_text("hit " * 50)
    service = SearchService([str(workspace)], {"search": {"max_results": 7}})

    response = service.search(SearchRequest(query="hit"))
    assert len(response) == 7
    assert response.limit_reached


def test_smart_excludes_toggle(project):
    enabled = SearchService([str(project)])
    disabled = SearchService([str(project)], {"search": {"smart_excludes": False}})
    dependency = project / "node_modules" / "pkg" / "index.js"

    assert dependency not in paths_of(enabled.search(SearchRequest(query="token")))
    assert dependency in paths_of(disabled.search(SearchRequest(query="token")))


def test_file_mask_limits_results(project):
    service = SearchService([str(project)])
    response = service.search(SearchRequest(query="token", options=SearchOptions(file_mask="*.md")))
    assert paths_of(response) == {project / "docs" / "guide.md"}


def test_exclude_path_hint_is_applied_last(project):
    service = SearchService([str(project)])
    active = project / "src" / "main.py"

    response = service.search(SearchRequest(query="token", exclude_path=active.as_uri()))

    assert active not in paths_of(response)
    assert len(response) == 2


def test_short_or_blank_query_returns_nothing(project):
    service = SearchService([str(project)])
    assert len(service.search(SearchRequest(query="   "))) == 0
    assert len(service.search(SearchRequest(query="t"))) == 0


def test_invalid_regex_fails_before_traversal(project):
    service = SearchService([str(project)])
    with patch.object(TraversalEngine, "walk") as walk:
        with pytest.raises(PatternSyntaxError):
            service.search(SearchRequest(query="([a-z", options=SearchOptions(use_regex=True)))
        walk.assert_not_called()


def test_scope_errors_fail_closed(project):
    service = SearchService([str(project)])
    with patch.object(TraversalEngine, "walk") as walk:
        with pytest.raises(ValidationError):
            service.search(SearchRequest(query="token", scope="directory", scope_path=""))
        with pytest.raises(PathTraversalError):
            service.search(SearchRequest(query="token", scope="directory", scope_path="../etc"))
        walk.assert_not_called()


def test_project_scope_without_roots():
    service = SearchService([])
    with pytest.raises(ValidationError):
        service.search(SearchRequest(query="token"))


def test_generation_is_echoed(project):
    service = SearchService([str(project)])
    response = service.search(SearchRequest(query="token", generation=42))
    assert response.generation == 42


def test_result_dict_shape(project):
    service = SearchService([str(project)])
    result = service.search(SearchRequest(
        query="documented", scope="file", scope_path=str(project / "docs" / "guide.md")
    ))[0]

    data = result.to_dict()
    assert data["fileName"] == "guide.md"
    assert data["relativePath"] == str(Path("docs") / "guide.md")
    assert data["previewMatchRange"] == {"start": 13, "end": 23}
    assert data["uri"].startswith("file://")


def test_shared_limiter_across_services(project):
    first = SearchService([str(project)])
    second = SearchService([str(project)], limiter=first.limiter)

    assert second.limiter is first.limiter
    assert len(second.search(SearchRequest(query="token"))) == 4
    assert first.limiter.in_flight == 0


def test_nested_roots_report_each_occurrence_once(workspace):
    (workspace / "sub").mkdir()
    (workspace / "sub" / "a.txt").write_text("token\n")
    service = SearchService([str(workspace), str(workspace / "sub")])

    response = service.search(SearchRequest(query="token"))

    assert len(response) == 1
    assert response[0].relative_path == str(Path("sub") / "a.txt")
