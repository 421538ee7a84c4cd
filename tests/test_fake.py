import pytest

from batchtool.scm import provider
from batchtool.scm.fake import Fake, create_test_repositories, new, new_fake
from batchtool.scm.models import Repository
from batchtool.scm.provider import ProviderNotRegisteredError, SCMError


@pytest.fixture
def seeded():
    return new_fake("test-project", create_test_repositories("test-project"))


def test_new_is_empty():
    f = new("test-project")
    assert f.project == "test-project"
    assert f.repositories == []
    assert f.pull_requests == {}


def test_new_fake_copies_repositories():
    repos = create_test_repositories("test-project")
    f = new_fake("test-project", repos)
    assert f.project == "test-project"
    listed = f.list_repositories()
    assert [r.name for r in listed] == [r.name for r in repos]
    for copy, original in zip(listed, repos):
        assert copy is not original
    repos[0].labels.append("mutated")
    assert "mutated" not in f.repositories[0].labels


def test_list_repositories(seeded):
    repos = seeded.list_repositories()
    assert len(repos) == 5
    assert repos[0].name == "repo-1"
    assert len(repos[0].labels) == 3


def test_list_repositories_with_error(seeded):
    expected = RuntimeError("test error")
    seeded.set_error("list_repositories", expected)
    with pytest.raises(RuntimeError) as excinfo:
        seeded.list_repositories()
    assert excinfo.value is expected


def test_open_pull_request(seeded):
    pr = seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1", "reviewer2"])
    assert pr.id == 1
    assert pr.version == 1
    assert pr.title == "Test PR"
    assert pr.reviewers == ["reviewer1", "reviewer2"]
    assert seeded.has_pull_request("repo-1", "feature-branch")


def test_open_pull_request_duplicate(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", [])
    with pytest.raises(SCMError, match="already exists"):
        seeded.open_pull_request("repo-1", "feature-branch", "Test PR 2", "Test description 2", [])


def test_get_pull_request(seeded):
    original = seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1"])
    retrieved = seeded.get_pull_request("repo-1", "feature-branch")
    assert retrieved.id == original.id
    assert retrieved.title == original.title
    retrieved.reviewers.append("someone")
    assert seeded.get_pull_request("repo-1", "feature-branch").reviewers == ["reviewer1"]


def test_get_pull_request_not_found(seeded):
    with pytest.raises(SCMError, match="pull request not found for repo-1:nonexistent-branch"):
        seeded.get_pull_request("repo-1", "nonexistent-branch")


def test_update_pull_request(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1"])
    updated = seeded.update_pull_request("repo-1", "feature-branch", "Updated PR", "Updated description", ["reviewer2"], False)
    assert updated.title == "Updated PR"
    assert updated.version == 2
    assert updated.reviewers == ["reviewer2"]


def test_update_pull_request_append_reviewers(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1"])
    updated = seeded.update_pull_request(
        "repo-1", "feature-branch", "Updated PR", "Updated description", ["reviewer2", "reviewer1"], True
    )
    assert updated.reviewers == ["reviewer1", "reviewer2"]


def test_merge_pull_request(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1"])
    merged = seeded.merge_pull_request("repo-1", "feature-branch")
    assert merged.repo == "repo-1"
    assert not seeded.has_pull_request("repo-1", "feature-branch")
    assert seeded.pull_request_count() == 0


def test_merge_pull_request_already_merged(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", ["reviewer1"])
    seeded.merge_pull_request("repo-1", "feature-branch")
    with pytest.raises(SCMError):
        seeded.merge_pull_request("repo-1", "feature-branch")


def test_add_repository_copies():
    f = new("test-project")
    repo = Repository("new-repo", "New test repository", True, "test-project", "main", ["test", "new"])
    f.add_repository(repo)
    assert f.repository_count() == 1
    repos = f.list_repositories()
    assert repos[0].name == "new-repo"
    assert repos[0] is not repo


def test_add_repositories():
    f = new("p")
    f.add_repositories(Repository(name="a"), Repository(name="b"))
    assert [r.name for r in f.list_repositories()] == ["a", "b"]


def test_repository_by_name(seeded):
    repo = seeded.repository_by_name("repo-1")
    assert repo.name == "repo-1"
    assert seeded.repository_by_name("nonexistent") is None


def test_repositories_by_label(seeded):
    assert len(seeded.repositories_by_label("active")) == 3
    assert [r.name for r in seeded.repositories_by_label("backend")] == ["repo-1", "repo-5"]
    assert seeded.repositories_by_label("nonexistent") == []


def test_all_labels(seeded):
    assert seeded.all_labels() == [
        "active", "backend", "deprecated", "experimental", "frontend", "go",
        "javascript", "legacy", "microservice", "poc", "python",
    ]


def test_configured_errors_and_clearing(seeded):
    calls = [
        ("get_pull_request", lambda: seeded.get_pull_request("repo-1", "branch-1")),
        ("open_pull_request", lambda: seeded.open_pull_request("repo-1", "branch-1", "title", "desc", [])),
        ("update_pull_request", lambda: seeded.update_pull_request("repo-1", "branch-1", "title", "desc", [], False)),
        ("merge_pull_request", lambda: seeded.merge_pull_request("repo-1", "branch-1")),
    ]
    for method, call in calls:
        expected = RuntimeError(f"test error for {method}")
        seeded.set_error(method, expected)
        with pytest.raises(RuntimeError) as excinfo:
            call()
        assert excinfo.value is expected
        seeded.clear_error(method)
        assert method not in seeded.errors

    with pytest.raises(SCMError, match="not found"):
        calls[0][1]()
    assert calls[1][1]().id == 1
    assert calls[2][1]().version == 2
    assert calls[3][1]().title == "title"


def test_seed_and_clear_all_errors(seeded):
    seeded.seed_errors({"list_repositories": RuntimeError("x"), "merge_pull_request": RuntimeError("y")})
    with pytest.raises(RuntimeError, match="x"):
        seeded.list_repositories()
    seeded.clear_all_errors()
    assert len(seeded.list_repositories()) == 5


def test_clear(seeded):
    seeded.open_pull_request("repo-1", "feature-branch", "Test PR", "Test description", [])
    assert seeded.repository_count() == 5
    assert seeded.pull_request_count() == 1
    seeded.clear()
    assert seeded.repository_count() == 0
    assert seeded.pull_request_count() == 0


def test_create_test_repositories():
    repos = create_test_repositories("test-project")
    assert [r.name for r in repos] == [f"repo-{i}" for i in range(1, 6)]
    assert all(r.project == "test-project" for r in repos)
    assert all(r.labels for r in repos)


def test_example_integration(seeded):
    assert len(seeded.list_repositories()) == 5
    original = seeded.open_pull_request("repo-1", "feature-branch", "Test Feature", "Test Description", ["alice", "bob"])
    assert seeded.get_pull_request("repo-1", "feature-branch").id == original.id
    updated = seeded.update_pull_request("repo-1", "feature-branch", "Updated Feature", "Updated Description", ["charlie"], True)
    assert updated.reviewers == ["alice", "bob", "charlie"]
    seeded.merge_pull_request("repo-1", "feature-branch")
    assert not seeded.has_pull_request("repo-1", "feature-branch")


def test_data_isolation():
    fake1 = new_fake("project-1", create_test_repositories("project-1"))
    fake2 = new_fake("project-2", create_test_repositories("project-2"))
    fake1.open_pull_request("repo-1", "branch-1", "PR in fake1", "Description", [])
    assert not fake2.has_pull_request("repo-1", "branch-1")
    fake1.add_repository(Repository(name="extra-repo", project="project-1", labels=["extra"]))
    assert fake2.repository_by_name("extra-repo") is None
    assert len(fake1.list_repositories()) == 6
    assert len(fake2.list_repositories()) == 5


def test_fake_registered_by_default():
    f = provider.get("fake", "my-project")
    assert isinstance(f, Fake)
    assert f.project == "my-project"


def test_registry_with_seeded_fake():
    provider.register("test-scm-with-data", lambda project: new_fake(project, create_test_repositories(project)))
    repos = provider.get("test-scm-with-data", "my-project").list_repositories()
    assert len(repos) == 5
    assert repos[0].name == "repo-1"
    assert repos[0].project == "my-project"


def test_registry_unknown_provider():
    with pytest.raises(ProviderNotRegisteredError, match="SCM provider nonexistent not registered"):
        provider.get("nonexistent", "project")


def test_registry_error_provider():
    def factory(project):
        f = new(project)
        f.set_error("list_repositories", SCMError("API unavailable"))
        return f

    provider.register("error-provider", factory)
    with pytest.raises(SCMError, match="^API unavailable$"):
        provider.get("error-provider", "error-project").list_repositories()


def test_registry_multiple_providers():
    provider.register("provider-a", lambda p: new_fake("project-a-" + p, create_test_repositories("project-a-" + p)))
    provider.register("provider-b", lambda p: new_fake("project-b-" + p, create_test_repositories("project-b-" + p)))
    repos_a = provider.get("provider-a", "test").list_repositories()
    repos_b = provider.get("provider-b", "test").list_repositories()
    assert len(repos_a) == len(repos_b)
    assert repos_a[0].project == "project-a-test"
    assert repos_b[0].project == "project-b-test"


def test_registry_duplicate_keeps_original():
    def original(project):
        f = new(project)
        f.add_repository(Repository(name="original-repo", project=project))
        return f

    def replacement(project):
        f = new(project)
        f.add_repository(Repository(name="new-repo", project=project))
        return f

    provider.register("duplicate-test", original)
    assert [r.name for r in provider.get("duplicate-test", "p").list_repositories()] == ["original-repo"]
    provider.register("duplicate-test", replacement)
    assert [r.name for r in provider.get("duplicate-test", "p").list_repositories()] == ["original-repo"]