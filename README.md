# batchtool

Building blocks for working with many git repositories at once: a layered
settings store, helpers that turn repository names into local paths and clone
URLs, and source-control providers that list repositories and open, update
and merge pull requests.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

`batchtool.config` holds a module-level `settings` object of class `Settings`.
Lookups go through, in order: values given with `set`, environment variables
(once `init` has run), the loaded config file, and defaults from
`set_default`. Typed readers are `get_string`, `get_bool`, `get_int`,
`get_string_list`, `get_string_map_list` and `get_duration`; `get` returns the
raw value or `None`.

- `init(cfg_file=None)` applies the defaults, turns on environment lookup and
  loads a config file. Without `cfg_file` it looks for `batch-tool.json`,
  `batch-tool.yaml` or `batch-tool.yml` in the working directory, the user's
  config directory, `$XDG_CONFIG_HOME` (or `~/.config`) and the directory of
  the running script, and prints the file it used.
- Environment variable names are the key in upper case with `.` and `-`
  replaced by `_`, e.g. `GIT_HOST` for `git.host`.
- `load_fixture(directory)` resets the settings, applies the defaults and
  loads `example-config.{json,yaml,yml}` from `directory`, raising
  `ConfigError` when it is missing.
- `parse_duration("1h30m")` reads durations in `ns`, `us`, `ms`, `s`, `m` and
  `h` into a `timedelta`.
- `default_gitdir()` returns `$GOPATH/src`, asking `go env GOPATH` when the
  variable is unset, and the working directory when that fails too.

Keys are available as constants, for example `GIT_HOST` (`git.host`, default
`github.com`), `GIT_PROVIDER` (`git.provider`, default `github`),
`SOURCE_BRANCH` (`git.default-branch`, default `main`), `GIT_PROJECT`,
`GIT_DIRECTORY`, `GIT_USER` (default `git`), `AUTH_TOKEN` (`token`), `BRANCH`,
`REVIEWERS` and `DEFAULT_REVIEWERS` (`repos.reviewers`, a mapping of
repository name to reviewer list).

## Repository helpers

`batchtool.utils` reads the settings above:

- `parse_repo(repo)` splits `project/name` into `(host, project, name)`,
  filling in the configured host, and the configured project for a bare name
- `repo_path(repo)` returns the absolute checkout path under `git.directory`
- `repo_url(repo)` returns the SSH clone URL `ssh://user@host/project/name.git`
- `lookup_reviewers(name)` returns the explicit `reviewers`, else the
  configured defaults for that repository
- `lookup_branch(name)` returns `branch`, or reads the checked-out branch with
  `git` and remembers it
- `validate_branch(repo)` raises `ValueError` when the checkout is on the
  source branch
- `validate_required_config(*keys)` raises `ConfigError` for the first empty key

## Providers

`batchtool.scm.provider` defines the abstract `Provider` and a registry.
A provider module registers itself when imported:

```python
from batchtool.scm import bitbucket, provider

scm = provider.get("bitbucket", "PROJ")
for repo in scm.list_repositories():
    print(repo.name, repo.default_branch, repo.labels)

pr = scm.open_pull_request("my-repo", "feature-x", "Add feature", "Details", ["alice"])
```

- `batchtool.scm.bitbucket.Bitbucket` talks to the Bitbucket Server REST API
  (1.0) on `git.host`, sending `token` as a bearer token.
- `batchtool.scm.fake.Fake` keeps repositories and pull requests in memory,
  for tests; errors set with `set_error("list_repositories", exc)` are raised
  by that method until cleared. `create_test_repositories(project)` gives five
  sample repositories.

Results are `Repository` and `PullRequest` dataclasses from
`batchtool.scm.models`. Failures raise `SCMError`; `provider.get` with an
unknown name raises `ProviderNotRegisteredError`. Register your own with
`provider.register(name, factory)`; an existing registration is kept.

## What is not included

- There is no GitHub provider. `git.provider` defaults to `github`, but
  `provider.get("github", ...)` fails unless you register a factory yourself.
- There is no command-line program; the package is a library.