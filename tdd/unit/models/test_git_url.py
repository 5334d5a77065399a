"""
Tests for GitURL normalization.

Canonical form: scheme://host/path without ".git". scp syntax and git://
become https. Same-repo comparison ignores the scheme.
"""
import pytest

from wmgr.models import GitURL, GitURLError


class TestNormalization:
    """Tests for the canonical form."""

    def test_scp_syntax_becomes_https(self):
        url = GitURL("git@github.com:acme/api.git")
        assert url.url == "https://github.com/acme/api"
        assert url.host == "github.com"
        assert url.repo_path == "acme/api"

    def test_scp_syntax_with_other_user(self):
        assert GitURL("deploy@git.example.com:team/tool").url == "https://git.example.com/team/tool"

    def test_git_scheme_becomes_https(self):
        assert GitURL("git://example.com/org/repo.git").url == "https://example.com/org/repo"

    def test_https_kept_and_suffix_stripped(self):
        assert GitURL("https://gitlab.com/group/sub/project.git").url == "https://gitlab.com/group/sub/project"

    def test_http_kept(self):
        assert GitURL("http://internal/tools/ci").scheme == "http"

    def test_ssh_scheme(self):
        url = GitURL("ssh://git@example.com:2222/org/repo.git")
        assert url.scheme == "ssh"
        assert url.host == "example.com"
        assert url.port == 2222
        assert url.repo_path == "org/repo"

    def test_port_is_not_part_of_host(self):
        assert GitURL("https://github.com:443/acme/api").host == "github.com"

    def test_whitespace_trimmed(self):
        assert GitURL("  https://github.com/acme/api  ").url == "https://github.com/acme/api"


class TestErrors:
    """Tests for rejected URLs."""

    def test_unsupported_scheme(self):
        with pytest.raises(GitURLError) as exc_info:
            GitURL("ftp://example.com/org/repo")
        assert exc_info.value.reason == "unsupported_scheme"

    def test_missing_host(self):
        with pytest.raises(GitURLError) as exc_info:
            GitURL("https:///org/repo")
        assert exc_info.value.reason == "missing_host"

    @pytest.mark.parametrize("raw", ["https://github.com", "https://github.com/", "https://github.com/.git"])
    def test_missing_repo_path(self, raw):
        with pytest.raises(GitURLError) as exc_info:
            GitURL(raw)
        assert exc_info.value.reason == "missing_repo_path"

    def test_empty(self):
        with pytest.raises(GitURLError) as exc_info:
            GitURL("")
        assert exc_info.value.reason == "empty"

    def test_plain_words_are_not_urls(self):
        with pytest.raises(GitURLError) as exc_info:
            GitURL("not a url")
        assert exc_info.value.reason == "invalid_format"

    def test_option_lookalike(self):
        with pytest.raises(GitURLError):
            GitURL("--upload-pack=touch /tmp/pwned")


class TestAccessors:
    """Tests for derived URLs and names."""

    def test_ssh_round_trip(self):
        assert GitURL("git@host:org/repo.git").to_ssh_url() == "git@host:org/repo.git"

    def test_https_url(self):
        assert GitURL("git@host:org/repo").to_https_url() == "https://host/org/repo.git"

    def test_repo_name_and_organization(self):
        url = GitURL("https://github.com/acme/platform/api")
        assert url.repo_name == "api"
        assert url.organization == "acme"

    def test_no_organization_for_single_segment(self):
        assert GitURL("https://example.com/repo").organization is None

    def test_same_repo_across_schemes(self):
        ssh = GitURL("git@host:org/repo.git")
        https = GitURL("https://host/org/repo")
        assert ssh.is_same_repo(https)
        assert https.is_same_repo(ssh)

    def test_different_repos(self):
        assert not GitURL("https://host/org/a").is_same_repo(GitURL("https://host/org/b"))
        assert not GitURL("https://h1/org/a").is_same_repo(GitURL("https://h2/org/a"))

    def test_equality_and_hash(self):
        assert GitURL("git://h/o/r.git") == GitURL("https://h/o/r")
        assert len({GitURL("git://h/o/r.git"), GitURL("https://h/o/r")}) == 1
