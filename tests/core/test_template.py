"""Tests for core.template."""

from __future__ import annotations

from uniplug.core.template import TemplateFields, render

FIELDS = TemplateFields(
    repo_owner="bufbuild",
    repo_name="buf",
    name="buf",
    version="1.2.3",
    version_prefix="v",
)


class TestRender:
    def test_core_fields(self):
        url = render("https://github.com/{{.RepoOwner}}/{{.RepoName}}/{{.VersionPrefix}}{{.Version}}", FIELDS)
        assert url == "https://github.com/bufbuild/buf/v1.2.3"

    def test_name(self):
        assert render("{{.Name}}.tar.gz", FIELDS) == "buf.tar.gz"

    def test_repeated_placeholder(self):
        assert render("{{.Version}}-{{.Version}}", FIELDS) == "1.2.3-1.2.3"

    def test_unknown_placeholder_left_as_is(self):
        assert render("{{.Nope}}/{{.Version}}", FIELDS) == "{{.Nope}}/1.2.3"

    def test_unset_optional_fields_kept(self):
        assert render("{{.BinaryName}}-{{.Platform}}-{{.Arch}}", FIELDS) == "{{.BinaryName}}-{{.Platform}}-{{.Arch}}"

    def test_optional_fields(self):
        fields = FIELDS.with_(platform="Linux", arch="x86_64", binary_name="buf")
        assert render("{{.BinaryName}}-{{.Platform}}-{{.Arch}}", fields) == "buf-Linux-x86_64"

    def test_empty_field_substitutes_empty(self):
        assert render("{{.VersionPrefix}}{{.Version}}", FIELDS.with_(version_prefix="")) == "1.2.3"
