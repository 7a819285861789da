"""Flat ``{{.Field}}`` placeholder substitution for URLs and file names.

Each known placeholder is replaced literally; anything else, including
unknown placeholders, is left as written.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class TemplateFields:
    """Values available to templates.

    The first five fields are always substituted. The binary-release
    fields are substituted only when set, so a template rendered before
    the host platform is known keeps those placeholders intact.
    """

    repo_owner: str = ""
    repo_name: str = ""
    name: str = ""
    version: str = ""
    version_prefix: str = ""
    platform: str | None = None
    arch: str | None = None
    file_name: str | None = None
    binary_name: str | None = None

    def with_(self, **changes: str | None) -> TemplateFields:
        return replace(self, **changes)

    def placeholders(self) -> dict[str, str]:
        values = {
            "{{.RepoOwner}}": self.repo_owner,
            "{{.RepoName}}": self.repo_name,
            "{{.Name}}": self.name,
            "{{.Version}}": self.version,
            "{{.VersionPrefix}}": self.version_prefix,
        }
        optional = {
            "{{.Platform}}": self.platform,
            "{{.Arch}}": self.arch,
            "{{.FileName}}": self.file_name,
            "{{.BinaryName}}": self.binary_name,
        }
        values.update({k: v for k, v in optional.items() if v is not None})
        return values


def render(template: str, fields: TemplateFields) -> str:
    """Replace every known placeholder in *template* with its field value."""
    result = template
    for placeholder, value in fields.placeholders().items():
        result = result.replace(placeholder, value)
    return result
