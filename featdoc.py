#!/usr/bin/env python3
"""featdoc.py - Cargo feature-flag documentation generator.

Keeps feature documentation next to the feature declarations in
`Cargo.toml` and renders it into a standalone markdown file, between the
`[//]: # (FEATURE_FLAGS_START)` and `[//]: # (FEATURE_FLAGS_END)` lines.

Manifest comment syntax (inside the `[features]` table only):
    #! Group name        open a named group
    ##!                  open a group with an empty name
    ## Some text         doc comment for the next feature
    # plain comment      ignored
    name = [...]         feature, receives the pending doc comment

Usage examples:
    featdoc.py                             # Regenerate src/docs.md
    featdoc.py update --verbose            # Same, report what happened
    featdoc.py check                       # Fail if src/docs.md is stale
    featdoc.py show                        # Print rendered markdown
    featdoc.py show --format json          # Print parsed groups as JSON
    featdoc.py --root path/to/crate        # Explicit crate root

Configuration:
    Optional `.featdoc.toml` in the crate root:
        manifest = "Cargo.toml"
        docs = "src/docs.md"
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import pathlib
import sys
from typing import Dict, List, Optional, Sequence

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


START_MARKER = "[//]: # (FEATURE_FLAGS_START)"
END_MARKER = "[//]: # (FEATURE_FLAGS_END)"

FEATURES_HEADER = "[features]"

# group name -> feature name -> doc comment
FeatureGroups = Dict[str, Dict[str, str]]


# ═══════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════


class FeatureDocError(Exception):
    """Base class for every fatal featdoc condition."""


class MissingMarkerError(FeatureDocError):
    """Documentation file lacks a usable FEATURE_FLAGS region."""


class MissingSectionError(FeatureDocError):
    """Manifest has no `[features]` table."""


class InvalidFeatureLineError(FeatureDocError):
    """Feature line does not contain exactly one `=`."""

    def __init__(self, line: str):
        super().__init__(f"invalid feature line: '{line}'")
        self.line = line


class ConfigError(FeatureDocError):
    """Configuration file could not be loaded or is invalid."""


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclasses.dataclass(slots=True)
class Config:
    """Configuration loaded from .featdoc.toml or defaults."""

    manifest: str = "Cargo.toml"
    docs: str = "src/docs.md"

    @staticmethod
    def load(path: pathlib.Path) -> Config:
        """Load configuration from TOML file, return defaults if not found."""
        if not path.exists():
            return Config()

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"failed to load config from {path}: {e}") from e

        config = Config.from_dict(data)
        errors = config.validate()
        if errors:
            raise ConfigError(f"invalid config {path}: {'; '.join(errors)}")
        return config

    @staticmethod
    def from_dict(data: dict) -> Config:
        """Create Config from dictionary (parsed TOML)."""
        return Config(
            manifest=data.get("manifest", "Cargo.toml"),
            docs=data.get("docs", "src/docs.md"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of error messages."""
        errors = []
        for key in ("manifest", "docs"):
            value = getattr(self, key)
            if not isinstance(value, str):
                errors.append(f"{key} must be a string")
            elif not value:
                errors.append(f"{key} cannot be empty")
        return errors


# ═══════════════════════════════════════════════════════════════════════════
# REPOSITORY CONTEXT
# ═══════════════════════════════════════════════════════════════════════════


class RepoContext:
    """Detects the crate root that manifest and docs paths are relative to."""

    MARKERS = ["Cargo.toml", ".git"]

    def __init__(self, root: Optional[pathlib.Path] = None, verbose: bool = False):
        if root:
            self.root = root.resolve()
        else:
            detected = self.detect_root(pathlib.Path.cwd())
            if detected is None:
                if verbose:
                    print("warning: no Cargo.toml found, using current directory", file=sys.stderr)
                self.root = pathlib.Path.cwd().resolve()
            else:
                self.root = detected

    @staticmethod
    def detect_root(start_path: pathlib.Path) -> Optional[pathlib.Path]:
        """Walk up directory tree looking for repository markers."""
        current = start_path.resolve()
        while True:
            for marker in RepoContext.MARKERS:
                if (current / marker).exists():
                    return current
            if current == current.parent:
                return None
            current = current.parent

    def manifest_path(self, config: Config) -> pathlib.Path:
        return self.root / config.manifest

    def docs_path(self, config: Config) -> pathlib.Path:
        return self.root / config.docs


# ═══════════════════════════════════════════════════════════════════════════
# MANIFEST PARSING
# ═══════════════════════════════════════════════════════════════════════════


def locate_features_table(text: str) -> List[str]:
    """Return the trimmed lines of the `[features]` table."""
    lines = [line.strip() for line in text.split("\n")]

    try:
        start = lines.index(FEATURES_HEADER)
    except ValueError:
        raise MissingSectionError("missing '[features]' section in manifest") from None

    table = lines[start + 1:]
    for index, line in enumerate(table):
        # Next table header ends the section
        if line.startswith("[") and line.endswith("]"):
            return table[:index]
    return table


def parse_features(lines: Sequence[str]) -> FeatureGroups:
    """Build the group -> feature -> comment map from feature table lines.

    Doc comments (`##`) accumulate until the next feature line, which takes
    them with only the first newline collapsed to a space. Features that
    appear before any group marker are dropped, but their pending comment
    stays queued for the first feature of the next group.
    """
    comments = ""
    group: Optional[str] = None
    result: FeatureGroups = {}

    for line in lines:
        if not line:
            continue

        if line.startswith("##!"):
            group = ""
            result.setdefault(group, {})
        elif line.startswith("##"):
            comments += line[2:].strip() + "\n"
        elif line.startswith("#!"):
            group = line[2:].strip()
            result.setdefault(group, {})
        elif line.startswith("#"):
            continue
        else:
            parts = line.split("=")
            if len(parts) != 2:
                raise InvalidFeatureLineError(line)

            if group is not None:
                result[group][parts[0].strip()] = comments.replace("\n", " ", 1).strip()
                comments = ""

    return result


# ═══════════════════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════════════════


def render_markdown(groups: FeatureGroups) -> str:
    """Render groups as a heading line followed by a bullet per feature."""
    blocks = []
    for name, features in groups.items():
        entries = "\n".join(f"- `{key}` - {comment}" for key, comment in features.items())
        blocks.append(f"{name}\n\n{entries}")
    return "\n\n".join(blocks)


def require_markers(doc: str, start_marker: str = START_MARKER, end_marker: str = END_MARKER) -> None:
    if start_marker not in doc or end_marker not in doc:
        raise MissingMarkerError("missing feature flag markers in documentation file")


def splice_document(
    doc: str,
    markdown: str,
    start_marker: str = START_MARKER,
    end_marker: str = END_MARKER,
) -> str:
    """Replace everything from the first start marker to the last end marker."""
    require_markers(doc, start_marker, end_marker)

    begin = doc.index(start_marker)
    end = doc.rindex(end_marker)
    if end < begin:
        raise MissingMarkerError("end marker appears before start marker in documentation file")

    before = doc[:begin]
    after = doc[end + len(end_marker):]
    return before + start_marker + "\n" + markdown + "\n\n" + end_marker + after


# ═══════════════════════════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════════════════════════


def collect_groups(manifest_text: str) -> FeatureGroups:
    """Parse the documented feature groups out of manifest text."""
    return parse_features(locate_features_table(manifest_text))


def generate(manifest_text: str, doc_text: str) -> str:
    """Return doc_text with the feature flag region regenerated."""
    # Markers are checked before the manifest is parsed
    require_markers(doc_text)

    markdown = render_markdown(collect_groups(manifest_text))
    return splice_document(doc_text, markdown)


def update_docs(manifest_path: pathlib.Path, docs_path: pathlib.Path) -> bool:
    """Regenerate docs_path in place, return True if its content changed.

    Nothing is written unless parsing and rendering both succeed.
    """
    manifest_text = manifest_path.read_text(encoding="utf-8")
    doc_text = docs_path.read_text(encoding="utf-8")

    new_text = generate(manifest_text, doc_text)
    docs_path.write_text(new_text, encoding="utf-8")
    return new_text != doc_text


# ═══════════════════════════════════════════════════════════════════════════
# CLI COMMANDS
# ═══════════════════════════════════════════════════════════════════════════


def cmd_update(args: argparse.Namespace, config: Config, repo: RepoContext) -> int:
    """Regenerate the documentation file."""
    docs_path = repo.docs_path(config)
    changed = update_docs(repo.manifest_path(config), docs_path)

    if args.verbose:
        status = "updated" if changed else "unchanged"
        print(f"{status} {docs_path}", file=sys.stderr)
    return 0


def cmd_check(args: argparse.Namespace, config: Config, repo: RepoContext) -> int:
    """Fail if the documentation file is not up to date."""
    docs_path = repo.docs_path(config)
    doc_text = docs_path.read_text(encoding="utf-8")
    manifest_text = repo.manifest_path(config).read_text(encoding="utf-8")

    if generate(manifest_text, doc_text) != doc_text:
        print(f"error: {docs_path} is out of date (run 'featdoc update')", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"up to date: {docs_path}", file=sys.stderr)
    return 0


def cmd_show(args: argparse.Namespace, config: Config, repo: RepoContext) -> int:
    """Print the rendered feature documentation."""
    manifest_text = repo.manifest_path(config).read_text(encoding="utf-8")
    groups = collect_groups(manifest_text)

    if args.format == "json":
        print(json.dumps(groups, indent=2))
    else:
        print(render_markdown(groups))
    return 0


COMMANDS = {
    "update": cmd_update,
    "check": cmd_check,
    "show": cmd_show,
}


# ═══════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="featdoc",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=pathlib.Path,
        help="Path to .featdoc.toml config file (default: <root>/.featdoc.toml)"
    )
    parser.add_argument(
        "--root",
        type=pathlib.Path,
        help="Crate root directory (default: auto-detect)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Report status on stderr")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("update", help="Regenerate feature documentation (default)")
    subparsers.add_parser("check", help="Fail if feature documentation is stale")

    parser_show = subparsers.add_parser("show", help="Print rendered feature documentation")
    parser_show.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    return parser.parse_args(argv)


def main(argv: List[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    repo = RepoContext(root=args.root, verbose=args.verbose)
    config_path = args.config or repo.root / ".featdoc.toml"

    try:
        config = Config.load(config_path)
        return COMMANDS[args.command or "update"](args, config, repo)
    except FeatureDocError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
