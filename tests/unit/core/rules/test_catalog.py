"""Tests for the built-in rule catalog."""

from __future__ import annotations

from pathlib import Path

import pytest

from devreclaim.core.rules import DEFAULT_RULES, ActionClass, CategoryGroup, ParentContext, default_registry
from devreclaim.core.rules.models import CATEGORY_PATTERN
from support import build_tree


@pytest.mark.unit
class TestDefaultRules:
    """Test catalog-wide properties."""

    def test_categories_unique_and_well_formed(self) -> None:
        """Test every tag is unique kebab-case."""
        categories = [rule.category for rule in DEFAULT_RULES]

        assert len(categories) == len(set(categories))
        assert all(CATEGORY_PATTERN.match(category) for category in categories)

    def test_every_group_has_rules(self) -> None:
        """Test each grouping subcommand selects something."""
        assert {rule.group for rule in DEFAULT_RULES} == set(CategoryGroup)

    def test_registry_accepts_catalog(self) -> None:
        """Test the default registry holds the whole catalog."""
        assert len(default_registry()) == len(DEFAULT_RULES)

    def test_every_rule_described(self) -> None:
        """Test ``devreclaim rules`` has something to show for each rule."""
        assert all(rule.description for rule in DEFAULT_RULES)

    @pytest.mark.parametrize(
        "category",
        ["python-build", "js-dist", "go-bin", "maven-repository", "huggingface-cache", "xcode-archives"],
    )
    def test_hard_to_regenerate_requires_confirmation(self, category: str) -> None:
        """Test categories holding hand-made or costly data need confirmation."""
        rule = default_registry().get(category)

        assert rule is not None
        assert rule.action is ActionClass.CONFIRM_REQUIRED

    def test_simulators_not_pruned(self) -> None:
        """Test simulator devices are descended into."""
        rule = default_registry().get("xcode-simulators")

        assert rule is not None
        assert rule.prune is False


@pytest.mark.unit
class TestCatalogSignatures:
    """Test representative signatures classify as expected."""

    @pytest.mark.parametrize(
        ("files", "directory", "expected"),
        [
            ({"proj/build.gradle.kts": ""}, "proj/build", "gradle-build"),
            ({"proj/CMakeLists.txt": ""}, "proj/build", "cmake-build"),
            ({"proj/pyproject.toml": ""}, "proj/build", "python-build"),
            ({"proj/pubspec.yaml": ""}, "proj/build", "flutter-build"),
            ({"proj/mix.exs": ""}, "proj/_build", "elixir-build"),
            ({"proj/dune-project": ""}, "proj/_build", "ocaml-build"),
            ({"proj/composer.json": ""}, "proj/vendor", "php-vendor"),
            ({"proj/deno.json": ""}, "proj/vendor", "deno-vendor"),
            ({"proj/go.mod": ""}, "proj/bin", "go-bin"),
            ({"proj/Web.fsproj": ""}, "proj/bin", "dotnet-bin"),
            ({}, "proj/__pycache__", "python-pycache"),
            ({}, "home/.cache/pip", "pip-cache"),
            ({}, "home/Library/Caches/pip", "pip-cache"),
            ({}, "home/.bun/install/cache", "bun-cache"),
            ({}, "home/.composer/cache", "composer-cache"),
            ({}, "home/Library/Developer/Xcode/DerivedData", "xcode-deriveddata"),
            ({}, "home/.cache/huggingface", "huggingface-cache"),
            ({}, "home/.config/Code/CachedData", "vscode-cached-data"),
        ],
    )
    def test_signature(self, tmp_path: Path, files: dict[str, str], directory: str, expected: str) -> None:
        """Test one directory against the full catalog."""
        _ = build_tree(tmp_path, {**files, directory: None})
        path = tmp_path / directory

        rule = default_registry().match(path, ParentContext.for_path(path, tmp_path))

        assert rule is not None
        assert rule.category == expected

    def test_plain_build_directory_is_not_a_candidate(self, tmp_path: Path) -> None:
        """Test ``build`` without any manifest is left alone."""
        _ = build_tree(tmp_path, {"docs/build": None})
        path = tmp_path / "docs" / "build"

        assert default_registry().match(path, ParentContext.for_path(path, tmp_path)) is None
