"""Built-in artifact signatures.

Project rules match build output and dependency directories next to the
manifest that produced them. Global cache rules match well-known locations
under the home directory through a parent constraint.
"""

from __future__ import annotations

from typing import Final

from devreclaim.core.rules.models import (
    ActionClass,
    CategoryGroup,
    Marker,
    MarkerLocation,
    MarkerMode,
    Matcher,
    Rule,
)

_SAFE = ActionClass.TRASH_SAFE
_CONFIRM = ActionClass.CONFIRM_REQUIRED

_USER_CACHES: Final[tuple[str, ...]] = ("*/.cache", "*/Library/Caches")


def _beside(*names: str) -> tuple[Marker, ...]:
    return tuple(Marker(name, MarkerLocation.SIBLING) for name in names)


def _inside(*names: str) -> tuple[Marker, ...]:
    return tuple(Marker(name, MarkerLocation.CHILD) for name in names)


def _rule(
    category: str,
    group: CategoryGroup,
    names: tuple[str, ...],
    description: str,
    *,
    markers: tuple[Marker, ...] = (),
    marker_mode: MarkerMode = MarkerMode.ANY,
    parent: tuple[str, ...] = (),
    action: ActionClass = _SAFE,
    prune: bool = True,
) -> Rule:
    return Rule(
        category=category,
        group=group,
        matcher=Matcher(names=names, markers=markers, marker_mode=marker_mode, parent=parent),
        action=action,
        prune=prune,
        description=description,
    )


_P = CategoryGroup.PROJECTS
_C = CategoryGroup.CACHES

_PROJECT_RULES: Final[tuple[Rule, ...]] = (
    # JavaScript / TypeScript
    _rule("node-modules", _P, ("node_modules",), "npm, yarn, pnpm and bun dependencies",
          markers=_beside("package.json")),
    _rule("bower-components", _P, ("bower_components",), "Bower dependencies", markers=_beside("bower.json")),
    _rule("next-build", _P, (".next",), "Next.js build output", markers=_beside("package.json")),
    _rule("nuxt-build", _P, (".nuxt", ".output"), "Nuxt build output",
          markers=_beside("nuxt.config.js", "nuxt.config.ts")),
    _rule("svelte-kit", _P, (".svelte-kit",), "SvelteKit generated files",
          markers=_beside("svelte.config.js", "svelte.config.ts")),
    _rule("turbo-cache", _P, (".turbo",), "Turborepo cache"),
    _rule("parcel-cache", _P, (".parcel-cache",), "Parcel bundler cache"),
    _rule("angular-cache", _P, (".angular",), "Angular CLI cache", markers=_beside("angular.json")),
    _rule("expo-cache", _P, (".expo",), "Expo project state", markers=_beside("app.json")),
    _rule("yarn-local-cache", _P, ("cache",), "Yarn Berry offline cache", parent=("*/.yarn",)),
    _rule("deno-vendor", _P, ("vendor",), "Deno vendored remote modules",
          markers=_beside("deno.json", "deno.jsonc")),
    _rule("js-dist", _P, ("dist",), "JavaScript bundle output", markers=_beside("package.json"),
          action=_CONFIRM),
    # Rust, Go, Zig, C/C++
    _rule("rust-target", _P, ("target",), "Cargo build output", markers=_beside("Cargo.toml")),
    _rule("go-bin", _P, ("bin",), "Go build binaries", markers=_beside("go.mod"), action=_CONFIRM),
    _rule("zig-cache", _P, (".zig-cache", "zig-cache", "zig-out"), "Zig build cache and output",
          markers=_beside("build.zig")),
    _rule("cmake-ide-build", _P, ("cmake-build-*",), "CLion CMake build directories",
          markers=_beside("CMakeLists.txt")),
    _rule("cmake-build", _P, ("build",), "CMake build directory", markers=_beside("CMakeLists.txt"),
          action=_CONFIRM),
    # JVM
    _rule("maven-target", _P, ("target",), "Maven build output", markers=_beside("pom.xml")),
    _rule("gradle-build", _P, ("build",), "Gradle build output",
          markers=_beside("build.gradle", "build.gradle.kts")),
    _rule("gradle-project-cache", _P, (".gradle",), "Gradle project cache",
          markers=_beside("build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts")),
    _rule("sbt-target", _P, ("target",), "sbt build output", markers=_beside("build.sbt")),
    _rule("clojure-target", _P, ("target",), "Leiningen and tools.deps output",
          markers=_beside("project.clj", "deps.edn")),
    _rule("kotlin-cache", _P, (".kotlin",), "Kotlin compiler session data",
          markers=_beside("build.gradle.kts", "settings.gradle.kts")),
    # .NET
    _rule("dotnet-bin", _P, ("bin",), ".NET build binaries",
          markers=_beside("*.csproj", "*.fsproj", "*.vbproj")),
    _rule("dotnet-obj", _P, ("obj",), ".NET intermediate output",
          markers=_beside("*.csproj", "*.fsproj", "*.vbproj")),
    # Python
    _rule("python-venv", _P, (".venv", "venv", "virtualenv", "env"), "Python virtual environment",
          markers=_inside("pyvenv.cfg")),
    _rule("python-pycache", _P, ("__pycache__",), "Python bytecode cache"),
    _rule("pytest-cache", _P, (".pytest_cache",), "pytest cache"),
    _rule("mypy-cache", _P, (".mypy_cache",), "mypy cache"),
    _rule("ruff-cache", _P, (".ruff_cache",), "Ruff cache"),
    _rule("hypothesis-db", _P, (".hypothesis",), "Hypothesis example database"),
    _rule("tox-envs", _P, (".tox",), "tox environments"),
    _rule("nox-envs", _P, (".nox",), "nox environments"),
    _rule("python-egg-info", _P, ("*.egg-info",), "setuptools egg metadata"),
    _rule("python-build", _P, ("build",), "setuptools build directory",
          markers=_beside("setup.py", "pyproject.toml"), action=_CONFIRM),
    _rule("coverage-html", _P, ("htmlcov",), "coverage.py HTML report"),
    # Ruby, PHP
    _rule("ruby-vendor-bundle", _P, ("bundle",), "Bundler vendored gems", parent=("*/vendor",)),
    _rule("php-vendor", _P, ("vendor",), "Composer dependencies", markers=_beside("composer.json")),
    # Apple, mobile
    _rule("cocoapods", _P, ("Pods",), "CocoaPods dependencies", markers=_beside("Podfile")),
    _rule("swiftpm-build", _P, (".build",), "Swift Package Manager build output",
          markers=_beside("Package.swift")),
    _rule("dart-tool", _P, (".dart_tool",), "Dart tooling cache", markers=_beside("pubspec.yaml")),
    _rule("flutter-build", _P, ("build",), "Flutter build output", markers=_beside("pubspec.yaml")),
    _rule("android-native-build", _P, (".cxx", ".externalNativeBuild"), "Android NDK build output",
          markers=_beside("build.gradle", "build.gradle.kts")),
    # Functional languages
    _rule("elixir-build", _P, ("_build",), "Mix build output", markers=_beside("mix.exs")),
    _rule("elixir-deps", _P, ("deps",), "Mix dependencies", markers=_beside("mix.exs"), action=_CONFIRM),
    _rule("haskell-stack", _P, (".stack-work",), "Stack build output"),
    _rule("haskell-cabal", _P, ("dist-newstyle",), "Cabal build output"),
    _rule("ocaml-build", _P, ("_build",), "dune build output", markers=_beside("dune-project")),
    _rule("elm-stuff", _P, ("elm-stuff",), "Elm build artifacts"),
    # Infrastructure
    _rule("terraform", _P, (".terraform",), "Terraform providers and modules"),
    _rule("vagrant-machine", _P, (".vagrant",), "Vagrant machine state", markers=_beside("Vagrantfile"),
          action=_CONFIRM),
)

_CACHE_RULES: Final[tuple[Rule, ...]] = (
    _rule("npm-cache", _C, ("_cacache",), "npm content cache", parent=("*/.npm",)),
    _rule("pnpm-store", _C, (".pnpm-store",), "pnpm content-addressable store"),
    _rule("yarn-cache", _C, ("yarn",), "Yarn global cache", parent=_USER_CACHES),
    _rule("bun-cache", _C, ("cache",), "Bun install cache", parent=("*/.bun/install",)),
    _rule("deno-cache", _C, ("deno",), "Deno module cache", parent=_USER_CACHES),
    _rule("pip-cache", _C, ("pip",), "pip wheel and HTTP cache", parent=_USER_CACHES),
    _rule("uv-cache", _C, ("uv",), "uv package cache", parent=_USER_CACHES),
    _rule("poetry-cache", _C, ("pypoetry",), "Poetry cache", parent=_USER_CACHES),
    _rule("cargo-registry", _C, ("registry",), "Cargo crate registry", parent=("*/.cargo",)),
    _rule("cargo-git", _C, ("git",), "Cargo git checkouts", parent=("*/.cargo",)),
    _rule("go-mod-cache", _C, ("mod",), "Go module cache", parent=("*/go/pkg",), action=_CONFIRM),
    _rule("go-build-cache", _C, ("go-build",), "Go build cache", parent=_USER_CACHES),
    _rule("gradle-caches", _C, ("caches", "wrapper"), "Gradle global caches and wrappers",
          parent=("*/.gradle",)),
    _rule("maven-repository", _C, ("repository",), "Maven local repository", parent=("*/.m2",),
          action=_CONFIRM),
    _rule("nuget-packages", _C, ("packages",), "NuGet global packages", parent=("*/.nuget",),
          action=_CONFIRM),
    _rule("composer-cache", _C, ("cache",), "Composer download cache", parent=("*/.composer",)),
    _rule("bundler-cache", _C, ("cache",), "Bundler gem cache", parent=("*/.bundle",)),
    _rule("homebrew-cache", _C, ("Homebrew",), "Homebrew downloads", parent=("*/Library/Caches",)),
    _rule("cocoapods-cache", _C, ("CocoaPods",), "CocoaPods spec and pod cache",
          parent=("*/Library/Caches",)),
    _rule("vagrant-boxes", _C, ("boxes",), "Vagrant base boxes", parent=("*/.vagrant.d",), action=_CONFIRM),
    _rule("git-lfs-cache", _C, ("git-lfs",), "Git LFS object cache", parent=_USER_CACHES),
)

_XCODE_RULES: Final[tuple[Rule, ...]] = (
    _rule("xcode-deriveddata", CategoryGroup.XCODE, ("DerivedData",), "Xcode build products and indexes",
          parent=("*/Developer/Xcode",)),
    _rule("xcode-archives", CategoryGroup.XCODE, ("Archives",), "Xcode application archives",
          parent=("*/Developer/Xcode",), action=_CONFIRM),
    _rule("xcode-device-support", CategoryGroup.XCODE,
          ("iOS DeviceSupport", "watchOS DeviceSupport", "tvOS DeviceSupport", "visionOS DeviceSupport"),
          "Debug symbols copied from connected devices", parent=("*/Developer/Xcode",)),
    _rule("xcode-simulators", CategoryGroup.XCODE, ("Devices",), "CoreSimulator devices",
          parent=("*/Developer/CoreSimulator",), action=_CONFIRM, prune=False),
)

_DOCKER_RULES: Final[tuple[Rule, ...]] = (
    _rule("docker-desktop-data", CategoryGroup.DOCKER, ("vms",), "Docker Desktop virtual machine disk",
          parent=("*/com.docker.docker/Data",), action=_CONFIRM),
    _rule("docker-buildx-cache", CategoryGroup.DOCKER, ("buildx",), "Docker buildx state and cache",
          parent=("*/.docker",), action=_CONFIRM),
)

_IDE_RULES: Final[tuple[Rule, ...]] = (
    _rule("jetbrains-caches", CategoryGroup.IDE, ("JetBrains",), "JetBrains IDE caches and indexes",
          parent=_USER_CACHES),
    _rule("vscode-cached-data", CategoryGroup.IDE, ("CachedData", "CachedExtensionVSIXs"),
          "VS Code cached data", parent=("*/Code", "*/Code - Insiders")),
    _rule("cursor-cached-data", CategoryGroup.IDE, ("CachedData", "CachedExtensionVSIXs"),
          "Cursor cached data", parent=("*/Cursor",)),
)

_ML_RULES: Final[tuple[Rule, ...]] = (
    _rule("huggingface-cache", CategoryGroup.ML, ("huggingface",), "Hugging Face hub models and datasets",
          parent=("*/.cache",), action=_CONFIRM),
    _rule("torch-cache", CategoryGroup.ML, ("torch",), "PyTorch hub checkpoints", parent=("*/.cache",),
          action=_CONFIRM),
    _rule("ollama-models", CategoryGroup.ML, ("models",), "Ollama model blobs", parent=("*/.ollama",),
          action=_CONFIRM),
)

DEFAULT_RULES: Final[tuple[Rule, ...]] = (
    _PROJECT_RULES + _CACHE_RULES + _XCODE_RULES + _DOCKER_RULES + _IDE_RULES + _ML_RULES
)
