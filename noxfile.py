"""Nox sessions for testing and quality checks."""

import nox

nox.options.sessions = ["tests", "lint", "typecheck"]


@nox.session(python=["3.13", "3.14"])
def tests(session: nox.Session) -> None:
    """Run the test suite with coverage.

    Extra arguments are passed to pytest, e.g. ``nox -s tests -- -m unit``.

    Args:
        session: The nox session object.
    """
    session.install("-e", ".[test]")
    session.run(
        "pytest",
        "--cov=devreclaim",
        "--cov-report=term-missing:skip-covered",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=["3.14"])
def properties(session: nox.Session) -> None:
    """Run only the hypothesis property tests with more examples.

    Args:
        session: The nox session object.
    """
    session.install("-e", ".[test]")
    session.run("pytest", "tests/property", "--hypothesis-profile=thorough", *session.posargs)


@nox.session(python=["3.14"])
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks.

    Args:
        session: The nox session object.
    """
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=["3.14"])
def typecheck(session: nox.Session) -> None:
    """Run basedpyright over sources and tests.

    Args:
        session: The nox session object.
    """
    session.install("-e", ".[test]", "basedpyright")
    session.run("basedpyright")


@nox.session(python=["3.14"])
def format(session: nox.Session) -> None:
    """Auto-format code with ruff.

    Args:
        session: The nox session object.
    """
    session.install("ruff")
    session.run("ruff", "check", ".", "--fix")
    session.run("ruff", "format", ".")
