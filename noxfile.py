"""Nox sessions for the verifier bot: tests with coverage, and ruff."""

import nox

nox.options.sessions = ["tests", "lint"]
PYTHON = "3.11"
PACKAGES = ("bio_verifier", "bots", "tests")


@nox.session(python=PYTHON)
def tests(session):
    """Run the test suite with coverage of both packages."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        "--cov=bio_verifier",
        "--cov=bots",
        "--cov-branch",
        "--cov-report=term-missing",
        "--cov-report=xml:coverage.xml",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON)
def lint(session):
    """Check lint and formatting with ruff."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", *PACKAGES)
    session.run("ruff", "format", "--check", *PACKAGES)
