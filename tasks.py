# type: ignore
from invoke import task


@task
def venv(ctx):
    """Create the uv environment with the test and dev extras."""
    ctx.run("uv sync --extra test --extra dev")


@task
def lint(ctx):
    """Ruff and mypy over the package and its tests."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src/lighthouse_power", pty=True)


@task
def test(ctx, cov=True):
    """
    Run the test suite; pass --no-cov to skip the coverage report.
    """
    if cov:
        ctx.run("pytest --cov=lighthouse_power --cov-report=term-missing", pty=True)
    else:
        ctx.run("pytest", pty=True)


@task
def simulate(ctx):
    """Power-cycle the simulated base stations end to end."""
    ctx.run("lighthouse-power --simulate scan", pty=True)
    ctx.run("lighthouse-power --simulate on", pty=True)
    ctx.run("lighthouse-power --simulate standby", pty=True)


@task
def build_package(ctx):
    """Build sdist and wheel into dist/."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")
