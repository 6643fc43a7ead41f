"""Tests for the contact-link CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from typer.testing import CliRunner

from contact_link import cli
from contact_link.errors import StorageError
from contact_link.models import Base, LinkPrecedence
from contact_link.storage import SqlContactStore

runner = CliRunner()


@pytest.fixture
def cli_db(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> async_sessionmaker[AsyncSession]:
    """Point the CLI at a file-backed SQLite database.

    Each command runs its own event loop, so connections must not be pooled.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _init_db() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    monkeypatch.setattr(cli, "engine", engine)
    monkeypatch.setattr(cli, "async_session_factory", session_factory)
    monkeypatch.setattr(cli, "init_db", _init_db)
    return session_factory


def test_identify_create_attach_merge(cli_db: async_sessionmaker[AsyncSession]) -> None:
    result = runner.invoke(cli.app, ["identify", "--email", "a@x.com", "--phone", "111"])
    assert result.exit_code == 0, result.output
    assert "created" in result.output

    result = runner.invoke(cli.app, ["identify", "--email", "a@x.com", "--phone", "222"])
    assert result.exit_code == 0, result.output
    assert "attached" in result.output

    result = runner.invoke(cli.app, ["identify", "-e", "b@y.com", "-p", "333"])
    assert "created" in result.output

    result = runner.invoke(cli.app, ["identify", "-e", "b@y.com", "-p", "111"])
    assert result.exit_code == 0, result.output
    assert "merged" in result.output
    assert "a@x.com, b@y.com" in result.output
    assert "111, 222, 333" in result.output


def test_identify_requires_an_identifier(cli_db: async_sessionmaker[AsyncSession]) -> None:
    result = runner.invoke(cli.app, ["identify"])

    assert result.exit_code == 2
    assert "At least one of email or phoneNumber is required" in result.output


def test_show_cluster(cli_db: async_sessionmaker[AsyncSession]) -> None:
    runner.invoke(cli.app, ["identify", "--email", "a@x.com", "--phone", "111"])
    runner.invoke(cli.app, ["identify", "--email", "b@y.com", "--phone", "111"])

    result = runner.invoke(cli.app, ["show-cluster", "2"])

    assert result.exit_code == 0, result.output
    assert "Cluster Members" in result.output
    assert "secondary" in result.output
    assert "a@x.com, b@y.com" in result.output


def test_show_cluster_unknown_contact(cli_db: async_sessionmaker[AsyncSession]) -> None:
    result = runner.invoke(cli.app, ["show-cluster", "42"])

    assert result.exit_code == 1
    assert "Contact not found: 42" in result.output


def test_reset_db_aborts_without_confirmation(cli_db: async_sessionmaker[AsyncSession]) -> None:
    runner.invoke(cli.app, ["identify", "--email", "a@x.com"])

    result = runner.invoke(cli.app, ["reset-db"], input="n\n")
    assert "Aborted" in result.output

    result = runner.invoke(cli.app, ["show-cluster", "1"])
    assert result.exit_code == 0, result.output


def test_reset_db_force(cli_db: async_sessionmaker[AsyncSession]) -> None:
    runner.invoke(cli.app, ["identify", "--email", "a@x.com"])

    result = runner.invoke(cli.app, ["reset-db", "--force"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(cli.app, ["show-cluster", "1"])
    assert result.exit_code == 1


def test_show_cluster_reports_cycle(cli_db: async_sessionmaker[AsyncSession]) -> None:
    async def _seed_cycle() -> None:
        async with cli_db() as session:
            async with session.begin():
                store = SqlContactStore(session)
                first = await store.create(
                    email="a@x.com",
                    phone_number=None,
                    linked_id=None,
                    link_precedence=LinkPrecedence.PRIMARY,
                )
                second = await store.create(
                    email="b@y.com",
                    phone_number=None,
                    linked_id=first.id,
                    link_precedence=LinkPrecedence.SECONDARY,
                )
                await store.update(
                    first.id, link_precedence=LinkPrecedence.SECONDARY, linked_id=second.id
                )

    runner.invoke(cli.app, ["init-db"])
    asyncio.run(_seed_cycle())

    result = runner.invoke(cli.app, ["show-cluster", "2"])

    assert result.exit_code == 1
    assert "Cycle" in result.output
    assert isinstance(result.exception, SystemExit)


def test_show_cluster_reports_storage_error(
    cli_db: async_sessionmaker[AsyncSession], monkeypatch: pytest.MonkeyPatch
) -> None:
    runner.invoke(cli.app, ["identify", "--email", "a@x.com", "--phone", "111"])

    async def _fail(self, ids):
        raise StorageError("Failed to load contacts linked to [1]")

    monkeypatch.setattr(SqlContactStore, "find_many_by_linked_id_in", _fail)

    result = runner.invoke(cli.app, ["show-cluster", "1"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "Failed to load contacts" in result.output
    assert isinstance(result.exception, SystemExit)
