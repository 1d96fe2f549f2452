"""
Tests for grant_config: YAML loading, environment overrides and the
bridges into kernel inputs.
"""

import textwrap

import pytest
from sqlalchemy import func, select

from grant_config import (
    CONFIG_FILE_ENV,
    DATABASE_URL_ENV,
    DEFAULT_SETTINGS_FILE,
    LOG_LEVEL_ENV,
    GrantSettings,
    get_settings,
)
from grant_config.bridges import init_engine, selector_options, to_lifecycle_policy
from grant_config.loader import parse_settings
from grant_kernel.db.engine import (
    create_tables,
    get_engine,
    reset_engine,
    session_scope,
)
from grant_kernel.domain.statuses import ApplicationStatus
from grant_kernel.models.user import User


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for name in (CONFIG_FILE_ENV, DATABASE_URL_ENV, LOG_LEVEL_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        textwrap.dedent(
            """\
            database:
              url: sqlite://
              pool_size: 2
            lifecycle:
              program_completion_excluded_statuses: [rejected]
              require_onchain_program_for_review: false
            pagination:
              default_page_size: 5
              max_page_size: 20
            logging:
              level: debug
            """
        )
    )
    return path


class TestGetSettings:
    def test_packaged_defaults(self):
        settings = get_settings()
        assert settings.source == str(DEFAULT_SETTINGS_FILE)
        assert settings.database.url.startswith("postgresql")
        assert settings.lifecycle.program_completion_excluded_statuses == (
            "rejected",
            "deleted",
        )
        assert settings.pagination.max_page_size == 100

    def test_explicit_path(self, settings_file):
        settings = get_settings(settings_file)
        assert settings.database.url == "sqlite://"
        assert settings.database.pool_size == 2
        # omitted keys keep their defaults
        assert settings.database.max_overflow == 20
        assert settings.logging.level == "DEBUG"

    def test_path_from_environment(self, settings_file, monkeypatch):
        monkeypatch.setenv(CONFIG_FILE_ENV, str(settings_file))
        assert get_settings().pagination.default_page_size == 5

    def test_environment_overrides(self, settings_file, monkeypatch, captured_logs):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://u:p@db/grants")
        monkeypatch.setenv(LOG_LEVEL_ENV, "warning")

        settings = get_settings(settings_file)

        assert settings.database.url == "postgresql://u:p@db/grants"
        assert settings.database.pool_size == 2
        assert settings.logging.level == "WARNING"
        loaded = [r for r in captured_logs() if r["message"] == "settings_loaded"]
        assert loaded[0]["overrides"] == [DATABASE_URL_ENV, LOG_LEVEL_ENV]
        assert loaded[0]["dialect"] == "postgresql"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_settings(tmp_path / "absent.yaml")

    def test_bad_log_level_override(self, settings_file, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
        with pytest.raises(ValueError):
            get_settings(settings_file)


class TestParseSettings:
    def test_empty_mapping_gives_defaults(self):
        assert parse_settings({}) == GrantSettings()

    @pytest.mark.parametrize(
        "data",
        [
            {"cache": {}},
            {"database": {"host": "db"}},
            {"pagination": {"default_page_size": 50, "max_page_size": 10}},
            {"database": {"pool_size": 0}},
            {"logging": {"level": "loud"}},
            {"lifecycle": "strict"},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            get_settings(path)


class TestBridges:
    def test_lifecycle_policy(self, settings_file):
        policy = to_lifecycle_policy(get_settings(settings_file))
        assert policy.program_completion_excluded == frozenset(
            {ApplicationStatus.REJECTED}
        )
        assert not policy.require_onchain_program_for_review
        assert policy.allow_admin_completion_override

    def test_completed_cannot_be_excluded(self):
        settings = parse_settings(
            {"lifecycle": {"program_completion_excluded_statuses": ["completed"]}}
        )
        with pytest.raises(ValueError):
            to_lifecycle_policy(settings)

    def test_unknown_excluded_status(self):
        settings = parse_settings(
            {"lifecycle": {"program_completion_excluded_statuses": ["archived"]}}
        )
        with pytest.raises(ValueError):
            to_lifecycle_policy(settings)

    def test_selector_options(self, settings_file):
        assert selector_options(get_settings(settings_file)) == {
            "default_page_size": 5,
            "max_page_size": 20,
        }

    def test_init_engine_and_session_scope(self, settings_file):
        engine = init_engine(get_settings(settings_file))
        try:
            assert get_engine() is engine
            create_tables()

            with pytest.raises(RuntimeError):
                with session_scope() as session:
                    session.add(User(wallet_address="0x" + "aa" * 20))
                    session.flush()
                    raise RuntimeError("abort")

            with session_scope() as session:
                session.add(User(wallet_address="0x" + "bb" * 20))

            with session_scope() as session:
                total = session.execute(
                    select(func.count()).select_from(User)
                ).scalar_one()
            assert total == 1
        finally:
            reset_engine()

        with pytest.raises(RuntimeError):
            get_engine()
