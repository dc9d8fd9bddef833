"""
Tests for the site settings accessor.
"""

from shared.config.constants import OrderMode, SettingKeys
from shop_api.models import SiteSetting
from shop_api.services.domain import CancellationPolicy, SiteSettings


class TestOrderMode:
    def test_default_when_unset(self, db_session):
        assert SiteSettings(db_session).get_order_mode() == OrderMode.STOCK_BASED

    def test_set_and_read(self, db_session):
        accessor = SiteSettings(db_session)

        accessor.set_order_mode(OrderMode.PREORDER)

        assert accessor.get_order_mode() == OrderMode.PREORDER

    def test_set_overwrites_single_row(self, db_session):
        accessor = SiteSettings(db_session)
        accessor.set_order_mode(OrderMode.PREORDER)
        accessor.set_order_mode(OrderMode.STOCK_BASED)

        rows = db_session.query(SiteSetting).filter_by(setting_key=SettingKeys.ORDER_MODE).all()
        assert len(rows) == 1
        assert rows[0].setting_value == "stock_based"

    def test_unknown_stored_value_falls_back(self, db_session):
        db_session.add(SiteSetting(setting_key=SettingKeys.ORDER_MODE, setting_value="whenever"))
        db_session.commit()

        assert SiteSettings(db_session).get_order_mode() == OrderMode.STOCK_BASED

    def test_no_caching_between_reads(self, db_session):
        accessor = SiteSettings(db_session)
        accessor.set_order_mode(OrderMode.PREORDER)

        row = db_session.query(SiteSetting).filter_by(setting_key=SettingKeys.ORDER_MODE).one()
        row.setting_value = "stock_based"
        db_session.commit()

        assert accessor.get_order_mode() == OrderMode.STOCK_BASED


class TestCancellationPolicy:
    def test_defaults(self, db_session):
        policy = SiteSettings(db_session).get_cancellation_policy()

        assert policy.enabled is True
        assert policy.time_window_minutes == 30

    def test_stored_as_camel_case_json(self, db_session):
        SiteSettings(db_session).set_cancellation_policy(
            CancellationPolicy(enabled=False, time_window_minutes=15)
        )

        row = db_session.query(SiteSetting).filter_by(
            setting_key=SettingKeys.CANCELLATION_SETTINGS
        ).one()
        assert '"timeWindowMinutes":15' in row.setting_value
        assert '"enabled":false' in row.setting_value

    def test_round_trip(self, db_session):
        accessor = SiteSettings(db_session)
        accessor.set_cancellation_policy(CancellationPolicy(time_window_minutes=5, show_in_email=False))

        policy = accessor.get_cancellation_policy()

        assert policy.time_window_minutes == 5
        assert policy.show_in_email is False

    def test_corrupt_json_falls_back_to_defaults(self, db_session):
        db_session.add(SiteSetting(
            setting_key=SettingKeys.CANCELLATION_SETTINGS,
            setting_value="{not json",
        ))
        db_session.commit()

        assert SiteSettings(db_session).get_cancellation_policy() == CancellationPolicy()
