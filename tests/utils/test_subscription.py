"""Tests for live subscription handles."""

from unittest.mock import MagicMock

from classhub.utils.subscription import Subscription, SubscriptionGroup


class TestSubscription:
    def test_delivers_while_active(self):
        subscription = Subscription("test")
        callback = MagicMock()

        assert subscription.deliver(callback, 1, 2) is True
        callback.assert_called_once_with(1, 2)

    def test_no_delivery_after_unsubscribe(self):
        subscription = Subscription("test")
        watch = MagicMock()
        subscription.attach(watch)
        callback = MagicMock()

        subscription.unsubscribe()

        assert subscription.deliver(callback, "late") is False
        callback.assert_not_called()
        watch.unsubscribe.assert_called_once()
        assert subscription.active is False

    def test_unsubscribe_is_idempotent(self):
        subscription = Subscription("test")
        watch = MagicMock()
        subscription.attach(watch)

        subscription.unsubscribe()
        subscription.unsubscribe()

        watch.unsubscribe.assert_called_once()

    def test_attach_after_close_releases_watch(self):
        subscription = Subscription("test")
        subscription.unsubscribe()
        watch = MagicMock()

        subscription.attach(watch)

        watch.unsubscribe.assert_called_once()

    def test_context_manager_releases(self):
        watch = MagicMock()
        with Subscription("test") as subscription:
            subscription.attach(watch)
            assert subscription.active

        watch.unsubscribe.assert_called_once()
        assert not subscription.active


class TestSubscriptionGroup:
    def test_releases_all_members(self):
        members = [Subscription(f"s{i}") for i in range(3)]
        watches = [MagicMock() for _ in members]
        for member, watch in zip(members, watches):
            member.attach(watch)

        with SubscriptionGroup("group") as group:
            for member in members:
                group.add(member)
            assert len(group) == 3

        for member, watch in zip(members, watches):
            assert not member.active
            watch.unsubscribe.assert_called_once()
        assert len(group) == 0

    def test_add_after_close_releases_member(self):
        group = SubscriptionGroup("group")
        group.unsubscribe()
        member = Subscription("late")

        group.add(member)

        assert not member.active
        assert not group.active
