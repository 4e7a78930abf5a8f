"""Tests for event statistics."""

from prometheus_client import REGISTRY

from stackpulse.alerter.models import Category
from stackpulse.ingestor.stats import STAT_KEYS, EventStatistics


class TestEventStatistics:
    """Tests for EventStatistics."""

    def test_starts_at_zero(self) -> None:
        """Test every category starts at zero."""
        stats = EventStatistics()

        assert set(stats.to_dict().values()) == {0}
        assert len(stats.to_dict()) == len(Category)

    def test_increment(self) -> None:
        """Test increments are per category."""
        stats = EventStatistics()

        stats.increment(Category.WHALE)
        stats.increment(Category.WHALE)
        stats.increment(Category.FEE, 3)

        assert stats.get(Category.WHALE) == 2
        assert stats.to_dict()["whaleTransfers"] == 2
        assert stats.to_dict()["feesCollected"] == 3
        assert stats.to_dict()["nftMints"] == 0

    def test_instances_are_independent(self) -> None:
        """Test two instances do not share counts."""
        first = EventStatistics()
        second = EventStatistics()

        first.increment(Category.NFT)

        assert second.get(Category.NFT) == 0

    def test_prometheus_counter(self) -> None:
        """Test increments are mirrored to the Prometheus counter."""
        labels = {"category": Category.BADGE.value}
        before = REGISTRY.get_sample_value("stackpulse_events_total", labels) or 0.0

        EventStatistics().increment(Category.BADGE)

        assert REGISTRY.get_sample_value("stackpulse_events_total", labels) == before + 1

    def test_keys(self) -> None:
        """Test every category has a stats key."""
        assert set(STAT_KEYS) == set(Category)
        assert STAT_KEYS[Category.ALERT] == "alertsTriggered"
