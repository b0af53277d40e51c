# ABOUTME: Unit tests for ResourcePool class
# ABOUTME: Tests resource usage, recovery, and serialization of limited-use pools

from dnd_builder.systems.resources import RecoveryType, ResourcePool


class TestResourcePoolBasics:
    """Test basic ResourcePool initialization and properties"""

    def test_resource_pool_creation(self):
        """Test creating a resource pool"""
        pool = ResourcePool(name="second_wind", current=1, maximum=1, recovery=RecoveryType.SHORT_REST)

        assert pool.name == "second_wind"
        assert pool.recovery == RecoveryType.SHORT_REST
        assert str(pool) == "second_wind: 1/1"

    def test_default_recovery(self):
        """Test pools refill on a long rest by default"""
        pool = ResourcePool(name="spell_slots_level_1", current=2, maximum=2)

        assert pool.recovery == RecoveryType.LONG_REST


class TestResourcePoolUsage:
    """Test resource usage mechanics"""

    def test_use_single_resource(self):
        """Test using a single resource"""
        pool = ResourcePool(name="spell_slots_level_1", current=2, maximum=2)

        assert pool.use() is True
        assert pool.current == 1

    def test_use_more_than_available(self):
        """Test that overdrawing fails and leaves the pool unchanged"""
        pool = ResourcePool(name="rage", current=1, maximum=2)

        assert pool.use(2) is False
        assert pool.current == 1

    def test_use_invalid_amount(self):
        """Test that zero or negative amounts are refused"""
        pool = ResourcePool(name="rage", current=2, maximum=2)

        assert pool.use(0) is False
        assert pool.use(-1) is False
        assert pool.current == 2

    def test_is_available(self):
        """Test availability checks"""
        pool = ResourcePool(name="ki", current=1, maximum=3)

        assert pool.is_available()
        assert not pool.is_available(2)


class TestResourcePoolRecovery:
    """Test resource recovery mechanics"""

    def test_recover_all(self):
        """Test full recovery"""
        pool = ResourcePool(name="ki", current=0, maximum=3)

        assert pool.recover() == 3
        assert pool.current == 3

    def test_recover_capped_at_maximum(self):
        """Test that recovery never exceeds the maximum"""
        pool = ResourcePool(name="ki", current=2, maximum=3)

        assert pool.recover(5) == 1
        assert pool.current == 3


def test_serialization_roundtrip():
    """Test to_dict/from_dict keeps every field"""
    pool = ResourcePool(name="second_wind", current=0, maximum=1, recovery=RecoveryType.SHORT_REST)

    data = pool.to_dict()

    assert data["recovery"] == "short_rest"
    assert ResourcePool.from_dict(data) == pool
