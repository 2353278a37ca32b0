from smallwares.xorshift import Rng


def test_zero_seed_uses_default_state():
    a = Rng(0)
    b = Rng(0x123456789ABCDEF0)
    assert a.state == 0x123456789ABCDEF0
    assert [a.next_u64() for _ in range(5)] == [b.next_u64() for _ in range(5)]


def test_first_value_from_seed_one():
    assert Rng(1).next_u64() == 1082269761


def test_same_seed_same_sequence():
    a, b = Rng(42), Rng(42)
    assert [a.next_u64() for _ in range(20)] == [b.next_u64() for _ in range(20)]


def test_different_seeds_differ():
    assert Rng(42).next_u64() != Rng(43).next_u64()


def test_values_stay_in_64_bits_and_state_tracks_output():
    rng = Rng(42)
    for _ in range(1000):
        value = rng.next_u64()
        assert 0 < value < 1 << 64
        assert rng.state == value


def test_unit_range():
    rng = Rng(42)
    values = [rng.next_unit() for _ in range(2000)]
    assert all(0.0 <= v < 1.0 for v in values)
    assert min(values) < 0.1 and max(values) > 0.9


def test_unit_uses_low_24_bits():
    a, b = Rng(7), Rng(7)
    assert a.next_unit() == (b.next_u64() & 0xFFFFFF) / 16777216.0


def test_centered_is_unit_shifted():
    a, b = Rng(99), Rng(99)
    for _ in range(50):
        assert a.next_centered() == b.next_unit() - 0.5


def test_centered_range():
    rng = Rng(42)
    values = [rng.next_centered() for _ in range(2000)]
    assert all(-0.5 <= v < 0.5 for v in values)
    assert min(values) < -0.4 and max(values) > 0.4