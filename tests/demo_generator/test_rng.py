from demo_generator.rng import SeededRNG, generate_seed


def test_same_seed_gives_same_sequence():
    a, b = SeededRNG("abc"), SeededRNG("abc")
    assert [a.int(0, 1000) for _ in range(20)] == [b.int(0, 1000) for _ in range(20)]


def test_child_stream_does_not_depend_on_parent_position():
    consumed = SeededRNG("abc")
    for _ in range(50):
        consumed.next()
    fresh = SeededRNG("abc")
    assert consumed.child("contacts:2024-01").next() == fresh.child("contacts:2024-01").next()


def test_children_with_different_names_differ():
    rng = SeededRNG("abc")
    assert rng.child("deals:2024-01").next() != rng.child("deals:2024-02").next()


def test_shuffle_returns_a_copy():
    rng = SeededRNG(1)
    items = list(range(10))
    shuffled = rng.shuffle(items)
    assert items == list(range(10))
    assert sorted(shuffled) == items


def test_int_bounds_are_inclusive():
    rng = SeededRNG("bounds")
    values = {rng.int(1, 3) for _ in range(200)}
    assert values == {1, 2, 3}


def test_generate_seed_is_hex():
    seed = generate_seed()
    assert len(seed) == 32
    int(seed, 16)
