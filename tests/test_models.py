from sani.database.models import Numbered, Special, DEFAULT_EPISODE, compare_episodes, episode_sort_key

def test_default_episode():
    assert DEFAULT_EPISODE == Numbered(season=1, episode=1)

def test_numbered_orders_by_season_then_episode():
    assert compare_episodes(Numbered(1, 12), Numbered(2, 1)) < 0
    assert compare_episodes(Numbered(2, 3), Numbered(2, 1)) > 0
    assert compare_episodes(Numbered(2, 3), Numbered(2, 3)) == 0

def test_numbered_is_greater_than_special():
    assert compare_episodes(Numbered(1, 1), Special("NCED1")) > 0
    assert compare_episodes(Special("ZZZ"), Numbered(1, 1)) < 0

def test_specials_order_by_label():
    assert compare_episodes(Special("NCED1"), Special("NCOP1")) < 0

def test_equality_is_structural_per_variant():
    assert Numbered(1, 2) == Numbered(1, 2)
    assert Special("OP") == Special("OP")
    assert Numbered(1, 1) != Special("S01 E01")
    assert len({Numbered(1, 2), Numbered(1, 2), Special("OP")}) == 2

def test_sort_mixed_list():
    episodes = [Numbered(2, 1), Special("OP1"), Numbered(1, 2), Special("ED1"), Numbered(1, 1)]
    assert sorted(episodes, key=episode_sort_key) == [
        Special("ED1"), Special("OP1"), Numbered(1, 1), Numbered(1, 2), Numbered(2, 1),
    ]
