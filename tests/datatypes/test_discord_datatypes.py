import pytest

from modfeed.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, RoleID


def test_guildid_from_int_and_str_and_equality_and_hash():
    g1 = GuildID(12345)
    assert g1.to_int() == 12345
    assert str(g1) == "12345"

    g2 = GuildID(" 12345 ")
    assert g1 == g2

    g3 = GuildID.from_int(67890)
    assert isinstance(g3, GuildID)

    # equality with raw types
    assert g1 == 12345
    assert g1 == "12345"

    # hashing and set membership
    assert len({g1, g2, g3}) == 2


def test_wrapping_an_id_copies_its_value():
    assert ChannelID(ChannelID(7)) == ChannelID(7)


def test_different_id_kinds_never_compare_equal():
    assert GuildID(5) != ChannelID(5)
    assert RoleID(5) != MessageID(5)


@pytest.mark.parametrize("bad", [True, [], 1.5, "not-a-number"])
def test_invalid_values_rejected(bad):
    with pytest.raises(ValueError):
        GuildID(bad)  # type: ignore


def test_optional_passes_none_through():
    assert ChannelID.optional(None) is None
    assert ChannelID.optional(42) == ChannelID(42)


def test_ids_sort_numerically():
    assert sorted([GuildID(100), GuildID(20), GuildID(3)]) == [GuildID(3), GuildID(20), GuildID(100)]


def test_repr_names_the_kind():
    assert repr(RoleID(9)) == "RoleID('9')"
