import pytest

from backend.texture_classes import AssignmentFrozenError, TextureRole
from texture_assigner import (NO_SELECTION, AutoSingle, ManualOverride, PriorityIndex, manual_indices_for,
                              parse_manual_selection, policy_from_settings, resolve)
from texture_finder import classify

from conftest import KEYWORD_TABLE


WOOD_SET = ["wood_basecolor.png", "wood_normal.png", "wood_metal.png", "wood_rough.png"]
TWO_METALLIC = ["wood_metal_a.png", "wood_metal_b.png"]


def test_auto_single_selects_sole_candidates():
    assignment = resolve(classify(WOOD_SET, KEYWORD_TABLE), AutoSingle())

    assert assignment.get(TextureRole.ALBEDO).name == "wood_basecolor.png"
    assert assignment.get(TextureRole.NORMAL).name == "wood_normal.png"
    assert assignment.get(TextureRole.METALLIC).name == "wood_metal.png"
    assert assignment.get(TextureRole.ROUGHNESS).name == "wood_rough.png"
    assert assignment.get(TextureRole.SMOOTHNESS) is None
    assert assignment.unresolved() == [TextureRole.SMOOTHNESS]


def test_auto_single_leaves_ambiguous_role_unresolved():
    assignment = resolve(classify(TWO_METALLIC, KEYWORD_TABLE))

    assert assignment.get(TextureRole.METALLIC) is None
    assert TextureRole.METALLIC in assignment.unresolved()


def test_resolve_is_idempotent_and_does_not_touch_the_search_result():
    search_result = classify(WOOD_SET + TWO_METALLIC, KEYWORD_TABLE)
    before = [texture.name for texture in search_result.all_textures()]

    assert resolve(search_result, AutoSingle()) == resolve(search_result, AutoSingle())
    assert resolve(search_result, ManualOverride({TextureRole.METALLIC: 1})) == resolve(search_result, ManualOverride({TextureRole.METALLIC: 1}))
    assert [texture.name for texture in search_result.all_textures()] == before


def test_priority_index_picks_configured_candidate():
    search_result = classify(TWO_METALLIC, KEYWORD_TABLE)

    assert resolve(search_result, PriorityIndex()).get(TextureRole.METALLIC).name == "wood_metal_a.png"
    assert resolve(search_result, PriorityIndex({TextureRole.METALLIC: 1})).get(TextureRole.METALLIC).name == "wood_metal_b.png"
    assert resolve(search_result, PriorityIndex({TextureRole.METALLIC: 7})).get(TextureRole.METALLIC).name == "wood_metal_a.png"


def test_manual_index_selects_second_metallic():
    assignment = resolve(classify(TWO_METALLIC, KEYWORD_TABLE), ManualOverride({TextureRole.METALLIC: 1}))
    assert assignment.get(TextureRole.METALLIC).name == "wood_metal_b.png"


def test_manual_index_points_into_the_unioned_list():
    search_result = classify(["wood_basecolor.png"] + TWO_METALLIC, KEYWORD_TABLE)
    # all_textures: [basecolor, metal_a, metal_b]
    assignment = resolve(search_result, ManualOverride({TextureRole.METALLIC: 2, TextureRole.ROUGHNESS: 0}))

    assert assignment.get(TextureRole.METALLIC).name == "wood_metal_b.png"
    assert assignment.get(TextureRole.ROUGHNESS).name == "wood_basecolor.png"
    assert assignment.get(TextureRole.ALBEDO).name == "wood_basecolor.png"


@pytest.mark.parametrize("cleared", [NO_SELECTION, None, "None", "-1"])
def test_manual_none_clears_even_an_automatic_pick(cleared):
    assignment = resolve(classify(WOOD_SET, KEYWORD_TABLE), ManualOverride({TextureRole.METALLIC: cleared}))

    assert assignment.get(TextureRole.METALLIC) is None
    assert TextureRole.METALLIC in assignment.cleared
    assert TextureRole.METALLIC not in assignment.unresolved()


@pytest.mark.parametrize("invalid", [5, "abc"])
def test_manual_invalid_index_keeps_automatic_result(invalid):
    assignment = resolve(classify(WOOD_SET, KEYWORD_TABLE), ManualOverride({TextureRole.METALLIC: invalid}))
    assert assignment.get(TextureRole.METALLIC).name == "wood_metal.png"


def test_frozen_assignment_rejects_changes():
    assignment = resolve(classify(WOOD_SET, KEYWORD_TABLE)).freeze()

    with pytest.raises(AssignmentFrozenError):
        assignment.select(TextureRole.ALBEDO, None)
    with pytest.raises(AssignmentFrozenError):
        assignment.clear(TextureRole.NORMAL)


def test_manual_indices_for_prefills_current_selection():
    search_result = classify(["wood_basecolor.png"] + TWO_METALLIC, KEYWORD_TABLE)
    indices = manual_indices_for(resolve(search_result))

    assert indices[TextureRole.ALBEDO] == 0
    assert indices[TextureRole.METALLIC] == NO_SELECTION


def test_parse_manual_selection():
    selection = parse_manual_selection({"metallic": "1", "Roughness": "None", "emission": "0", "normal": -1})
    assert selection == {TextureRole.METALLIC: 1, TextureRole.ROUGHNESS: "None", TextureRole.NORMAL: -1}


def test_policy_from_settings():
    assert policy_from_settings("auto_single") == AutoSingle()
    assert policy_from_settings("priority", {TextureRole.METALLIC: 1}) == PriorityIndex({TextureRole.METALLIC: 1})
    assert policy_from_settings("something_else") == AutoSingle()
