from authz.constants.permissions import ACTIONS, RESOURCES, WILDCARD
from authz.constants.roles import ROLE_PRESETS, build_preset_roles
from authz.services.hierarchy import validate_all


def test_preset_permissions_use_known_names():
    unknown = []
    for role_id, preset in ROLE_PRESETS.items():
        for perm in preset['permissions']:
            if perm['resource'] not in RESOURCES and perm['resource'] != WILDCARD:
                unknown.append((role_id, perm['resource']))
            unknown.extend((role_id, a) for a in perm['actions'] if a not in ACTIONS and a != WILDCARD)
    assert not unknown, f"Preset permissions reference unknown names: {unknown}"


def test_preset_parents_exist():
    for role_id, preset in ROLE_PRESETS.items():
        parent = preset['inherit_from']
        assert parent is None or parent in ROLE_PRESETS, role_id


def test_presets_form_valid_chain(preset_roles):
    assert validate_all(preset_roles) == {}
    assert [r.id for r in preset_roles if r.is_system_role] == ['system-admin']


def test_build_returns_fresh_roles():
    first = build_preset_roles()
    second = build_preset_roles()
    assert all(a is not b for a, b in zip(first, second))
    first[0].name = 'Renamed'
    assert second[0].name == 'System Administrator'
