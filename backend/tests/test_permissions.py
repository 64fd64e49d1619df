import pytest

from authz.config.settings import Settings, TieBreak
from authz.errors import RoleNotFound
from authz.models.role import PermissionEntry, RoleDefinition, RoleLevel
from authz.services import hierarchy
from authz.services.hierarchy import RoleSet, get_ancestors
from authz.services.permissions import (
    PermissionCalculator, calculate_effective_permissions, format_key, get_calculator, get_permission_diff, has_permission,
)
from authz.utils.snapshot import snapshot_version


def _by_resource(entries):
    return {e.resource: e for e in entries}


def test_root_effective_permissions_are_its_own(roles_by_id, preset_roles):
    admin = roles_by_id['system-admin']
    calculate_effective_permissions(admin, preset_roles)
    assert admin.effective_permissions == admin.permissions
    assert not any(e.inherited for e in admin.effective_permissions)


def test_employee_inherits_whole_chain(roles_by_id, preset_roles):
    employee = roles_by_id['employee']
    calculate_effective_permissions(employee, preset_roles)
    effective = _by_resource(employee.effective_permissions)
    assert set(effective) == {'*', 'reports', 'analytics', 'team', 'projects', 'tasks', 'calendar'}
    assert len(employee.effective_permissions) > len(employee.permissions)
    assert effective['*'].inherited and effective['*'].inherited_from == 'system-admin'
    assert effective['team'].inherited_from == 'manager'
    assert not effective['tasks'].inherited and effective['tasks'].inherited_from is None


def test_every_ancestor_resource_is_present(roles_by_id, preset_roles):
    employee = roles_by_id['employee']
    calculate_effective_permissions(employee, preset_roles)
    resources = {e.resource for e in employee.effective_permissions}
    for ancestor in get_ancestors(employee, preset_roles):
        assert {p.resource for p in ancestor.permissions} <= resources


def test_one_entry_per_resource(roles_by_id, preset_roles):
    for role in preset_roles:
        calculate_effective_permissions(role, preset_roles)
        resources = [e.resource for e in role.effective_permissions]
        assert len(resources) == len(set(resources))


def test_higher_priority_child_grant_wins(parent_child_docs):
    parent, child = parent_child_docs
    calculate_effective_permissions(child, [parent, child])
    docs = _by_resource(child.effective_permissions)['docs']
    assert docs.actions == frozenset({'read', 'write', 'delete'})
    assert docs.priority == 80
    assert not docs.inherited


def test_higher_priority_ancestor_grant_wins():
    parent = RoleDefinition(
        id='parent', role_level=RoleLevel.MANAGEMENT, permissions=(PermissionEntry('docs', {'read'}, priority=90),),
    )
    child = RoleDefinition(id='child', inherit_from='parent', permissions=(PermissionEntry('docs', {'write'}, priority=10),))
    calculate_effective_permissions(child, [parent, child])
    docs = _by_resource(child.effective_permissions)['docs']
    assert docs.actions == frozenset({'read'})
    assert docs.inherited_from == 'parent'


def _tied_pair():
    parent = RoleDefinition(id='parent', permissions=(PermissionEntry('docs', {'read'}, priority=50),))
    child = RoleDefinition(id='child', inherit_from='parent', permissions=(PermissionEntry('docs', {'write'}, priority=50),))
    return parent, child


def test_equal_priority_defaults_to_descendant():
    parent, child = _tied_pair()
    calculate_effective_permissions(child, [parent, child])
    assert _by_resource(child.effective_permissions)['docs'].actions == frozenset({'write'})


def test_equal_priority_ancestor_policy():
    parent, child = _tied_pair()
    calculator = PermissionCalculator(Settings(tie_break=TieBreak.ANCESTOR))
    calculator.calculate_effective_permissions(child, [parent, child])
    docs = _by_resource(child.effective_permissions)['docs']
    assert docs.actions == frozenset({'read'})
    assert docs.inherited_from == 'parent'


def test_locked_ancestor_grant_is_kept():
    parent = RoleDefinition(
        id='parent', permissions=(PermissionEntry('docs', {'read'}, priority=10, can_override=False),),
    )
    child = RoleDefinition(id='child', inherit_from='parent', permissions=(PermissionEntry('docs', {'delete'}, priority=99),))
    calculate_effective_permissions(child, [parent, child])
    docs = _by_resource(child.effective_permissions)['docs']
    assert docs.actions == frozenset({'read'})
    assert docs.inherited


def test_missing_parent_yields_own_permissions():
    orphan = RoleDefinition(id='orphan', inherit_from='ghost', permissions=(PermissionEntry('docs', {'read'}),))
    calculate_effective_permissions(orphan, [orphan])
    assert orphan.effective_permissions == orphan.permissions


def test_cyclic_batch_still_resolves(cyclic_roles):
    for role in cyclic_roles:
        role.permissions = (PermissionEntry(f'res-{role.id}', {'read'}),)
    a = cyclic_roles[0]
    calculate_effective_permissions(a, cyclic_roles)
    assert {e.resource for e in a.effective_permissions} == {'res-A', 'res-B', 'res-C'}


def test_calculation_is_idempotent(roles_by_id, preset_roles):
    employee = roles_by_id['employee']
    calculate_effective_permissions(employee, preset_roles)
    first = employee.effective_permissions
    calculate_effective_permissions(employee, preset_roles)
    assert employee.effective_permissions == first
    PermissionCalculator(Settings()).calculate_effective_permissions(employee, preset_roles)
    assert employee.effective_permissions == first


def test_detached_role_is_computed_without_caching(roles_by_id, preset_roles):
    calculator = PermissionCalculator(Settings())
    candidate = roles_by_id['employee'].copy()
    calculator.calculate_effective_permissions(candidate, preset_roles)
    assert len(candidate.effective_permissions) == 7
    assert calculator.cache_size == 0


def test_has_permission(preset_roles):
    roles = RoleSet(preset_roles)
    assert has_permission('employee', 'team', 'manage', roles)
    assert has_permission('employee', 'tasks', 'create', roles)
    # system-admin's wildcard flows down the whole chain
    assert has_permission('employee', 'payroll', 'approve', roles)
    assert not has_permission('nobody', 'tasks', 'read', roles)


def test_has_permission_without_wildcards(parent_child_docs):
    roles = RoleSet(parent_child_docs)
    assert has_permission('child', 'docs', 'delete', roles)
    assert has_permission('parent', 'docs', 'read', roles)
    assert not has_permission('parent', 'docs', 'delete', roles)
    assert not has_permission('child', 'docs', 'approve', roles)
    assert not has_permission('child', 'other', 'read', roles)


def test_wildcard_action_covers_resource():
    role = RoleDefinition(id='editor', permissions=(PermissionEntry('docs', {'*'}),))
    assert has_permission('editor', 'docs', 'anything', [role])
    assert not has_permission('editor', 'reports', 'read', [role])


def test_permission_diff(preset_roles):
    diff = get_permission_diff('manager', 'employee', preset_roles)
    assert {k[0] for k in diff.added} == {'tasks', 'calendar'}
    assert diff.removed == frozenset()
    assert len(diff.unchanged) == 5


def test_permission_diff_is_symmetric(preset_roles):
    forward = get_permission_diff('executive', 'employee', preset_roles)
    backward = get_permission_diff('employee', 'executive', preset_roles)
    assert forward.added == backward.removed
    assert forward.removed == backward.added
    assert forward.unchanged == backward.unchanged


def test_permission_diff_same_role_is_all_unchanged(preset_roles):
    diff = get_permission_diff('manager', 'manager', preset_roles)
    assert not diff.added and not diff.removed
    assert len(diff.unchanged) == 5


def test_permission_diff_unknown_role(preset_roles):
    with pytest.raises(RoleNotFound) as exc:
        get_permission_diff('manager', 'ghost', preset_roles)
    assert exc.value.role_id == 'ghost'


def test_diff_describe(preset_roles):
    described = get_permission_diff('manager', 'employee', preset_roles).describe()
    assert described['added'] == ['calendar:edit,read', 'tasks:create,edit,read']
    assert described['removed'] == []
    assert format_key(('docs', frozenset({'write', 'read'}))) == 'docs:read,write'


def test_effective_permissions_are_memoized(preset_roles):
    calculator = PermissionCalculator(Settings())
    role_set = RoleSet(preset_roles)
    first = calculator.effective_permissions('employee', role_set)
    assert calculator.effective_permissions('employee', role_set) is first
    assert calculator.cache_size == 1
    calculator.clear_cache()
    assert calculator.cache_size == 0


def test_changed_batch_is_not_served_from_cache(roles_by_id, preset_roles):
    calculator = PermissionCalculator(Settings())
    assert not calculator.has_permission('employee', 'budget', 'approve', [r for r in preset_roles if r.id != 'system-admin'])
    manager = roles_by_id['manager']
    manager.permissions = manager.permissions + (PermissionEntry('budget', {'approve'}, priority=80),)
    assert calculator.has_permission('employee', 'budget', 'approve', [r for r in preset_roles if r.id != 'system-admin'])


def test_cache_is_bounded(preset_roles):
    calculator = PermissionCalculator(Settings(cache_limit=2))
    for role_id in ('executive', 'manager', 'employee'):
        calculator.effective_permissions(role_id, preset_roles)
    assert calculator.cache_size == 2


def test_effective_permissions_unknown_role(preset_roles):
    with pytest.raises(RoleNotFound):
        PermissionCalculator(Settings()).effective_permissions('ghost', preset_roles)


def test_deep_chain_accumulates_every_level():
    roles = [
        RoleDefinition(
            id=f'level-{i}',
            inherit_from=f'level-{i - 1}' if i else None,
            permissions=(PermissionEntry(f'resource-{i}', {'read'}, priority=i),),
        )
        for i in range(100)
    ]
    deepest = roles[-1]
    calculate_effective_permissions(deepest, roles)
    assert len(deepest.effective_permissions) == 100
    assert sum(1 for e in deepest.effective_permissions if e.inherited) == 99


def test_reused_role_set_sees_in_place_edits():
    parent = RoleDefinition(id='p', role_level=RoleLevel.MANAGEMENT, permissions=(PermissionEntry('docs', {'read'}),))
    child = RoleDefinition(id='c', inherit_from='p')
    roles = RoleSet([parent, child])
    assert not has_permission('c', 'docs', 'write', roles)
    parent.permissions = (PermissionEntry('docs', {'read', 'write'}),)
    assert has_permission('c', 'docs', 'write', roles)


def test_resource_declared_twice_keeps_higher_priority():
    role = RoleDefinition(
        id='r', permissions=(PermissionEntry('docs', {'read'}, priority=20), PermissionEntry('docs', {'write'}, priority=10)),
    )
    calculate_effective_permissions(role, [role])
    assert [(e.resource, e.priority, e.actions) for e in role.effective_permissions] == [
        ('docs', 20, frozenset({'read'})),
    ]


def test_reused_role_set_hashes_once(monkeypatch, preset_roles):
    calls = []

    def counting(roles):
        calls.append(1)
        return snapshot_version(roles)

    monkeypatch.setattr(hierarchy, 'snapshot_version', counting)
    roles = RoleSet(preset_roles)
    for _ in range(3):
        assert has_permission('employee', 'tasks', 'edit', roles)
        assert has_permission('employee', 'calendar', 'read', roles)
    assert len(calls) == 1
    assert get_calculator().cache_size == 1
