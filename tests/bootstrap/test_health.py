import pytest

from replboot.bootstrap.health import TopologyHealthChecker
from replboot.bootstrap.identity import MemberIdentityAllocator
from replboot.bootstrap.models import HealthState, MemberRole
from replboot.config.models import ClusterSpec
from replboot.datastore.channel import MemberStatus

from fakes import FakeChannel, FakeClock

M0, M1, M2 = "member-0.test", "member-1.test", "member-2.test"


@pytest.fixture
def env():
    topo = MemberIdentityAllocator().topology(ClusterSpec(members=3, scope="test"))
    channel = FakeChannel(topo.addresses)
    clock = FakeClock()
    checker = TopologyHealthChecker(channel, clock=clock, grace_seconds=120)
    return topo, channel, clock, checker


def test_one_primary_two_secondaries_is_healthy(env):
    topo, channel, clock, checker = env
    channel.configure(topo, primary=M0)

    h = checker.check(topo)
    assert h.state == HealthState.HEALTHY
    assert h.primary == 0
    assert h.roles == {0: MemberRole.PRIMARY, 1: MemberRole.SECONDARY, 2: MemberRole.SECONDARY}
    assert h.observed_at == clock.now()


def test_majority_serving_with_one_member_down_is_degraded(env):
    topo, channel, clock, checker = env
    channel.configure(topo, primary=M0)
    channel.reachable.discard(M2)

    h = checker.check(topo)
    assert h.state == HealthState.DEGRADED
    assert h.unreachable == (2,)


def test_minority_reachable_is_unreachable(env):
    topo, channel, clock, checker = env
    channel.configure(topo, primary=M0)
    channel.reachable -= {M1, M2}

    assert checker.check(topo).state == HealthState.UNREACHABLE


def test_nothing_reachable_is_unreachable(env):
    topo, channel, clock, checker = env
    channel.reachable.clear()
    assert checker.check(topo).state == HealthState.UNREACHABLE


def test_reachable_but_never_initiated_is_uninitialized(env):
    topo, channel, clock, checker = env
    assert checker.check(topo).state == HealthState.UNINITIALIZED


def test_members_still_joining_inside_grace_are_initializing(env):
    topo, channel, clock, checker = env
    channel.status[M0] = MemberStatus(initialized=True, role=MemberRole.PRIMARY, set_name="rs0")
    initiated_at = clock.now()

    assert checker.check(topo, initiated_at=initiated_at).state == HealthState.INITIALIZING

    clock.advance(121)
    assert checker.check(topo, initiated_at=initiated_at).state == HealthState.DEGRADED


def test_unsettled_roles_converge_then_degrade(env):
    topo, channel, clock, checker = env
    channel.roles_after_initiate = {M0: MemberRole.STARTUP, M1: MemberRole.STARTUP, M2: MemberRole.RECOVERING}
    channel.configure(topo)
    initiated_at = clock.now()

    h = checker.check(topo, initiated_at=initiated_at)
    assert h.state == HealthState.CONVERGING
    assert h.primary is None

    clock.advance(300)
    assert checker.check(topo, initiated_at=initiated_at).state == HealthState.DEGRADED


def test_two_primaries_are_degraded_even_inside_grace(env):
    topo, channel, clock, checker = env
    channel.configure(topo, primary=M0)
    channel.set_role(M1, MemberRole.PRIMARY)

    assert checker.check(topo, initiated_at=clock.now()).state == HealthState.DEGRADED


def test_every_check_is_a_fresh_snapshot(env):
    topo, channel, clock, checker = env
    channel.configure(topo, primary=M0)
    channel.reachable.discard(M1)
    assert checker.check(topo).state == HealthState.DEGRADED

    channel.reachable.add(M1)
    assert checker.check(topo).state == HealthState.HEALTHY
