"""Tests for the simulator: constraints, massless particles, snapshots."""

import pytest
import numpy as np
from particle_dynamics.backends.numpy_backend import NumPyBackend
from particle_dynamics.errors import ConfigurationError, ConvergenceFailure, DimensionMismatch, NumericalInstability
from particle_dynamics.physics.forces import HarmonicBondForce, NonbondedForce, UniformFieldForce
from particle_dynamics.physics.integrators import IntegratorStatus, VerletIntegrator
from particle_dynamics.physics.simulator import Simulator
from particle_dynamics.physics.state import StateFlags
from particle_dynamics.physics.topology import Topology
from particle_dynamics.units import BOLTZ
from helpers import assert_equal_tol, distances, random_velocities

ALL_FLAGS = StateFlags.POSITIONS | StateFlags.ENERGY | StateFlags.VELOCITIES | StateFlags.FORCES


def run_and_check_constraints(sim, topology, tol, n_steps=1000):
    """Step while checking constraint distances and energy drift after step 1."""
    targets = np.array([topology.get_constraint_parameters(j)[2] for j in range(topology.num_constraints)])
    initial_energy = 0.0
    for i in range(n_steps):
        state = sim.get_state(ALL_FLAGS)
        realized = distances(state.positions, topology)
        scale = np.maximum(targets, 1.0)
        assert np.all(np.abs(realized - targets) / scale <= tol), f"step {i}: max error {np.max(np.abs(realized - targets))}"
        energy = state.total_energy
        if i == 1:
            initial_energy = energy
        elif i > 1:
            assert_equal_tol(initial_energy, energy, 0.01)
        sim.step(1)


def test_constraints():
    """Constrained particles with nonbonded forces keep their distances."""
    num_particles = 8
    topology = Topology()
    nonbonded = NonbondedForce()
    for i in range(num_particles):
        topology.add_particle(5.0 if i % 2 == 0 else 10.0)
        nonbonded.add_particle(0.2 if i % 2 == 0 else -0.2, 0.5, 5.0)
    topology.add_constraint(0, 1, 1.0)
    topology.add_constraint(1, 2, 1.0)
    topology.add_constraint(2, 3, 1.0)
    topology.add_constraint(4, 5, 1.0)
    topology.add_constraint(6, 7, 1.0)
    topology.add_force(nonbonded)
    integrator = VerletIntegrator(0.001, constraint_tolerance=1e-5)
    sim = Simulator(topology, integrator, NumPyBackend())
    positions = np.array([[i // 2, (i + 1) // 2, 0] for i in range(num_particles)], dtype=float)
    sim.set_positions(positions)
    sim.set_velocities(random_velocities(num_particles))
    
    run_and_check_constraints(sim, topology, 1e-4)


def test_constrained_clusters():
    """Small rigid clusters, including sqrt(2) distances, stay rigid."""
    num_particles = 7
    topology = Topology()
    nonbonded = NonbondedForce()
    for i in range(num_particles):
        topology.add_particle(1.0 if i > 1 else 10.0)
        nonbonded.add_particle(0.2 if i % 2 == 0 else -0.2, 0.5, 5.0)
    topology.add_constraint(0, 1, 1.0)
    topology.add_constraint(0, 2, 1.0)
    topology.add_constraint(0, 3, 1.0)
    topology.add_constraint(0, 4, 1.0)
    topology.add_constraint(1, 5, 1.0)
    topology.add_constraint(1, 6, 1.0)
    topology.add_constraint(2, 3, np.sqrt(2.0))
    topology.add_constraint(2, 4, np.sqrt(2.0))
    topology.add_constraint(3, 4, np.sqrt(2.0))
    topology.add_constraint(5, 6, np.sqrt(2.0))
    topology.add_force(nonbonded)
    integrator = VerletIntegrator(0.001, constraint_tolerance=1e-5)
    sim = Simulator(topology, integrator)
    sim.set_positions([
        [0, 0, 0],
        [1, 0, 0],
        [-1, 0, 0],
        [0, 1, 0],
        [0, 0, 1],
        [2, 0, 0],
        [1, 1, 0],
    ])
    sim.set_velocities(random_velocities(num_particles))
    
    run_and_check_constraints(sim, topology, 2e-5)


def test_constrained_massless_particles():
    """Massless/massive constraints are rejected; massless pairs are allowed."""
    topology = Topology()
    topology.add_particle(0.0)
    topology.add_particle(1.0)
    topology.add_constraint(0, 1, 1.5)
    positions = [[-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]]
    integrator = VerletIntegrator(0.01)
    
    with pytest.raises(ConfigurationError) as excinfo:
        Simulator(topology, integrator)
    assert excinfo.value.constraints == [0]
    assert not topology.locked
    
    # Now make both particles massless, which should work
    topology.set_particle_mass(1, 0.0)
    sim = Simulator(topology, integrator)
    sim.set_positions(positions)
    sim.set_velocities_to_temperature(300.0)
    integrator.step(1)
    state = sim.get_state(StateFlags.VELOCITIES | StateFlags.POSITIONS)
    
    assert state.velocities[0][0] == 0.0
    assert np.array_equal(state.positions, positions)


@pytest.mark.parametrize("num_particles", [10, 1500])
def test_constrained_chain(num_particles):
    """A linear chain with every link constrained."""
    topology = Topology()
    positions = np.zeros((num_particles, 3))
    rng = np.random.default_rng(0)
    for i in range(num_particles):
        topology.add_particle(1.0)
        if i > 0:
            topology.add_constraint(i - 1, i, 1.0)
            delta = rng.random(3) - 0.5
            delta /= np.sqrt(delta.dot(delta))
            positions[i] = positions[i - 1] + delta
    integrator = VerletIntegrator(0.001, constraint_tolerance=1e-5)
    sim = Simulator(topology, integrator)
    sim.set_positions(positions)
    sim.set_velocities_to_temperature(300.0, seed=0)
    
    run_and_check_constraints(sim, topology, 2e-5)


def test_initial_temperature():
    """Velocities drawn at 300 K give an instantaneous temperature of 300 K."""
    num_particles = 50000
    target_temperature = 300.0
    topology = Topology()
    for _ in range(num_particles):
        topology.add_particle(1.0)
    sim = Simulator(topology, VerletIntegrator(0.001))
    sim.set_positions(np.random.default_rng(0).random((num_particles, 3)))
    
    sim.set_velocities_to_temperature(target_temperature, seed=1234)
    
    velocities = sim.get_state(StateFlags.VELOCITIES).velocities
    kinetic_energy = 0.5 * np.sum(velocities ** 2)
    temperature = 2 * kinetic_energy / (3 * num_particles * BOLTZ)
    assert_equal_tol(target_temperature, temperature, 0.01)
    assert_equal_tol(target_temperature, sim.compute_temperature(), 0.01)


def test_temperature_scales_with_mass():
    """Heavier particles are slower: component variance is k_B T / m."""
    topology = Topology()
    for _ in range(20000):
        topology.add_particle(16.0)
    sim = Simulator(topology, VerletIntegrator(0.001))
    sim.set_velocities_to_temperature(300.0, seed=5)
    
    velocities = sim.get_state(StateFlags.VELOCITIES).velocities
    assert_equal_tol(BOLTZ * 300.0 / 16.0, np.var(velocities), 0.02)


def test_snapshot_is_idempotent():
    """Two position snapshots without stepping are bit-identical."""
    topology = Topology()
    for _ in range(5):
        topology.add_particle(1.0)
    sim = Simulator(topology, VerletIntegrator(0.002))
    sim.set_positions(np.random.default_rng(2).normal(size=(5, 3)))
    sim.set_velocities(np.random.default_rng(3).normal(size=(5, 3)))
    sim.step(4)
    
    first = sim.get_state(StateFlags.POSITIONS)
    second = sim.get_state(StateFlags.POSITIONS)
    
    assert first.positions.tobytes() == second.positions.tobytes()
    assert first is not second


def test_snapshot_contains_only_requested_fields():
    """Unrequested quantities are None and forces are not evaluated."""
    topology = Topology()
    topology.add_particle(1.0)
    calls = []
    
    class CountingField(UniformFieldForce):
        def compute(self, positions, box, backend):
            calls.append(1)
            return super().compute(positions, box, backend)
    
    field = CountingField((0.0, 0.0, 1.0))
    field.add_particle(0)
    topology.add_force(field)
    sim = Simulator(topology, VerletIntegrator(0.01))
    
    state = sim.get_state(StateFlags.POSITIONS)
    assert state.velocities is None
    assert state.forces is None
    assert state.potential_energy is None
    assert state.kinetic_energy is None
    assert state.time is None
    assert calls == []
    
    state = sim.get_state(StateFlags.FORCES | StateFlags.TIME)
    assert np.array_equal(state.forces, [[0.0, 0.0, -1.0]])
    assert state.time == 0.0
    assert state.step_count == 0
    assert len(calls) == 1


def test_snapshot_is_read_only():
    """Snapshot arrays cannot be modified and do not alias the state."""
    topology = Topology()
    topology.add_particle(1.0)
    sim = Simulator(topology, VerletIntegrator(0.01))
    sim.set_velocities([[1.0, 0.0, 0.0]])
    state = sim.get_state(StateFlags.POSITIONS)
    
    with pytest.raises(ValueError):
        state.positions[0, 0] = 5.0
    sim.step(1)
    assert state.positions[0, 0] == 0.0


def test_energy_groups_in_snapshot():
    """Potential energy can be restricted to some force groups."""
    topology = Topology()
    topology.add_particle(1.0)
    f1 = UniformFieldForce((1.0, 0.0, 0.0))
    f1.add_particle(0)
    f2 = UniformFieldForce((0.0, 1.0, 0.0))
    f2.add_particle(0)
    topology.add_force(f1, group=1)
    topology.add_force(f2, group=2)
    sim = Simulator(topology, VerletIntegrator(0.01))
    sim.set_positions([[2.0, 3.0, 0.0]])
    
    assert sim.get_state(StateFlags.ENERGY).potential_energy == 5.0
    assert sim.get_state(StateFlags.ENERGY, groups=1 << 2).potential_energy == 3.0


def test_dimension_mismatch():
    """Arrays must have one 3-vector per particle."""
    topology = Topology()
    topology.add_particle(1.0)
    topology.add_particle(1.0)
    sim = Simulator(topology, VerletIntegrator(0.01))
    
    with pytest.raises(DimensionMismatch) as excinfo:
        sim.set_positions(np.zeros((3, 3)))
    assert excinfo.value.expected == (2, 3)
    assert excinfo.value.actual == (3, 3)
    with pytest.raises(DimensionMismatch):
        sim.set_velocities(np.zeros((2, 2)))


def test_failed_step_is_not_committed():
    """A step whose constraints do not converge leaves the state untouched."""
    topology = Topology()
    for _ in range(3):
        topology.add_particle(1.0)
    topology.add_constraint(0, 1, 1.0)
    topology.add_constraint(1, 2, 1.0)
    topology.add_constraint(0, 2, 1.0)
    integrator = VerletIntegrator(0.05, constraint_tolerance=1e-12, max_constraint_iterations=1)
    sim = Simulator(topology, integrator)
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.5, np.sqrt(3) / 2, 0.0]])
    sim.set_positions(positions)
    sim.set_velocities(np.random.default_rng(4).normal(scale=5.0, size=(3, 3)))
    before = sim.get_state(StateFlags.POSITIONS | StateFlags.VELOCITIES)
    
    with pytest.raises(NumericalInstability) as excinfo:
        sim.step(1)
    
    assert isinstance(excinfo.value, ConvergenceFailure)
    after = sim.get_state(StateFlags.POSITIONS | StateFlags.VELOCITIES | StateFlags.TIME)
    assert np.array_equal(after.positions, before.positions)
    assert np.array_equal(after.velocities, before.velocities)
    assert after.time == 0.0
    assert after.step_count == 0
    assert integrator.status is IntegratorStatus.IDLE


def test_apply_constraints():
    """Positions and velocities can be projected on demand."""
    topology = Topology()
    topology.add_particle(1.0)
    topology.add_particle(3.0)
    topology.add_constraint(0, 1, 1.0)
    sim = Simulator(topology, VerletIntegrator(0.001))
    sim.set_positions([[0.0, 0.0, 0.0], [1.2, 0.1, 0.0]])
    sim.set_velocities([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    
    sim.apply_constraints()
    assert sim.constraint_errors()[0] <= 1e-5
    
    sim.apply_velocity_constraints(tolerance=1e-10)
    state = sim.get_state(StateFlags.POSITIONS | StateFlags.VELOCITIES)
    bond = state.positions[0] - state.positions[1]
    assert abs(np.dot(bond, state.velocities[0] - state.velocities[1])) < 1e-9


def test_topology_locked_after_binding():
    """A bound topology cannot change; reinitialize picks up force parameters."""
    topology = Topology()
    topology.add_particle(1.0)
    topology.add_particle(1.0)
    bond = HarmonicBondForce()
    bond.add_bond(0, 1, 1.0, 1.0)
    topology.add_force(bond)
    sim = Simulator(topology, VerletIntegrator(0.01))
    sim.set_positions([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    
    with pytest.raises(ConfigurationError):
        topology.add_particle(1.0)
    with pytest.raises(ConfigurationError):
        topology.add_constraint(0, 1, 1.0)
    with pytest.raises(ConfigurationError):
        topology.add_force(HarmonicBondForce())
    
    assert np.isclose(sim.get_state(StateFlags.ENERGY).potential_energy, 0.5)
    bond.set_bond_parameters(0, 0, 1, 1.0, 3.0)
    assert np.isclose(sim.get_state(StateFlags.ENERGY).potential_energy, 0.5)
    sim.reinitialize()
    assert np.isclose(sim.get_state(StateFlags.ENERGY).potential_energy, 1.5)
    assert np.array_equal(sim.get_state(StateFlags.POSITIONS).positions[1], [2.0, 0.0, 0.0])
    
    sim.reinitialize(preserve_state=False)
    assert np.array_equal(sim.get_state(StateFlags.POSITIONS).positions, np.zeros((2, 3)))


def test_topology_validation():
    """Invalid particles and constraints are rejected when added."""
    topology = Topology()
    with pytest.raises(ValueError):
        topology.add_particle(-1.0)
    topology.add_particle(1.0)
    topology.add_particle(1.0)
    with pytest.raises(ValueError):
        topology.add_constraint(0, 0, 1.0)
    with pytest.raises(ValueError):
        topology.add_constraint(0, 2, 1.0)
    with pytest.raises(ValueError):
        topology.add_constraint(0, 1, 0.0)
    
    with pytest.raises(ValueError):
        topology.get_particle_mass(-1)
    with pytest.raises(ValueError):
        topology.get_constraint_parameters(0)
    topology.add_constraint(0, 1, 1.0)
    assert topology.get_constraint_parameters(0) == (0, 1, 1.0)
    with pytest.raises(ValueError):
        topology.get_constraint_parameters(-1)
    with pytest.raises(ValueError):
        topology.get_force(0)
    
    bond = HarmonicBondForce()
    bond.add_bond(0, 5, 1.0, 1.0)
    topology.add_force(bond)
    with pytest.raises(ConfigurationError):
        Simulator(topology, VerletIntegrator(0.01))


def test_box_vectors_are_passed_through():
    """Box vectors are stored and handed to the force terms unchanged."""
    topology = Topology()
    topology.add_particle(1.0)
    topology.set_box_vectors((2.0, 0, 0), (0, 2.0, 0), (0, 0, 2.0))
    seen = []
    
    class BoxRecorder(UniformFieldForce):
        def compute(self, positions, box, backend):
            seen.append(box)
            return super().compute(positions, box, backend)
    
    topology.add_force(BoxRecorder())
    sim = Simulator(topology, VerletIntegrator(0.01))
    sim.get_state(StateFlags.ENERGY)
    
    assert np.array_equal(seen[0], np.diag([2.0, 2.0, 2.0]))
    with pytest.raises(ValueError):
        Topology().set_box_vectors((1, 0), (0, 1), (0, 0))


def test_failed_temperature_draw_keeps_velocities():
    """Velocities are only replaced once the drawn ones satisfy the constraints."""
    topology = Topology()
    for _ in range(3):
        topology.add_particle(1.0)
    topology.add_constraint(0, 1, 1.0)
    topology.add_constraint(1, 2, 1.0)
    topology.add_constraint(0, 2, 1.0)
    integrator = VerletIntegrator(0.01, constraint_tolerance=1e-12, max_constraint_iterations=1)
    sim = Simulator(topology, integrator)
    sim.set_positions([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.5, np.sqrt(3) / 2, 0.0]])
    drift = np.array([[1.0, 0.0, 0.0]] * 3)
    sim.set_velocities(drift)
    
    with pytest.raises(ConvergenceFailure):
        sim.set_velocities_to_temperature(300.0, seed=3)
    
    velocities = sim.get_state(StateFlags.VELOCITIES).velocities
    assert np.array_equal(velocities, drift)


def test_constraint_tolerance_must_be_positive():
    """An explicit tolerance of zero is rejected instead of replaced by the default."""
    topology = Topology()
    topology.add_particle(1.0)
    topology.add_particle(1.0)
    topology.add_constraint(0, 1, 1.0)
    sim = Simulator(topology, VerletIntegrator(0.001))
    positions = [[0.0, 0.0, 0.0], [1.1, 0.0, 0.0]]
    sim.set_positions(positions)
    
    with pytest.raises(ValueError):
        sim.apply_constraints(tolerance=0.0)
    with pytest.raises(ValueError):
        sim.apply_velocity_constraints(tolerance=0.0)
    assert np.array_equal(sim.get_state(StateFlags.POSITIONS).positions, positions)
    
    sim.apply_constraints(tolerance=1e-10)
    assert sim.constraint_errors()[0] <= 1e-10


def test_force_term_belongs_to_one_topology():
    """A force term cannot be shared, so its group cannot change behind a topology's back."""
    field = UniformFieldForce((0.0, 0.0, 1.0))
    first = Topology()
    first.add_particle(1.0)
    first.add_force(field, group=3)
    second = Topology()
    second.add_particle(1.0)
    
    with pytest.raises(ConfigurationError):
        second.add_force(field, group=5)
    with pytest.raises(ConfigurationError):
        first.add_force(field)
    
    assert field.group == 3
    assert second.num_forces == 0
    assert first.num_forces == 1
