"""Basic example of a constrained molecular simulation."""

import numpy as np
from particle_dynamics import NonbondedForce, Simulator, StateFlags, Topology, VerletIntegrator, get_backend
from particle_dynamics.utils.logging_config import setup_logging

def main():
    """Run a small box of rigid diatomic molecules."""
    setup_logging("INFO")
    
    # Get backend (NumPy is always available)
    backend = get_backend("numpy")
    
    # Eight diatomics on a grid, each bond held rigid by a constraint
    topology = Topology()
    nonbonded = NonbondedForce()
    positions = []
    for x in range(2):
        for y in range(2):
            for z in range(2):
                first = topology.add_particle(14.0)
                second = topology.add_particle(16.0)
                nonbonded.add_particle(0.3, 0.3, 0.5)
                nonbonded.add_particle(-0.3, 0.3, 0.5)
                nonbonded.add_exclusion(first, second)
                topology.add_constraint(first, second, 0.115)
                positions.append([x, y, z])
                positions.append([x + 0.115, y, z])
    topology.add_force(nonbonded)
    
    # Create simulator with Verlet integrator
    integrator = VerletIntegrator(0.002, constraint_tolerance=1e-6)
    sim = Simulator(topology, integrator, backend)
    sim.set_positions(np.array(positions))
    sim.set_velocities_to_temperature(300.0, seed=42)
    
    # Run simulation
    print("Running simulation...")
    state = sim.get_state(StateFlags.ENERGY)
    print(f"Initial energy: {state.total_energy:.6f}")
    
    for step in range(500):
        sim.step()
        if step % 100 == 0:
            state = sim.get_state(StateFlags.ENERGY | StateFlags.TIME)
            print(
                f"Step {step}: Time={state.time:.3f}, Energy={state.total_energy:.6f}, "
                f"T={sim.compute_temperature():.1f}, max constraint error={sim.constraint_errors().max():.2e}"
            )
    
    print(f"Final energy: {sim.get_state(StateFlags.ENERGY).total_energy:.6f}")
    print("Simulation complete!")

if __name__ == "__main__":
    main()
